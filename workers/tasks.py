# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Defines background tasks for work that shouldn't hold up a request.
#
# Tasks:
# - send_drop_notifications: Email every recipient of a drop
# =============================================================================

import logging
from typing import Any
from celery import shared_task, current_task

logger = logging.getLogger(__name__)


# =============================================================================
# Task State Updates
# =============================================================================

def update_progress(sent: int, total: int, message: str = "Sending..."):
    """
    Update task progress for polling.

    Args:
        sent: Emails attempted so far
        total: Total emails
        message: Status message
    """
    if current_task:
        current_task.update_state(
            state="PROGRESS",
            meta={
                "sent": sent,
                "total": total,
                "message": message,
            }
        )


# =============================================================================
# Notification Task
# =============================================================================

@shared_task(bind=True, name="workers.tasks.send_drop_notifications")
def send_drop_notifications(
    self,
    drop_id: str,
    recipient_emails: list[str],
    creator_email: str,
) -> dict[str, Any]:
    """
    Email each recipient of a drop a link to it.

    Args:
        drop_id: The drop UUID
        recipient_emails: Addresses to notify
        creator_email: Shown in the email body

    Returns:
        Dict with sent, successful, failed, details and message
        (same shape as NotificationService.send_drop_notification)
    """
    from core.services.notification_service import NotificationService
    from lib.supabase_client import SupabaseClient

    drop = SupabaseClient.fetch_drop(drop_id)
    if not drop:
        logger.warning(f"Drop {drop_id} no longer exists, skipping notifications")
        return {"sent": False, "successful": 0, "failed": 0, "details": [], "message": "Drop not found"}

    recipients = [email.strip() for email in recipient_emails if email and email.strip()]
    if not recipients:
        return {"sent": False, "successful": 0, "failed": 0, "details": [], "message": "No recipients to notify"}

    result = NotificationService.send_drop_notification(
        drop, recipients, creator_email, on_progress=update_progress,
    )
    logger.info(f"Notification task for drop {drop_id}: {result['message']}")
    return result
