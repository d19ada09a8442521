# =============================================================================
# app/routers/notifications.py - Recipient Notification Endpoints
# =============================================================================
# (Re)sends the "you've received a drop" email to a drop's recipients.
#
# Emails are sent inline, or queued on the Celery "notifications" queue
# when NOTIFICATIONS_ASYNC is enabled.
# =============================================================================

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path

from app.auth import get_current_user, AuthUser
from app.config import settings
from app.exceptions import BadRequestError
from app.routers.tasks import new_task_id
from core.services.drop_service import DropService
from core.services.notification_service import NotificationService
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

router = APIRouter()


def dispatch_drop_notifications(
    drop: dict[str, Any],
    recipient_emails: list[str],
    creator_email: str,
) -> dict[str, Any]:
    """
    Send notification emails inline or queue them for a worker.

    Returns:
        Inline: the send result. Queued: {"queued": True, "task_id": ...}

    Raises:
        HTTPException: 503 if the task could not be queued
    """
    if not settings.NOTIFICATIONS_ASYNC:
        return NotificationService.send_drop_notification(drop, recipient_emails, creator_email)

    try:
        from workers.tasks import send_drop_notifications

        task = send_drop_notifications.apply_async(
            args=[str(drop["id"]), recipient_emails, creator_email],
            task_id=new_task_id(drop["owner_id"]),
        )
        logger.info(f"Queued notifications for drop {drop['id']}: task {task.id}")
        return {"queued": True, "task_id": task.id}

    except Exception as e:
        logger.error(f"Failed to queue notifications for drop {drop['id']}: {e}")
        raise HTTPException(
            status_code=503,
            detail=f"Failed to queue notifications. Is Redis running? Error: {e}"
        )


@router.post("/drops/{drop_id}")
async def send_drop_notifications(
    drop_id: Annotated[UUID, Path(description="Drop UUID")],
    user: AuthUser = Depends(get_current_user),
):
    """
    Email every recipient of a drop a link to it.

    User must own the drop.
    """
    drop = DropService.get_drop_for_owner(drop_id, user.id)
    recipients = [r["email"] for r in SupabaseClient.fetch_drop_recipients(drop["id"])]
    if not recipients:
        raise BadRequestError("This drop has no recipients to notify")

    return dispatch_drop_notifications(drop, recipients, user.email or "")
