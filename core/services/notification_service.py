# =============================================================================
# core/services/notification_service.py - Recipient Notification Emails
# =============================================================================
# Emails every recipient of a drop a link to the access page.
#
# Templates live in core/templates/emails and are rendered with Jinja2
# (HTML autoescaped, plain-text alternative). Messages are sent through
# the Resend REST API, one request per recipient so a bad address does not
# block the rest.
# =============================================================================

import logging
from pathlib import Path
from typing import Any, Callable

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.config import settings
from lib.content import format_duration_hours
from lib.periods import parse_timestamp

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "emails"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    trim_blocks=True,
    lstrip_blocks=True,
)


def access_link(drop_id: str) -> str:
    return f"{settings.app_url}/drops/{drop_id}"


def timer_mode_for(drop: dict[str, Any]) -> str:
    """Drops with a shared deadline are in creation mode."""
    return "creation" if drop.get("expires_at") else "verification"


def expiry_info_for(drop: dict[str, Any]) -> str:
    """
    Human-readable expiry for the email body.

    Example:
        creation:     "October 18, 2026 at 03:00 PM UTC"
        verification: "1 day and 3 hours"
    """
    if timer_mode_for(drop) == "creation":
        expires_at = parse_timestamp(drop["expires_at"])
        return expires_at.strftime("%B %d, %Y at %I:%M %p UTC")

    hours = drop.get("default_time_limit_hours")
    if hours:
        return format_duration_hours(hours)
    return ""


def render_notification(drop: dict[str, Any], creator_email: str) -> tuple[str, str, str]:
    """
    Render the notification email for a drop.

    Returns:
        Tuple of (subject, html, text)
    """
    context = {
        "drop_name": drop.get("name", ""),
        "drop_description": drop.get("description"),
        "creator_email": creator_email,
        "access_link": access_link(drop["id"]),
        "timer_mode": timer_mode_for(drop),
        "expiry_info": expiry_info_for(drop),
    }
    subject = f"You've received a secure drop: {context['drop_name']}"
    html = _env.get_template("drop_notification.html").render(**context)
    text = _env.get_template("drop_notification.txt").render(**context)
    return subject, html, text


class NotificationService:
    """Service for drop notification emails."""

    @staticmethod
    def send_email(to_email: str, subject: str, html: str, text: str) -> dict[str, Any]:
        """
        Send one email via Resend.

        Returns:
            Dict with email, success and message_id or error
        """
        try:
            response = httpx.post(
                RESEND_API_URL,
                json={
                    "from": settings.RESEND_FROM_EMAIL,
                    "to": [to_email],
                    "subject": subject,
                    "html": html,
                    "text": text,
                },
                headers={
                    "Authorization": f"Bearer {settings.RESEND_API_KEY}",
                    "Content-Type": "application/json",
                },
                timeout=10,
            )
            if response.status_code >= 400:
                return {"email": to_email, "success": False, "error": response.text}
            return {"email": to_email, "success": True, "message_id": response.json().get("id")}

        except (httpx.HTTPError, ValueError) as e:
            # ValueError: a 2xx reply whose body isn't JSON
            return {"email": to_email, "success": False, "error": str(e)}

    @staticmethod
    def send_drop_notification(
        drop: dict[str, Any],
        recipient_emails: list[str],
        creator_email: str,
        on_progress: Callable[[int, int, str], None] | None = None,
    ) -> dict[str, Any]:
        """
        Email each recipient a link to the drop.

        Args:
            drop: Drop row (needs id, name; description/expiry optional)
            recipient_emails: Addresses to notify
            creator_email: Shown as the sender in the email body
            on_progress: Called with (sent, total, message) before each email

        Returns:
            Dict with successful/failed counts and per-recipient details

        Raises:
            ValueError: If there are no recipients
        """
        recipients = [email.strip() for email in recipient_emails if email and email.strip()]
        if not recipients:
            raise ValueError("Recipients must be a non-empty list")

        if not settings.RESEND_API_KEY:
            logger.warning(f"RESEND_API_KEY not set, skipping notifications for drop {drop.get('id')}")
            return {
                "sent": False,
                "successful": 0,
                "failed": 0,
                "details": [],
                "message": "Email delivery is not configured",
            }

        subject, html, text = render_notification(drop, creator_email)
        details = []
        for index, email in enumerate(recipients):
            if on_progress:
                on_progress(index, len(recipients), f"Emailing {email}")
            details.append(NotificationService.send_email(email, subject, html, text))

        successful = sum(1 for d in details if d["success"])
        failed = len(details) - successful
        if failed:
            logger.warning(f"Failed to email {failed}/{len(details)} recipients of drop {drop.get('id')}")
        else:
            logger.info(f"Emailed {successful} recipients of drop {drop.get('id')}")

        return {
            "sent": True,
            "successful": successful,
            "failed": failed,
            "details": details,
            "message": f"Sent {successful}/{len(details)} emails successfully",
        }
