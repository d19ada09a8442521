# =============================================================================
# core/services/access_service.py - Recipient Access Flow
# =============================================================================
# Public side of a drop (no login):
#   1. check_availability - is the drop still open, and how is it timed?
#   2. verify_recipient   - is this email on the recipient list? starts the
#                           personal timer and issues a session token
#   3. get_content        - resolve the URL/file for a valid session
#
# Timer modes:
#   creation     - drop.expires_at is a deadline shared by all recipients
#   verification - each recipient gets default_time_limit_hours from their
#                  first verification (recipient.personal_expires_at);
#                  drop.global_expires_at optionally closes verification
# =============================================================================

import logging
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from lib.access_tokens import SessionTokenError, decode_session_token, issue_session_token
from lib.content import classify_file, classify_url, format_duration_hours, format_time_remaining
from lib.periods import ensure_utc, parse_timestamp, utc_now
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_email
from core.models.access import DropAvailability, DropContent, TimerInfo, VerifyResponse
from core.services.storage_service import StorageService
from app.exceptions import (
    AccessDeniedError,
    AccessSessionError,
    DropNotFoundError,
    DropUnavailableError,
)

logger = logging.getLogger(__name__)


def is_verification_mode(drop: dict[str, Any]) -> bool:
    return not drop.get("expires_at") and bool(drop.get("default_time_limit_hours"))


def build_timer_info(drop: dict[str, Any], now: datetime) -> TimerInfo:
    """Timer details shown on the access page before verification."""
    if is_verification_mode(drop):
        return TimerInfo(
            mode="verification",
            label="Personal Timer",
            description="Personal timer starts after verification",
            expires_at=parse_timestamp(drop["global_expires_at"]) if drop.get("global_expires_at") else None,
            duration=format_duration_hours(drop["default_time_limit_hours"]),
        )

    expires_at = parse_timestamp(drop["expires_at"]) if drop.get("expires_at") else None
    return TimerInfo(
        mode="creation",
        label="Shared Deadline",
        description="All recipients have the same deadline",
        expires_at=expires_at,
        time_remaining=format_time_remaining(expires_at, now) if expires_at else None,
    )


def display_file_name(file_path: str | None) -> str | None:
    """Original filename from a `{owner}/{hex}_{name}` storage path."""
    if not file_path:
        return None
    name = file_path.rsplit("/", 1)[-1]
    prefix, sep, rest = name.partition("_")
    if sep and len(prefix) == 32:
        return rest
    return name


class AccessService:
    """Service for the public recipient flow."""

    @staticmethod
    def _load_open_drop(drop_id: UUID | str, now: datetime, check_one_time: bool = True) -> dict[str, Any]:
        """
        Fetch a drop and make sure it can still be opened.

        Raises:
            DropNotFoundError: If the drop doesn't exist
            DropUnavailableError: If inactive, expired or already used
        """
        drop_id_str = str(drop_id)
        drop = SupabaseClient.fetch_drop(drop_id_str)
        if not drop:
            raise DropNotFoundError(drop_id_str)

        if not drop.get("is_active", True):
            raise DropUnavailableError(drop_id_str, "This drop is no longer active", code="DROP_INACTIVE")

        if drop.get("expires_at") and parse_timestamp(drop["expires_at"]) <= now:
            raise DropUnavailableError(drop_id_str, "This drop has expired", code="DROP_EXPIRED")

        if check_one_time and drop.get("one_time_access") and SupabaseClient.has_access_logs(drop_id_str):
            raise DropUnavailableError(
                drop_id_str, "This one-time drop has already been accessed", code="DROP_ALREADY_ACCESSED"
            )

        return drop

    @staticmethod
    def check_availability(drop_id: UUID | str, now: datetime | None = None) -> DropAvailability:
        """
        Public metadata for a drop that can still be accessed.

        Raises:
            DropNotFoundError, DropUnavailableError
        """
        now = now or utc_now()
        drop = AccessService._load_open_drop(drop_id, now)

        return DropAvailability(
            id=str(drop["id"]),
            name=drop["name"],
            description=drop.get("description"),
            drop_type=drop["drop_type"],
            one_time_access=bool(drop.get("one_time_access")),
            timer=build_timer_info(drop, now),
        )

    @staticmethod
    def _log_attempt(
        drop_id: str,
        email: str,
        granted: bool,
        now: datetime,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        try:
            SupabaseClient.insert_access_log({
                "drop_id": drop_id,
                "recipient_email": email,
                "accessed_at": now.isoformat(),
                "ip_address": ip_address,
                "user_agent": user_agent,
                "access_granted": granted,
            })
        except Exception as e:
            logger.error(f"Failed to log access attempt for drop {drop_id}: {e}")

    @staticmethod
    def verify_recipient(
        drop_id: UUID | str,
        email: str,
        now: datetime | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> VerifyResponse:
        """
        Verify that `email` may open the drop and start a viewing session.

        Args:
            drop_id: The drop UUID
            email: Email entered by the recipient
            now: Current time (for tests)
            ip_address: Client IP for the access log
            user_agent: Client user agent for the access log

        Returns:
            VerifyResponse with a signed session token

        Raises:
            DropNotFoundError, DropUnavailableError: Drop cannot be opened
            AccessDeniedError: Email not allowed or access window over
        """
        now = now or utc_now()
        drop = AccessService._load_open_drop(drop_id, now)
        drop_id_str = str(drop["id"])
        email = normalize_email(email)

        recipients = SupabaseClient.fetch_drop_recipients(drop_id_str)
        if not recipients:
            raise AccessDeniedError("No recipients configured for this drop", code="NO_RECIPIENTS")

        recipient = next((r for r in recipients if normalize_email(r.get("email")) == email), None)
        if recipient is None:
            AccessService._log_attempt(drop_id_str, email, False, now, ip_address, user_agent)
            raise AccessDeniedError(
                "This email address is not authorized to access this drop",
                code="NOT_A_RECIPIENT",
                suggestion="Use the email address the drop was sent to",
            )

        first_verification = not recipient.get("verified_at")
        updates: dict[str, Any] = {
            "accessed_at": now.isoformat(),
            "access_count": (recipient.get("access_count") or 0) + 1,
        }

        if is_verification_mode(drop):
            personal_expires_at = (
                parse_timestamp(recipient["personal_expires_at"])
                if recipient.get("personal_expires_at") else None
            )
            if personal_expires_at and personal_expires_at <= now:
                AccessService._log_attempt(drop_id_str, email, False, now, ip_address, user_agent)
                raise AccessDeniedError("Your access to this drop has expired", code="ACCESS_EXPIRED")

            if personal_expires_at is None:
                global_expires_at = (
                    parse_timestamp(drop["global_expires_at"]) if drop.get("global_expires_at") else None
                )
                if global_expires_at and global_expires_at <= now:
                    AccessService._log_attempt(drop_id_str, email, False, now, ip_address, user_agent)
                    raise AccessDeniedError(
                        "The verification window for this drop has closed", code="VERIFICATION_CLOSED"
                    )

                hours = recipient.get("time_limit_hours") or drop["default_time_limit_hours"]
                personal_expires_at = now + timedelta(hours=hours)
                updates["personal_expires_at"] = personal_expires_at.isoformat()

            access_expires_at = personal_expires_at
        else:
            access_expires_at = parse_timestamp(drop["expires_at"]) if drop.get("expires_at") else None

        if first_verification:
            updates["verified_at"] = now.isoformat()

        client = SupabaseClient.get_client()
        client.table("drop_recipients").update(updates).eq("id", recipient["id"]).execute()

        AccessService._log_attempt(drop_id_str, email, True, now, ip_address, user_agent)

        token, session_expires_at = issue_session_token(drop_id_str, email, access_expires_at, now)
        logger.info(f"Recipient verified for drop {drop_id_str} (first={first_verification})")

        return VerifyResponse(
            session_token=token,
            session_expires_at=session_expires_at,
            access_expires_at=access_expires_at,
            first_verification=first_verification,
        )

    @staticmethod
    def get_content(drop_id: UUID | str, token: str | None, now: datetime | None = None) -> DropContent:
        """
        Resolve what the viewer should display for a verified session.

        Raises:
            AccessSessionError: If the session token is missing or invalid
            DropNotFoundError, DropUnavailableError: Drop closed since verification
        """
        now = now or utc_now()
        drop_id_str = str(drop_id)

        try:
            claims = decode_session_token(token, drop_id_str)
        except SessionTokenError as e:
            raise AccessSessionError(e.message, code=e.code)

        # One-time drops were used by this very session
        drop = AccessService._load_open_drop(drop_id_str, now, check_one_time=False)

        access_expires_at = (
            ensure_utc(parse_timestamp(claims["access_expires_at"]))
            if claims.get("access_expires_at") else None
        )

        if drop["drop_type"] == "url":
            resolved = classify_url(drop.get("masked_url") or "")
            return DropContent(
                drop_id=drop_id_str,
                name=drop["name"],
                drop_type="url",
                content_type=resolved["content_type"],
                url=resolved["embed_url"],
                original_url=resolved["original_url"],
                access_expires_at=access_expires_at,
            )

        file_path = drop.get("file_path")
        if not file_path:
            raise DropUnavailableError(drop_id_str, "This drop has no file attached", code="DROP_FILE_MISSING")

        return DropContent(
            drop_id=drop_id_str,
            name=drop["name"],
            drop_type="file",
            content_type=classify_file(file_path),
            url=StorageService.create_signed_url(file_path),
            file_name=display_file_name(file_path),
            access_expires_at=access_expires_at,
        )

    @staticmethod
    def log_access(
        drop_id: UUID | str,
        token: str | None,
        access_granted: bool = True,
        ip_address: str | None = None,
        user_agent: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Record an access event reported by the viewer.

        Only a verified session may write a log entry, and the recipient
        email is taken from its token.

        Raises:
            AccessSessionError: If the session token is missing or invalid
            DropNotFoundError: If the drop doesn't exist
        """
        now = now or utc_now()
        drop_id_str = str(drop_id)

        try:
            claims = decode_session_token(token, drop_id_str)
        except SessionTokenError as e:
            raise AccessSessionError(e.message, code=e.code)

        if not SupabaseClient.fetch_drop(drop_id_str):
            raise DropNotFoundError(drop_id_str)

        return SupabaseClient.insert_access_log({
            "drop_id": drop_id_str,
            "recipient_email": normalize_email(claims["sub"]),
            "accessed_at": now.isoformat(),
            "ip_address": ip_address,
            "user_agent": user_agent,
            "access_granted": access_granted,
        })
