# =============================================================================
# core/services/drop_service.py - Drop Business Logic
# =============================================================================
# Handles drop creation and owner-side management:
# - create (limit check, insert drop + recipients, usage tracking)
# - list / details / toggle / delete
# - dashboard counters and access log export
#
# Separates HTTP concerns from database/business logic.
# =============================================================================

import io
import logging
from datetime import datetime
from typing import Any
from uuid import UUID

import pandas as pd

from lib.periods import ensure_utc, utc_now
from lib.supabase_client import SupabaseClient
from core.models.drop import DropCreateRequest, DropType, TimerMode
from core.services.storage_service import StorageService
from core.services.subscription_guard import SubscriptionGuard
from core.services.usage_service import UsageService
from app.exceptions import (
    AccessDeniedError,
    BadRequestError,
    DropNotFoundError,
    FeatureNotAvailableError,
    LimitExceededError,
)

logger = logging.getLogger(__name__)

ACCESS_LOG_COLUMNS = [
    "accessed_at",
    "recipient_email",
    "access_granted",
    "ip_address",
    "user_agent",
    "location",
]


def check_file_path(owner_id: str, file_path: str | None) -> None:
    """
    A file drop may only point at an object under the owner's own folder.

    Raises:
        BadRequestError: If the path is missing
        AccessDeniedError: If the path is outside {owner_id}/
    """
    if not file_path:
        raise BadRequestError("File path is required for file drops", details={"hint": "Upload the file first"})

    segments = file_path.split("/")
    if segments[0] != owner_id or len(segments) < 2 or any(s in ("", ".", "..") for s in segments[1:]):
        logger.warning(f"User {owner_id} tried to create a drop for file {file_path}")
        raise AccessDeniedError(
            "You can only share files you uploaded",
            code="FILE_NOT_OWNED",
            suggestion="Upload the file first and use the path it returns",
        )


def validate_drop_request(request: DropCreateRequest, now: datetime, owner_id: str) -> None:
    """
    Check the fields each drop type and timer mode depend on.

    Raises:
        BadRequestError: Describing the first missing or invalid field
        AccessDeniedError: If a file drop points at another user's file
    """
    if request.drop_type == DropType.URL and not (request.masked_url or "").strip():
        raise BadRequestError("Masked URL is required for URL drops")

    if request.drop_type == DropType.FILE:
        check_file_path(owner_id, request.file_path)

    if request.timer_mode == TimerMode.CREATION:
        if request.creation_expiry is None:
            raise BadRequestError("An expiry date is required for shared-deadline drops")
        if ensure_utc(request.creation_expiry) <= now:
            raise BadRequestError("Expiry date must be in the future")

    if request.timer_mode == TimerMode.VERIFICATION:
        if not request.default_time_limit_hours:
            raise BadRequestError("A time limit in hours is required for personal-timer drops")
        if request.verification_deadline is not None and ensure_utc(request.verification_deadline) <= now:
            raise BadRequestError("Verification deadline must be in the future")


def build_drop_row(owner_id: str, request: DropCreateRequest, file_size_mb: float = 0) -> dict[str, Any]:
    """Map a create request to a drops row."""
    is_verification = request.timer_mode == TimerMode.VERIFICATION
    return {
        "owner_id": owner_id,
        "name": request.name,
        "description": (request.description or "").strip() or None,
        "drop_type": request.drop_type.value,
        "file_path": request.file_path if request.drop_type == DropType.FILE else None,
        "masked_url": request.masked_url.strip() if request.drop_type == DropType.URL else None,
        "file_size_mb": file_size_mb if request.drop_type == DropType.FILE else 0,
        "one_time_access": request.one_time_access,
        "is_active": True,
        "expires_at": (
            ensure_utc(request.creation_expiry).isoformat()
            if not is_verification and request.creation_expiry else None
        ),
        "default_time_limit_hours": request.default_time_limit_hours if is_verification else None,
        "global_expires_at": (
            ensure_utc(request.verification_deadline).isoformat()
            if is_verification and request.verification_deadline else None
        ),
    }


class DropService:
    """
    Service for drop management operations.

    Provides a clean interface between API routes and database.
    """

    @staticmethod
    def create_drop(
        owner_id: UUID | str,
        request: DropCreateRequest,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Create a drop after checking the owner's plan limits.

        Args:
            owner_id: The authenticated user creating the drop
            request: Validated create request
            now: Current time (for tests)

        Returns:
            Dict with the created drop, recipients list and counts

        Raises:
            BadRequestError: If type/timer specific fields are missing
            AccessDeniedError: If a file drop points outside the owner's folder
            StoredFileNotFoundError: If the file was never uploaded
            LimitExceededError: If the plan does not allow this drop
        """
        now = now or utc_now()
        owner_id_str = str(owner_id)
        recipients = request.recipients

        file_size_mb = 0.0
        if request.drop_type == DropType.FILE:
            check_file_path(owner_id_str, request.file_path)
            file_size_mb = StorageService.get_file_size_mb(request.file_path)

        check = SubscriptionGuard.check_drop_creation(owner_id_str, len(recipients), file_size_mb)
        if not check.allowed:
            raise LimitExceededError(
                reason=check.reason,
                upgrade_prompt=check.upgrade_prompt.model_dump(mode="json") if check.upgrade_prompt else None,
                current_usage=check.current_usage,
                limits=check.limits,
            )

        validate_drop_request(request, now, owner_id_str)

        client = SupabaseClient.get_client()
        response = client.table("drops").insert(build_drop_row(owner_id_str, request, file_size_mb)).execute()
        if not response.data:
            raise Exception("Insert returned no data")

        drop = response.data[0]
        logger.info(f"Created drop: {drop['id']} for user: {owner_id_str}")

        recipients_added = 0
        if recipients:
            time_limit = (
                request.default_time_limit_hours
                if request.timer_mode == TimerMode.VERIFICATION else None
            )
            rows = [
                {"drop_id": drop["id"], "email": email, "time_limit_hours": time_limit}
                for email in recipients
            ]
            try:
                client.table("drop_recipients").insert(rows).execute()
                recipients_added = len(rows)
            except Exception as e:
                logger.error(f"Failed to add recipients to drop {drop['id']}: {e}")

        usage_updated = True
        try:
            UsageService.update_usage_after_drop(owner_id_str, len(recipients), file_size_mb, now)
        except Exception as e:
            usage_updated = False
            logger.error(f"Failed to update usage after drop {drop['id']}: {e}")

        return {
            "drop": drop,
            "recipients": recipients,
            "recipients_added": recipients_added,
            "usage_updated": usage_updated,
        }

    @staticmethod
    def get_drop_for_owner(drop_id: UUID | str, owner_id: UUID | str) -> dict[str, Any]:
        """
        Get a drop the caller owns.

        Raises:
            DropNotFoundError: If the drop doesn't exist or belongs to someone else
        """
        drop = SupabaseClient.fetch_drop(drop_id)
        if not drop or str(drop.get("owner_id")) != str(owner_id):
            # Don't reveal that the drop exists
            raise DropNotFoundError(str(drop_id))
        return drop

    @staticmethod
    def list_drops(
        owner_id: UUID | str,
        page: int = 1,
        page_size: int = 20,
        active: bool | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        List the owner's drops, newest first.

        Returns:
            Tuple of (drops list, total count)
        """
        client = SupabaseClient.get_client()

        query = client.table("drops").select("*", count="exact").eq("owner_id", str(owner_id))
        if active is not None:
            query = query.eq("is_active", active)

        offset = (page - 1) * page_size
        query = query.order("created_at", desc=True).range(offset, offset + page_size - 1)

        response = query.execute()
        return response.data or [], response.count or 0

    @staticmethod
    def get_drop_details(drop_id: UUID | str, owner_id: UUID | str) -> dict[str, Any]:
        """Drop with its recipients (by email) and access logs (newest first)."""
        drop = DropService.get_drop_for_owner(drop_id, owner_id)
        recipients = SupabaseClient.fetch_drop_recipients(drop["id"])
        logs = SupabaseClient.fetch_access_logs(drop["id"])

        return {
            "drop": drop,
            "recipients": recipients,
            "access_logs": logs,
            "stats": {
                "recipients": len(recipients),
                "verified": sum(1 for r in recipients if r.get("verified_at")),
                "views": sum(r.get("access_count") or 0 for r in recipients),
                "denied_attempts": sum(1 for log in logs if not log.get("access_granted", True)),
            },
        }

    @staticmethod
    def set_active(drop_id: UUID | str, owner_id: UUID | str, is_active: bool) -> dict[str, Any]:
        """Enable or disable a drop."""
        drop = DropService.get_drop_for_owner(drop_id, owner_id)
        client = SupabaseClient.get_client()

        response = (
            client.table("drops")
            .update({"is_active": is_active})
            .eq("id", drop["id"])
            .execute()
        )
        logger.info(f"Drop {drop['id']} is_active={is_active}")

        if response.data:
            return response.data[0]
        return {**drop, "is_active": is_active}

    @staticmethod
    def delete_drop(drop_id: UUID | str, owner_id: UUID | str) -> None:
        """
        Delete a drop and its recipients.

        The stored file is removed on a best-effort basis.
        """
        drop = DropService.get_drop_for_owner(drop_id, owner_id)
        client = SupabaseClient.get_client()

        client.table("drop_recipients").delete().eq("drop_id", drop["id"]).execute()
        client.table("drops").delete().eq("id", drop["id"]).execute()
        logger.info(f"Deleted drop: {drop['id']}")

        if drop.get("file_path"):
            StorageService.delete_file(drop["file_path"])

    # -------------------------------------------------------------------------
    # Dashboard Counters
    # -------------------------------------------------------------------------

    @staticmethod
    def count_recipients(owner_id: UUID | str) -> int:
        """Recipients across every drop the user owns."""
        drop_ids = SupabaseClient.fetch_owner_drop_ids(owner_id)
        if not drop_ids:
            return 0

        client = SupabaseClient.get_client()
        response = (
            client.table("drop_recipients")
            .select("id", count="exact")
            .in_("drop_id", drop_ids)
            .execute()
        )
        return response.count or 0

    @staticmethod
    def count_views(owner_id: UUID | str) -> int:
        """Total recipient access count across the user's drops."""
        drop_ids = SupabaseClient.fetch_owner_drop_ids(owner_id)
        if not drop_ids:
            return 0

        client = SupabaseClient.get_client()
        response = (
            client.table("drop_recipients")
            .select("access_count")
            .in_("drop_id", drop_ids)
            .execute()
        )
        return sum(row.get("access_count") or 0 for row in response.data or [])

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    @staticmethod
    def export_access_logs(drop_id: UUID | str, owner_id: UUID | str) -> tuple[str, str]:
        """
        Export a drop's access logs as CSV.

        Returns:
            Tuple of (filename, csv text)

        Raises:
            FeatureNotAvailableError: If the plan has no data export
        """
        access = SubscriptionGuard.check_feature_access(owner_id, "export_data")
        if not access.has_access:
            raise FeatureNotAvailableError(
                "export_data",
                reason=access.reason,
                upgrade_prompt=access.upgrade_prompt.model_dump(mode="json") if access.upgrade_prompt else None,
            )

        drop = DropService.get_drop_for_owner(drop_id, owner_id)
        logs = SupabaseClient.fetch_access_logs(drop["id"])

        df = pd.DataFrame(logs, columns=ACCESS_LOG_COLUMNS)
        buffer = io.StringIO()
        df.to_csv(buffer, index=False)

        filename = f"drop-{drop['id']}-access-logs.csv"
        logger.info(f"Exported {len(df)} access logs for drop {drop['id']}")
        return filename, buffer.getvalue()
