# =============================================================================
# core/services/usage_service.py - Usage Tracking
# =============================================================================
# Maintains the usage_tracking table: one row per user per period
# (calendar month and Sunday-based week) with counters for drops created,
# recipients added and storage used.
#
# Monthly rows are what plan limits are enforced against. Weekly rows are
# kept for reporting.
# =============================================================================

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from lib.periods import PeriodType, period_bounds, utc_now
from lib.supabase_client import SupabaseClient, SupabaseClientError, is_duplicate_key
from lib.tiers import get_tier_limits, normalize_tier
from core.models.usage import UsageAction, UsageCounters
from app.exceptions import UserNotFoundError

logger = logging.getLogger(__name__)

PERIOD_TYPES: tuple[PeriodType, ...] = ("month", "week")

ACTION_FIELDS = {
    UsageAction.DROP_CREATED: "drops_created",
    UsageAction.RECIPIENT_ADDED: "recipients_added",
    UsageAction.STORAGE_USED: "storage_used_mb",
}


def _empty_row(user_id: str, period_type: PeriodType, now: datetime) -> dict[str, Any]:
    start, end = period_bounds(period_type, now)
    return {
        "user_id": user_id,
        "period_type": period_type,
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
        "drops_created": 0,
        "recipients_added": 0,
        "storage_used_mb": 0,
    }


def usage_level(percent: float) -> str:
    """Bucket a usage percentage for meters: low, medium, high or critical."""
    if percent >= 90:
        return "critical"
    if percent >= 75:
        return "high"
    if percent >= 50:
        return "medium"
    return "low"


def usage_percent(used: float, limit: int) -> float:
    """Percentage of a limit used; unlimited (-1) and zero limits report 0."""
    if limit <= 0:
        return 0.0
    return (used / limit) * 100


class UsageService:
    """
    Service for usage counters.

    All methods accept an optional `now` so period boundaries are testable.
    """

    @staticmethod
    def find_period_row(
        user_id: UUID | str,
        period_type: PeriodType,
        now: datetime | None = None,
    ) -> dict[str, Any] | None:
        """
        Fetch the usage row for the period containing `now`.

        Returns:
            The newest matching row, or None if none exists yet
        """
        client = SupabaseClient.get_client()
        start, end = period_bounds(period_type, now or utc_now())

        try:
            response = (
                client.table("usage_tracking")
                .select("*")
                .eq("user_id", str(user_id))
                .eq("period_type", period_type)
                .gte("period_start", start.isoformat())
                .lte("period_start", end.isoformat())
                .order("period_start", desc=True)
                .limit(1)
                .execute()
            )
            rows = response.data or []
            return rows[0] if rows else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch usage: {e}",
                code="FETCH_USAGE_FAILED",
                details={"user_id": str(user_id), "period_type": period_type}
            )

    @staticmethod
    def _insert_row(row: dict[str, Any]) -> dict[str, Any]:
        client = SupabaseClient.get_client()
        response = client.table("usage_tracking").insert(row).execute()
        return response.data[0] if response.data else row

    @staticmethod
    def get_current_usage(user_id: UUID | str, now: datetime | None = None) -> dict[str, Any]:
        """
        Get this month's usage row, creating a zeroed one if needed.

        Returns:
            usage_tracking row dict
        """
        now = now or utc_now()
        usage = UsageService.find_period_row(user_id, "month", now)
        if usage:
            return usage

        try:
            usage = UsageService._insert_row(_empty_row(str(user_id), "month", now))
            logger.info(f"Created monthly usage row for user {user_id}")
            return usage
        except Exception as e:
            # Another request created it first
            if is_duplicate_key(e):
                return UsageService.find_period_row(user_id, "month", now) or _empty_row(str(user_id), "month", now)
            raise

    @staticmethod
    def increment(
        user_id: UUID | str,
        period_type: PeriodType,
        increments: dict[str, float],
        now: datetime | None = None,
    ) -> None:
        """
        Add to counters on one period row, creating the row if missing.

        Args:
            user_id: Owner of the counters
            period_type: "month" or "week"
            increments: Column name -> amount to add
        """
        now = now or utc_now()
        client = SupabaseClient.get_client()
        existing = UsageService.find_period_row(user_id, period_type, now)

        if existing:
            updates: dict[str, Any] = {"updated_at": now.isoformat()}
            for field, amount in increments.items():
                updates[field] = (existing.get(field) or 0) + amount
            client.table("usage_tracking").update(updates).eq("id", existing["id"]).execute()
            return

        row = _empty_row(str(user_id), period_type, now)
        row.update(increments)
        client.table("usage_tracking").insert(row).execute()

    @staticmethod
    def update_usage_after_drop(
        user_id: UUID | str,
        recipient_count: int,
        file_size_mb: float = 0,
        now: datetime | None = None,
    ) -> None:
        """
        Record a newly created drop in the month and week counters.

        Storage is only touched when the drop carries a file.
        """
        increments: dict[str, float] = {
            "drops_created": 1,
            "recipients_added": recipient_count,
        }
        if file_size_mb > 0:
            increments["storage_used_mb"] = file_size_mb

        for period_type in PERIOD_TYPES:
            UsageService.increment(user_id, period_type, increments, now)

        logger.info(
            f"Usage updated for user {user_id}: +1 drop, +{recipient_count} recipients, +{file_size_mb}MB"
        )

    @staticmethod
    def track(
        user_id: UUID | str,
        action: UsageAction,
        amount: float = 1,
        now: datetime | None = None,
    ) -> None:
        """Apply a single counter action to both the month and week rows."""
        field = ACTION_FIELDS[UsageAction(action)]
        for period_type in PERIOD_TYPES:
            UsageService.increment(user_id, period_type, {field: amount}, now)

    @staticmethod
    def _ensure_initial_row(user_id: str, period_type: PeriodType, now: datetime) -> None:
        try:
            UsageService._insert_row(_empty_row(user_id, period_type, now))
        except Exception as e:
            if is_duplicate_key(e):
                return
            logger.warning(f"Could not create initial {period_type} usage row for {user_id}: {e}")

    @staticmethod
    def _counters(row: dict[str, Any] | None, period_type: PeriodType, now: datetime) -> dict[str, Any]:
        start, end = period_bounds(period_type, now)
        row = row or {}
        return UsageCounters(
            drops_created=row.get("drops_created") or 0,
            recipients_added=row.get("recipients_added") or 0,
            storage_used_mb=float(row.get("storage_used_mb") or 0),
            period_start=row.get("period_start") or start.isoformat(),
            period_end=row.get("period_end") or end.isoformat(),
        ).model_dump()

    @staticmethod
    def get_usage_overview(user_id: UUID | str, now: datetime | None = None) -> dict[str, Any]:
        """
        Monthly and weekly counters plus the user's plan limits.

        Missing period rows are reported as zeros and created in the
        background of the request.

        Raises:
            UserNotFoundError: If the user has no profile row
        """
        now = now or utc_now()
        user_id_str = str(user_id)

        monthly = UsageService.find_period_row(user_id_str, "month", now)
        weekly = UsageService.find_period_row(user_id_str, "week", now)

        user = SupabaseClient.fetch_user(user_id_str, "subscription_tier, subscription_status")
        if not user:
            raise UserNotFoundError(user_id_str)

        tier = normalize_tier(user.get("subscription_tier"))
        limits = get_tier_limits(tier)

        if monthly is None:
            UsageService._ensure_initial_row(user_id_str, "month", now)
        if weekly is None:
            UsageService._ensure_initial_row(user_id_str, "week", now)

        return {
            "monthly": UsageService._counters(monthly, "month", now),
            "weekly": UsageService._counters(weekly, "week", now),
            "limits": {
                "drops": limits.drops_per_month,
                "recipients": limits.recipients_per_drop,
                "storage": limits.storage_total_mb,
                "file_size_mb": limits.file_size_mb,
            },
            "subscription": {
                "tier": tier.value,
                "status": user.get("subscription_status") or "free",
            },
        }

    @staticmethod
    def initialize_usage(user_id: UUID | str, now: datetime | None = None) -> dict[str, Any]:
        """
        Rebuild this month's and week's counters from the drops table.

        Used to backfill users created before usage tracking existed.
        Storage is not recomputed and starts at 0.

        Returns:
            Dict with the recounted "monthly" and "weekly" values
        """
        now = now or utc_now()
        user_id_str = str(user_id)
        client = SupabaseClient.get_client()
        result: dict[str, Any] = {}

        for period_type in PERIOD_TYPES:
            start, end = period_bounds(period_type, now)

            drops_response = (
                client.table("drops")
                .select("id")
                .eq("owner_id", user_id_str)
                .gte("created_at", start.isoformat())
                .lte("created_at", now.isoformat())
                .execute()
            )
            drop_ids = [row["id"] for row in drops_response.data or []]

            recipients_added = 0
            if drop_ids:
                recipients_response = (
                    client.table("drop_recipients")
                    .select("id", count="exact")
                    .in_("drop_id", drop_ids)
                    .execute()
                )
                recipients_added = recipients_response.count or 0

            row = {
                "user_id": user_id_str,
                "period_type": period_type,
                "period_start": start.isoformat(),
                "period_end": end.isoformat(),
                "drops_created": len(drop_ids),
                "recipients_added": recipients_added,
                "storage_used_mb": 0,
                "updated_at": now.isoformat(),
            }
            client.table("usage_tracking").upsert(
                row, on_conflict="user_id,period_type,period_start"
            ).execute()

            key = "monthly" if period_type == "month" else "weekly"
            result[key] = {"drops_created": len(drop_ids), "recipients_added": recipients_added}

        logger.info(f"Initialized usage for user {user_id_str}: {result}")
        return result

    @staticmethod
    def reset_usage_for_new_period(user_id: UUID | str, now: datetime | None = None) -> bool:
        """
        Open a zeroed monthly row for the current period.

        Called when a subscription renews. An existing row for the period
        is left untouched.

        Returns:
            True if a new row was created, False if one already existed
        """
        now = now or utc_now()
        try:
            UsageService._insert_row(_empty_row(str(user_id), "month", now))
            logger.info(f"Opened new usage period for user {user_id}")
            return True
        except Exception as e:
            if is_duplicate_key(e):
                return False
            raise
