# =============================================================================
# app/routers/subscriptions.py - Plan Limit Endpoints
# =============================================================================
# Lets the frontend ask "can I do this?" before doing it, so upgrade
# prompts can be shown up front rather than after a 403.
# =============================================================================

from datetime import datetime, timezone
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query

from app.auth import get_current_user, AuthUser
from app.exceptions import BadRequestError, UserNotFoundError
from core.models.subscription import LimitsAction, LimitsRequest
from core.services.subscription_guard import FEATURE_ALIASES, SubscriptionGuard
from core.services.usage_service import UsageService
from lib.supabase_client import SupabaseClient
from lib.tiers import UpgradeContext

router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/limits")
async def check_limits(
    action: Annotated[Literal["check_drop", "check_feature"], Query(description="What to check")],
    user: AuthUser = Depends(get_current_user),
    feature: Annotated[str | None, Query(description="Feature for check_feature")] = None,
    recipient_count: Annotated[int, Query(ge=0)] = 0,
    file_size_mb: Annotated[float, Query(ge=0)] = 0,
):
    """
    Check drop creation limits or access to a feature.

    - check_drop: per-dimension results for a prospective drop
    - check_feature: analytics, export or branding
    """
    if action == "check_drop":
        limits = SubscriptionGuard.evaluate_drop_creation_limits(user.id, recipient_count, file_size_mb)
        return {
            "success": True,
            "limits": limits.model_dump(),
            "can_proceed": limits.can_proceed(),
        }

    if not feature:
        raise BadRequestError("Missing feature parameter for feature check")
    if feature not in FEATURE_ALIASES:
        raise BadRequestError("Invalid feature parameter", details={"allowed": sorted(FEATURE_ALIASES)})

    access = SubscriptionGuard.check_feature_access(user.id, feature)
    return {
        "success": True,
        "has_access": access.has_access,
        "reason": access.reason,
        "upgrade_prompt": access.upgrade_prompt.model_dump() if access.upgrade_prompt else None,
    }


@router.post("/limits")
async def validate_limits(
    request: LimitsRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Validate a drop before creation, or check a bulk operation."""
    if request.action == LimitsAction.VALIDATE_DROP_CREATION:
        limits = SubscriptionGuard.evaluate_drop_creation_limits(
            user.id, request.recipient_count, request.file_size_mb
        )
        return {
            "success": True,
            "can_proceed": limits.can_proceed(),
            "blocking_issues": limits.blocking_issues(),
            "limits": limits.model_dump(),
            "timestamp": _timestamp(),
        }

    try:
        result = SubscriptionGuard.check_bulk_operation(user.id, request.item_count or 0)
    except ValueError as e:
        raise BadRequestError(str(e))

    if result["can_proceed"]:
        access = SubscriptionGuard.check_feature_access(user.id, "advanced_analytics")
        result["max_bulk_size"] = -1 if access.has_access else 5
    return {"success": True, **result}


@router.get("/info")
async def subscription_info(user: AuthUser = Depends(get_current_user)):
    """The caller's tier, status and this month's usage."""
    profile = SupabaseClient.fetch_user(user.id, "subscription_tier, subscription_status, is_paid")
    if not profile:
        raise UserNotFoundError(str(user.id))

    usage = UsageService.find_period_row(user.id, "month") or {}
    return {
        "success": True,
        "user": {
            "tier": profile.get("subscription_tier") or "free",
            "status": profile.get("subscription_status") or "free",
            "is_paid": bool(profile.get("is_paid")),
        },
        "usage": {
            "drops_created": usage.get("drops_created") or 0,
            "recipients_added": usage.get("recipients_added") or 0,
            "storage_used_mb": float(usage.get("storage_used_mb") or 0),
        },
        "timestamp": _timestamp(),
    }


@router.get("/upgrade-suggestion")
async def upgrade_suggestion(
    context: Annotated[UpgradeContext, Query(description="Which limit the user ran into")],
    user: AuthUser = Depends(get_current_user),
):
    """The next plan up and what it adds for the given limit."""
    return {
        "success": True,
        **SubscriptionGuard.get_upgrade_suggestion(user.id, context),
    }
