# =============================================================================
# app/routers/usage.py - Usage Tracking Endpoints
# =============================================================================
# Monthly/weekly usage counters for the current user.
# =============================================================================

import logging

from fastapi import APIRouter, Depends

from app.auth import get_current_user, AuthUser
from core.models.usage import UsageTrackRequest
from core.services.subscription_guard import SubscriptionGuard
from core.services.usage_service import UsageService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def get_usage(user: AuthUser = Depends(get_current_user)):
    """Monthly and weekly counters with the plan's limits."""
    return UsageService.get_usage_overview(user.id)


@router.post("")
async def track_usage(
    request: UsageTrackRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Add to a usage counter (drop_created, recipient_added, storage_used)."""
    UsageService.track(user.id, request.action, request.amount)
    logger.info(f"Tracked {request.action.value} x{request.amount} for user {user.id}")
    return {"success": True, "action": request.action.value, "amount": request.amount}


@router.post("/initialize")
async def initialize_usage(user: AuthUser = Depends(get_current_user)):
    """Recount this month's and week's usage from existing drops."""
    counts = UsageService.initialize_usage(user.id)
    return {"success": True, "message": "Usage tracking initialized", **counts}


@router.get("/status")
async def usage_status(user: AuthUser = Depends(get_current_user)):
    """Usage percentages and upgrade warnings for the dashboard."""
    return SubscriptionGuard.get_usage_status(user.id)
