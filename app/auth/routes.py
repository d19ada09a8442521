# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# Sign-up and login happen client-side with Supabase Auth. These routes
# let the frontend check a stored token and load the owner's plan.
# =============================================================================

import logging

from fastapi import APIRouter, Depends

from app.auth.dependencies import get_current_user
from app.auth.models import AuthUser, UserResponse
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.tiers import get_tier_limits, normalize_tier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    user: AuthUser = Depends(get_current_user)
) -> UserResponse:
    """
    The signed-in owner's profile, plan and plan limits.

    A user whose profile row hasn't been created yet (the signup trigger
    runs asynchronously) is reported on the free plan.
    """
    try:
        profile = SupabaseClient.fetch_user(user.id)
    except SupabaseClientError as e:
        logger.warning(f"Could not fetch user profile: {e}")
        profile = None

    profile = profile or {"id": user.id, "email": user.email}
    tier = normalize_tier(profile.get("subscription_tier"))

    return UserResponse(
        **{**profile, "subscription_tier": tier.value},
        limits=get_tier_limits(tier).to_dict(),
    )


@router.get("/verify")
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> dict:
    """Check that a stored token is still valid."""
    return {
        "valid": True,
        "user_id": str(user.id),
        "email": user.email
    }
