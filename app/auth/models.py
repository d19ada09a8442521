# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuthUser(BaseModel):
    """
    Drop owner identified by a verified Supabase access token.

    Only what the token itself carries; plan data lives in public.users.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    email: Optional[str] = None


class UserResponse(BaseModel):
    """Owner profile from public.users with the limits of their plan."""
    id: UUID
    email: Optional[str] = None
    subscription_tier: str = "free"
    subscription_status: Optional[str] = None
    is_paid: bool = False
    subscription_ends_at: Optional[datetime] = None
    dodo_customer_id: Optional[str] = None
    limits: dict[str, Any] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
