# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Verifies Supabase Auth access tokens for drop owners.
# =============================================================================

from app.auth.dependencies import get_current_user, verify_access_token
from app.auth.models import AuthUser, UserResponse

__all__ = [
    "get_current_user",
    "verify_access_token",
    "AuthUser",
    "UserResponse",
]
