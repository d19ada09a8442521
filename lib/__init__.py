# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed Supabase wrapper for database operations
# - tiers.py: Plan tiers, limits and upgrade suggestions
# - periods.py: Monthly/weekly usage period boundaries
# - content.py: URL embed resolution, file types, time formatting
# - access_tokens.py: Signed verification session tokens
# - dodo_client.py: Dodo Payments REST client
# - webhooks.py: Standard Webhooks signature verification
# - utils.py: Shared utilities (error handling, UUID/email normalization)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.tiers import Tier, TierLimits, get_tier_limits, normalize_tier
from lib.utils import ApplicationError, normalize_email, normalize_uuid

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Tiers
    "Tier",
    "TierLimits",
    "get_tier_limits",
    "normalize_tier",
    # Utils
    "ApplicationError",
    "normalize_email",
    "normalize_uuid",
]
