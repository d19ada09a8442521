# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - drop.py: Drop creation/update schemas and enums
# - access.py: Public recipient flow (availability, verify, content)
# - usage.py: Usage tracking schemas
# - subscription.py: Limit check results and upgrade prompts
# - payment.py: Payment and subscription management requests
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Drop Models
# -----------------------------------------------------------------------------
from .drop import (
    DropCreateRequest,
    DropType,
    DropUpdateRequest,
    TimerMode,
)

# -----------------------------------------------------------------------------
# Access Models - Recipient verification flow
# -----------------------------------------------------------------------------
from .access import (
    AccessLogRequest,
    DropAvailability,
    DropContent,
    TimerInfo,
    VerifyRequest,
    VerifyResponse,
)

# -----------------------------------------------------------------------------
# Usage Models
# -----------------------------------------------------------------------------
from .usage import (
    UsageAction,
    UsageCounters,
    UsageTrackRequest,
)

# -----------------------------------------------------------------------------
# Subscription Models - Limit enforcement
# -----------------------------------------------------------------------------
from .subscription import (
    DropCreationLimits,
    FeatureAccess,
    LimitCheckResult,
    LimitPrompt,
    LimitsAction,
    LimitsRequest,
    PromptType,
    SubscriptionCheck,
    UpgradePrompt,
)

# -----------------------------------------------------------------------------
# Payment Models
# -----------------------------------------------------------------------------
from .payment import (
    CreatePaymentRequest,
    ManageAction,
    ManageSubscriptionRequest,
    PlanType,
    PortalRequest,
)

__all__ = [
    # Drop
    "DropCreateRequest",
    "DropType",
    "DropUpdateRequest",
    "TimerMode",
    # Access
    "AccessLogRequest",
    "DropAvailability",
    "DropContent",
    "TimerInfo",
    "VerifyRequest",
    "VerifyResponse",
    # Usage
    "UsageAction",
    "UsageCounters",
    "UsageTrackRequest",
    # Subscription
    "DropCreationLimits",
    "FeatureAccess",
    "LimitCheckResult",
    "LimitPrompt",
    "LimitsAction",
    "LimitsRequest",
    "PromptType",
    "SubscriptionCheck",
    "UpgradePrompt",
    # Payment
    "CreatePaymentRequest",
    "ManageAction",
    "ManageSubscriptionRequest",
    "PlanType",
    "PortalRequest",
]
