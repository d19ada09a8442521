# =============================================================================
# core/models/usage.py - Usage Tracking Schemas
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field


class UsageAction(str, Enum):
    """Counter increments accepted by POST /usage."""
    DROP_CREATED = "drop_created"
    RECIPIENT_ADDED = "recipient_added"
    STORAGE_USED = "storage_used"


class UsageTrackRequest(BaseModel):
    """Increment usage counters for the current user."""
    action: UsageAction
    amount: float = Field(default=1, ge=0, description="Count (or MB for storage_used)")


class UsageCounters(BaseModel):
    """One usage_tracking period."""
    drops_created: int = 0
    recipients_added: int = 0
    storage_used_mb: float = 0
    period_start: str | None = None
    period_end: str | None = None
