# =============================================================================
# core/models/subscription.py - Subscription Limit Schemas
# =============================================================================
# Results produced by the subscription guard. Two prompt shapes exist:
# - UpgradePrompt: contextual prompt attached to the first failing check
# - LimitPrompt: per-dimension prompt with a suggested plan and CTA text
# =============================================================================

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class PromptType(str, Enum):
    SOFT = "soft"
    HARD = "hard"
    FEATURE = "feature"


class UpgradePrompt(BaseModel):
    """Prompt shown when an action is blocked or close to a limit."""
    type: PromptType
    title: str
    description: str
    cta: str
    urgency: Literal["low", "medium", "high"]
    feature_blocked: str | None = None


class SubscriptionCheck(BaseModel):
    """Outcome of the drop creation check."""
    allowed: bool
    reason: str | None = None
    failed_check: str | None = None
    upgrade_prompt: UpgradePrompt | None = None
    current_usage: dict[str, Any] | None = None
    limits: dict[str, Any] | None = None


class LimitPrompt(BaseModel):
    """Per-dimension upgrade prompt."""
    type: PromptType
    title: str
    description: str
    suggested_plan: Literal["individual", "business"]
    cta_text: str


class LimitCheckResult(BaseModel):
    """Result for one limit dimension."""
    allowed: bool
    reason: str | None = None
    upgrade_prompt: LimitPrompt | None = None


class DropCreationLimits(BaseModel):
    """Every limit dimension evaluated for a prospective drop."""
    can_create_drop: LimitCheckResult
    can_add_recipients: LimitCheckResult
    can_upload_file: LimitCheckResult
    has_storage_space: LimitCheckResult

    def can_proceed(self) -> bool:
        return all(check.allowed for _, check in self)

    def blocking_issues(self) -> list[dict[str, Any]]:
        return [
            {
                "type": name,
                "reason": check.reason,
                "upgrade_prompt": check.upgrade_prompt.model_dump() if check.upgrade_prompt else None,
            }
            for name, check in self
            if not check.allowed
        ]


class FeatureAccess(BaseModel):
    """Whether the user's plan includes a feature."""
    has_access: bool
    feature: str
    reason: str | None = None
    upgrade_required: bool = False
    upgrade_prompt: LimitPrompt | None = None


class LimitsAction(str, Enum):
    VALIDATE_DROP_CREATION = "validate_drop_creation"
    CHECK_BULK_OPERATION = "check_bulk_operation"


class LimitsRequest(BaseModel):
    """Body of POST /subscriptions/limits."""
    action: LimitsAction
    recipient_count: int = Field(default=0, ge=0)
    file_size_mb: float = Field(default=0, ge=0)
    item_count: int | None = None
