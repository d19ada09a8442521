# =============================================================================
# core/services/subscription_guard.py - Plan Limit Enforcement
# =============================================================================
# Decides whether a user's plan allows an action and what upgrade prompt
# to show when it does not (or when they are getting close).
#
# Two views of the same limits:
# - check_drop_creation: runs the checks in order (drops, recipients,
#   file size, storage) and stops at the first failure. Used to block
#   drop creation.
# - evaluate_drop_creation_limits: evaluates every dimension separately,
#   including soft "almost at your limit" warnings. Used by the drop form
#   to show meters and warnings before submitting.
#
# Users without a profile row are evaluated on the free plan. Database
# errors propagate.
# =============================================================================

import logging
import math
from typing import Any, Callable
from uuid import UUID

from lib.supabase_client import SupabaseClient
from lib.tiers import (
    Tier,
    TierLimits,
    get_tier_limits,
    get_upgrade_suggestion,
    normalize_tier,
    suggested_plan_for,
)
from core.models.subscription import (
    DropCreationLimits,
    FeatureAccess,
    LimitCheckResult,
    LimitPrompt,
    PromptType,
    SubscriptionCheck,
    UpgradePrompt,
)
from core.services.usage_service import UsageService, usage_percent

logger = logging.getLogger(__name__)

BULK_OPERATION_FREE_LIMIT = 5

FEATURE_ALIASES = {
    "analytics": "advanced_analytics",
    "export": "export_data",
    "branding": "custom_branding",
}


# =============================================================================
# Contextual Prompts (first failing check)
# =============================================================================

_FAILED_CHECK_PROMPTS: dict[str, dict[Tier, dict[str, str]]] = {
    "drop_count": {
        Tier.FREE: {
            "title": "Monthly drop limit reached",
            "description": "You've created 3 drops this month. Upgrade to Individual for 15 drops per month!",
            "cta": "Upgrade to Individual",
        },
        Tier.INDIVIDUAL: {
            "title": "Monthly drop limit reached",
            "description": "You've created 15 drops this month. Upgrade to Business for unlimited drops!",
            "cta": "Upgrade to Business",
        },
    },
    "recipient_count": {
        Tier.FREE: {
            "title": "Recipient limit exceeded",
            "description": "Free plan allows up to 3 recipients. Upgrade to Individual for 20 recipients per drop!",
            "cta": "Upgrade for More Recipients",
        },
        Tier.INDIVIDUAL: {
            "title": "Recipient limit exceeded",
            "description": "Individual plan allows up to 20 recipients. Upgrade to Business for unlimited recipients!",
            "cta": "Upgrade to Business",
        },
    },
    "file_size": {
        Tier.FREE: {
            "title": "File size limit exceeded",
            "description": "Free plan supports files up to 10MB. Upgrade to Individual for 300MB files!",
            "cta": "Upgrade for Larger Files",
        },
        Tier.INDIVIDUAL: {
            "title": "File size limit exceeded",
            "description": "Individual plan supports files up to 300MB. Upgrade to Business for unlimited file sizes!",
            "cta": "Upgrade to Business",
        },
    },
    "storage": {
        Tier.FREE: {
            "title": "Storage limit reached",
            "description": "You've used all 30MB of storage. Upgrade to Individual for 4.5GB of storage!",
            "cta": "Upgrade for More Storage",
        },
        Tier.INDIVIDUAL: {
            "title": "Storage limit reached",
            "description": "You've used all 4.5GB of storage. Upgrade to Business for unlimited storage!",
            "cta": "Upgrade to Business",
        },
    },
}


def generate_upgrade_prompt(check_type: str, tier: Tier, reason: str | None) -> UpgradePrompt:
    """Prompt for the first failing check, with a generic fallback."""
    template = _FAILED_CHECK_PROMPTS.get(check_type, {}).get(tier)
    if template:
        return UpgradePrompt(type=PromptType.HARD, urgency="high", **template)
    return UpgradePrompt(
        type=PromptType.HARD,
        title="Upgrade required",
        description=reason or "This action requires a plan upgrade.",
        cta="Upgrade Plan",
        urgency="high",
    )


# =============================================================================
# Ordered Checks
# =============================================================================

def _format_mb(value: float) -> str:
    return f"{value:g}"


def check_drop_count(current_drops: int, limit: int) -> tuple[bool, str | None]:
    if TierLimits.is_unlimited(limit):
        return True, None
    if current_drops < limit:
        return True, None
    return False, f"Monthly drop limit reached ({current_drops}/{limit})"


def check_recipient_count(recipient_count: int, limit: int) -> tuple[bool, str | None]:
    if TierLimits.is_unlimited(limit) or recipient_count <= limit:
        return True, None
    return False, f"Too many recipients ({recipient_count}/{limit} allowed)"


def check_file_size(file_size_mb: float, limit: int) -> tuple[bool, str | None]:
    if TierLimits.is_unlimited(limit) or file_size_mb <= limit:
        return True, None
    return False, f"File too large ({_format_mb(file_size_mb)}MB/{limit}MB allowed)"


def check_storage(total_storage_mb: float, limit: int) -> tuple[bool, str | None]:
    if TierLimits.is_unlimited(limit) or total_storage_mb <= limit:
        return True, None
    return False, f"Storage limit exceeded ({round(total_storage_mb)}MB/{limit}MB available)"


# =============================================================================
# Per-Dimension Checks (with soft warnings)
# =============================================================================

def evaluate_drop_limit(tier: Tier, current_drops: int, limit: int) -> LimitCheckResult:
    if TierLimits.is_unlimited(limit):
        return LimitCheckResult(allowed=True)

    plan = suggested_plan_for(tier).value
    remaining = limit - current_drops

    if remaining <= 0:
        return LimitCheckResult(
            allowed=False,
            reason=f"You've reached your monthly limit of {limit} drops",
            upgrade_prompt=LimitPrompt(
                type=PromptType.HARD,
                title="Drop Limit Reached",
                description=f"You've used all {limit} drops for this month. Upgrade to create more drops.",
                suggested_plan=plan,
                cta_text="Upgrade to Individual" if tier == Tier.FREE else "Upgrade to Business",
            ),
        )

    if remaining <= math.ceil(limit * 0.2):
        return LimitCheckResult(
            allowed=True,
            upgrade_prompt=LimitPrompt(
                type=PromptType.SOFT,
                title="Almost at your limit",
                description=(
                    f"You have {remaining} drops remaining this month. "
                    "Consider upgrading for more capacity."
                ),
                suggested_plan=plan,
                cta_text="View Plans",
            ),
        )

    return LimitCheckResult(allowed=True)


def evaluate_recipient_limit(tier: Tier, recipient_count: int, limit: int) -> LimitCheckResult:
    if TierLimits.is_unlimited(limit) or recipient_count <= limit:
        return LimitCheckResult(allowed=True)

    return LimitCheckResult(
        allowed=False,
        reason=f"Too many recipients. Your plan allows up to {limit} recipients per drop",
        upgrade_prompt=LimitPrompt(
            type=PromptType.HARD,
            title="Recipient Limit Exceeded",
            description=f"You're trying to add {recipient_count} recipients, but your plan allows only {limit}.",
            suggested_plan=suggested_plan_for(tier).value,
            cta_text="Upgrade for 20 Recipients" if tier == Tier.FREE else "Upgrade for Unlimited",
        ),
    )


def evaluate_file_size_limit(tier: Tier, file_size_mb: float, limit: int) -> LimitCheckResult:
    if TierLimits.is_unlimited(limit) or file_size_mb <= limit:
        return LimitCheckResult(allowed=True)

    return LimitCheckResult(
        allowed=False,
        reason=f"File too large. Your plan allows files up to {limit}MB",
        upgrade_prompt=LimitPrompt(
            type=PromptType.HARD,
            title="File Size Limit Exceeded",
            description=f"This {round(file_size_mb)}MB file exceeds your {limit}MB limit.",
            suggested_plan=suggested_plan_for(tier).value,
            cta_text="Upgrade for 300MB Files" if tier == Tier.FREE else "Upgrade for Unlimited",
        ),
    )


def evaluate_storage_limit(tier: Tier, current_mb: float, new_file_mb: float, limit: int) -> LimitCheckResult:
    if TierLimits.is_unlimited(limit):
        return LimitCheckResult(allowed=True)

    plan = suggested_plan_for(tier).value
    total_after_upload = current_mb + new_file_mb

    if total_after_upload > limit:
        available = round(limit - current_mb)
        return LimitCheckResult(
            allowed=False,
            reason=f"Not enough storage space. You have {available}MB available",
            upgrade_prompt=LimitPrompt(
                type=PromptType.HARD,
                title="Storage Limit Exceeded",
                description=(
                    f"This upload would exceed your {limit}MB storage limit. "
                    f"You have {available}MB remaining."
                ),
                suggested_plan=plan,
                cta_text="Get 4.5GB Storage" if tier == Tier.FREE else "Get Unlimited Storage",
            ),
        )

    percent = usage_percent(total_after_upload, limit)
    if percent >= 80:
        return LimitCheckResult(
            allowed=True,
            upgrade_prompt=LimitPrompt(
                type=PromptType.SOFT,
                title="Storage Almost Full",
                description=(
                    f"You're using {round(percent)}% of your storage. "
                    "Consider upgrading for more space."
                ),
                suggested_plan=plan,
                cta_text="Upgrade Storage",
            ),
        )

    return LimitCheckResult(allowed=True)


# =============================================================================
# Feature Access
# =============================================================================

_FEATURE_RULES: dict[str, Callable[[TierLimits], bool]] = {
    "advanced_analytics": lambda limits: limits.analytics in ("advanced", "premium"),
    "premium_analytics": lambda limits: limits.analytics == "premium",
    "custom_branding": lambda limits: limits.custom_branding,
    "export_data": lambda limits: limits.export_data,
    "unlimited_recipients": lambda limits: TierLimits.is_unlimited(limits.recipients_per_drop),
    "large_file_uploads": lambda limits: (
        TierLimits.is_unlimited(limits.file_size_mb) or limits.file_size_mb > 10
    ),
}

_FEATURE_PROMPTS: dict[str, tuple[str, LimitPrompt]] = {
    "advanced_analytics": (
        "Advanced analytics requires a paid plan",
        LimitPrompt(
            type=PromptType.HARD,
            title="Unlock Advanced Analytics",
            description="Get detailed insights, access patterns, and export capabilities with a paid plan.",
            suggested_plan="individual",
            cta_text="Upgrade for Analytics",
        ),
    ),
    "export_data": (
        "Data export requires a paid plan",
        LimitPrompt(
            type=PromptType.HARD,
            title="Export Your Data",
            description="Export your analytics and drop data with Individual or Business plans.",
            suggested_plan="individual",
            cta_text="Upgrade to Export",
        ),
    ),
    "custom_branding": (
        "Custom branding requires Business plan",
        LimitPrompt(
            type=PromptType.HARD,
            title="Custom Branding Available",
            description="Remove DropAccess branding and add your own with the Business plan.",
            suggested_plan="business",
            cta_text="Upgrade to Business",
        ),
    ),
}


def feature_access_for_tier(tier: Tier, feature: str) -> FeatureAccess:
    """
    Whether `tier` includes `feature`.

    Accepts the short aliases analytics, export and branding.
    """
    name = FEATURE_ALIASES.get(feature, feature)
    rule = _FEATURE_RULES.get(name)
    if rule is None:
        return FeatureAccess(has_access=False, feature=feature, reason="Unknown feature")

    has_access = bool(rule(get_tier_limits(tier)))
    if has_access:
        return FeatureAccess(has_access=True, feature=name)

    reason, prompt = _FEATURE_PROMPTS.get(name, (None, None))
    if prompt is None:
        target = suggested_plan_for(tier).value
        reason = f"{name.replace('_', ' ').capitalize()} requires the {target.capitalize()} plan"
        prompt = LimitPrompt(
            type=PromptType.HARD,
            title="Upgrade required",
            description=reason,
            suggested_plan=target,
            cta_text=f"Upgrade to {target.capitalize()}",
        )

    return FeatureAccess(
        has_access=False,
        feature=name,
        reason=reason,
        upgrade_required=True,
        upgrade_prompt=prompt,
    )


# =============================================================================
# Service
# =============================================================================

class SubscriptionGuard:
    """
    Service for plan limit checks.

    Every method looks up the user's current tier and monthly usage.
    """

    @staticmethod
    def get_user_tier(user_id: UUID | str) -> Tier:
        """The user's tier; free if the user has no profile row."""
        user = SupabaseClient.fetch_user(user_id, "subscription_tier, subscription_status")
        if not user:
            logger.warning(f"User {user_id} not found, evaluating limits on the free plan")
            return Tier.FREE
        return normalize_tier(user.get("subscription_tier"))

    @staticmethod
    def check_drop_creation(
        user_id: UUID | str,
        recipient_count: int,
        file_size_mb: float = 0,
    ) -> SubscriptionCheck:
        """
        Check whether the user can create a drop.

        Args:
            user_id: Drop owner
            recipient_count: Number of recipients on the new drop
            file_size_mb: Size of the attached file (0 for url drops)

        Returns:
            SubscriptionCheck with the first failing check's reason and
            upgrade prompt, plus the usage and limits it was evaluated on
        """
        tier = SubscriptionGuard.get_user_tier(user_id)
        limits = get_tier_limits(tier)
        usage = UsageService.get_current_usage(user_id)

        drops_created = usage.get("drops_created") or 0
        storage_used = float(usage.get("storage_used_mb") or 0)

        checks = [
            ("drop_count", check_drop_count(drops_created, limits.drops_per_month)),
            ("recipient_count", check_recipient_count(recipient_count, limits.recipients_per_drop)),
            ("file_size", check_file_size(file_size_mb, limits.file_size_mb)),
            ("storage", check_storage(storage_used + file_size_mb, limits.storage_total_mb)),
        ]

        for check_type, (allowed, reason) in checks:
            if not allowed:
                logger.info(f"Drop creation blocked for user {user_id}: {reason}")
                return SubscriptionCheck(
                    allowed=False,
                    reason=reason,
                    failed_check=check_type,
                    upgrade_prompt=generate_upgrade_prompt(check_type, tier, reason),
                    current_usage=usage,
                    limits=limits.to_dict(),
                )

        return SubscriptionCheck(allowed=True, current_usage=usage, limits=limits.to_dict())

    @staticmethod
    def evaluate_drop_creation_limits(
        user_id: UUID | str,
        recipient_count: int,
        file_size_mb: float = 0,
    ) -> DropCreationLimits:
        """Evaluate every limit dimension for a prospective drop."""
        tier = SubscriptionGuard.get_user_tier(user_id)
        limits = get_tier_limits(tier)
        usage = UsageService.get_current_usage(user_id)

        drops_created = usage.get("drops_created") or 0
        storage_used = float(usage.get("storage_used_mb") or 0)

        return DropCreationLimits(
            can_create_drop=evaluate_drop_limit(tier, drops_created, limits.drops_per_month),
            can_add_recipients=evaluate_recipient_limit(tier, recipient_count, limits.recipients_per_drop),
            can_upload_file=evaluate_file_size_limit(tier, file_size_mb, limits.file_size_mb),
            has_storage_space=evaluate_storage_limit(tier, storage_used, file_size_mb, limits.storage_total_mb),
        )

    @staticmethod
    def check_upload(user_id: UUID | str, file_size_mb: float) -> SubscriptionCheck:
        """File size and storage checks only (used before uploading)."""
        tier = SubscriptionGuard.get_user_tier(user_id)
        limits = get_tier_limits(tier)
        usage = UsageService.get_current_usage(user_id)
        storage_used = float(usage.get("storage_used_mb") or 0)

        for check_type, (allowed, reason) in (
            ("file_size", check_file_size(file_size_mb, limits.file_size_mb)),
            ("storage", check_storage(storage_used + file_size_mb, limits.storage_total_mb)),
        ):
            if not allowed:
                return SubscriptionCheck(
                    allowed=False,
                    reason=reason,
                    failed_check=check_type,
                    upgrade_prompt=generate_upgrade_prompt(check_type, tier, reason),
                    current_usage=usage,
                    limits=limits.to_dict(),
                )

        return SubscriptionCheck(allowed=True, current_usage=usage, limits=limits.to_dict())

    @staticmethod
    def check_feature_access(user_id: UUID | str, feature: str) -> FeatureAccess:
        """Whether the user's plan includes a feature."""
        return feature_access_for_tier(SubscriptionGuard.get_user_tier(user_id), feature)

    @staticmethod
    def check_bulk_operation(user_id: UUID | str, item_count: int) -> dict[str, Any]:
        """
        Whether the user may act on `item_count` drops at once.

        Users without paid analytics can act on up to 5 items.

        Raises:
            ValueError: If item_count is less than 1
        """
        if item_count < 1:
            raise ValueError("Invalid itemCount for bulk operation")

        access = SubscriptionGuard.check_feature_access(user_id, "advanced_analytics")
        if not access.has_access and item_count > BULK_OPERATION_FREE_LIMIT:
            return {
                "can_proceed": False,
                "reason": "Bulk operations require Business plan",
                "upgrade_prompt": LimitPrompt(
                    type=PromptType.HARD,
                    title="Bulk Operations Available",
                    description="Manage multiple drops at once with the Business plan",
                    suggested_plan="business",
                    cta_text="Upgrade to Business",
                ).model_dump(),
            }

        return {"can_proceed": True, "item_count": item_count}

    @staticmethod
    def get_usage_status(user_id: UUID | str) -> dict[str, Any]:
        """
        Usage percentages and warnings for the dashboard.

        Warnings are soft (medium urgency) from 80% and hard (high urgency)
        at 100% for both drops and storage.
        """
        tier = SubscriptionGuard.get_user_tier(user_id)
        limits = get_tier_limits(tier)
        usage = UsageService.get_current_usage(user_id)

        percentages = {
            "drops": usage_percent(usage.get("drops_created") or 0, limits.drops_per_month),
            "storage": usage_percent(float(usage.get("storage_used_mb") or 0), limits.storage_total_mb),
        }

        warnings: list[UpgradePrompt] = []

        drops_pct = percentages["drops"]
        if 80 <= drops_pct < 100:
            warnings.append(UpgradePrompt(
                type=PromptType.SOFT,
                title="Approaching drop limit",
                description=f"You've used {round(drops_pct)}% of your monthly drops. Upgrade to get more!",
                cta="Upgrade Plan",
                urgency="medium",
            ))
        elif drops_pct >= 100:
            warnings.append(UpgradePrompt(
                type=PromptType.HARD,
                title="Drop limit reached",
                description="You've reached your monthly drop limit. Upgrade to create more drops.",
                cta="Upgrade Now",
                urgency="high",
            ))

        storage_pct = percentages["storage"]
        if 80 <= storage_pct < 100:
            warnings.append(UpgradePrompt(
                type=PromptType.SOFT,
                title="Storage almost full",
                description=f"You've used {round(storage_pct)}% of your storage. Upgrade for more space!",
                cta="Get More Storage",
                urgency="medium",
            ))
        elif storage_pct >= 100:
            warnings.append(UpgradePrompt(
                type=PromptType.HARD,
                title="Storage full",
                description="Your storage is full. Upgrade to upload larger files.",
                cta="Upgrade Storage",
                urgency="high",
            ))

        return {
            "tier": tier.value,
            "usage": usage,
            "limits": limits.to_dict(),
            "percentages": percentages,
            "warnings": [w.model_dump() for w in warnings],
        }

    @staticmethod
    def get_upgrade_suggestion(user_id: UUID | str, context: str) -> dict[str, Any]:
        return get_upgrade_suggestion(SubscriptionGuard.get_user_tier(user_id), context)
