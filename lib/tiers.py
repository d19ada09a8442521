# =============================================================================
# lib/tiers.py - Subscription Tier Limits
# =============================================================================
# Single source of truth for what each subscription tier allows:
# monthly drops, recipients per drop, file size, total storage and the
# feature flags (analytics level, custom branding, data export).
#
# A value of -1 means "unlimited".
#
# Usage:
#   from lib.tiers import get_tier_limits
#   limits = get_tier_limits("individual")
#   limits.drops_per_month  # 15
# =============================================================================

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Literal

UNLIMITED = -1


class Tier(str, Enum):
    """Subscription tiers, cheapest first."""
    FREE = "free"
    INDIVIDUAL = "individual"
    BUSINESS = "business"


AnalyticsLevel = Literal["basic", "advanced", "premium"]
UpgradeContext = Literal["drops", "recipients", "file_size", "storage"]


@dataclass(frozen=True)
class TierLimits:
    """Quotas and feature flags for one tier."""
    drops_per_month: int
    recipients_per_drop: int
    file_size_mb: int
    storage_total_mb: int
    analytics: AnalyticsLevel
    custom_branding: bool
    export_data: bool

    @staticmethod
    def is_unlimited(value: int | float) -> bool:
        return value == UNLIMITED

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


TIER_LIMITS: dict[Tier, TierLimits] = {
    Tier.FREE: TierLimits(
        drops_per_month=3,
        recipients_per_drop=3,
        file_size_mb=10,
        storage_total_mb=30,
        analytics="basic",
        custom_branding=False,
        export_data=False,
    ),
    Tier.INDIVIDUAL: TierLimits(
        drops_per_month=15,
        recipients_per_drop=20,
        file_size_mb=300,
        storage_total_mb=4500,
        analytics="advanced",
        custom_branding=False,
        export_data=True,
    ),
    Tier.BUSINESS: TierLimits(
        drops_per_month=UNLIMITED,
        recipients_per_drop=UNLIMITED,
        file_size_mb=UNLIMITED,
        storage_total_mb=UNLIMITED,
        analytics="premium",
        custom_branding=True,
        export_data=True,
    ),
}


def normalize_tier(value: str | Tier | None) -> Tier:
    """
    Coerce a stored tier value into a Tier.

    Missing or unrecognised values fall back to the free tier so that a
    half-provisioned user row never grants paid quotas.
    """
    if isinstance(value, Tier):
        return value
    try:
        return Tier((value or "").strip().lower())
    except ValueError:
        return Tier.FREE


def get_tier_limits(tier: str | Tier | None) -> TierLimits:
    """Get limits for a tier (unknown tiers resolve to free)."""
    return TIER_LIMITS[normalize_tier(tier)]


def suggested_plan_for(tier: str | Tier | None) -> Tier:
    """The next plan up: individual from free, business from anything else."""
    return Tier.INDIVIDUAL if normalize_tier(tier) == Tier.FREE else Tier.BUSINESS


# =============================================================================
# Upgrade Suggestions
# =============================================================================

PLAN_PRICING = {
    Tier.INDIVIDUAL: "$9.99/month",
    Tier.BUSINESS: "$19.99/month",
}

_UPGRADE_BENEFITS: dict[tuple[Tier, Tier], dict[str, list[str]]] = {
    (Tier.FREE, Tier.INDIVIDUAL): {
        "drops": ["15 drops per month (vs 3)", "20 recipients per drop (vs 3)", "300MB file uploads (vs 10MB)"],
        "recipients": ["20 recipients per drop (vs 3)", "15 drops per month (vs 3)", "Advanced analytics"],
        "file_size": ["300MB file uploads (vs 10MB)", "4.5GB total storage (vs 30MB)", "Priority support"],
        "storage": ["4.5GB total storage (vs 30MB)", "300MB file uploads", "Advanced tracking"],
    },
    (Tier.INDIVIDUAL, Tier.BUSINESS): {
        "drops": ["Unlimited drops (vs 15)", "Unlimited recipients (vs 20)", "Custom branding"],
        "recipients": ["Unlimited recipients (vs 20)", "Custom branding", "Team management"],
        "file_size": ["Unlimited file size (vs 300MB)", "Custom domain", "Advanced features"],
        "storage": ["Unlimited storage (vs 4.5GB)", "Custom domain", "Priority support"],
    },
}


def get_upgrade_suggestion(current_tier: str | Tier | None, context: UpgradeContext) -> dict[str, Any]:
    """
    Build an upgrade suggestion for the limit the user just ran into.

    Args:
        current_tier: The user's tier
        context: Which limit triggered the suggestion

    Returns:
        Dict with suggested_plan, pricing and three benefit strings
    """
    tier = normalize_tier(current_tier)
    target = suggested_plan_for(tier)
    benefits = _UPGRADE_BENEFITS.get((tier, target))

    if benefits is None:
        return {
            "suggested_plan": Tier.BUSINESS.value,
            "benefits": ["Unlimited everything", "Custom branding", "Priority support"],
            "pricing": PLAN_PRICING[Tier.BUSINESS],
        }

    return {
        "suggested_plan": target.value,
        "benefits": list(benefits[context]),
        "pricing": PLAN_PRICING[target],
    }
