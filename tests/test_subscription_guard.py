# =============================================================================
# tests/test_subscription_guard.py - Plan Limit Tests
# =============================================================================
# Tests for core/services/subscription_guard.py against the in-memory
# Supabase fake:
# - Ordered drop creation checks (first failure wins)
# - Per-dimension evaluation with soft warnings
# - Feature access and bulk operations
# - Dashboard usage status
#
# Run with: pytest tests/test_subscription_guard.py -v
# =============================================================================

import pytest

from lib.periods import period_bounds, utc_now
from lib.tiers import Tier
from core.models.subscription import PromptType
from core.services.subscription_guard import (
    SubscriptionGuard,
    check_drop_count,
    check_file_size,
    check_recipient_count,
    check_storage,
    evaluate_drop_limit,
    evaluate_storage_limit,
    feature_access_for_tier,
    generate_upgrade_prompt,
)


def seed_month_usage(fake, user_id, drops=0, recipients=0, storage_mb=0.0):
    start, end = period_bounds("month", utc_now())
    return fake.add(
        "usage_tracking",
        user_id=user_id,
        period_type="month",
        period_start=start.isoformat(),
        period_end=end.isoformat(),
        drops_created=drops,
        recipients_added=recipients,
        storage_used_mb=storage_mb,
    )


# =============================================================================
# Pure Checks
# =============================================================================

class TestOrderedChecks:
    """Tests for the individual check functions."""

    def test_drop_count(self):
        assert check_drop_count(2, 3) == (True, None)
        assert check_drop_count(3, 3) == (False, "Monthly drop limit reached (3/3)")
        assert check_drop_count(500, -1) == (True, None)

    def test_recipient_count_allows_exact_limit(self):
        assert check_recipient_count(3, 3) == (True, None)
        assert check_recipient_count(4, 3) == (False, "Too many recipients (4/3 allowed)")

    def test_file_size(self):
        assert check_file_size(10, 10)[0] is True
        assert check_file_size(10.5, 10) == (False, "File too large (10.5MB/10MB allowed)")

    def test_storage(self):
        assert check_storage(30, 30)[0] is True
        assert check_storage(31.4, 30) == (False, "Storage limit exceeded (31MB/30MB available)")

    def test_prompt_templates(self):
        prompt = generate_upgrade_prompt("drop_count", Tier.FREE, "limit")

        assert prompt.type == PromptType.HARD
        assert prompt.cta == "Upgrade to Individual"
        assert prompt.urgency == "high"

    def test_prompt_fallback(self):
        prompt = generate_upgrade_prompt("drop_count", Tier.BUSINESS, "Something failed")

        assert prompt.title == "Upgrade required"
        assert prompt.description == "Something failed"


class TestDimensionEvaluation:
    """Tests for the per-dimension evaluators."""

    def test_soft_warning_within_last_fifth(self):
        result = evaluate_drop_limit(Tier.INDIVIDUAL, 12, 15)

        assert result.allowed is True
        assert result.upgrade_prompt.type == PromptType.SOFT
        assert "3 drops remaining" in result.upgrade_prompt.description

    def test_no_warning_with_room_left(self):
        result = evaluate_drop_limit(Tier.INDIVIDUAL, 5, 15)

        assert result.allowed is True
        assert result.upgrade_prompt is None

    def test_hard_block_at_limit(self):
        result = evaluate_drop_limit(Tier.FREE, 3, 3)

        assert result.allowed is False
        assert result.upgrade_prompt.suggested_plan == "individual"
        assert result.upgrade_prompt.cta_text == "Upgrade to Individual"

    def test_storage_warning_from_80_percent(self):
        result = evaluate_storage_limit(Tier.FREE, 20, 4, 30)

        assert result.allowed is True
        assert result.upgrade_prompt.title == "Storage Almost Full"

    def test_storage_block_reports_space_left(self):
        result = evaluate_storage_limit(Tier.FREE, 25, 10, 30)

        assert result.allowed is False
        assert result.reason == "Not enough storage space. You have 5MB available"


class TestFeatureAccess:
    """Tests for feature_access_for_tier()."""

    def test_aliases(self):
        assert feature_access_for_tier(Tier.INDIVIDUAL, "export").has_access is True
        assert feature_access_for_tier(Tier.INDIVIDUAL, "analytics").feature == "advanced_analytics"

    def test_free_export_blocked(self):
        access = feature_access_for_tier(Tier.FREE, "export_data")

        assert access.has_access is False
        assert access.upgrade_required is True
        assert access.upgrade_prompt.title == "Export Your Data"

    def test_branding_needs_business(self):
        assert feature_access_for_tier(Tier.INDIVIDUAL, "branding").has_access is False
        assert feature_access_for_tier(Tier.BUSINESS, "branding").has_access is True

    def test_generic_prompt_for_unprompted_feature(self):
        access = feature_access_for_tier(Tier.FREE, "large_file_uploads")

        assert access.has_access is False
        assert access.upgrade_prompt.suggested_plan == "individual"

    def test_unknown_feature(self):
        access = feature_access_for_tier(Tier.BUSINESS, "teleportation")

        assert access.has_access is False
        assert access.reason == "Unknown feature"


# =============================================================================
# Service (database-backed)
# =============================================================================

class TestCheckDropCreation:
    """Tests for SubscriptionGuard.check_drop_creation()."""

    def test_free_user_at_monthly_limit_is_blocked(self, fake_supabase, free_user):
        # Arrange: 3 drops already this month
        seed_month_usage(fake_supabase, free_user["id"], drops=3)

        # Act
        check = SubscriptionGuard.check_drop_creation(free_user["id"], recipient_count=1)

        # Assert: blocked on drop count with the free prompt
        assert check.allowed is False
        assert check.failed_check == "drop_count"
        assert check.reason == "Monthly drop limit reached (3/3)"
        assert check.upgrade_prompt.cta == "Upgrade to Individual"
        assert check.limits["drops_per_month"] == 3

    def test_first_failure_wins(self, fake_supabase, free_user):
        # Too many recipients and too large a file: recipients is checked first
        check = SubscriptionGuard.check_drop_creation(free_user["id"], recipient_count=5, file_size_mb=50)

        assert check.failed_check == "recipient_count"

    def test_storage_includes_new_file(self, fake_supabase, free_user):
        seed_month_usage(fake_supabase, free_user["id"], storage_mb=25)

        check = SubscriptionGuard.check_drop_creation(free_user["id"], recipient_count=1, file_size_mb=8)

        assert check.allowed is False
        assert check.failed_check == "storage"

    def test_allowed_creates_usage_row(self, fake_supabase, free_user):
        check = SubscriptionGuard.check_drop_creation(free_user["id"], recipient_count=2)

        assert check.allowed is True
        assert len(fake_supabase.rows("usage_tracking")) == 1

    def test_missing_user_is_evaluated_as_free(self, fake_supabase):
        check = SubscriptionGuard.check_drop_creation("no-such-user", recipient_count=4)

        assert check.allowed is False
        assert check.failed_check == "recipient_count"

    def test_business_is_never_blocked(self, fake_supabase, make_user):
        user = make_user("business")
        seed_month_usage(fake_supabase, user["id"], drops=1000, storage_mb=99999)

        check = SubscriptionGuard.check_drop_creation(user["id"], recipient_count=500, file_size_mb=5000)

        assert check.allowed is True


class TestEvaluateDropCreationLimits:
    """Tests for SubscriptionGuard.evaluate_drop_creation_limits()."""

    def test_individual_with_14_drops_gets_soft_warning(self, fake_supabase, make_user):
        user = make_user("individual")
        seed_month_usage(fake_supabase, user["id"], drops=14)

        limits = SubscriptionGuard.evaluate_drop_creation_limits(user["id"], recipient_count=5)

        assert limits.can_proceed() is True
        assert limits.can_create_drop.upgrade_prompt.type == PromptType.SOFT
        assert limits.blocking_issues() == []

    def test_blocking_issues_listed(self, fake_supabase, free_user):
        limits = SubscriptionGuard.evaluate_drop_creation_limits(
            free_user["id"], recipient_count=4, file_size_mb=11
        )

        assert limits.can_proceed() is False
        issue_types = [issue["type"] for issue in limits.blocking_issues()]
        assert issue_types == ["can_add_recipients", "can_upload_file"]


class TestOtherChecks:
    """Upload, bulk and usage status checks."""

    def test_check_upload(self, fake_supabase, free_user):
        assert SubscriptionGuard.check_upload(free_user["id"], 5).allowed is True

        blocked = SubscriptionGuard.check_upload(free_user["id"], 12)
        assert blocked.allowed is False
        assert blocked.failed_check == "file_size"

    def test_bulk_operation_free_limit(self, fake_supabase, free_user):
        assert SubscriptionGuard.check_bulk_operation(free_user["id"], 5)["can_proceed"] is True

        result = SubscriptionGuard.check_bulk_operation(free_user["id"], 6)
        assert result["can_proceed"] is False
        assert result["upgrade_prompt"]["suggested_plan"] == "business"

    def test_bulk_operation_paid(self, fake_supabase, make_user):
        user = make_user("individual")
        assert SubscriptionGuard.check_bulk_operation(user["id"], 50) == {"can_proceed": True, "item_count": 50}

    def test_bulk_operation_rejects_zero(self, fake_supabase, free_user):
        with pytest.raises(ValueError):
            SubscriptionGuard.check_bulk_operation(free_user["id"], 0)

    def test_usage_status_warnings(self, fake_supabase, make_user):
        user = make_user("individual")
        seed_month_usage(fake_supabase, user["id"], drops=12, storage_mb=4500)

        status = SubscriptionGuard.get_usage_status(user["id"])

        assert status["tier"] == "individual"
        assert status["percentages"]["drops"] == 80
        titles = [w["title"] for w in status["warnings"]]
        assert titles == ["Approaching drop limit", "Storage full"]
