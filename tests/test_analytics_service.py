# =============================================================================
# tests/test_analytics_service.py - Product Analytics Tests
# =============================================================================
# The PostHog client is replaced with a mock; nothing leaves the process.
#
# Run with: pytest tests/test_analytics_service.py -v
# =============================================================================

from unittest.mock import MagicMock, patch

import pytest

from app.config import settings
from core.services.analytics_service import AnalyticsService


@pytest.fixture
def posthog(monkeypatch):
    monkeypatch.setattr(settings, "POSTHOG_KEY", "phc_test")
    client = MagicMock()
    with patch("core.services.analytics_service.get_posthog_client", return_value=client):
        yield client


class TestCapture:
    """Tests for AnalyticsService.capture."""

    def test_disabled_without_key(self, monkeypatch):
        monkeypatch.setattr(settings, "POSTHOG_KEY", "")

        with patch("core.services.analytics_service.get_posthog_client") as get_client:
            assert AnalyticsService.capture("owner@example.com", "drop_created") is False

        get_client.assert_not_called()

    def test_skips_anonymous_events(self, posthog):
        assert AnalyticsService.capture(None, "drop_created") is False
        posthog.capture.assert_not_called()

    def test_queues_event(self, posthog):
        assert AnalyticsService.capture("owner@example.com", "payment_link_created", {"plan": "business"})

        kwargs = posthog.capture.call_args.kwargs
        assert kwargs["event"] == "payment_link_created"
        assert kwargs["distinct_id"] == "owner@example.com"
        assert kwargs["properties"]["plan"] == "business"
        assert kwargs["properties"]["$lib"] == "dropaccess-api"

    def test_client_failure_is_swallowed(self, posthog):
        posthog.capture.side_effect = RuntimeError("queue full")

        assert AnalyticsService.capture("owner@example.com", "payment_failed") is False


class TestShutdown:
    """Tests for AnalyticsService.shutdown."""

    def test_flushes_queue(self, posthog):
        AnalyticsService.shutdown()

        posthog.shutdown.assert_called_once()

    def test_noop_without_key(self, monkeypatch):
        monkeypatch.setattr(settings, "POSTHOG_KEY", "")

        with patch("core.services.analytics_service.get_posthog_client") as get_client:
            AnalyticsService.shutdown()

        get_client.assert_not_called()
