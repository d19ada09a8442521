# =============================================================================
# core/services/analytics_service.py - Product Analytics Events
# =============================================================================
# Sends server-side product events to PostHog. The SDK queues events and
# flushes them from a background thread, so capture never waits on the
# network.
#
# Analytics never breaks a request: missing configuration makes every call
# a no-op and delivery failures are only logged.
# =============================================================================

import logging
from functools import lru_cache
from typing import Any

from posthog import Posthog

from app.config import settings

logger = logging.getLogger(__name__)


@lru_cache
def get_posthog_client() -> Posthog:
    """Get the process-wide PostHog client built from settings."""
    return Posthog(settings.POSTHOG_KEY, host=settings.POSTHOG_HOST)


class AnalyticsService:
    """Fire-and-forget event capture."""

    @staticmethod
    def is_enabled() -> bool:
        return bool(settings.POSTHOG_KEY)

    @staticmethod
    def capture(
        distinct_id: str | None,
        event: str,
        properties: dict[str, Any] | None = None,
    ) -> bool:
        """
        Queue one event.

        Args:
            distinct_id: User identifier (email or user id)
            event: Event name, e.g. "payment_link_created"
            properties: Extra event properties

        Returns:
            True if the event was queued, False if skipped or failed
        """
        if not AnalyticsService.is_enabled() or not distinct_id:
            return False

        try:
            get_posthog_client().capture(
                event=event,
                distinct_id=str(distinct_id),
                properties={**(properties or {}), "$lib": "dropaccess-api"},
            )
            logger.debug(f"Queued analytics event {event} for {distinct_id}")
            return True
        except Exception as e:
            logger.warning(f"Failed to capture analytics event {event}: {e}")
            return False

    @staticmethod
    def shutdown() -> None:
        """Flush queued events; called when the app stops."""
        if not AnalyticsService.is_enabled():
            return
        try:
            get_posthog_client().shutdown()
        except Exception as e:
            logger.warning(f"Failed to flush analytics events: {e}")
