# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .access_service import AccessService
from .analytics_service import AnalyticsService
from .drop_service import DropService
from .notification_service import NotificationService
from .payment_service import PaymentService
from .storage_service import StorageService
from .subscription_guard import SubscriptionGuard
from .usage_service import UsageService
from .webhook_service import WebhookService

__all__ = [
    "AccessService",
    "AnalyticsService",
    "DropService",
    "NotificationService",
    "PaymentService",
    "StorageService",
    "SubscriptionGuard",
    "UsageService",
    "WebhookService",
]
