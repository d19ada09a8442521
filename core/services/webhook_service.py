# =============================================================================
# core/services/webhook_service.py - Payment Webhook Processing
# =============================================================================
# Applies Dodo Payments webhook events to users / subscriptions.
#
# Events:
#   subscription.created / subscription.active  -> user becomes paid
#   subscription.renewed                        -> new billing + usage period
#   subscription.updated                        -> status / period sync
#   subscription.canceled / subscription.cancelled
#   payment.succeeded / payment.failed          -> payment_transactions row
#
# The endpoint acknowledges every correctly signed event, even when a
# handler fails, so the provider does not retry indefinitely.
# =============================================================================

import logging
from datetime import datetime
from typing import Any, Callable, Mapping

from app.config import settings
from lib.periods import utc_now
from lib.supabase_client import SupabaseClient
from lib.webhooks import WebhookPayloadError, WebhookVerificationError, verify_webhook
from core.services.analytics_service import AnalyticsService
from core.services.usage_service import UsageService
from app.exceptions import BadRequestError, WebhookSignatureError

logger = logging.getLogger(__name__)

DEFAULT_PLAN = "individual"


def _subscription_data(data: dict[str, Any]) -> dict[str, Any]:
    """Events carry the subscription either nested or as the data object itself."""
    return data.get("subscription") or data


def _payment_data(data: dict[str, Any]) -> dict[str, Any]:
    return data.get("payment") or data


def _find_user_by_customer(customer_id: str | None) -> dict[str, Any] | None:
    if not customer_id:
        return None
    client = SupabaseClient.get_client()
    response = (
        client.table("users")
        .select("id, email")
        .eq("dodo_customer_id", customer_id)
        .limit(1)
        .execute()
    )
    rows = response.data or []
    return rows[0] if rows else None


# =============================================================================
# Subscription Events
# =============================================================================

def handle_subscription_created(data: dict[str, Any], now: datetime) -> None:
    subscription = _subscription_data(data)
    metadata = subscription.get("metadata") or {}
    user_id = metadata.get("user_id")
    if not user_id:
        logger.error("No user_id in subscription metadata")
        return

    plan = metadata.get("plan") or DEFAULT_PLAN
    period_end = subscription.get("current_period_end") or subscription.get("next_billing_date")

    SupabaseClient.update_user(user_id, {
        "is_paid": True,
        "subscription_status": "active",
        "subscription_tier": plan,
        "subscription_ends_at": period_end,
        "dodo_customer_id": subscription.get("customer_id"),
    })

    client = SupabaseClient.get_client()
    client.table("subscriptions").upsert({
        "user_id": user_id,
        "plan": plan,
        "status": "active",
        "dodo_customer_id": subscription.get("customer_id"),
        "dodo_subscription_id": subscription.get("subscription_id"),
        "dodo_product_id": subscription.get("product_id"),
        "current_period_start": subscription.get("current_period_start"),
        "current_period_end": period_end,
        "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
        "billing_interval": "monthly",
        "started_at": now.isoformat(),
        "expires_at": period_end,
    }, on_conflict="dodo_subscription_id").execute()

    user = SupabaseClient.fetch_user(user_id, "email")
    AnalyticsService.capture((user or {}).get("email") or user_id, "subscription_created", {
        "plan": plan,
        "subscription_id": subscription.get("subscription_id"),
        "customer_id": subscription.get("customer_id"),
        "current_period_end": period_end,
        "user_id": user_id,
    })
    logger.info(f"Subscription {subscription.get('subscription_id')} active for user {user_id} ({plan})")


def handle_subscription_renewed(data: dict[str, Any], now: datetime) -> None:
    subscription = _subscription_data(data)
    period_end = subscription.get("current_period_end") or subscription.get("next_billing_date")
    client = SupabaseClient.get_client()

    client.table("subscriptions").update({
        "current_period_start": subscription.get("current_period_start"),
        "current_period_end": period_end,
        "expires_at": period_end,
        "status": "active",
        "updated_at": now.isoformat(),
    }).eq("dodo_subscription_id", subscription.get("subscription_id")).execute()

    client.table("users").update({
        "subscription_ends_at": period_end,
        "subscription_status": "active",
    }).eq("dodo_customer_id", subscription.get("customer_id")).execute()

    user = _find_user_by_customer(subscription.get("customer_id"))
    if user:
        UsageService.reset_usage_for_new_period(user["id"], now)
        AnalyticsService.capture(user.get("email"), "subscription_renewed", {
            "subscription_id": subscription.get("subscription_id"),
            "current_period_end": period_end,
            "user_id": user["id"],
        })


def handle_subscription_updated(data: dict[str, Any], now: datetime) -> None:
    subscription = _subscription_data(data)
    updates: dict[str, Any] = {"updated_at": now.isoformat()}
    for field in ("status", "current_period_start", "current_period_end", "cancel_at_period_end"):
        if field in subscription:
            updates[field] = subscription[field]

    client = SupabaseClient.get_client()
    client.table("subscriptions").update(updates).eq(
        "dodo_subscription_id", subscription.get("subscription_id")
    ).execute()


def handle_subscription_canceled(data: dict[str, Any], now: datetime) -> None:
    subscription = _subscription_data(data)
    cancel_at_period_end = bool(subscription.get("cancel_at_period_end"))
    client = SupabaseClient.get_client()

    client.table("subscriptions").update({
        "status": "canceled",
        "canceled_at": subscription.get("canceled_at") or subscription.get("cancelled_at") or now.isoformat(),
        "cancel_at_period_end": cancel_at_period_end,
    }).eq("dodo_subscription_id", subscription.get("subscription_id")).execute()

    # Canceled immediately: drop back to the free plan now
    if not cancel_at_period_end:
        client.table("users").update({
            "is_paid": False,
            "subscription_status": "canceled",
            "subscription_tier": "free",
        }).eq("dodo_customer_id", subscription.get("customer_id")).execute()

    user = _find_user_by_customer(subscription.get("customer_id"))
    if user:
        AnalyticsService.capture(user.get("email"), "subscription_canceled", {
            "subscription_id": subscription.get("subscription_id"),
            "cancel_at_period_end": cancel_at_period_end,
            "user_id": user["id"],
        })


# =============================================================================
# Payment Events
# =============================================================================

def _find_subscription_id(dodo_subscription_id: str | None) -> str | None:
    if not dodo_subscription_id:
        return None
    client = SupabaseClient.get_client()
    response = (
        client.table("subscriptions")
        .select("id")
        .eq("dodo_subscription_id", dodo_subscription_id)
        .limit(1)
        .execute()
    )
    rows = response.data or []
    return rows[0]["id"] if rows else None


def _record_payment(data: dict[str, Any], status: str, event: str, now: datetime) -> None:
    payment = _payment_data(data)
    user = _find_user_by_customer(payment.get("customer_id") or (payment.get("customer") or {}).get("customer_id"))
    amount = payment.get("amount", payment.get("total_amount"))
    subscription_id = _find_subscription_id(payment.get("subscription_id"))

    client = SupabaseClient.get_client()
    client.table("payment_transactions").insert({
        "user_id": user["id"] if user else None,
        "subscription_id": subscription_id,
        "dodo_payment_id": payment.get("payment_id"),
        "amount_cents": amount,
        "status": status,
        "transaction_type": "subscription" if subscription_id else "one_time",
    }).execute()

    if user:
        AnalyticsService.capture(user.get("email"), event, {
            "payment_id": payment.get("payment_id"),
            "amount": amount,
            "currency": payment.get("currency"),
            "subscription_id": payment.get("subscription_id"),
            "user_id": user["id"],
        })


def handle_payment_succeeded(data: dict[str, Any], now: datetime) -> None:
    _record_payment(data, "succeeded", "payment_succeeded", now)


def handle_payment_failed(data: dict[str, Any], now: datetime) -> None:
    _record_payment(data, "failed", "payment_failed", now)


EVENT_HANDLERS: dict[str, Callable[[dict[str, Any], datetime], None]] = {
    "subscription.created": handle_subscription_created,
    "subscription.active": handle_subscription_created,
    "subscription.renewed": handle_subscription_renewed,
    "subscription.updated": handle_subscription_updated,
    "subscription.canceled": handle_subscription_canceled,
    "subscription.cancelled": handle_subscription_canceled,
    "payment.succeeded": handle_payment_succeeded,
    "payment.failed": handle_payment_failed,
}


class WebhookService:
    """Entry point for provider webhooks."""

    @staticmethod
    def process(
        headers: Mapping[str, str],
        body: bytes,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Verify and apply one webhook delivery.

        Args:
            headers: Request headers
            body: Raw request body
            now: Current time for database writes (for tests)

        Returns:
            {"received": True, "event": <type>, "handled": bool}

        Raises:
            WebhookSignatureError: Signature verification failed
            BadRequestError: Body isn't a JSON event
        """
        try:
            payload = verify_webhook(settings.DODO_PAYMENTS_WEBHOOK_SECRET, headers, body)
        except WebhookVerificationError as e:
            logger.warning(f"Webhook verification failed: {e.message}")
            raise WebhookSignatureError("Webhook verification failed")
        except WebhookPayloadError as e:
            raise BadRequestError(e.message)

        event_type = payload.get("type") if isinstance(payload, dict) else None
        if not event_type:
            raise BadRequestError("Webhook event type is missing")

        handler = EVENT_HANDLERS.get(event_type)
        if handler is None:
            logger.info(f"Ignoring unhandled webhook event: {event_type}")
            return {"received": True, "event": event_type, "handled": False}

        try:
            handler(payload.get("data") or {}, now or utc_now())
        except Exception as e:
            logger.exception(f"Error handling webhook event {event_type}: {e}")
            return {"received": True, "event": event_type, "handled": False}

        logger.info(f"Processed webhook event: {event_type}")
        return {"received": True, "event": event_type, "handled": True}
