# =============================================================================
# core/services/payment_service.py - Subscription Purchases
# =============================================================================
# Creates Dodo Payments subscription links and manages active subscriptions
# (plan change, cancel at period end, reactivate, billing portal).
#
# Subscription state in our database is written by the webhook handler;
# the only local writes here are the immediate effects of a user action.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.config import settings
from lib.dodo_client import DodoAPIError, get_dodo_client
from lib.periods import utc_now
from lib.supabase_client import SupabaseClient, SupabaseClientError, is_not_found
from core.models.payment import ManageAction, PlanType
from core.services.analytics_service import AnalyticsService
from app.exceptions import (
    BadRequestError,
    BillingAccountNotFoundError,
    PaymentConfigError,
    PaymentProviderError,
    SubscriptionConflictError,
    SubscriptionNotFoundError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)

APP_NAME = "DropAccess"


def product_config() -> dict[str, dict[str, Any]]:
    """Plan -> product id, price in cents and billing interval."""
    return {
        PlanType.INDIVIDUAL.value: {
            "product_id": settings.DODO_INDIVIDUAL_PRODUCT_ID,
            "price": 999,
            "name": "Individual Plan",
            "interval": "month",
        },
        PlanType.BUSINESS.value: {
            "product_id": settings.DODO_BUSINESS_PRODUCT_ID,
            "price": 1999,
            "name": "Business Plan",
            "interval": "month",
        },
    }


def get_plan_config(plan: str) -> dict[str, Any]:
    """
    Raises:
        BadRequestError: If the plan isn't purchasable
    """
    config = product_config().get(str(plan.value if isinstance(plan, PlanType) else plan))
    if config is None:
        raise BadRequestError('Invalid plan type. Must be "individual" or "business"')
    return config


class PaymentService:
    """Service for subscription purchase and management."""

    @staticmethod
    def fetch_active_subscription(user_id: UUID | str) -> dict[str, Any] | None:
        """The user's active subscription row, or None."""
        client = SupabaseClient.get_client()

        try:
            response = (
                client.table("subscriptions")
                .select("*")
                .eq("user_id", str(user_id))
                .eq("status", "active")
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if is_not_found(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch subscription: {e}",
                code="FETCH_SUBSCRIPTION_FAILED",
                details={"user_id": str(user_id)}
            )

    @staticmethod
    def create_payment_link(user_id: UUID | str, email: str, plan: str) -> dict[str, Any]:
        """
        Create a hosted payment link for a plan.

        Creates the Dodo customer on first purchase and remembers its id
        on the user row.

        Args:
            user_id: Purchasing user
            email: User email (customer + analytics identity)
            plan: "individual" or "business"

        Returns:
            Dict with payment_link, subscription_id, plan, amount,
            is_plan_change and message

        Raises:
            BadRequestError: Unknown plan
            PaymentConfigError: Missing API key or product id
            UserNotFoundError: No user row
            SubscriptionConflictError: Already on this plan
            PaymentProviderError: Dodo request failed
        """
        plan_config = get_plan_config(plan)
        plan = str(plan.value if isinstance(plan, PlanType) else plan)
        user_id_str = str(user_id)

        if not settings.DODO_PAYMENTS_API_KEY:
            raise PaymentConfigError("Payment service not configured - missing API key")
        if not plan_config["product_id"]:
            raise PaymentConfigError(f"Product configuration missing for {plan} plan")

        user = SupabaseClient.fetch_user(user_id_str)
        if not user:
            raise UserNotFoundError(user_id_str)

        existing = PaymentService.fetch_active_subscription(user_id_str)
        if existing and existing.get("plan") == plan:
            raise SubscriptionConflictError(plan)

        is_plan_change = existing is not None
        previous_plan = existing.get("plan") if existing else None

        AnalyticsService.capture(email, "payment_link_requested", {
            "plan": plan,
            "product_id": plan_config["product_id"],
            "price_cents": plan_config["price"],
            "user_id": user_id_str,
            "is_plan_change": is_plan_change,
        })

        dodo = get_dodo_client()
        try:
            customer_id = user.get("dodo_customer_id")
            if not customer_id:
                customer = dodo.create_customer(email=email, name=email.split("@")[0])
                customer_id = customer["customer_id"]
                SupabaseClient.update_user(user_id_str, {"dodo_customer_id": customer_id})
                logger.info(f"Created Dodo customer {customer_id} for user {user_id_str}")

            subscription = dodo.create_subscription_link(
                customer_id=customer_id,
                product_id=plan_config["product_id"],
                return_url=f"{settings.app_url}/dashboard?payment=success",
                metadata={
                    "user_id": user_id_str,
                    "plan": plan,
                    "app_name": APP_NAME,
                    "is_plan_change": "true" if is_plan_change else "false",
                    "previous_plan": previous_plan or "none",
                },
            )

        except DodoAPIError as e:
            logger.error(f"Dodo payment link creation failed for user {user_id_str}: {e}")
            AnalyticsService.capture(email, "payment_link_creation_failed", {
                "plan": plan,
                "error_message": e.message,
                "error_type": "dodo_api_error",
                "user_id": user_id_str,
                "is_plan_change": is_plan_change,
            })
            raise PaymentProviderError("Failed to create payment link", e.message)

        AnalyticsService.capture(email, "payment_link_created", {
            "plan": plan,
            "subscription_id": subscription.get("subscription_id"),
            "dodo_customer_id": customer_id,
            "user_id": user_id_str,
            "is_plan_change": is_plan_change,
            "previous_plan": previous_plan,
        })
        logger.info(f"Payment link created for user {user_id_str}: {plan}")

        return {
            "success": True,
            "payment_link": subscription.get("payment_link"),
            "subscription_id": subscription.get("subscription_id"),
            "plan": plan,
            "amount": plan_config["price"],
            "is_plan_change": is_plan_change,
            "message": (
                f"Creating payment link to change from {previous_plan} to {plan}"
                if is_plan_change else f"Creating payment link for {plan} subscription"
            ),
        }

    @staticmethod
    def get_subscription(user_id: UUID | str) -> dict[str, Any]:
        """
        Active subscription plus live provider details.

        Provider lookup failures are logged and the local row is returned.
        """
        subscription = PaymentService.fetch_active_subscription(user_id)
        if not subscription:
            return {"has_subscription": False, "subscription": None}

        provider_details = None
        if subscription.get("dodo_subscription_id"):
            try:
                provider_details = get_dodo_client().get_subscription(subscription["dodo_subscription_id"])
            except DodoAPIError as e:
                logger.warning(f"Could not fetch Dodo subscription {subscription['dodo_subscription_id']}: {e}")

        return {
            "has_subscription": True,
            "subscription": {**subscription, "provider_details": provider_details},
        }

    @staticmethod
    def manage(
        user_id: UUID | str,
        email: str,
        action: ManageAction,
        new_plan: str | None = None,
    ) -> dict[str, Any]:
        """
        Apply a subscription action.

        Raises:
            SubscriptionNotFoundError: No active subscription
            BadRequestError: change_plan without a valid new_plan
            PaymentProviderError: Dodo request failed
        """
        action = ManageAction(action)
        subscription = PaymentService.fetch_active_subscription(user_id)
        if not subscription:
            raise SubscriptionNotFoundError()

        if action == ManageAction.CHANGE_PLAN:
            if not new_plan:
                raise BadRequestError("new_plan is required for change_plan")
            return PaymentService._change_plan(subscription, str(user_id), email, new_plan)
        if action == ManageAction.CANCEL:
            return PaymentService._cancel(subscription, str(user_id), email)
        return PaymentService._reactivate(subscription, str(user_id), email)

    @staticmethod
    def _change_plan(subscription: dict[str, Any], user_id: str, email: str, new_plan: str) -> dict[str, Any]:
        plan_config = get_plan_config(new_plan)
        new_plan = str(new_plan.value if isinstance(new_plan, PlanType) else new_plan)
        now = utc_now().isoformat()

        try:
            updated = get_dodo_client().change_plan(subscription["dodo_subscription_id"], plan_config["product_id"])
        except DodoAPIError as e:
            AnalyticsService.capture(email, "subscription_plan_change_failed", {
                "from_plan": subscription.get("plan"),
                "to_plan": new_plan,
                "error_message": e.message,
                "user_id": user_id,
            })
            raise PaymentProviderError("Failed to change plan", e.message)

        client = SupabaseClient.get_client()
        client.table("subscriptions").update({
            "plan": new_plan,
            "dodo_product_id": plan_config["product_id"],
            "price_cents": plan_config["price"],
            "updated_at": now,
        }).eq("id", subscription["id"]).execute()
        SupabaseClient.update_user(user_id, {"subscription_tier": new_plan, "updated_at": now})

        AnalyticsService.capture(email, "subscription_plan_changed", {
            "from_plan": subscription.get("plan"),
            "to_plan": new_plan,
            "subscription_id": subscription.get("dodo_subscription_id"),
            "user_id": user_id,
        })
        logger.info(f"User {user_id} changed plan {subscription.get('plan')} -> {new_plan}")

        return {
            "success": True,
            "message": "Plan changed successfully",
            "new_plan": new_plan,
            "subscription": updated,
        }

    @staticmethod
    def _cancel(subscription: dict[str, Any], user_id: str, email: str) -> dict[str, Any]:
        now = utc_now().isoformat()

        try:
            get_dodo_client().update_subscription(subscription["dodo_subscription_id"], {
                "cancel_at_next_billing_date": True,
                "metadata": {"cancelled_by_user": "true", "cancelled_at": now},
            })
        except DodoAPIError as e:
            AnalyticsService.capture(email, "subscription_cancellation_failed", {
                "plan": subscription.get("plan"),
                "error_message": e.message,
                "user_id": user_id,
            })
            raise PaymentProviderError("Failed to cancel subscription", e.message)

        client = SupabaseClient.get_client()
        client.table("subscriptions").update({
            "cancel_at_period_end": True,
            "updated_at": now,
        }).eq("id", subscription["id"]).execute()

        AnalyticsService.capture(email, "subscription_canceled", {
            "plan": subscription.get("plan"),
            "subscription_id": subscription.get("dodo_subscription_id"),
            "cancel_at_period_end": True,
            "user_id": user_id,
        })
        logger.info(f"User {user_id} scheduled cancellation of {subscription.get('plan')}")

        return {
            "success": True,
            "message": "Subscription will be canceled at the end of the current billing period",
            "cancel_at_period_end": True,
        }

    @staticmethod
    def _reactivate(subscription: dict[str, Any], user_id: str, email: str) -> dict[str, Any]:
        now = utc_now().isoformat()

        try:
            updated = get_dodo_client().update_subscription(subscription["dodo_subscription_id"], {
                "cancel_at_next_billing_date": False,
                "metadata": {"reactivated": "true", "reactivated_at": now, "cancelled_by_user": "false"},
            })
        except DodoAPIError as e:
            AnalyticsService.capture(email, "subscription_reactivation_failed", {
                "plan": subscription.get("plan"),
                "error_message": e.message,
                "user_id": user_id,
            })
            raise PaymentProviderError("Failed to reactivate subscription", e.message)

        client = SupabaseClient.get_client()
        client.table("subscriptions").update({
            "cancel_at_period_end": False,
            "status": "active",
            "updated_at": now,
        }).eq("id", subscription["id"]).execute()

        AnalyticsService.capture(email, "subscription_reactivated", {
            "plan": subscription.get("plan"),
            "subscription_id": subscription.get("dodo_subscription_id"),
            "user_id": user_id,
        })

        return {
            "success": True,
            "message": "Subscription reactivated successfully",
            "subscription": updated,
        }

    @staticmethod
    def create_portal_session(user_id: UUID | str, return_url: str | None = None) -> dict[str, Any]:
        """
        Open a Dodo customer portal session.

        Raises:
            UserNotFoundError: No user row
            BillingAccountNotFoundError: User has never purchased
            PaymentProviderError: Dodo request failed
        """
        user_id_str = str(user_id)
        user = SupabaseClient.fetch_user(user_id_str, "dodo_customer_id, email")
        if not user:
            raise UserNotFoundError(user_id_str)

        if not user.get("dodo_customer_id"):
            raise BillingAccountNotFoundError(user_id_str)

        try:
            session = get_dodo_client().create_portal_session(
                user["dodo_customer_id"],
                return_url or f"{settings.app_url}/settings",
            )
        except DodoAPIError as e:
            raise PaymentProviderError("Failed to create billing portal session", e.message)

        return {"portal_url": session.get("link") or session.get("url")}
