# =============================================================================
# lib/dodo_client.py - Dodo Payments REST Client
# =============================================================================
# Thin httpx wrapper around the Dodo Payments API endpoints we use:
# - customers (create)
# - subscriptions (create payment link, retrieve, update, change plan)
# - customer portal sessions
#
# Usage:
#   from lib.dodo_client import get_dodo_client
#   customer = get_dodo_client().create_customer("a@b.com", "a")
# =============================================================================

import logging
from functools import lru_cache
from typing import Any

import httpx

from app.config import settings
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

BASE_URLS = {
    "test_mode": "https://test.dodopayments.com",
    "live_mode": "https://live.dodopayments.com",
}

# Billing address placeholder sent with payment-link subscriptions; the
# checkout page collects the real address.
DEFAULT_BILLING = {
    "city": "Unknown",
    "country": "IN",
    "state": "Unknown",
    "street": "Unknown",
    "zipcode": "000000",
}


class DodoAPIError(ApplicationError):
    """Error returned by (or while talking to) the Dodo Payments API."""

    def __init__(self, message: str, status_code: int | None = None, details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code="DODO_API_ERROR",
            suggestion="Check DODO_PAYMENTS_API_KEY and the product IDs for this environment",
            details=details,
        )
        self.status_code = status_code


class DodoPaymentsClient:
    """
    Minimal Dodo Payments client.

    All methods return the decoded JSON body and raise DodoAPIError on
    transport errors or non-2xx responses.
    """

    def __init__(self, api_key: str, environment: str = "test_mode", timeout: float = 15.0):
        self.api_key = api_key
        self.base_url = BASE_URLS.get(environment, BASE_URLS["test_mode"])
        self.timeout = timeout

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.api_key:
            raise DodoAPIError("Dodo Payments API key is not configured")

        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = httpx.request(method, url, json=json, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise DodoAPIError(f"Dodo Payments request failed: {e}", details={"path": path})

        if response.status_code >= 400:
            raise DodoAPIError(
                f"Dodo Payments API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
                details={"path": path},
            )

        logger.debug(f"Dodo {method} {path} -> {response.status_code}")
        return response.json() if response.content else {}

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    def create_customer(self, email: str, name: str) -> dict[str, Any]:
        return self._request("POST", "/customers", {"email": email, "name": name})

    def create_portal_session(self, customer_id: str, return_url: str | None = None) -> dict[str, Any]:
        payload = {"return_url": return_url} if return_url else None
        return self._request("POST", f"/customers/{customer_id}/customer-portal/session", payload)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def create_subscription_link(
        self,
        customer_id: str,
        product_id: str,
        return_url: str,
        metadata: dict[str, str],
        quantity: int = 1,
    ) -> dict[str, Any]:
        """
        Create a subscription and get a hosted payment link for it.

        Returns:
            Dict with subscription_id and payment_link (among others)
        """
        return self._request("POST", "/subscriptions", {
            "billing": DEFAULT_BILLING,
            "customer": {"customer_id": customer_id},
            "product_id": product_id,
            "payment_link": True,
            "return_url": return_url,
            "quantity": quantity,
            "metadata": metadata,
        })

    def get_subscription(self, subscription_id: str) -> dict[str, Any]:
        return self._request("GET", f"/subscriptions/{subscription_id}")

    def update_subscription(self, subscription_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return self._request("PATCH", f"/subscriptions/{subscription_id}", data)

    def change_plan(self, subscription_id: str, product_id: str, quantity: int = 1) -> dict[str, Any]:
        return self._request("POST", f"/subscriptions/{subscription_id}/change-plan", {
            "product_id": product_id,
            "quantity": quantity,
            "proration_billing_mode": "prorated_immediately",
        })


@lru_cache
def get_dodo_client() -> DodoPaymentsClient:
    """Get the process-wide Dodo client built from settings."""
    return DodoPaymentsClient(
        api_key=settings.DODO_PAYMENTS_API_KEY,
        environment=settings.DODO_PAYMENTS_ENVIRONMENT,
    )
