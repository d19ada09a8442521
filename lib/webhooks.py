# =============================================================================
# lib/webhooks.py - Webhook Signature Verification
# =============================================================================
# Dodo Payments signs webhooks following the Standard Webhooks scheme:
#
#   webhook-id:        unique message id
#   webhook-timestamp: unix seconds
#   webhook-signature: space separated "v1,<base64 hmac>" entries
#
# Verification is done by the standardwebhooks library. This module only
# maps its errors onto ApplicationError so services can handle them the
# same way as every other failure.
# =============================================================================

import json
from datetime import datetime, timezone
from typing import Any, Mapping

from standardwebhooks.webhooks import Webhook
from standardwebhooks.webhooks import WebhookVerificationError as _LibraryVerificationError

from lib.utils import ApplicationError


class WebhookVerificationError(ApplicationError):
    """Raised when a webhook request fails signature verification."""

    def __init__(self, message: str):
        super().__init__(
            message,
            code="WEBHOOK_VERIFICATION_FAILED",
            suggestion="Check DODO_PAYMENTS_WEBHOOK_SECRET matches the endpoint secret in the Dodo dashboard",
        )


class WebhookPayloadError(ApplicationError):
    """Raised when a correctly signed webhook body is not JSON."""

    def __init__(self, message: str = "Webhook body is not valid JSON"):
        super().__init__(message, code="INVALID_WEBHOOK_PAYLOAD")


def _webhook(secret: str) -> Webhook:
    if not secret:
        raise WebhookVerificationError("Webhook secret is not configured")
    try:
        return Webhook(secret)
    except ValueError:
        raise WebhookVerificationError("Webhook secret is not valid base64")


def _as_text(body: bytes | str) -> str:
    return body.decode("utf-8") if isinstance(body, bytes) else body


def sign_payload(secret: str, msg_id: str, timestamp: str | int, body: bytes | str) -> str:
    """
    Compute the "v1,<signature>" value for a payload.

    Handy for producing signed test requests.
    """
    sent_at = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    return _webhook(secret).sign(msg_id, sent_at, _as_text(body))


def verify_webhook(secret: str, headers: Mapping[str, str], body: bytes | str) -> Any:
    """
    Verify a webhook request and return its decoded JSON body.

    The timestamp must be within five minutes of the current time.

    Args:
        secret: Endpoint secret (base64, optionally prefixed with whsec_)
        headers: Request headers
        body: Raw request body exactly as received

    Raises:
        WebhookVerificationError: Missing headers, stale timestamp, or no
            signature matches
        WebhookPayloadError: Signature matches but the body isn't JSON
    """
    webhook = _webhook(secret)
    try:
        return webhook.verify(_as_text(body), dict(headers.items()))
    except json.JSONDecodeError:
        raise WebhookPayloadError()
    except _LibraryVerificationError as e:
        raise WebhookVerificationError(str(e) or "Webhook verification failed")
    except (UnicodeDecodeError, ValueError):
        raise WebhookVerificationError("Malformed webhook signature")
