# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Errors should tell HOW to fix, not just WHAT failed.
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class DropAccessException(Exception):
    """
    Base exception for the DropAccess API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "DROPACCESS_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


class BadRequestError(DropAccessException):
    """Raised when request values fail business validation."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="BAD_REQUEST",
            status_code=400,
            details=details,
        )


# =============================================================================
# Drop Exceptions
# =============================================================================

class DropNotFoundError(DropAccessException):
    """Raised when a drop ID doesn't exist (or isn't owned by the caller)."""

    def __init__(self, drop_id: str):
        super().__init__(
            message="Drop not found",
            code="DROP_NOT_FOUND",
            status_code=404,
            suggestion="Check that the drop link is correct",
            details={"drop_id": drop_id}
        )


class DropUnavailableError(DropAccessException):
    """Raised when a drop exists but can no longer be accessed."""

    def __init__(self, drop_id: str, reason: str, code: str = "DROP_UNAVAILABLE"):
        super().__init__(
            message=reason,
            code=code,
            status_code=410,
            suggestion="Ask the sender to share a new drop",
            details={"drop_id": drop_id}
        )


class AccessDeniedError(DropAccessException):
    """Raised when a recipient fails verification or a caller uses a file they don't own."""

    def __init__(self, message: str, code: str = "ACCESS_DENIED", suggestion: str | None = None):
        super().__init__(
            message=message,
            code=code,
            status_code=403,
            suggestion=suggestion,
        )


class AccessSessionError(DropAccessException):
    """Raised when the verification session token is missing or invalid."""

    def __init__(self, message: str, code: str = "INVALID_SESSION_TOKEN"):
        super().__init__(
            message=message,
            code=code,
            status_code=401,
            suggestion="Verify your email address again to get a new access session",
        )


# =============================================================================
# Subscription Exceptions
# =============================================================================

class LimitExceededError(DropAccessException):
    """
    Raised when an action would exceed the user's plan limits.

    Carries the upgrade prompt and usage snapshot so the client can render
    an upgrade dialog without another round-trip.
    """

    def __init__(
        self,
        reason: str,
        upgrade_prompt: dict[str, Any] | None = None,
        current_usage: dict[str, Any] | None = None,
        limits: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=reason,
            code="LIMIT_EXCEEDED",
            status_code=403,
            suggestion="Upgrade your plan to continue",
        )
        self.upgrade_prompt = upgrade_prompt
        self.current_usage = current_usage
        self.limits = limits

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["error"] = self.message
        result["upgrade_required"] = True
        result["upgrade_prompt"] = self.upgrade_prompt
        result["current_usage"] = self.current_usage
        result["limits"] = self.limits
        return result


class FeatureNotAvailableError(DropAccessException):
    """Raised when the user's plan does not include a feature."""

    def __init__(self, feature: str, reason: str | None = None, upgrade_prompt: dict[str, Any] | None = None):
        super().__init__(
            message=reason or f"Your plan does not include {feature}",
            code="FEATURE_NOT_AVAILABLE",
            status_code=403,
            suggestion="Upgrade your plan to unlock this feature",
            details={"feature": feature, "upgrade_prompt": upgrade_prompt} if upgrade_prompt else {"feature": feature},
        )


class UserNotFoundError(DropAccessException):
    """Raised when the authenticated user has no profile row."""

    def __init__(self, user_id: str):
        super().__init__(
            message="User not found",
            code="USER_NOT_FOUND",
            status_code=404,
            suggestion="Sign out and sign in again so your profile is created",
            details={"user_id": user_id}
        )


# =============================================================================
# Payment Exceptions
# =============================================================================

class PaymentConfigError(DropAccessException):
    """Raised when payment settings are missing."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="PAYMENT_CONFIG_ERROR",
            status_code=500,
            suggestion="Set DODO_PAYMENTS_API_KEY and the plan product IDs",
        )


class PaymentProviderError(DropAccessException):
    """Raised when the payment provider rejects or fails a request."""

    def __init__(self, message: str, error: str):
        super().__init__(
            message=message,
            code="PAYMENT_PROVIDER_ERROR",
            status_code=502,
            suggestion="Try again later or contact support if the issue persists",
            details={"error": error}
        )


class SubscriptionConflictError(DropAccessException):
    """Raised when the user already has the requested plan."""

    def __init__(self, plan: str):
        super().__init__(
            message=f"You already have an active {plan} subscription",
            code="ALREADY_SUBSCRIBED",
            status_code=409,
            suggestion="Use the billing portal to manage your current subscription",
            details={"plan": plan}
        )


class SubscriptionNotFoundError(DropAccessException):
    """Raised when a subscription action needs an active subscription."""

    def __init__(self):
        super().__init__(
            message="No active subscription found",
            code="SUBSCRIPTION_NOT_FOUND",
            status_code=404,
            suggestion="Subscribe to a plan first",
        )


class BillingAccountNotFoundError(DropAccessException):
    """Raised when the user has never been registered with the payment provider."""

    def __init__(self, user_id: str):
        super().__init__(
            message="No billing account found",
            code="BILLING_ACCOUNT_NOT_FOUND",
            status_code=404,
            suggestion="Purchase a plan first to create a billing account",
            details={"user_id": user_id}
        )


class WebhookSignatureError(DropAccessException):
    """Raised when a webhook fails signature verification."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="INVALID_WEBHOOK_SIGNATURE",
            status_code=401,
        )


# =============================================================================
# Storage Exceptions
# =============================================================================

class FileTooLargeError(DropAccessException):
    """Raised when uploaded file exceeds the hard size ceiling."""

    def __init__(self, size_mb: float, max_mb: int):
        super().__init__(
            message=f"File too large: {size_mb:.1f}MB (max: {max_mb}MB)",
            code="FILE_TOO_LARGE",
            status_code=413,
            suggestion=f"Upload a file smaller than {max_mb}MB",
            details={"size_mb": size_mb, "max_mb": max_mb}
        )


class StorageUploadError(DropAccessException):
    """Raised when file upload to storage fails."""

    def __init__(self, error: str):
        super().__init__(
            message=f"Failed to upload file to storage: {error}",
            code="STORAGE_UPLOAD_ERROR",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details={"error": error}
        )


class StorageLinkError(DropAccessException):
    """Raised when a signed download URL cannot be created."""

    def __init__(self, path: str, error: str):
        super().__init__(
            message=f"Failed to create download link: {error}",
            code="STORAGE_LINK_ERROR",
            status_code=500,
            suggestion="Try again later or contact the drop owner",
            details={"path": path, "error": error}
        )


class StoredFileNotFoundError(DropAccessException):
    """Raised when a drop points at a storage object that doesn't exist."""

    def __init__(self, path: str):
        super().__init__(
            message="Uploaded file not found",
            code="FILE_NOT_FOUND",
            status_code=400,
            suggestion="Upload the file first and use the path it returns",
            details={"path": path}
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def dropaccess_exception_handler(
    request: Request,
    exc: DropAccessException
) -> JSONResponse:
    """
    Convert DropAccessException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )
