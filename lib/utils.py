# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application.
# =============================================================================

from typing import Any, Iterable
from uuid import UUID


# =============================================================================
# UUID Utilities
# =============================================================================

def normalize_uuid(value: str | UUID) -> str:
    """
    Normalize a UUID to string format for PostgREST filters.

    Example:
        drop_id = normalize_uuid(uuid_obj)  # "550e8400-..."
    """
    return str(value) if isinstance(value, UUID) else value


# =============================================================================
# Email Utilities
# =============================================================================

def normalize_email(email: str | None) -> str:
    """Trim and lower-case an email so comparisons are case-insensitive."""
    return (email or "").strip().lower()


def parse_recipients(raw: str | Iterable[str] | None) -> list[str]:
    """
    Turn a recipient list into normalized, de-duplicated emails.

    Accepts the comma-separated string the drop form sends or a list.
    Order of first appearance is kept.

    Example:
        parse_recipients(" A@x.com, b@y.com ,,a@x.com")
        # ["a@x.com", "b@y.com"]
    """
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else raw

    recipients: list[str] = []
    for part in parts:
        email = normalize_email(part)
        if email and email not in recipients:
            recipients.append(email)
    return recipients


# =============================================================================
# Request Utilities
# =============================================================================

def client_ip(headers: Any, fallback: str | None = None) -> str | None:
    """
    Best-effort client IP behind a proxy.

    Uses the first x-forwarded-for hop, then x-real-ip.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return headers.get("x-real-ip") or fallback


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for errors raised outside the HTTP layer.

    Provides actionable error messages following the principle:
    "Errors should tell HOW to fix, not just WHAT failed."

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        suggestion: Actionable suggestion for fixing the error
        details: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "details": self.details,
        }
