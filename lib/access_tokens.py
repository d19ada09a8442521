# =============================================================================
# lib/access_tokens.py - Verification Session Tokens
# =============================================================================
# After a recipient verifies their email for a drop they receive a short-lived
# signed token. The content endpoint only serves drop content to holders of
# a valid token for that drop.
#
# Tokens are HS256 JWTs signed with SECRET_KEY (python-jose, same library
# used to verify Supabase tokens in app/auth).
#
# Usage:
#   token, expires_at = issue_session_token(drop_id, email, access_expires_at)
#   claims = decode_session_token(token, drop_id)
# =============================================================================

import logging
from datetime import datetime, timedelta

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings
from lib.periods import ensure_utc, utc_now
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
AUDIENCE = "drop-access"


class SessionTokenError(ApplicationError):
    """Raised when a verification session token is missing, invalid or expired."""

    def __init__(self, message: str, code: str = "INVALID_SESSION_TOKEN"):
        super().__init__(
            message,
            code=code,
            suggestion="Verify your email address again to get a new access session",
        )


def session_expiry(
    now: datetime,
    access_expires_at: datetime | None,
    session_minutes: int | None = None,
) -> datetime:
    """
    When a verification session ends.

    A session lasts VERIFICATION_SESSION_MINUTES but never outlives the
    recipient's access to the drop.
    """
    minutes = session_minutes or settings.VERIFICATION_SESSION_MINUTES
    expires_at = ensure_utc(now) + timedelta(minutes=minutes)
    if access_expires_at is not None:
        expires_at = min(expires_at, ensure_utc(access_expires_at))
    return expires_at


def issue_session_token(
    drop_id: str,
    email: str,
    access_expires_at: datetime | None,
    now: datetime | None = None,
) -> tuple[str, datetime]:
    """
    Sign a session token for a verified recipient.

    Returns:
        Tuple of (token, session_expires_at)
    """
    now = ensure_utc(now or utc_now())
    expires_at = session_expiry(now, access_expires_at)

    claims = {
        "sub": email,
        "drop_id": str(drop_id),
        "aud": AUDIENCE,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if access_expires_at is not None:
        claims["access_expires_at"] = ensure_utc(access_expires_at).isoformat()

    token = jwt.encode(claims, settings.SECRET_KEY, algorithm=ALGORITHM)
    return token, expires_at


def decode_session_token(token: str | None, drop_id: str) -> dict:
    """
    Validate a session token and make sure it belongs to `drop_id`.

    Raises:
        SessionTokenError: If the token is missing, expired, tampered with
            or issued for another drop
    """
    if not token:
        raise SessionTokenError("Access session required", code="SESSION_REQUIRED")

    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM], audience=AUDIENCE)
    except ExpiredSignatureError:
        raise SessionTokenError("Access session has expired", code="SESSION_EXPIRED")
    except JWTError as e:
        logger.warning(f"Rejected drop session token: {e}")
        raise SessionTokenError("Invalid access session")

    if claims.get("drop_id") != str(drop_id):
        raise SessionTokenError("Access session is not valid for this drop")

    return claims
