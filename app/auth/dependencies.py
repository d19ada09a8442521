# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Drop owners sign in with Supabase Auth on the frontend and send the
# access token as a Bearer header. Recipients never authenticate here;
# they use drop session tokens (lib/access_tokens.py) instead.
#
# Token signatures:
# - ES256/RS256 (Supabase signing keys): public key looked up in the
#   project's JWKS by "kid"
# - HS256 (legacy Supabase JWT secret)
#
# Usage:
#   from app.auth import get_current_user, AuthUser
#
#   @router.get("/drops")
#   async def list_drops(user: AuthUser = Depends(get_current_user)):
#       ...
# =============================================================================

import logging
import time
from typing import Any
from uuid import UUID

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError

from app.config import settings
from app.auth.models import AuthUser

logger = logging.getLogger(__name__)

security = HTTPBearer()

SUPABASE_AUDIENCE = "authenticated"
JWKS_CACHE_TTL = 3600


# =============================================================================
# Signing Keys
# =============================================================================

class JWKSCache:
    """Supabase JWKS, refreshed at most once per TTL."""

    def __init__(self, ttl: int = JWKS_CACHE_TTL):
        self.ttl = ttl
        self.keys: list[dict[str, Any]] = []
        self.fetched_at: float = 0

    @staticmethod
    def url() -> str:
        return f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/.well-known/jwks.json"

    def refresh(self) -> None:
        try:
            response = httpx.get(self.url(), timeout=10)
            response.raise_for_status()
            self.keys = response.json().get("keys", [])
            self.fetched_at = time.time()
            logger.debug(f"Loaded {len(self.keys)} signing keys from JWKS")
        except (httpx.HTTPError, ValueError) as e:
            # Stale keys are still better than none
            logger.warning(f"Failed to fetch JWKS: {e}")

    def find(self, kid: str) -> dict[str, Any] | None:
        if not self.keys or time.time() - self.fetched_at >= self.ttl:
            self.refresh()
        return next((key for key in self.keys if key.get("kid") == kid), None)


_jwks = JWKSCache()


def _signing_key(token: str) -> tuple[Any, str]:
    """
    Pick the verification key and algorithm for a token.

    Falls back to the HS256 secret when the header can't be read or the
    key ID isn't in the JWKS.
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        return settings.SUPABASE_JWT_SECRET, "HS256"

    alg = header.get("alg", "HS256")
    kid = header.get("kid")

    if alg != "HS256" and kid:
        key = _jwks.find(kid)
        if key:
            return key, alg

    if alg != "HS256":
        logger.warning(f"No signing key for alg={alg}, kid={kid}; trying HS256 secret")
    return settings.SUPABASE_JWT_SECRET, "HS256"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# =============================================================================
# Verification
# =============================================================================

def verify_access_token(token: str) -> AuthUser:
    """
    Verify a Supabase access token and return the user it belongs to.

    Raises:
        HTTPException: 401 for expired, forged or malformed tokens
    """
    key, algorithm = _signing_key(token)

    try:
        claims = jwt.decode(token, key, algorithms=[algorithm], audience=SUPABASE_AUDIENCE)
    except ExpiredSignatureError:
        logger.warning("JWT token has expired")
        raise _unauthorized("Token has expired")
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise _unauthorized(f"Invalid token: {e}")

    subject = claims.get("sub")
    if not subject:
        raise _unauthorized("Invalid token: missing user ID")

    try:
        user_id = UUID(subject)
    except ValueError:
        logger.warning(f"Invalid UUID in token: {subject}")
        raise _unauthorized("Invalid token: malformed user ID")

    return AuthUser(id=user_id, email=claims.get("email"))


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthUser:
    """
    Dependency for routes that act on the caller's own drops, usage or billing.

    The user ID always comes from the verified token, never from the
    request body.
    """
    user = verify_access_token(credentials.credentials)
    logger.debug(f"Authenticated user: {user.id}")
    return user
