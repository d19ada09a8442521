# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
# =============================================================================

from typing import Annotated

from fastapi import Depends, Request
from pydantic import BaseModel

from lib.supabase_client import SupabaseClient
from lib.utils import client_ip


def get_supabase_client() -> SupabaseClient:
    """
    Get Supabase client instance.

    Returns the singleton client wrapper.
    """
    return SupabaseClient


class RequestMeta(BaseModel):
    """Client details recorded in drop access logs."""
    ip_address: str | None = None
    user_agent: str | None = None


def get_request_meta(request: Request) -> RequestMeta:
    """Extract client IP (proxy aware) and user agent from the request."""
    fallback = request.client.host if request.client else None
    return RequestMeta(
        ip_address=client_ip(request.headers, fallback),
        user_agent=request.headers.get("user-agent"),
    )


# Type aliases for dependency injection
SupabaseDep = Annotated[type[SupabaseClient], Depends(get_supabase_client)]
RequestMetaDep = Annotated[RequestMeta, Depends(get_request_meta)]
