# =============================================================================
# app/routers/access.py - Public Recipient Endpoints
# =============================================================================
# No login required. Recipients prove who they are by email and then use
# the returned session token (X-Drop-Session header) to fetch content.
# =============================================================================

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Header, Path

from app.dependencies import RequestMetaDep
from core.models.access import (
    AccessLogRequest,
    DropAvailability,
    DropContent,
    VerifyRequest,
    VerifyResponse,
)
from core.services.access_service import AccessService

router = APIRouter()


@router.get("/{drop_id}", response_model=DropAvailability)
async def get_drop_availability(
    drop_id: Annotated[UUID, Path(description="Drop UUID")],
):
    """
    Public drop metadata and timer details.

    Returns 404 for unknown drops and 410 for inactive, expired or
    already used one-time drops.
    """
    return AccessService.check_availability(drop_id)


@router.post("/{drop_id}/verify", response_model=VerifyResponse)
async def verify_recipient(
    drop_id: Annotated[UUID, Path(description="Drop UUID")],
    request: VerifyRequest,
    meta: RequestMetaDep,
):
    """Verify a recipient email and start a viewing session."""
    return AccessService.verify_recipient(
        drop_id,
        request.email,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )


@router.get("/{drop_id}/content", response_model=DropContent)
async def get_drop_content(
    drop_id: Annotated[UUID, Path(description="Drop UUID")],
    x_drop_session: Annotated[str | None, Header(description="Session token from /verify")] = None,
):
    """Resolve the file link or embed URL for a verified session."""
    return AccessService.get_content(drop_id, x_drop_session)


@router.post("/{drop_id}/log", status_code=201)
async def log_access(
    drop_id: Annotated[UUID, Path(description="Drop UUID")],
    request: AccessLogRequest,
    meta: RequestMetaDep,
    x_drop_session: Annotated[str | None, Header(description="Session token from /verify")] = None,
):
    """Record an access event from a verified viewer session."""
    entry = AccessService.log_access(
        drop_id,
        x_drop_session,
        access_granted=request.access_granted,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )
    return {"success": True, "log": entry}
