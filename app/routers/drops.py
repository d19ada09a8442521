# =============================================================================
# app/routers/drops.py - Drop Management Endpoints
# =============================================================================
# Owner-side drop CRUD. All endpoints require authentication and only
# ever touch drops owned by the caller.
# =============================================================================

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import Response

from app.auth import get_current_user, AuthUser
from app.routers.notifications import dispatch_drop_notifications
from core.models.drop import DropCreateRequest, DropUpdateRequest
from core.services.drop_service import DropService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=201)
async def create_drop(
    request: DropCreateRequest,
    user: AuthUser = Depends(get_current_user),
):
    """
    Create a drop.

    Checks plan limits first; a blocked request returns 403 with
    upgrade_required, upgrade_prompt, current_usage and limits.
    Recipients are emailed unless send_notifications is false.
    """
    result = DropService.create_drop(user.id, request)
    drop = result["drop"]

    notifications = None
    if request.send_notifications and result["recipients"]:
        try:
            notifications = dispatch_drop_notifications(drop, result["recipients"], user.email or "")
        except Exception as e:
            # The drop exists; emails can be resent from /notifications
            logger.error(f"Notifications failed for drop {drop['id']}: {e}")
            notifications = {"sent": False, "error": str(e)}

    return {
        "success": True,
        "drop": drop,
        "message": "Drop created successfully",
        "recipients_added": result["recipients_added"],
        "usage_updated": result["usage_updated"],
        "notifications": notifications,
    }


@router.get("")
async def list_drops(
    user: AuthUser = Depends(get_current_user),
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    page_size: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 20,
    active: Annotated[bool | None, Query(description="Filter by is_active")] = None,
):
    """List the caller's drops, newest first."""
    drops, total = DropService.list_drops(user.id, page=page, page_size=page_size, active=active)
    return {
        "drops": drops,
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.get("/{drop_id}")
async def get_drop(
    drop_id: Annotated[UUID, Path(description="Drop UUID")],
    user: AuthUser = Depends(get_current_user),
):
    """Drop details with recipients and access logs."""
    return DropService.get_drop_details(drop_id, user.id)


@router.patch("/{drop_id}")
async def update_drop(
    drop_id: Annotated[UUID, Path(description="Drop UUID")],
    request: DropUpdateRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Enable or disable a drop."""
    drop = DropService.set_active(drop_id, user.id, request.is_active)
    return {"success": True, "drop": drop}


@router.delete("/{drop_id}")
async def delete_drop(
    drop_id: Annotated[UUID, Path(description="Drop UUID")],
    user: AuthUser = Depends(get_current_user),
):
    """Delete a drop, its recipients and its stored file."""
    DropService.delete_drop(drop_id, user.id)
    return {"success": True, "message": "Drop deleted"}


@router.get("/{drop_id}/access-logs/export")
async def export_access_logs(
    drop_id: Annotated[UUID, Path(description="Drop UUID")],
    user: AuthUser = Depends(get_current_user),
):
    """Download a drop's access logs as CSV (plans with data export)."""
    filename, csv_text = DropService.export_access_logs(drop_id, user.id)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
