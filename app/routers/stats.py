# =============================================================================
# app/routers/stats.py - Dashboard Counters
# =============================================================================

from fastapi import APIRouter, Depends

from app.auth import get_current_user, AuthUser
from core.services.drop_service import DropService

router = APIRouter()


@router.get("/recipients/count")
async def count_recipients(user: AuthUser = Depends(get_current_user)):
    """Recipients across all of the caller's drops."""
    return {"count": DropService.count_recipients(user.id)}


@router.get("/views/count")
async def count_views(user: AuthUser = Depends(get_current_user)):
    """Total recipient views across all of the caller's drops."""
    return {"count": DropService.count_views(user.id)}
