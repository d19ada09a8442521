# =============================================================================
# app/routers/tasks.py - Task Status Endpoints
# =============================================================================
# Status and cancellation for background tasks (notification fan-out).
#
# Task IDs are prefixed with the owning user's ID, so a caller can only
# see or cancel tasks they started.
# =============================================================================

import logging
import uuid
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, HTTPException
from pydantic import BaseModel

from app.auth import get_current_user, AuthUser

logger = logging.getLogger(__name__)

router = APIRouter()

STATE_MESSAGES = {
    "PENDING": "Waiting in queue...",
    "STARTED": "Starting...",
    "SUCCESS": "Complete",
    "FAILURE": "Failed",
    "REVOKED": "Cancelled",
}


def new_task_id(owner_id: UUID | str) -> str:
    return f"{owner_id}.{uuid.uuid4().hex}"


def ensure_task_owner(task_id: str, user: AuthUser) -> None:
    """
    Raises:
        HTTPException: 404 if the task was started by someone else
    """
    if not task_id.startswith(f"{user.id}."):
        logger.warning(f"User {user.id} asked for task {task_id} they don't own")
        raise HTTPException(status_code=404, detail="Task not found")


# =============================================================================
# Response Models
# =============================================================================

class TaskStatusResponse(BaseModel):
    """Response model for task status."""
    task_id: str
    status: str
    sent: int | None = None
    total: int | None = None
    message: str | None = None
    result: dict | None = None
    error: str | None = None


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/{task_id}", response_model=TaskStatusResponse)
async def get_task_status(
    task_id: Annotated[str, Path(description="Celery task ID")],
    user: AuthUser = Depends(get_current_user),
):
    """
    Get the status of a background task.

    PROGRESS reports how many emails have been sent out of the total.
    SUCCESS includes the task result, FAILURE the error.
    """
    ensure_task_owner(task_id, user)

    try:
        from workers.celery_app import celery_app

        result = celery_app.AsyncResult(task_id)
        response = TaskStatusResponse(
            task_id=task_id,
            status=result.status,
            message=STATE_MESSAGES.get(result.status),
        )

        if result.status == "PROGRESS":
            info = result.info or {}
            response.sent = info.get("sent", 0)
            response.total = info.get("total")
            response.message = info.get("message", "Sending...")

        elif result.status == "SUCCESS":
            response.result = result.result if isinstance(result.result, dict) else {"value": result.result}

        elif result.status == "FAILURE":
            response.error = str(result.result) if result.result else "Unknown error"

        return response

    except Exception as e:
        logger.error(f"Error getting task status: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get task status: {e}")


@router.delete("/{task_id}")
async def cancel_task(
    task_id: Annotated[str, Path(description="Celery task ID")],
    user: AuthUser = Depends(get_current_user),
):
    """Cancel a task the caller started that hasn't finished yet."""
    ensure_task_owner(task_id, user)

    try:
        from workers.celery_app import celery_app

        result = celery_app.AsyncResult(task_id)

        if result.status in ("SUCCESS", "FAILURE"):
            return {
                "task_id": task_id,
                "message": f"Task already {result.status.lower()}, cannot cancel",
                "cancelled": False,
            }

        result.revoke(terminate=True)
        return {"task_id": task_id, "message": "Task cancelled", "cancelled": True}

    except Exception as e:
        logger.error(f"Error cancelling task: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to cancel task: {e}")
