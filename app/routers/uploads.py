# =============================================================================
# app/routers/uploads.py - Drop File Uploads
# =============================================================================
# Uploads a file to the drops bucket ahead of drop creation. The returned
# file_path is passed to POST /drops, which reads the size back from storage.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, File, UploadFile, Depends

from app.auth import get_current_user, AuthUser
from app.config import settings
from app.exceptions import BadRequestError, FileTooLargeError, LimitExceededError
from core.services.storage_service import StorageService
from core.services.subscription_guard import SubscriptionGuard
from lib.content import classify_file, format_file_size

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=201)
async def upload_file(
    file: Annotated[UploadFile, File(description="File to share in a drop")],
    user: AuthUser = Depends(get_current_user),
):
    """
    Upload a drop file.

    This endpoint:
    1. Enforces the server-wide size ceiling
    2. Checks the plan's file size and storage limits
    3. Uploads to Supabase Storage under the user's folder
    """
    filename = file.filename or "file"

    content = await file.read()
    if not content:
        raise BadRequestError("Uploaded file is empty")

    file_size_bytes = len(content)
    file_size_mb = file_size_bytes / (1024 * 1024)

    if file_size_bytes > settings.max_upload_size_bytes:
        raise FileTooLargeError(file_size_mb, settings.MAX_UPLOAD_SIZE_MB)

    check = SubscriptionGuard.check_upload(user.id, file_size_mb)
    if not check.allowed:
        raise LimitExceededError(
            reason=check.reason,
            upgrade_prompt=check.upgrade_prompt.model_dump(mode="json") if check.upgrade_prompt else None,
            current_usage=check.current_usage,
            limits=check.limits,
        )

    logger.info(f"Uploading drop file: {filename} ({file_size_mb:.2f}MB) for user {user.id}")

    storage_path = StorageService.upload_file(
        owner_id=str(user.id),
        file_content=content,
        filename=filename,
        content_type=file.content_type,
    )

    return {
        "file_path": storage_path,
        "file_name": filename,
        "file_size_mb": round(file_size_mb, 4),
        "file_size": format_file_size(file_size_mb),
        "content_type": classify_file(storage_path),
    }
