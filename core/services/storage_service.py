# =============================================================================
# core/services/storage_service.py - Supabase Storage Operations
# =============================================================================
# Handles drop file uploads, signed download links and cleanup in the
# Supabase Storage bucket configured by DROP_BUCKET.
# =============================================================================

import logging
import re
import uuid

from lib.supabase_client import SupabaseClient
from app.config import settings
from app.exceptions import StorageUploadError, StorageLinkError, StoredFileNotFoundError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    """Strip directories and characters storage keys should not contain."""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "file"


class StorageService:
    """
    Service for Supabase Storage operations.

    Files live under {owner_id}/{uuid}_{filename} so names never collide.
    """

    @staticmethod
    def build_path(owner_id: str, filename: str) -> str:
        return f"{owner_id}/{uuid.uuid4().hex}_{safe_filename(filename)}"

    @staticmethod
    def upload_file(
        owner_id: str,
        file_content: bytes,
        filename: str,
        content_type: str | None = None,
    ) -> str:
        """
        Upload raw file content to the drops bucket.

        Args:
            owner_id: Uploading user's UUID
            file_content: File bytes
            filename: Original filename
            content_type: MIME type reported by the client

        Returns:
            Storage path

        Raises:
            StorageUploadError: If upload fails
        """
        client = SupabaseClient.get_client()
        path = StorageService.build_path(owner_id, filename)

        try:
            client.storage.from_(settings.DROP_BUCKET).upload(
                path=path,
                file=file_content,
                file_options={"content-type": content_type or "application/octet-stream", "upsert": "false"}
            )

            logger.info(f"Uploaded drop file to storage: {path}")
            return path

        except Exception as e:
            logger.error(f"Storage upload failed: {e}")
            raise StorageUploadError(str(e))

    @staticmethod
    def create_signed_url(storage_path: str, expires_in: int | None = None) -> str:
        """
        Create a time-limited download URL for a drop file.

        Args:
            storage_path: Path in the drops bucket
            expires_in: Lifetime in seconds (default SIGNED_URL_TTL_SECONDS)

        Returns:
            Signed URL string

        Raises:
            StorageLinkError: If the URL cannot be created
        """
        client = SupabaseClient.get_client()
        ttl = expires_in or settings.SIGNED_URL_TTL_SECONDS

        try:
            result = client.storage.from_(settings.DROP_BUCKET).create_signed_url(storage_path, ttl)
        except Exception as e:
            logger.error(f"Failed to create signed URL for {storage_path}: {e}")
            raise StorageLinkError(storage_path, str(e))

        # storage3 has returned both spellings across releases
        signed_url = (result or {}).get("signedURL") or (result or {}).get("signedUrl")
        if not signed_url:
            raise StorageLinkError(storage_path, "Storage returned no signed URL")
        return signed_url

    @staticmethod
    def get_file_size_mb(storage_path: str) -> float:
        """
        Look up the size of a stored file.

        Storage metadata is the source of truth for what a drop costs
        against the owner's storage allowance.

        Raises:
            StoredFileNotFoundError: If no object exists at the path
        """
        folder, _, name = storage_path.rpartition("/")
        client = SupabaseClient.get_client()

        try:
            entries = client.storage.from_(settings.DROP_BUCKET).list(folder, {"search": name})
        except Exception as e:
            logger.error(f"Failed to list storage folder {folder}: {e}")
            raise StoredFileNotFoundError(storage_path)

        for entry in entries or []:
            if entry.get("name") == name:
                size = (entry.get("metadata") or {}).get("size") or 0
                return size / (1024 * 1024)

        raise StoredFileNotFoundError(storage_path)

    @staticmethod
    def delete_file(storage_path: str) -> bool:
        """
        Delete a file from storage.

        Returns:
            True if deleted successfully, False otherwise
        """
        client = SupabaseClient.get_client()

        try:
            client.storage.from_(settings.DROP_BUCKET).remove([storage_path])
            logger.info(f"Deleted file from storage: {storage_path}")
            return True

        except Exception as e:
            logger.error(f"Failed to delete file: {e}")
            return False
