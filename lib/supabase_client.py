# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides the lookups shared across services:
# - Users (subscription tier / status)
# - Drops and their recipients
# - Access log existence and inserts
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   drop = SupabaseClient.fetch_drop(drop_id)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from supabase import create_client, Client

from app.config import settings

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code for ".single()" matching zero rows
NOT_FOUND_CODE = "PGRST116"
# Postgres unique_violation
DUPLICATE_KEY_CODE = "23505"


def is_not_found(error: Exception) -> bool:
    return NOT_FOUND_CODE in str(error)


def is_duplicate_key(error: Exception) -> bool:
    return DUPLICATE_KEY_CODE in str(error)


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Provides actionable error messages:
    "Errors should tell HOW to fix, not just WHAT failed."
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
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
            result += f" Suggestion: {self.suggestion}"
        return result


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        drop = SupabaseClient.fetch_drop("550e8400-...")
        recipients = SupabaseClient.fetch_drop_recipients(drop["id"])
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        Ownership checks are therefore done explicitly in the services.

        Returns:
            Client: Supabase client instance

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @classmethod
    def _normalize_uuid(cls, uuid_value: str | UUID) -> str:
        """Convert UUID to string for queries."""
        return str(uuid_value) if isinstance(uuid_value, UUID) else uuid_value

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_user(cls, user_id: str | UUID, columns: str = "*") -> dict[str, Any] | None:
        """
        Fetch a row from public.users.

        Args:
            user_id: The user UUID
            columns: PostgREST select list

        Returns:
            User dict, or None if the user has no profile row yet

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            response = (
                client.table("users")
                .select(columns)
                .eq("id", user_id_str)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if is_not_found(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch user: {e}",
                code="FETCH_USER_FAILED",
                details={"user_id": user_id_str}
            )

    @classmethod
    def update_user(cls, user_id: str | UUID, data: dict[str, Any]) -> None:
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            client.table("users").update(data).eq("id", user_id_str).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update user: {e}",
                code="UPDATE_USER_FAILED",
                details={"user_id": user_id_str, "fields": sorted(data)}
            )

    # -------------------------------------------------------------------------
    # Drops
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_drop(cls, drop_id: str | UUID) -> dict[str, Any] | None:
        """
        Fetch a drop by ID.

        Args:
            drop_id: The drop UUID

        Returns:
            Drop dict with all fields, or None if not found

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        drop_id_str = cls._normalize_uuid(drop_id)

        try:
            response = (
                client.table("drops")
                .select("*")
                .eq("id", drop_id_str)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if is_not_found(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch drop: {e}",
                code="FETCH_DROP_FAILED",
                suggestion="Check that the drop_id exists",
                details={"drop_id": drop_id_str}
            )

    @classmethod
    def fetch_owner_drop_ids(cls, owner_id: str | UUID) -> list[str]:
        """IDs of every drop owned by a user."""
        client = cls.get_client()
        owner_id_str = cls._normalize_uuid(owner_id)

        try:
            response = (
                client.table("drops")
                .select("id")
                .eq("owner_id", owner_id_str)
                .execute()
            )
            return [row["id"] for row in response.data or []]

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch drops for owner: {e}",
                code="FETCH_DROPS_FAILED",
                details={"owner_id": owner_id_str}
            )

    # -------------------------------------------------------------------------
    # Recipients
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_drop_recipients(cls, drop_id: str | UUID) -> list[dict[str, Any]]:
        """
        Fetch all recipients of a drop, ordered by email.

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        drop_id_str = cls._normalize_uuid(drop_id)

        try:
            response = (
                client.table("drop_recipients")
                .select("*")
                .eq("drop_id", drop_id_str)
                .order("email")
                .execute()
            )
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch drop recipients: {e}",
                code="FETCH_RECIPIENTS_FAILED",
                details={"drop_id": drop_id_str}
            )

    # -------------------------------------------------------------------------
    # Access Logs
    # -------------------------------------------------------------------------

    @classmethod
    def has_access_logs(cls, drop_id: str | UUID) -> bool:
        """Whether anyone has accessed the drop yet (one-time drops)."""
        client = cls.get_client()
        drop_id_str = cls._normalize_uuid(drop_id)

        try:
            response = (
                client.table("drop_access_logs")
                .select("id")
                .eq("drop_id", drop_id_str)
                .eq("access_granted", True)
                .limit(1)
                .execute()
            )
            return bool(response.data)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to check access logs: {e}",
                code="FETCH_ACCESS_LOGS_FAILED",
                details={"drop_id": drop_id_str}
            )

    @classmethod
    def fetch_access_logs(cls, drop_id: str | UUID) -> list[dict[str, Any]]:
        """Access logs for a drop, newest first."""
        client = cls.get_client()
        drop_id_str = cls._normalize_uuid(drop_id)

        try:
            response = (
                client.table("drop_access_logs")
                .select("*")
                .eq("drop_id", drop_id_str)
                .order("accessed_at", desc=True)
                .execute()
            )
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch access logs: {e}",
                code="FETCH_ACCESS_LOGS_FAILED",
                details={"drop_id": drop_id_str}
            )

    @classmethod
    def insert_access_log(cls, data: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a drop_access_logs row.

        Raises:
            SupabaseClientError: If insert fails
        """
        client = cls.get_client()

        try:
            response = (
                client.table("drop_access_logs")
                .insert(data)
                .execute()
            )

            if response.data:
                return response.data[0]
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA"
            )

        except SupabaseClientError:
            raise
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert access log: {e}",
                code="INSERT_ACCESS_LOG_FAILED",
                details={"drop_id": data.get("drop_id")}
            )
