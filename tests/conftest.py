# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - An in-memory stand-in for the Supabase query builder and storage,
#   so services run their real query chains without a database
# =============================================================================

import os
import uuid
from datetime import datetime, timezone
from typing import Any

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-drop-sessions")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("APP_URL", "https://app.dropaccess.test")

import pytest


# =============================================================================
# Fake Supabase
# =============================================================================

UNIQUE_KEYS = {
    "usage_tracking": ("user_id", "period_type", "period_start"),
}


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _equals(row_value: Any, value: Any) -> bool:
    if isinstance(row_value, str) or isinstance(value, str):
        return str(row_value) == str(value)
    return row_value == value


def _compare(row_value: Any, value: Any) -> int:
    left, right = _as_datetime(row_value), _as_datetime(value)
    if left is None or right is None:
        left, right = row_value, value
    return (left > right) - (left < right)


class FakeResponse:
    def __init__(self, data: Any, count: int | None = None):
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable query mirroring the subset of postgrest-py the app uses."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.operation = "select"
        self.payload: Any = None
        self.on_conflict: str | None = None
        self.filters: list = []
        self.order_by: list[tuple[str, bool]] = []
        self.limit_count: int | None = None
        self.range_bounds: tuple[int, int] | None = None
        self.want_single = False
        self.count_mode: str | None = None

    # -- operations --------------------------------------------------------

    def select(self, columns: str = "*", count: str | None = None):
        self.count_mode = count
        return self

    def insert(self, data):
        self.operation, self.payload = "insert", data
        return self

    def update(self, data):
        self.operation, self.payload = "update", data
        return self

    def upsert(self, data, on_conflict: str | None = None):
        self.operation, self.payload, self.on_conflict = "upsert", data, on_conflict
        return self

    def delete(self):
        self.operation = "delete"
        return self

    # -- filters -----------------------------------------------------------

    def eq(self, column, value):
        self.filters.append(lambda row: _equals(row.get(column), value))
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and _compare(row[column], value) >= 0)
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and _compare(row[column], value) <= 0)
        return self

    def in_(self, column, values):
        wanted = {str(v) for v in values}
        self.filters.append(lambda row: str(row.get(column)) in wanted)
        return self

    def order(self, column, desc: bool = False):
        self.order_by.append((column, desc))
        return self

    def limit(self, count: int):
        self.limit_count = count
        return self

    def range(self, start: int, end: int):
        self.range_bounds = (start, end)
        return self

    def single(self):
        self.want_single = True
        return self

    # -- execution ---------------------------------------------------------

    def _matches(self) -> list[dict]:
        return [row for row in self.db.tables.setdefault(self.table_name, []) if all(f(row) for f in self.filters)]

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table_name, self.operation))
        failure = self.db.failures.get((self.table_name, self.operation))
        if failure is not None:
            raise failure

        if self.operation == "insert":
            return FakeResponse([self.db.insert_row(self.table_name, row) for row in self._rows(self.payload)])

        if self.operation == "upsert":
            return FakeResponse([self._upsert(row) for row in self._rows(self.payload)])

        rows = self._matches()

        if self.operation == "update":
            for row in rows:
                row.update(self.payload)
            return FakeResponse([dict(row) for row in rows])

        if self.operation == "delete":
            self.db.tables[self.table_name] = [r for r in self.db.tables[self.table_name] if r not in rows]
            return FakeResponse([dict(row) for row in rows])

        for column, desc in reversed(self.order_by):
            rows = sorted(rows, key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)

        total = len(rows)
        if self.range_bounds:
            rows = rows[self.range_bounds[0]:self.range_bounds[1] + 1]
        if self.limit_count is not None:
            rows = rows[:self.limit_count]

        rows = [dict(row) for row in rows]
        if self.want_single:
            if not rows:
                raise Exception("{'code': 'PGRST116', 'message': 'JSON object requested, multiple (or no) rows returned'}")
            return FakeResponse(rows[0])

        return FakeResponse(rows, count=total if self.count_mode else None)

    @staticmethod
    def _rows(payload) -> list[dict]:
        return payload if isinstance(payload, list) else [payload]

    def _upsert(self, row: dict) -> dict:
        keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
        for existing in self.db.tables.setdefault(self.table_name, []):
            if all(_equals(existing.get(k), row.get(k)) for k in keys):
                existing.update(row)
                return dict(existing)
        return self.db.insert_row(self.table_name, row, check_unique=False)


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage = storage
        self.name = name

    def upload(self, path, file, file_options=None):
        if self.storage.fail_upload:
            raise Exception("Storage unavailable")
        self.storage.objects[(self.name, path)] = file
        return {"Key": f"{self.name}/{path}"}

    def create_signed_url(self, path, expires_in):
        if (self.name, path) not in self.storage.objects:
            raise Exception("Object not found")
        return {"signedURL": f"https://storage.test/{self.name}/{path}?token=signed&expires={expires_in}"}

    def list(self, path=None, options=None):
        folder = (path or "").strip("/")
        search = (options or {}).get("search", "")
        entries = []
        for (bucket, key), data in self.storage.objects.items():
            parent, _, name = key.rpartition("/")
            if bucket == self.name and parent == folder and search in name:
                entries.append({"name": name, "metadata": {"size": len(data)}})
        return entries

    def remove(self, paths):
        for path in paths:
            self.storage.objects.pop((self.name, path), None)
        return []


class FakeStorage:
    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_upload = False

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)

    def list_buckets(self):
        return [{"name": "drops"}]


class FakeSupabase:
    """In-memory Supabase client: tables are lists of dict rows."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self.storage = FakeStorage()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def insert_row(self, table: str, row: dict, check_unique: bool = True) -> dict:
        rows = self.tables.setdefault(table, [])
        keys = UNIQUE_KEYS.get(table)
        if check_unique and keys:
            for existing in rows:
                if all(_equals(existing.get(k), row.get(k)) for k in keys):
                    raise Exception(
                        "{'code': '23505', 'message': 'duplicate key value violates unique constraint'}"
                    )
        stored = {"id": str(uuid.uuid4()), "created_at": datetime.now(timezone.utc).isoformat(), **row}
        rows.append(stored)
        return dict(stored)

    def add(self, table: str, **row) -> dict:
        """Seed a row directly (no unique checks)."""
        return self.insert_row(table, row, check_unique=False)

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_supabase():
    """Install a FakeSupabase as the SupabaseClient singleton."""
    from lib.supabase_client import SupabaseClient

    fake = FakeSupabase()
    previous = SupabaseClient._instance
    SupabaseClient._instance = fake
    yield fake
    SupabaseClient._instance = previous


@pytest.fixture
def owner_id():
    return str(uuid.uuid4())


@pytest.fixture
def free_user(fake_supabase, owner_id):
    """A free-tier user row."""
    return fake_supabase.add(
        "users",
        id=owner_id,
        email="owner@example.com",
        subscription_tier="free",
        subscription_status="free",
        is_paid=False,
    )


@pytest.fixture
def make_user(fake_supabase):
    """Factory for user rows on a given tier."""
    def _make(tier: str = "free", **extra) -> dict:
        return fake_supabase.add(
            "users",
            id=str(uuid.uuid4()),
            email=extra.pop("email", f"{tier}@example.com"),
            subscription_tier=tier,
            subscription_status="active" if tier != "free" else "free",
            **extra,
        )
    return _make


@pytest.fixture
def fixed_now():
    """Wednesday 2026-03-18 12:00 UTC."""
    return datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)
