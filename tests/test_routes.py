# =============================================================================
# tests/test_routes.py - API Endpoint Tests
# =============================================================================
# End-to-end tests through FastAPI's TestClient. Authentication is replaced
# with a dependency override except in TestAuth, which signs a real HS256
# Supabase-style token. Database state lives in the Supabase fake.
#
# Run with: pytest tests/test_routes.py -v
# =============================================================================

import base64
import json
from datetime import timedelta
from unittest.mock import MagicMock, patch
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.auth import AuthUser, get_current_user
from app.config import settings
from app.main import app
from lib.access_tokens import issue_session_token
from lib.periods import period_bounds, utc_now
from lib.webhooks import sign_payload


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """Authenticate requests as the given user row."""
    def _login(user: dict) -> AuthUser:
        auth_user = AuthUser(id=UUID(user["id"]), email=user["email"])
        app.dependency_overrides[get_current_user] = lambda: auth_user
        return auth_user
    return _login


@pytest.fixture
def quiet_integrations(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")
    monkeypatch.setattr(settings, "POSTHOG_KEY", "")
    monkeypatch.setattr(settings, "NOTIFICATIONS_ASYNC", False)


def drop_payload(**overrides) -> dict:
    payload = {
        "name": "Launch plan",
        "drop_type": "url",
        "masked_url": "https://youtu.be/abc123",
        "recipients": "friend@example.com",
        "timer_mode": "creation",
        "creation_expiry": (utc_now() + timedelta(days=1)).isoformat(),
        "send_notifications": False,
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Root / Health / Auth
# =============================================================================

class TestRootAndHealth:
    """Unauthenticated service endpoints."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "DropAccess API"

    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness(self, client, fake_supabase):
        response = client.get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"] == {"database": "healthy", "storage": "healthy"}


class TestAuth:
    """Real token verification."""

    def make_token(self, user_id: str, **claims) -> str:
        payload = {
            "sub": user_id,
            "email": "owner@example.com",
            "aud": "authenticated",
            "exp": int((utc_now() + timedelta(minutes=5)).timestamp()),
        }
        payload.update(claims)
        return jwt.encode(payload, settings.SUPABASE_JWT_SECRET, algorithm="HS256")

    def test_verify_token(self, client, owner_id):
        response = client.get(
            "/api/v1/auth/verify",
            headers={"Authorization": f"Bearer {self.make_token(owner_id)}"},
        )

        assert response.status_code == 200
        assert response.json() == {"valid": True, "user_id": owner_id, "email": "owner@example.com"}

    def test_expired_token(self, client, owner_id):
        token = self.make_token(owner_id, exp=int((utc_now() - timedelta(minutes=5)).timestamp()))

        response = client.get("/api/v1/auth/verify", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"

    def test_me_returns_plan(self, client, fake_supabase, make_user):
        user = make_user("business", is_paid=True)

        response = client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {self.make_token(user['id'])}"},
        )

        assert response.status_code == 200
        assert response.json()["subscription_tier"] == "business"
        assert response.json()["is_paid"] is True
        assert response.json()["limits"]["drops_per_month"] == -1

    def test_me_without_profile_row(self, client, fake_supabase, owner_id):
        response = client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {self.make_token(owner_id)}"},
        )

        assert response.status_code == 200
        assert response.json()["subscription_tier"] == "free"
        assert response.json()["limits"]["recipients_per_drop"] == 3

    def test_protected_route_requires_token(self, client):
        response = client.get("/api/v1/drops")

        assert response.status_code in (401, 403)


# =============================================================================
# Drops
# =============================================================================

class TestDropRoutes:
    """Owner drop endpoints."""

    def test_create_and_list(self, client, fake_supabase, free_user, login, quiet_integrations):
        login(free_user)

        created = client.post("/api/v1/drops", json=drop_payload())

        assert created.status_code == 201
        body = created.json()
        assert body["success"] is True
        assert body["recipients_added"] == 1
        assert body["notifications"] is None

        listing = client.get("/api/v1/drops", params={"page_size": 10}).json()
        assert listing["total"] == 1
        assert listing["drops"][0]["id"] == body["drop"]["id"]

    def test_create_sends_notifications_inline(self, client, fake_supabase, free_user, login, quiet_integrations):
        login(free_user)

        body = client.post("/api/v1/drops", json=drop_payload(send_notifications=True)).json()

        assert body["notifications"]["sent"] is False
        assert body["notifications"]["message"] == "Email delivery is not configured"

    def test_create_blocked_by_plan(self, client, fake_supabase, free_user, login, quiet_integrations):
        login(free_user)
        start, end = period_bounds("month", utc_now())
        fake_supabase.add(
            "usage_tracking", user_id=free_user["id"], period_type="month",
            period_start=start.isoformat(), period_end=end.isoformat(),
            drops_created=3, recipients_added=0, storage_used_mb=0,
        )

        response = client.post("/api/v1/drops", json=drop_payload())

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "LIMIT_EXCEEDED"
        assert body["upgrade_required"] is True
        assert body["upgrade_prompt"]["title"] == "Monthly drop limit reached"
        assert body["current_usage"]["drops_created"] == 3

    def test_create_validation_error(self, client, fake_supabase, free_user, login, quiet_integrations):
        login(free_user)

        response = client.post("/api/v1/drops", json=drop_payload(masked_url=None))

        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"

    def test_unknown_drop(self, client, fake_supabase, free_user, login):
        login(free_user)

        response = client.get(f"/api/v1/drops/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["code"] == "DROP_NOT_FOUND"

    def test_toggle_and_delete(self, client, fake_supabase, free_user, login, quiet_integrations):
        login(free_user)
        drop_id = client.post("/api/v1/drops", json=drop_payload()).json()["drop"]["id"]

        toggled = client.patch(f"/api/v1/drops/{drop_id}", json={"is_active": False})
        assert toggled.json()["drop"]["is_active"] is False

        details = client.get(f"/api/v1/drops/{drop_id}").json()
        assert details["stats"]["recipients"] == 1

        assert client.delete(f"/api/v1/drops/{drop_id}").status_code == 200
        assert client.get(f"/api/v1/drops/{drop_id}").status_code == 404

    def test_export_requires_paid_plan(self, client, fake_supabase, free_user, login, quiet_integrations):
        login(free_user)
        drop_id = client.post("/api/v1/drops", json=drop_payload()).json()["drop"]["id"]

        response = client.get(f"/api/v1/drops/{drop_id}/access-logs/export")

        assert response.status_code == 403
        assert response.json()["code"] == "FEATURE_NOT_AVAILABLE"

    def test_export_csv(self, client, fake_supabase, make_user, login, quiet_integrations):
        login(make_user("individual"))
        drop_id = client.post("/api/v1/drops", json=drop_payload()).json()["drop"]["id"]

        response = client.get(f"/api/v1/drops/{drop_id}/access-logs/export")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert f"drop-{drop_id}-access-logs.csv" in response.headers["content-disposition"]

    def test_stats(self, client, fake_supabase, free_user, login, quiet_integrations):
        login(free_user)
        client.post("/api/v1/drops", json=drop_payload(recipients="a@x.com,b@x.com"))

        assert client.get("/api/v1/stats/recipients/count").json() == {"count": 2}
        assert client.get("/api/v1/stats/views/count").json() == {"count": 0}


# =============================================================================
# Uploads
# =============================================================================

class TestUploadRoutes:
    """File uploads with plan checks."""

    def test_upload(self, client, fake_supabase, free_user, login):
        login(free_user)

        response = client.post(
            "/api/v1/uploads",
            files={"file": ("Quarterly Report.pdf", b"%PDF-1.4 test", "application/pdf")},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["file_path"].startswith(f"{free_user['id']}/")
        assert body["file_path"].endswith("_Quarterly_Report.pdf")
        assert body["content_type"] == "pdf"
        assert len(fake_supabase.storage.objects) == 1

    def test_empty_upload(self, client, fake_supabase, free_user, login):
        login(free_user)

        response = client.post("/api/v1/uploads", files={"file": ("empty.txt", b"", "text/plain")})

        assert response.status_code == 400

    def test_upload_over_plan_limit(self, client, fake_supabase, free_user, login):
        login(free_user)
        content = b"x" * (11 * 1024 * 1024)

        response = client.post("/api/v1/uploads", files={"file": ("big.bin", content, "application/octet-stream")})

        assert response.status_code == 403
        assert response.json()["code"] == "LIMIT_EXCEEDED"
        assert fake_supabase.storage.objects == {}

    def test_upload_then_create_file_drop(self, client, fake_supabase, make_user, login, quiet_integrations):
        user = make_user("individual")
        login(user)
        uploaded = client.post(
            "/api/v1/uploads",
            files={"file": ("deck.pdf", b"x" * (2 * 1024 * 1024), "application/pdf")},
        ).json()

        created = client.post("/api/v1/drops", json=drop_payload(
            drop_type="file", masked_url=None, file_path=uploaded["file_path"], file_size_mb=0,
        ))

        assert created.status_code == 201
        assert created.json()["drop"]["file_size_mb"] == 2
        usage = client.get("/api/v1/usage").json()
        assert usage["monthly"]["storage_used_mb"] == 2

    def test_create_drop_for_another_users_file(self, client, fake_supabase, make_user, login, quiet_integrations):
        victim = make_user("business", email="victim@example.com")
        path = f"{victim['id']}/abc_contract.pdf"
        fake_supabase.storage.objects[("drops", path)] = b"%PDF-1.4 private"
        login(make_user("individual", email="attacker@example.com"))

        response = client.post("/api/v1/drops", json=drop_payload(
            drop_type="file", masked_url=None, file_path=path,
        ))

        assert response.status_code == 403
        assert response.json()["code"] == "FILE_NOT_OWNED"
        assert fake_supabase.rows("drops") == []

    def test_create_drop_before_upload(self, client, fake_supabase, free_user, login, quiet_integrations):
        login(free_user)

        response = client.post("/api/v1/drops", json=drop_payload(
            drop_type="file", masked_url=None, file_path=f"{free_user['id']}/abc_missing.pdf",
        ))

        assert response.status_code == 400
        assert response.json()["code"] == "FILE_NOT_FOUND"


# =============================================================================
# Public Access Flow
# =============================================================================

class TestAccessRoutes:
    """Recipient verification and content."""

    def test_full_flow(self, client, fake_supabase, free_user, login, quiet_integrations):
        login(free_user)
        drop_id = client.post("/api/v1/drops", json=drop_payload()).json()["drop"]["id"]
        app.dependency_overrides.clear()

        availability = client.get(f"/api/v1/access/{drop_id}")
        assert availability.status_code == 200
        assert availability.json()["timer"]["label"] == "Shared Deadline"

        denied = client.post(f"/api/v1/access/{drop_id}/verify", json={"email": "stranger@example.com"})
        assert denied.status_code == 403
        assert denied.json()["code"] == "NOT_A_RECIPIENT"

        verified = client.post(
            f"/api/v1/access/{drop_id}/verify",
            json={"email": "Friend@Example.com"},
            headers={"x-forwarded-for": "203.0.113.9, 10.0.0.1", "user-agent": "pytest-agent"},
        )
        assert verified.status_code == 200
        token = verified.json()["session_token"]

        content = client.get(f"/api/v1/access/{drop_id}/content", headers={"X-Drop-Session": token})
        assert content.status_code == 200
        assert content.json()["content_type"] == "youtube"
        assert content.json()["url"] == "https://www.youtube.com/embed/abc123?enablejsapi=1"

        granted = [log for log in fake_supabase.rows("drop_access_logs") if log["access_granted"]]
        assert granted[0]["ip_address"] == "203.0.113.9"
        assert granted[0]["user_agent"] == "pytest-agent"

    def test_content_without_session(self, client, fake_supabase, owner_id):
        drop = fake_supabase.add("drops", owner_id=owner_id, name="x", drop_type="url", is_active=True)

        response = client.get(f"/api/v1/access/{drop['id']}/content")

        assert response.status_code == 401
        assert response.json()["code"] == "SESSION_REQUIRED"

    def test_unknown_drop(self, client, fake_supabase):
        assert client.get(f"/api/v1/access/{uuid4()}").status_code == 404

    def test_invalid_email(self, client, fake_supabase):
        response = client.post(f"/api/v1/access/{uuid4()}/verify", json={"email": "not-an-email"})

        assert response.status_code == 422

    def test_log_endpoint(self, client, fake_supabase, owner_id):
        drop = fake_supabase.add("drops", owner_id=owner_id, name="x", drop_type="url", is_active=True)
        token, _ = issue_session_token(drop["id"], "viewer@example.com", None)

        response = client.post(
            f"/api/v1/access/{drop['id']}/log",
            json={"recipient_email": "someone-else@example.com", "access_granted": True},
            headers={"X-Drop-Session": token},
        )

        assert response.status_code == 201
        assert response.json()["log"]["recipient_email"] == "viewer@example.com"

    def test_log_endpoint_without_session(self, client, fake_supabase, owner_id):
        drop = fake_supabase.add(
            "drops", owner_id=owner_id, name="x", drop_type="url", is_active=True, one_time_access=True,
        )

        response = client.post(f"/api/v1/access/{drop['id']}/log", json={"access_granted": True})

        assert response.status_code == 401
        assert response.json()["code"] == "SESSION_REQUIRED"
        assert fake_supabase.rows("drop_access_logs") == []
        assert client.get(f"/api/v1/access/{drop['id']}").status_code == 200


# =============================================================================
# Usage / Subscriptions
# =============================================================================

class TestUsageAndLimitRoutes:
    """Usage counters and limit checks."""

    def test_track_and_read_usage(self, client, fake_supabase, free_user, login):
        login(free_user)

        tracked = client.post("/api/v1/usage", json={"action": "storage_used", "amount": 4.5})
        assert tracked.json() == {"success": True, "action": "storage_used", "amount": 4.5}

        usage = client.get("/api/v1/usage").json()
        assert usage["monthly"]["storage_used_mb"] == 4.5
        assert usage["limits"]["drops"] == 3

    def test_usage_status(self, client, fake_supabase, free_user, login):
        login(free_user)

        status = client.get("/api/v1/usage/status").json()

        assert status["tier"] == "free"
        assert status["warnings"] == []

    def test_initialize(self, client, fake_supabase, free_user, login):
        login(free_user)

        body = client.post("/api/v1/usage/initialize").json()

        assert body["monthly"] == {"drops_created": 0, "recipients_added": 0}

    def test_feature_check(self, client, fake_supabase, free_user, login):
        login(free_user)

        body = client.get("/api/v1/subscriptions/limits", params={"action": "check_feature", "feature": "export"}).json()

        assert body["has_access"] is False
        assert body["upgrade_prompt"]["cta_text"] == "Upgrade to Export"

    def test_invalid_feature(self, client, fake_supabase, free_user, login):
        login(free_user)

        response = client.get("/api/v1/subscriptions/limits", params={"action": "check_feature", "feature": "x"})

        assert response.status_code == 400

    def test_check_drop(self, client, fake_supabase, free_user, login):
        login(free_user)

        body = client.get(
            "/api/v1/subscriptions/limits",
            params={"action": "check_drop", "recipient_count": 4},
        ).json()

        assert body["can_proceed"] is False
        assert body["limits"]["can_add_recipients"]["allowed"] is False

    def test_validate_drop_creation(self, client, fake_supabase, free_user, login):
        login(free_user)

        body = client.post(
            "/api/v1/subscriptions/limits",
            json={"action": "validate_drop_creation", "recipient_count": 2, "file_size_mb": 20},
        ).json()

        assert body["can_proceed"] is False
        assert [issue["type"] for issue in body["blocking_issues"]] == ["can_upload_file"]

    def test_bulk_operation(self, client, fake_supabase, make_user, login):
        login(make_user("individual"))

        body = client.post(
            "/api/v1/subscriptions/limits",
            json={"action": "check_bulk_operation", "item_count": 25},
        ).json()

        assert body["can_proceed"] is True
        assert body["max_bulk_size"] == -1

    def test_bulk_operation_needs_count(self, client, fake_supabase, free_user, login):
        login(free_user)

        response = client.post("/api/v1/subscriptions/limits", json={"action": "check_bulk_operation"})

        assert response.status_code == 400

    def test_info(self, client, fake_supabase, free_user, login):
        login(free_user)

        body = client.get("/api/v1/subscriptions/info").json()

        assert body["user"] == {"tier": "free", "status": "free", "is_paid": False}
        assert body["usage"]["drops_created"] == 0

    def test_upgrade_suggestion(self, client, fake_supabase, free_user, login):
        login(free_user)

        body = client.get("/api/v1/subscriptions/upgrade-suggestion", params={"context": "drops"}).json()

        assert body["success"] is True
        assert body["suggested_plan"] == "individual"
        assert body["benefits"][0] == "15 drops per month (vs 3)"

    def test_upgrade_suggestion_unknown_context(self, client, fake_supabase, free_user, login):
        login(free_user)

        response = client.get("/api/v1/subscriptions/upgrade-suggestion", params={"context": "bandwidth"})

        assert response.status_code == 422


# =============================================================================
# Payments / Notifications / Tasks
# =============================================================================

class TestPaymentRoutes:
    """Payment endpoints that don't reach the provider."""

    def test_webhook_rejects_bad_signature(self, client, fake_supabase, monkeypatch):
        monkeypatch.setattr(settings, "DODO_PAYMENTS_WEBHOOK_SECRET", "whsec_" + base64.b64encode(b"s").decode())

        response = client.post(
            "/api/v1/payments/webhook",
            content=b"{}",
            headers={"webhook-id": "m", "webhook-timestamp": "1", "webhook-signature": "v1,bad"},
        )

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_WEBHOOK_SIGNATURE"

    def test_webhook_accepts_signed_event(self, client, fake_supabase, monkeypatch):
        secret = "whsec_" + base64.b64encode(b"route-secret").decode()
        monkeypatch.setattr(settings, "DODO_PAYMENTS_WEBHOOK_SECRET", secret)
        body = json.dumps({"type": "dispute.opened", "data": {}}).encode()
        timestamp = int(utc_now().timestamp())

        response = client.post(
            "/api/v1/payments/webhook",
            content=body,
            headers={
                "webhook-id": "msg_9",
                "webhook-timestamp": str(timestamp),
                "webhook-signature": sign_payload(secret, "msg_9", timestamp, body),
            },
        )

        assert response.status_code == 200
        assert response.json()["handled"] is False

    def test_portal_without_billing_account(self, client, fake_supabase, free_user, login):
        login(free_user)

        response = client.post("/api/v1/payments/portal")

        assert response.status_code == 404
        assert response.json()["code"] == "BILLING_ACCOUNT_NOT_FOUND"

    def test_invalid_plan(self, client, fake_supabase, free_user, login):
        login(free_user)

        response = client.post("/api/v1/payments/create", json={"plan": "enterprise"})

        assert response.status_code == 422


class TestNotificationRoutes:
    """Resending notifications."""

    def test_queue_when_async(self, client, fake_supabase, free_user, login, quiet_integrations, monkeypatch):
        login(free_user)
        drop_id = client.post("/api/v1/drops", json=drop_payload()).json()["drop"]["id"]
        monkeypatch.setattr(settings, "NOTIFICATIONS_ASYNC", True)
        task = MagicMock()
        task.apply_async.side_effect = lambda args, task_id: MagicMock(id=task_id)

        with patch("workers.tasks.send_drop_notifications", task):
            response = client.post(f"/api/v1/notifications/drops/{drop_id}")

        body = response.json()
        assert body["queued"] is True
        assert body["task_id"].startswith(f"{free_user['id']}.")
        task.apply_async.assert_called_once()
        assert task.apply_async.call_args.kwargs["args"] == [drop_id, ["friend@example.com"], free_user["email"]]

    def test_queue_unavailable(self, client, fake_supabase, free_user, login, quiet_integrations, monkeypatch):
        login(free_user)
        drop_id = client.post("/api/v1/drops", json=drop_payload()).json()["drop"]["id"]
        monkeypatch.setattr(settings, "NOTIFICATIONS_ASYNC", True)
        task = MagicMock()
        task.apply_async.side_effect = ConnectionError("redis down")

        with patch("workers.tasks.send_drop_notifications", task):
            response = client.post(f"/api/v1/notifications/drops/{drop_id}")

        assert response.status_code == 503

    def test_drop_without_recipients(self, client, fake_supabase, free_user, login):
        login(free_user)
        drop = fake_supabase.add("drops", owner_id=free_user["id"], name="solo", drop_type="url")

        response = client.post(f"/api/v1/notifications/drops/{drop['id']}")

        assert response.status_code == 400


class TestTaskRoutes:
    """Background task status."""

    @pytest.fixture
    def task_id(self, free_user):
        return f"{free_user['id']}.{uuid4().hex}"

    def test_progress(self, client, fake_supabase, free_user, login, task_id):
        from workers.celery_app import celery_app
        login(free_user)

        result = MagicMock(status="PROGRESS", info={"sent": 2, "total": 5, "message": "Emailing c@x.com"})
        with patch.object(celery_app, "AsyncResult", return_value=result):
            body = client.get(f"/api/v1/tasks/{task_id}").json()

        assert body["status"] == "PROGRESS"
        assert body["sent"] == 2
        assert body["total"] == 5

    def test_success(self, client, fake_supabase, free_user, login, task_id):
        from workers.celery_app import celery_app
        login(free_user)

        result = MagicMock(status="SUCCESS", result={"successful": 3})
        with patch.object(celery_app, "AsyncResult", return_value=result):
            body = client.get(f"/api/v1/tasks/{task_id}").json()

        assert body["message"] == "Complete"
        assert body["result"] == {"successful": 3}

    def test_cancel_finished_task(self, client, fake_supabase, free_user, login, task_id):
        from workers.celery_app import celery_app
        login(free_user)

        result = MagicMock(status="SUCCESS")
        with patch.object(celery_app, "AsyncResult", return_value=result):
            body = client.delete(f"/api/v1/tasks/{task_id}").json()

        assert body["cancelled"] is False
        result.revoke.assert_not_called()

    def test_requires_login(self, client, task_id):
        assert client.get(f"/api/v1/tasks/{task_id}").status_code in (401, 403)
        assert client.delete(f"/api/v1/tasks/{task_id}").status_code in (401, 403)

    def test_other_users_task_is_hidden(self, client, fake_supabase, free_user, make_user, login, task_id):
        from workers.celery_app import celery_app
        login(make_user("individual", email="other@example.com"))

        result = MagicMock(status="PENDING")
        with patch.object(celery_app, "AsyncResult", return_value=result):
            status = client.get(f"/api/v1/tasks/{task_id}")
            cancel = client.delete(f"/api/v1/tasks/{task_id}")

        assert status.status_code == 404
        assert cancel.status_code == 404
        result.revoke.assert_not_called()
