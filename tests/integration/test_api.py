"""End-to-end tests through the FastAPI app: middleware, routers and guards."""

from datetime import timedelta

import pyotp
import pytest
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient

from auth.sessions import issue_session_token
from core.rate_limit import rate_limiter
from core.timeutil import utcnow
from system_settings.defaults import initialize_defaults
from system_settings.features import require_feature

pytestmark = pytest.mark.integration

PASSWORD = "Dram-Tasting-42"


@pytest.fixture
async def admin_headers(make_user, login_as):
    await make_user(email="admin@example.com", username="admin", role="admin")
    return await login_as("admin@example.com")


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


async def test_health_is_not_rate_limited(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert "X-RateLimit-Limit" not in response.headers


async def test_public_settings_hide_private_ones(db, client):
    await initialize_defaults(db)

    response = await client.get("/settings/public")

    assert response.status_code == 200
    body = response.json()
    assert body["site_name"] == "Whisky Club"
    assert body["max_rating_scale"] == 10
    assert "api_rate_limit" not in body
    assert "login_attempt_limit" not in body

    appearance = (await client.get("/settings/public", params={"category": "appearance"})).json()
    assert set(appearance) == {"primary_color", "secondary_color", "site_logo_url", "footer_text"}


async def test_feature_flags(db, client, store):
    await store.set("enable_user_messaging", True, data_type="boolean")
    response = await client.get("/settings/features")
    assert response.status_code == 200
    assert response.json()["messaging"] is True
    assert response.json()["reviews"] is True


async def test_password_requirements(client, store):
    await store.set("min_password_length", 12, data_type="number")
    response = await client.get("/auth/password-requirements")
    assert response.status_code == 200
    assert response.json()["rules"]["min_length"] == 12

    check = await client.post("/auth/password-requirements/check", json={"password": "abc"})
    assert check.status_code == 200
    assert check.json()["is_valid"] is False
    assert "Password must be at least 12 characters long" in check.json()["errors"]


# ---------------------------------------------------------------------------
# Login and sessions
# ---------------------------------------------------------------------------


async def test_login_and_me(client, make_user, login_as):
    await make_user()
    headers = await login_as("member@example.com")

    response = await client.get("/auth/me", headers=headers)

    assert response.status_code == 200
    assert response.json()["email"] == "member@example.com"
    assert "password_hash" not in response.json()
    assert response.headers["X-Session-Updated"] == "true"
    assert response.headers["X-Session-Token"]
    assert response.headers["X-RateLimit-Limit"] == "100"


async def test_refreshed_token_is_usable(client, make_user, login_as):
    await make_user()
    headers = await login_as("member@example.com")
    refreshed = (await client.get("/auth/me", headers=headers)).headers["X-Session-Token"]

    response = await client.get("/auth/session-info", headers={"Authorization": f"Bearer {refreshed}"})

    assert response.status_code == 200
    assert response.json()["idle_timeout_minutes"] == 120


async def test_wrong_password_and_lockout(client, store, make_user):
    await store.set("login_attempt_limit", 2, data_type="number")
    await make_user()
    wrong = {"email": "member@example.com", "password": "Wrong-Password-1"}

    first = await client.post("/auth/login", json=wrong)
    assert first.status_code == 401
    assert first.json()["detail"]["code"] == "INVALID_CREDENTIALS"
    await client.post("/auth/login", json=wrong)

    locked = await client.post("/auth/login", json={"email": "member@example.com", "password": PASSWORD})
    assert locked.status_code == 423
    assert locked.json()["detail"]["code"] == "ACCOUNT_LOCKED"
    assert locked.json()["detail"]["remaining_minutes"] == 30


async def test_missing_or_bad_token(client):
    assert (await client.get("/auth/me")).status_code == 401

    response = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "INVALID_TOKEN"


async def test_idle_session_is_rejected(client, make_user):
    user = await make_user()
    token = issue_session_token(user, now=utcnow() - timedelta(hours=3))

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "IDLE_TIMEOUT"
    assert "inactivity" in response.json()["detail"]["message"]


async def test_session_timeout_follows_the_setting(client, store, make_user):
    user = await make_user()
    token = issue_session_token(user, now=utcnow() - timedelta(hours=3), track_idle=False)
    headers = {"Authorization": f"Bearer {token}"}
    assert (await client.get("/auth/me", headers=headers)).status_code == 200

    await store.set("session_timeout_hours", 1, data_type="number")

    response = await client.get("/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "SESSION_TIMEOUT"


async def test_register_over_http(client, store):
    response = await client.post(
        "/auth/register",
        json={"username": "islay", "email": "islay@example.com", "password": PASSWORD},
    )
    assert response.status_code == 201
    assert response.json()["approval_status"] == "approved"

    await store.set("allow_registration", False, data_type="boolean")
    closed = await client.post(
        "/auth/register",
        json={"username": "speyside", "email": "speyside@example.com", "password": PASSWORD},
    )
    assert closed.status_code == 403
    assert closed.json()["detail"]["code"] == "REGISTRATION_CLOSED"


async def test_change_password_with_wrong_old_password(client, make_user, login_as):
    await make_user()
    headers = await login_as("member@example.com")
    response = await client.put(
        "/auth/change-password",
        json={"old_password": "Not-It-123!", "new_password": "Speyside-Cask-77"},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Old password is incorrect"


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


async def test_requests_over_the_limit_get_429(client, store):
    await store.set("api_rate_limit", 2, data_type="number")

    statuses = [(await client.get("/settings/public")).status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
    blocked = await client.get("/settings/public")
    assert blocked.json()["detail"]["code"] == "RATE_LIMITED"
    assert int(blocked.headers["Retry-After"]) >= 1
    assert blocked.headers["X-RateLimit-Remaining"] == "0"


async def test_limiter_failure_lets_requests_through(client, monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("limiter down")

    monkeypatch.setattr(rate_limiter, "hit", broken)

    response = await client.get("/settings/public")

    assert response.status_code == 200
    assert "X-RateLimit-Limit" not in response.headers


# ---------------------------------------------------------------------------
# Admin settings console
# ---------------------------------------------------------------------------


async def test_members_cannot_reach_admin_endpoints(client, make_user, login_as):
    await make_user()
    headers = await login_as("member@example.com")
    assert (await client.get("/admin/settings", headers=headers)).status_code == 403
    assert (await client.get("/admin/users", headers=headers)).status_code == 403


async def test_admin_setting_lifecycle(client, admin_headers):
    created = await client.post(
        "/admin/settings",
        json={
            "key": "tasting_night",
            "value": "Friday",
            "category": "general",
            "is_public": True,
            "validation_rules": {"enum": ["Thursday", "Friday"]},
        },
        headers=admin_headers,
    )
    assert created.status_code == 201
    assert created.json()["value"] == "Friday"

    duplicate = await client.post(
        "/admin/settings", json={"key": "tasting_night", "value": "Friday"}, headers=admin_headers
    )
    assert duplicate.status_code == 409

    invalid = await client.put("/admin/settings/tasting_night", json={"value": "Monday"}, headers=admin_headers)
    assert invalid.status_code == 422
    assert invalid.json()["detail"]["code"] == "VALIDATION_ERROR"

    updated = await client.put("/admin/settings/tasting_night", json={"value": "Thursday"}, headers=admin_headers)
    assert updated.status_code == 200
    assert (await client.get("/settings/public")).json()["tasting_night"] == "Thursday"

    deleted = await client.delete("/admin/settings/tasting_night", headers=admin_headers)
    assert deleted.status_code == 200
    assert (await client.get("/admin/settings/tasting_night", headers=admin_headers)).status_code == 404


async def test_bad_setting_key_is_rejected(client, admin_headers):
    response = await client.post("/admin/settings", json={"key": "Bad Key", "value": "x"}, headers=admin_headers)
    assert response.status_code == 422


async def test_readonly_setting_over_http(db, client, admin_headers):
    await initialize_defaults(db)

    update = await client.put("/admin/settings/app_version", json={"value": "9.9.9"}, headers=admin_headers)
    delete = await client.delete("/admin/settings/app_version", headers=admin_headers)

    assert update.status_code == 403
    assert update.json()["detail"]["code"] == "READONLY_SETTING"
    assert delete.status_code == 403
    assert (await client.get("/admin/settings/app_version", headers=admin_headers)).json()["value"] == "1.0.0"


async def test_initialize_and_category_listing(client, admin_headers):
    initialized = await client.post("/admin/settings/initialize", headers=admin_headers)
    assert initialized.status_code == 200
    assert "site_name" in initialized.json()["created"]

    security = await client.get("/admin/settings/categories/security", headers=admin_headers)
    assert security.status_code == 200
    assert security.json()["settings"]["login_attempt_limit"] == 5

    unknown = await client.get("/admin/settings/categories/distillery", headers=admin_headers)
    assert unknown.status_code == 404


async def test_export(client, admin_headers):
    await client.post("/admin/settings/initialize", headers=admin_headers)

    response = await client.get("/admin/settings/export", headers=admin_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert response.content[:2] == b"PK"


# ---------------------------------------------------------------------------
# Admin user management
# ---------------------------------------------------------------------------


async def test_admin_unlocks_an_account(db, client, make_user, admin_headers):
    user = await make_user(failed_login_attempts=5, account_locked_until=utcnow() + timedelta(minutes=30))
    credentials = {"email": "member@example.com", "password": PASSWORD}
    assert (await client.post("/auth/login", json=credentials)).status_code == 423

    response = await client.put(f"/admin/users/{user.id}/unlock", headers=admin_headers)

    assert response.status_code == 200
    await db.refresh(user)
    assert user.failed_login_attempts == 0
    assert user.account_locked_until is None
    assert (await client.post("/auth/login", json=credentials)).status_code == 200


async def test_admin_approval_flow(db, client, make_user, admin_headers):
    user = await make_user(approval_status="pending")
    credentials = {"email": "member@example.com", "password": PASSWORD}
    pending = await client.post("/auth/login", json=credentials)
    assert pending.status_code == 403
    assert pending.json()["detail"]["code"] == "ACCOUNT_NOT_APPROVED"

    approved = await client.put(f"/admin/users/{user.id}/approve", headers=admin_headers)

    assert approved.status_code == 200
    assert approved.json()["approval_status"] == "approved"
    assert (await client.post("/auth/login", json=credentials)).status_code == 200


async def test_admin_created_user_must_change_password(client, admin_headers):
    response = await client.post(
        "/admin/users",
        json={"username": "speyside", "email": "speyside@example.com", "password": "Cask-Strength-58"},
        headers=admin_headers,
    )
    assert response.status_code == 201

    login = await client.post("/auth/login", json={"email": "speyside@example.com", "password": "Cask-Strength-58"})
    assert login.status_code == 200
    assert login.json()["force_password_change"] is True


async def test_audit_log_records_setting_changes(client, admin_headers):
    await client.post("/admin/settings/initialize", headers=admin_headers)
    await client.put("/admin/settings/site_name", json={"value": "Peat Society"}, headers=admin_headers)

    response = await client.get("/admin/audit-logs", params={"action": "setting_updated"}, headers=admin_headers)

    assert response.status_code == 200
    logs = response.json()["logs"]
    assert len(logs) == 1
    assert logs[0]["detail"] == "key=site_name"
    assert logs[0]["actor_email"] == "admin@example.com"


# ---------------------------------------------------------------------------
# Two-factor over HTTP
# ---------------------------------------------------------------------------


async def test_two_factor_setup_and_login(client, store, make_user, login_as):
    await make_user()
    headers = await login_as("member@example.com")

    setup = (await client.post("/auth/2fa/setup", headers=headers)).json()
    code = pyotp.TOTP(setup["secret"]).now()
    confirmed = await client.post(
        "/auth/2fa/setup/verify", json={"setup_token": setup["setup_token"], "token": code}, headers=headers
    )
    assert confirmed.status_code == 200

    status_ = (await client.get("/auth/2fa/status", headers=headers)).json()
    assert status_["enabled"] is True
    assert status_["enforced"] is False
    assert status_["backup_codes_remaining"] == 8

    await store.set("enable_two_factor_auth", True, data_type="boolean")
    credentials = {"email": "member@example.com", "password": PASSWORD}
    first = (await client.post("/auth/login", json=credentials)).json()
    assert first["requires_two_factor"] is True
    assert first["access_token"] is None

    # The pending reference is not a session
    pending_headers = {"Authorization": f"Bearer {first['pending_token']}"}
    assert (await client.get("/auth/me", headers=pending_headers)).status_code == 401

    bad = await client.post("/auth/login/2fa", json={"pending_token": first["pending_token"], "token": "nope"})
    assert bad.status_code == 401
    assert bad.json()["detail"]["code"] == "TWO_FACTOR_INVALID"

    second = await client.post(
        "/auth/login/2fa",
        json={"pending_token": first["pending_token"], "token": setup["backup_codes"][0]},
    )
    assert second.status_code == 200
    assert second.json()["access_token"]


# ---------------------------------------------------------------------------
# Feature gating
# ---------------------------------------------------------------------------


async def test_disabled_feature_answers_404(db, store):
    feature_app = FastAPI()

    @feature_app.get("/messages", dependencies=[Depends(require_feature("messaging"))])
    async def messages():
        return {"messages": []}

    async with AsyncClient(transport=ASGITransport(app=feature_app), base_url="http://test") as ac:
        off = await ac.get("/messages")
        await store.set("enable_user_messaging", True, data_type="boolean")
        on = await ac.get("/messages")

    assert off.status_code == 404
    assert off.json()["detail"] == "This feature is currently disabled"
    assert on.status_code == 200
