"""Admin session and registration review over HTTP."""

import asyncio
import sqlite3
import time

import pytest

from jubilee_api.app.core.config import settings
from jubilee_api.app.core.security import ADMIN_COOKIE_NAME, create_access_token
from jubilee_api.app.services.admin_auth_service import AdminAuthService


@pytest.fixture(autouse=True)
def login_limits(monkeypatch):
    monkeypatch.setattr(settings, "login_max_attempts", 5)
    monkeypatch.setattr(settings, "login_window_seconds", 300)


def register(client, make_form, make_receipt, uid, email):
    response = client.post(
        "/api/event/register",
        data=make_form(email=email),
        files=make_receipt(),
        headers={"x-oauth-uid": uid, "x-oauth-email": email},
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_login_returns_token_and_sets_cookie(client, admin_account):
    response = client.post("/api/admin/auth/login", json={"username": "admin", "password": "s3cret-passphrase"})
    assert response.status_code == 200
    body = response.json()
    assert body["expiresIn"] == settings.admin_token_expire_minutes * 60
    assert response.cookies.get(ADMIN_COOKIE_NAME) == body["token"]


def test_login_errors(client, admin_account):
    missing = client.post("/api/admin/auth/login", json={})
    assert missing.status_code == 400
    assert missing.json()["message"] == "username and password required"
    wrong = client.post("/api/admin/auth/login", json={"username": "admin", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json() == {"message": "Invalid credentials"}


def test_login_rate_limited_after_five_failures(client, admin_account):
    for _ in range(5):
        assert client.post("/api/admin/auth/login", json={"username": "admin", "password": "nope"}).status_code == 401
    blocked = client.post("/api/admin/auth/login", json={"username": "admin", "password": "s3cret-passphrase"})
    assert blocked.status_code == 429
    assert blocked.json()["message"] == "Too many login attempts. Try again in 5 minutes."


def test_logout_clears_cookie(client):
    response = client.post("/api/admin/auth/logout")
    assert response.status_code == 200
    assert response.json() == {"message": "Logged out"}
    assert ADMIN_COOKIE_NAME in response.headers.get("set-cookie", "")


def test_seed_only_when_enabled(client, monkeypatch):
    credentials = {"username": "first", "password": "pw-123456"}
    assert client.post("/api/admin/auth/seed", json=credentials).status_code == 404
    monkeypatch.setattr(settings, "allow_admin_seed", True)
    created = client.post("/api/admin/auth/seed", json=credentials)
    assert created.status_code == 201
    assert created.json() == {"message": "Admin seeded"}
    again = client.post("/api/admin/auth/seed", json=credentials)
    assert again.status_code == 400
    assert again.json()["message"] == "Admin already exists"


def test_admin_routes_require_token(client):
    response = client.get("/api/admin/event/registrations")
    assert response.status_code == 401
    assert response.json() == {"message": "Admin token missing"}


@pytest.mark.parametrize(
    "method, path",
    [
        ("PATCH", "/api/admin/event/registrations/1/status"),
        ("GET", "/api/admin/event/registrations/1/history"),
        ("GET", "/api/admin/event/registrations"),
    ],
)
@pytest.mark.parametrize(
    "body",
    [b'{"status": "APPROVED"}', b"{not json", b""],
    ids=["valid-json", "malformed-json", "empty"],
)
@pytest.mark.parametrize(
    "auth, expected",
    [
        ({}, {"message": "Admin token missing"}),
        ({"Authorization": "Bearer not.a.token"}, {"message": "Invalid admin token"}),
    ],
    ids=["no-token", "bad-token"],
)
def test_review_routes_check_token_before_body(client, method, path, body, auth, expected):
    headers = {"Content-Type": "application/json", **auth}
    response = client.request(method, path, content=body, headers=headers)
    assert response.status_code == 401
    assert response.json() == expected


def test_review_routes_forbid_non_admin_token_whatever_the_body(client):
    token = create_access_token({"sub": "1", "role": "user"}, settings.admin_jwt_secret, 60)
    response = client.patch(
        "/api/admin/event/registrations/1/status",
        content=b"{not json",
        headers={"Content-Type": "application/json", "Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 403


def test_status_update_rejects_malformed_body_for_admin(client, admin_headers, make_form, make_receipt):
    reg = register(client, make_form, make_receipt, "u1", "one@x.com")
    url = f"/api/admin/event/registrations/{reg['id']}/status"
    broken = client.patch(url, content=b"{not json", headers={**admin_headers, "Content-Type": "application/json"})
    assert broken.status_code == 400
    assert broken.json()["message"] == "Invalid request"
    missing = client.patch(url, json={}, headers=admin_headers)
    assert missing.status_code == 400
    assert "status" in missing.json()["errors"]


def test_token_for_removed_admin_is_rejected(client, admin_account, admin_headers, db_path):
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("DELETE FROM admins WHERE id = ?", (admin_account.id,))
        conn.commit()
    finally:
        conn.close()
    response = client.get("/api/admin/event/registrations", headers=admin_headers)
    assert response.status_code == 401
    assert response.json() == {"message": "Admin no longer exists"}


def test_password_reset_revokes_older_tokens(client, admin_account):
    claims = {"sub": str(admin_account.id), "username": "admin", "role": "admin", "iat": int(time.time()) - 60}
    old_token = create_access_token(claims, settings.admin_jwt_secret, 3600)
    old_headers = {"Authorization": f"Bearer {old_token}"}
    assert client.get("/api/admin/event/registrations", headers=old_headers).status_code == 200

    asyncio.run(AdminAuthService.reset_password("admin", "brand-new-passphrase"))

    revoked = client.get("/api/admin/event/registrations", headers=old_headers)
    assert revoked.status_code == 401
    assert revoked.json() == {"message": "Admin token expired"}
    login = client.post("/api/admin/auth/login", json={"username": "admin", "password": "brand-new-passphrase"})
    client.cookies.clear()
    fresh = client.get(
        "/api/admin/event/registrations",
        headers={"Authorization": f"Bearer {login.json()['token']}"},
    )
    assert fresh.status_code == 200


def test_invalid_and_expired_tokens(client):
    invalid = client.get("/api/admin/event/registrations", headers={"Authorization": "Bearer not.a.token"})
    assert invalid.json() == {"message": "Invalid admin token"}
    expired_token = create_access_token({"sub": "1", "role": "admin"}, settings.admin_jwt_secret, -5)
    expired = client.get("/api/admin/event/registrations", headers={"Authorization": f"Bearer {expired_token}"})
    assert expired.status_code == 401
    assert expired.json() == {"message": "Admin token expired"}


def test_token_without_admin_role_is_forbidden(client):
    token = create_access_token({"sub": "1", "role": "user"}, settings.admin_jwt_secret, 60)
    response = client.get("/api/admin/event/registrations", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403
    assert response.json() == {"message": "Forbidden: insufficient privileges"}


def test_is_admin_claim_and_cookie_are_accepted(client, admin_account):
    token = create_access_token({"sub": str(admin_account.id), "isAdmin": True}, settings.admin_jwt_secret, 60)
    client.cookies.set(ADMIN_COOKIE_NAME, token)
    assert client.get("/api/admin/event/registrations").status_code == 200


def test_list_registrations_newest_first_with_filter(client, admin_headers, make_form, make_receipt):
    first = register(client, make_form, make_receipt, "u1", "one@x.com")
    second = register(client, make_form, make_receipt, "u2", "two@x.com")
    listed = client.get("/api/admin/event/registrations", headers=admin_headers).json()
    assert [r["id"] for r in listed] == [second["id"], first["id"]]

    client.patch(
        f"/api/admin/event/registrations/{first['id']}/status",
        json={"status": "APPROVED"},
        headers=admin_headers,
    )
    approved = client.get("/api/admin/event/registrations", params={"status": "APPROVED"}, headers=admin_headers)
    assert [r["id"] for r in approved.json()] == [first["id"]]


def test_status_transitions(client, admin_headers, make_form, make_receipt):
    reg = register(client, make_form, make_receipt, "u1", "one@x.com")
    url = f"/api/admin/event/registrations/{reg['id']}/status"

    approved = client.patch(url, json={"status": "APPROVED"}, headers=admin_headers)
    assert approved.status_code == 200
    body = approved.json()
    assert body["status"] == "APPROVED"
    assert body["statusChangedBy"] == "admin"
    assert body["statusChangedAt"] is not None

    # Repeating the decision is a no-op; reversing it is a conflict.
    assert client.patch(url, json={"status": "APPROVED"}, headers=admin_headers).status_code == 200
    reversed_ = client.patch(url, json={"status": "REJECTED"}, headers=admin_headers)
    assert reversed_.status_code == 409


def test_status_update_validation(client, admin_headers, make_form, make_receipt):
    reg = register(client, make_form, make_receipt, "u1", "one@x.com")
    bad = client.patch(
        f"/api/admin/event/registrations/{reg['id']}/status",
        json={"status": "PENDING"},
        headers=admin_headers,
    )
    assert bad.status_code == 400
    assert bad.json()["errors"] == {"status": "Status must be APPROVED or REJECTED"}
    missing = client.patch(
        "/api/admin/event/registrations/999/status",
        json={"status": "REJECTED"},
        headers=admin_headers,
    )
    assert missing.status_code == 404


def test_status_change_is_audited(client, admin_account, admin_headers, make_form, make_receipt):
    reg = register(client, make_form, make_receipt, "u1", "one@x.com")
    client.patch(
        f"/api/admin/event/registrations/{reg['id']}/status",
        json={"status": "REJECTED"},
        headers=admin_headers,
    )
    history = client.get(f"/api/admin/event/registrations/{reg['id']}/history", headers=admin_headers).json()
    assert [entry["action"] for entry in history] == ["rejected", "create"]
    assert history[0]["user_id"] == admin_account.id
    assert history[0]["details"] == {"from": "PENDING", "to": "REJECTED", "by": "admin"}


def test_token_from_login_works_on_admin_routes(client, admin_account):
    login = client.post("/api/admin/auth/login", json={"username": "admin", "password": "s3cret-passphrase"})
    token = login.json()["token"]
    client.cookies.clear()
    response = client.get("/api/admin/event/registrations", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
