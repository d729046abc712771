"""
Tests for sign-up, sign-in, sign-out and role gating over HTTP.
"""

import pytest

from conftest import signup, bearer


pytestmark = pytest.mark.anyio


async def test_first_signup_becomes_super_admin(client):
    r = await signup(client)
    assert r.status_code == 200
    data = r.json()
    assert data["tokenType"] == "bearer"
    assert data["user"]["role"] == "Super Admin"
    assert data["user"]["email"] == "first@example.com"


async def test_later_signups_cannot_take_admin_roles(client):
    await signup(client)
    r = await signup(client, email="second@example.com", name="Second", role="Admin")
    assert r.status_code == 403

    r = await signup(client, email="second@example.com", name="Second", role="Analyst")
    assert r.status_code == 200
    assert r.json()["user"]["role"] == "Analyst"


async def test_duplicate_email_is_conflict(client):
    await signup(client)
    r = await signup(client, email="FIRST@example.com")
    assert r.status_code == 409


async def test_short_password_is_rejected(client):
    r = await signup(client, password="12345")
    assert r.status_code == 422


async def test_login_and_session(client):
    await signup(client, password="hunter22")

    bad = await client.post("/api/auth/login", json={"email": "first@example.com", "password": "wrong-pass"})
    assert bad.status_code == 401

    r = await client.post("/api/auth/login", json={"email": "first@example.com", "password": "hunter22"})
    assert r.status_code == 200
    token = r.json()["accessToken"]

    me = await client.get("/api/auth/session", headers=bearer(token))
    assert me.status_code == 200
    assert me.json()["name"] == "First User"
    assert me.json()["lastLoginAt"] is not None


async def test_logout_revokes_existing_tokens(client):
    token = (await signup(client)).json()["accessToken"]

    r = await client.post("/api/auth/logout", headers=bearer(token))
    assert r.status_code == 200

    r = await client.get("/api/auth/session", headers=bearer(token))
    assert r.status_code == 401

    r = await client.post("/api/auth/login", json={"email": "first@example.com", "password": "secret123"})
    fresh = r.json()["accessToken"]
    assert (await client.get("/api/auth/session", headers=bearer(fresh))).status_code == 200


async def test_garbage_token_is_unauthorized(client):
    r = await client.get("/api/auth/session", headers=bearer("not-a-jwt"))
    assert r.status_code == 401


async def test_signed_token_with_non_uuid_subject_is_unauthorized(client):
    from changetracker.services.auth_service import create_access_token

    await signup(client)
    token = create_access_token("not-a-uuid", "first@example.com", "Super Admin")
    r = await client.get("/api/auth/session", headers=bearer(token))
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid or expired token. Please log in again."


async def test_disabled_user_cannot_sign_in(client):
    admin_token = (await signup(client)).json()["accessToken"]
    r = await signup(client, email="viewer@example.com", name="Vera")
    viewer_id = r.json()["user"]["id"]
    viewer_token = r.json()["accessToken"]

    r = await client.patch(f"/api/users/{viewer_id}", json={"isActive": False}, headers=bearer(admin_token))
    assert r.status_code == 200

    assert (await client.get("/api/auth/session", headers=bearer(viewer_token))).status_code == 401
    r = await client.post("/api/auth/login", json={"email": "viewer@example.com", "password": "secret123"})
    assert r.status_code == 401


async def test_viewer_cannot_manage_users_or_accounts(client):
    await signup(client)
    viewer_token = (await signup(client, email="viewer@example.com", name="Vera")).json()["accessToken"]

    r = await client.get("/api/users", headers=bearer(viewer_token))
    assert r.status_code == 200
    assert len(r.json()) == 2

    r = await client.post(
        "/api/accounts",
        json={"name": "Acme", "client": "Acme", "manager": "Vera"},
        headers=bearer(viewer_token),
    )
    assert r.status_code == 403

    r = await client.post(
        "/api/users",
        json={"name": "Eve", "email": "eve@example.com", "password": "secret123", "role": "Admin"},
        headers=bearer(viewer_token),
    )
    assert r.status_code == 403
