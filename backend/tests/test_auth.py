"""
CodeSync Backend — Authentication Endpoint Tests
=================================================

What we test:
    ✅ Registration issues a token and a session cookie
    ✅ Duplicate email / username are rejected with 400
    ✅ Password strength and username format rules
    ✅ Login: success, wrong password, unknown email (same message)
    ✅ Session lookup via Bearer header and via cookie
    ✅ Logout clears the cookie; refresh reissues the token
    ✅ Providers list only shows configured OAuth providers
"""

import uuid
from datetime import datetime, timedelta

import pytest

from codesync.config import settings
from codesync.models import User
from codesync.services.auth_service import create_session_token, decode_session_token
from tests.conftest import DEFAULT_PASSWORD


class TestRegister:

    @pytest.mark.asyncio
    async def test_register_returns_token_and_sets_cookie(self, client):
        response = await client.post(
            "/api/auth/register",
            json={
                "name": "Ada Lovelace",
                "email": "Ada@Example.com",
                "username": "ada_l",
                "password": DEFAULT_PASSWORD,
            },
        )
        assert response.status_code == 201
        body = response.json()
        assert body["user"]["username"] == "ada_l"
        assert body["user"]["email"] == "ada@example.com"
        assert body["token"]
        assert "expiresAt" in body
        assert settings.session_cookie_name in response.cookies

        claims = decode_session_token(body["token"])
        assert claims["sub"] == body["user"]["id"]
        assert claims["username"] == "ada_l"

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, client, alice):
        response = await client.post(
            "/api/auth/register",
            json={"name": "Other", "email": "ALICE@example.com", "username": "other", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "User with this email already exists"

    @pytest.mark.asyncio
    async def test_duplicate_username_rejected(self, client, alice):
        response = await client.post(
            "/api/auth/register",
            json={"name": "Other", "email": "other@example.com", "username": "alice", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Username is already taken"

    @pytest.mark.asyncio
    async def test_weak_password_lists_field_error(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"name": "Weak", "email": "weak@example.com", "username": "weak", "password": "password"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["message"] == "Invalid input data"
        fields = {e["field"] for e in body["details"]["errors"]}
        assert "password" in fields

    @pytest.mark.asyncio
    async def test_username_with_symbols_rejected(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"name": "Sym", "email": "sym@example.com", "username": "no-dashes", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 400
        messages = [e["message"] for e in response.json()["details"]["errors"]]
        assert "Username can only contain letters, numbers, and underscores" in messages


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_success(self, client, alice):
        response = await client.post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 200
        assert response.json()["user"]["id"] == alice.id
        assert settings.session_cookie_name in response.cookies

    @pytest.mark.asyncio
    async def test_login_is_case_insensitive_on_email(self, client, alice):
        response = await client.post(
            "/api/auth/login",
            json={"email": "ALICE@EXAMPLE.COM", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(self, client, alice):
        wrong = await client.post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": "Wr0ngpass"},
        )
        unknown = await client.post(
            "/api/auth/login",
            json={"email": "nobody@example.com", "password": DEFAULT_PASSWORD},
        )
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json()["message"] == unknown.json()["message"] == "Invalid email or password"


class TestSession:

    @pytest.mark.asyncio
    async def test_anonymous_session_is_empty(self, client):
        response = await client.get("/api/auth/session")
        assert response.status_code == 200
        assert response.json()["user"] is None

    @pytest.mark.asyncio
    async def test_session_from_bearer_header(self, client, alice):
        response = await client.get("/api/auth/session", headers=alice.headers)
        assert response.json()["user"]["username"] == "alice"

    @pytest.mark.asyncio
    async def test_session_reports_token_expiry(self, client, alice):
        response = await client.get("/api/auth/session", headers=alice.headers)
        expires_at = datetime.fromisoformat(response.json()["expiresAt"].replace("Z", "+00:00"))
        assert expires_at.timestamp() == decode_session_token(alice.token)["exp"]

    @pytest.mark.asyncio
    async def test_anonymous_session_has_no_expiry(self, client):
        response = await client.get("/api/auth/session")
        assert response.json()["expiresAt"] is None

    @pytest.mark.asyncio
    async def test_session_from_cookie(self, client, alice):
        cookie = {"Cookie": f"{settings.session_cookie_name}={alice.token}"}
        response = await client.get("/api/auth/session", headers=cookie)
        assert response.json()["user"]["username"] == "alice"

    @pytest.mark.asyncio
    async def test_garbage_token_is_anonymous(self, client):
        response = await client.get("/api/auth/session", headers={"Authorization": "Bearer nope"})
        assert response.json()["user"] is None

    @pytest.mark.asyncio
    async def test_expired_token_rejected_on_protected_route(self, client):
        user = User(id=uuid.uuid4(), username="ghost", email="ghost@example.com")
        token = create_session_token(user, ttl=timedelta(seconds=-10)).token
        response = await client.get("/api/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_logout_clears_cookie(self, client):
        response = await client.post("/api/auth/logout")
        assert response.status_code == 200
        assert response.json()["message"] == "Signed out"
        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith(f"{settings.session_cookie_name}=")
        assert "Max-Age=0" in set_cookie

    @pytest.mark.asyncio
    async def test_refresh_requires_auth(self, client):
        response = await client.post("/api/auth/session/refresh")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh_reflects_current_row(self, client, alice):
        await client.put("/api/profile", json={"name": "Alice Renamed"}, headers=alice.headers)
        client.cookies.clear()
        response = await client.post("/api/auth/session/refresh", headers=alice.headers)
        assert response.status_code == 200
        assert response.json()["user"]["name"] == "Alice Renamed"
        assert decode_session_token(response.json()["token"])["name"] == "Alice Renamed"


class TestProviders:

    @pytest.mark.asyncio
    async def test_only_credentials_without_oauth_config(self, client):
        response = await client.get("/api/auth/providers")
        assert response.json() == {"providers": ["credentials"]}

    @pytest.mark.asyncio
    async def test_disabled_provider_authorize_is_404(self, client):
        response = await client.get("/api/auth/oauth/github/authorize")
        assert response.status_code == 404
