"""
CodeSync Backend — OAuth Sign-In Tests (Mocked Providers)
==========================================================

What:  OAuthService against httpx.MockTransport instead of GitHub/Google.
Why:   The code exchange, profile fetch and user resolution are exercised
       without network access or real client credentials.

What we test:
    ✅ Providers are enabled only with both id and secret
    ✅ State is signed, bound to the provider and checked against the cookie
    ✅ GitHub: private email falls back to /user/emails
    ✅ GitHub's 200-with-error token response is rejected
    ✅ 5xx responses are retried; 4xx are not
    ✅ User resolution: new user, returning user, email conflict, username clash
    ✅ Full authorize → callback round trip sets the session cookie
"""

from contextlib import contextmanager
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from codesync.config import settings
from codesync.exceptions import AuthenticationError, NotFoundError
from codesync.models import User
from codesync.services.auth_service import decode_session_token
from codesync.services.oauth_service import (
    PROVIDERS,
    STATE_COOKIE_NAME,
    OAuthProfile,
    OAuthService,
    oauth_service,
    username_base,
)


@contextmanager
def github_enabled():
    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(settings, "github_client_id", "gh-id")
        mp.setattr(settings, "github_client_secret", "gh-secret")
        yield


def github_handler(profile=None, emails=None, token_status=200, token_payload=None, calls=None):
    profile = profile or {"id": 42, "login": "octocat", "name": "Octo Cat", "email": None,
                          "avatar_url": "https://avatars.example/42"}
    emails = emails if emails is not None else [
        {"email": "secondary@example.com", "primary": False, "verified": True},
        {"email": "Octo@Example.com", "primary": True, "verified": True},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.path)
        if request.url.host == "github.com":
            return httpx.Response(token_status, json=token_payload or {"access_token": "gh-token"})
        assert request.headers["Authorization"] == "Bearer gh-token"
        if request.url.path == "/user":
            return httpx.Response(200, json=profile)
        if request.url.path == "/user/emails":
            return httpx.Response(200, json=emails)
        return httpx.Response(404)

    return handler


class TestProviders:

    def test_disabled_without_credentials(self):
        assert OAuthService().enabled_providers() == []
        with pytest.raises(NotFoundError):
            OAuthService().get_provider("github")

    def test_enabled_with_id_and_secret(self):
        with github_enabled():
            assert OAuthService().enabled_providers() == ["github"]

    def test_unknown_provider(self):
        with pytest.raises(NotFoundError):
            OAuthService().get_provider("myspace")

    def test_authorize_url(self):
        service = OAuthService()
        with github_enabled():
            url = service.authorize_url(PROVIDERS["github"], "state-123")
        query = parse_qs(urlparse(url).query)
        assert url.startswith("https://github.com/login/oauth/authorize?")
        assert query["client_id"] == ["gh-id"]
        assert query["state"] == ["state-123"]
        assert query["redirect_uri"][0].endswith("/api/auth/oauth/github/callback")


class TestState:

    def setup_method(self):
        self.service = OAuthService()
        self.github = PROVIDERS["github"]

    def test_round_trip(self):
        state = self.service.create_state(self.github)
        self.service.verify_state(self.github, state, state)

    def test_cookie_mismatch(self):
        state = self.service.create_state(self.github)
        with pytest.raises(AuthenticationError, match="Invalid OAuth state"):
            self.service.verify_state(self.github, state, state + "x")

    def test_missing_cookie(self):
        state = self.service.create_state(self.github)
        with pytest.raises(AuthenticationError):
            self.service.verify_state(self.github, state, None)

    def test_state_bound_to_provider(self):
        state = self.service.create_state(PROVIDERS["google"])
        with pytest.raises(AuthenticationError):
            self.service.verify_state(self.github, state, state)

    def test_forged_state(self):
        with pytest.raises(AuthenticationError):
            self.service.verify_state(self.github, "not-a-jwt", "not-a-jwt")


class TestExchange:

    @pytest.mark.asyncio
    async def test_github_private_email_fallback(self):
        service = OAuthService(transport=httpx.MockTransport(github_handler()))
        with github_enabled():
            profile = await service.exchange_code(PROVIDERS["github"], "code-1")

        assert profile.account_id == "42"
        assert profile.email == "octo@example.com"
        assert profile.login == "octocat"
        assert profile.image == "https://avatars.example/42"

    @pytest.mark.asyncio
    async def test_github_bad_code(self):
        handler = github_handler(token_payload={"error": "bad_verification_code"})
        service = OAuthService(transport=httpx.MockTransport(handler))
        with github_enabled(), pytest.raises(AuthenticationError, match="rejected"):
            await service.exchange_code(PROVIDERS["github"], "stale")

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        attempts = []

        def handler(request):
            if request.url.host == "github.com":
                attempts.append(1)
                if len(attempts) == 1:
                    return httpx.Response(502)
            return github_handler()(request)

        service = OAuthService(transport=httpx.MockTransport(handler))
        with github_enabled():
            profile = await service.exchange_code(PROVIDERS["github"], "code")
        assert len(attempts) == 2
        assert profile.account_id == "42"

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []
        handler = github_handler(token_status=401, token_payload={"error": "nope"}, calls=calls)
        service = OAuthService(transport=httpx.MockTransport(handler))
        with github_enabled(), pytest.raises(AuthenticationError):
            await service.exchange_code(PROVIDERS["github"], "code")
        assert calls == ["/login/oauth/access_token"]

    @pytest.mark.asyncio
    async def test_google_profile(self):
        def handler(request):
            if request.url.host == "oauth2.googleapis.com":
                assert b"grant_type=authorization_code" in request.content
                return httpx.Response(200, json={"access_token": "g-token"})
            return httpx.Response(200, json={
                "sub": "g-7", "email": "Grace@Example.com", "email_verified": True,
                "name": "Grace", "picture": "https://pics.example/g",
            })

        service = OAuthService(transport=httpx.MockTransport(handler))
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(settings, "google_client_id", "g-id")
            mp.setattr(settings, "google_client_secret", "g-secret")
            profile = await service.exchange_code(PROVIDERS["google"], "code")

        assert profile.account_id == "g-7"
        assert profile.email == "grace@example.com"
        assert profile.image == "https://pics.example/g"


class TestUsernameBase:

    def test_prefers_login(self):
        assert username_base(OAuthProfile("github", "1", "x@y.z", "Name", None, login="octo-cat")) == "octo_cat"

    def test_falls_back_to_email_local_part(self):
        assert username_base(OAuthProfile("google", "1", "grace.h@example.com", "Grace", None)) == "grace_h"

    def test_pads_short_names(self):
        assert username_base(OAuthProfile("google", "1", None, "Al", None)) == "user_Al"


class TestResolveUser:

    def profile(self, **overrides):
        fields = dict(provider="github", account_id="42", email="octo@example.com",
                      name="Octo Cat", image=None, login="octocat")
        fields.update(overrides)
        return OAuthProfile(**fields)

    @pytest.mark.asyncio
    async def test_creates_then_reuses(self, db_session):
        service = OAuthService()
        first = await service.resolve_user(db_session, self.profile())
        again = await service.resolve_user(db_session, self.profile())
        assert first.id == again.id
        assert first.username == "octocat"
        assert first.has_password is False

    @pytest.mark.asyncio
    async def test_email_of_credentials_account_is_rejected(self, db_session):
        db_session.add(User(username="octo_pw", email="octo@example.com", password_hash="x"))
        await db_session.flush()
        with pytest.raises(AuthenticationError, match="different sign-in method"):
            await OAuthService().resolve_user(db_session, self.profile())

    @pytest.mark.asyncio
    async def test_username_clash_gets_suffix(self, db_session):
        db_session.add(User(username="octocat", email="someone@example.com"))
        await db_session.flush()
        user = await OAuthService().resolve_user(db_session, self.profile())
        assert user.username == "octocat1"


class TestCallbackRoute:

    @pytest.mark.asyncio
    async def test_authorize_and_callback(self, client):
        with github_enabled(), pytest.MonkeyPatch.context() as mp:
            mp.setattr(oauth_service, "transport", httpx.MockTransport(github_handler()))

            authorize = await client.get("/api/auth/oauth/github/authorize")
            assert authorize.status_code == 302
            location = authorize.headers["location"]
            assert location.startswith("https://github.com/login/oauth/authorize")
            state = parse_qs(urlparse(location).query)["state"][0]
            assert authorize.cookies.get(STATE_COOKIE_NAME) == state

            callback = await client.get(
                "/api/auth/oauth/github/callback", params={"code": "abc", "state": state}
            )

        assert callback.status_code == 302
        assert callback.headers["location"] == settings.frontend_url
        claims = decode_session_token(callback.cookies.get(settings.session_cookie_name))
        assert claims["username"] == "octocat"
        assert claims["email"] == "octo@example.com"

    @pytest.mark.asyncio
    async def test_callback_without_state_cookie(self, client):
        with github_enabled():
            state = oauth_service.create_state(PROVIDERS["github"])
            response = await client.get(
                "/api/auth/oauth/github/callback", params={"code": "abc", "state": state}
            )
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid OAuth state"

    @pytest.mark.asyncio
    async def test_provider_error_is_401(self, client):
        with github_enabled():
            response = await client.get(
                "/api/auth/oauth/github/callback", params={"error": "access_denied"}
            )
        assert response.status_code == 401
