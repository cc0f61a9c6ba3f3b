"""
CodeSync Backend — OAuth Sign-In (GitHub, Google)
==================================================

What:  The authorization-code flow for the two optional OAuth providers, and
       the mapping from a provider identity to a CodeSync user.
Why:   A provider is offered only when both its client id and secret are
       configured; credential login is always available.
How:   1. authorize_url() builds the provider redirect with a signed,
          short-lived `state` (a JWT carrying the provider and a nonce). The
          route also stores the state in a cookie.
       2. The callback checks that the returned state matches the cookie and
          verifies its signature and expiry.
       3. exchange_code() swaps the code for an access token and fetches the
          profile with httpx. Transport errors and 5xx responses are retried
          with tenacity; 4xx responses fail immediately.
       4. resolve_user() finds or creates the user.

User resolution:
    linked account (provider, provider_account_id)  → that user
    email already registered without this link      → rejected
    otherwise                                       → new user + linked account
"""

import logging
import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from urllib.parse import urlencode

import httpx
from jose import JWTError, jwt
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from codesync.config import settings
from codesync.exceptions import AuthenticationError, DatabaseError, NotFoundError
from codesync.models import Account, User

logger = logging.getLogger(__name__)

STATE_TTL = timedelta(minutes=10)
STATE_COOKIE_NAME = "codesync_oauth_state"


@dataclass(frozen=True)
class OAuthProvider:
    name: str
    authorize_url: str
    token_url: str
    profile_url: str
    scope: str
    client_id: Callable[[], str]
    client_secret: Callable[[], str]
    enabled: Callable[[], bool]


@dataclass(frozen=True)
class OAuthProfile:
    provider: str
    account_id: str
    email: Optional[str]
    name: Optional[str]
    image: Optional[str]
    login: Optional[str] = None


PROVIDERS: Dict[str, OAuthProvider] = {
    "github": OAuthProvider(
        name="github",
        authorize_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        profile_url="https://api.github.com/user",
        scope="read:user user:email",
        client_id=lambda: settings.github_client_id,
        client_secret=lambda: settings.github_client_secret,
        enabled=lambda: settings.github_enabled,
    ),
    "google": OAuthProvider(
        name="google",
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        profile_url="https://openidconnect.googleapis.com/v1/userinfo",
        scope="openid email profile",
        client_id=lambda: settings.google_client_id,
        client_secret=lambda: settings.google_client_secret,
        enabled=lambda: settings.google_enabled,
    ),
}


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


_retry_policy = retry(
    retry=retry_if_exception(_is_retryable),
    stop=stop_after_attempt(settings.retry_max_attempts),
    wait=wait_exponential_jitter(
        initial=settings.retry_min_wait,
        max=settings.retry_max_wait,
        jitter=min(1, settings.retry_max_wait),
    ),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


def username_base(profile: OAuthProfile) -> str:
    """Derive a valid username stem (3-15 chars of [A-Za-z0-9_])."""
    raw = profile.login or (profile.email.split("@")[0] if profile.email else "") or profile.name or ""
    base = re.sub(r"[^A-Za-z0-9_]", "_", raw).strip("_")[:15]
    if len(base) < 3:
        base = f"user_{base}" if base else "user"
    return base


class OAuthService:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        # Tests install an httpx.MockTransport here
        self.transport = transport

    # ── Providers ─────────────────────────────────────────────────────────

    def enabled_providers(self) -> List[str]:
        return [name for name, provider in PROVIDERS.items() if provider.enabled()]

    def get_provider(self, name: str) -> OAuthProvider:
        provider = PROVIDERS.get(name)
        if provider is None or not provider.enabled():
            raise NotFoundError(resource="provider", resource_id=name)
        return provider

    def redirect_uri(self, provider: OAuthProvider) -> str:
        return f"{settings.oauth_redirect_base_url.rstrip('/')}/api/auth/oauth/{provider.name}/callback"

    # ── State ─────────────────────────────────────────────────────────────

    def create_state(self, provider: OAuthProvider) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "provider": provider.name,
            "nonce": secrets.token_urlsafe(16),
            "iat": int(now.timestamp()),
            "exp": int((now + STATE_TTL).timestamp()),
        }
        return jwt.encode(claims, settings.secret_key, algorithm="HS256")

    def verify_state(self, provider: OAuthProvider, state: Optional[str], cookie_state: Optional[str]) -> None:
        if not state or not cookie_state or not secrets.compare_digest(state, cookie_state):
            raise AuthenticationError("Invalid OAuth state")
        try:
            claims = jwt.decode(state, settings.secret_key, algorithms=["HS256"])
        except JWTError:
            raise AuthenticationError("Invalid OAuth state")
        if claims.get("provider") != provider.name:
            raise AuthenticationError("Invalid OAuth state")

    def authorize_url(self, provider: OAuthProvider, state: str) -> str:
        params = {
            "client_id": provider.client_id(),
            "redirect_uri": self.redirect_uri(provider),
            "scope": provider.scope,
            "state": state,
        }
        if provider.name == "google":
            params["response_type"] = "code"
        return f"{provider.authorize_url}?{urlencode(params)}"

    # ── Provider API ──────────────────────────────────────────────────────

    async def exchange_code(self, provider: OAuthProvider, code: str) -> OAuthProfile:
        """
        Trade the authorization code for the provider profile.

        Raises:
            AuthenticationError: the provider rejected the code, or kept failing
        """
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=10.0) as client:
                access_token = await self._fetch_access_token(client, provider, code)
                if provider.name == "github":
                    return await self._github_profile(client, provider, access_token)
                return await self._google_profile(client, provider, access_token)
        except httpx.HTTPError as e:
            logger.error("OAuth exchange with %s failed: %s", provider.name, e)
            raise AuthenticationError(
                f"Could not complete sign-in with {provider.name}",
                context={"provider": provider.name},
            )

    @_retry_policy
    async def _fetch_access_token(self, client: httpx.AsyncClient, provider: OAuthProvider, code: str) -> str:
        data = {
            "client_id": provider.client_id(),
            "client_secret": provider.client_secret(),
            "code": code,
            "redirect_uri": self.redirect_uri(provider),
        }
        if provider.name == "google":
            data["grant_type"] = "authorization_code"
        response = await client.post(provider.token_url, data=data, headers={"Accept": "application/json"})
        response.raise_for_status()
        payload = response.json()
        token = payload.get("access_token")
        if not token:
            # GitHub answers 200 with {"error": "bad_verification_code"}
            raise AuthenticationError(
                "The sign-in code was rejected",
                context={"provider": provider.name, "error": payload.get("error")},
            )
        return token

    @_retry_policy
    async def _get_json(self, client: httpx.AsyncClient, url: str, access_token: str):
        response = await client.get(
            url,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )
        response.raise_for_status()
        return response.json()

    async def _github_profile(self, client, provider: OAuthProvider, access_token: str) -> OAuthProfile:
        data = await self._get_json(client, provider.profile_url, access_token)
        email = data.get("email")
        if not email:
            # Private email: ask the emails endpoint for the primary verified one
            emails = await self._get_json(client, "https://api.github.com/user/emails", access_token)
            email = next(
                (e["email"] for e in emails if e.get("primary") and e.get("verified")),
                None,
            )
        return OAuthProfile(
            provider=provider.name,
            account_id=str(data["id"]),
            email=email.lower() if email else None,
            name=data.get("name") or data.get("login"),
            image=data.get("avatar_url"),
            login=data.get("login"),
        )

    async def _google_profile(self, client, provider: OAuthProvider, access_token: str) -> OAuthProfile:
        data = await self._get_json(client, provider.profile_url, access_token)
        email = data.get("email") if data.get("email_verified", True) else None
        return OAuthProfile(
            provider=provider.name,
            account_id=str(data["sub"]),
            email=email.lower() if email else None,
            name=data.get("name"),
            image=data.get("picture"),
        )

    # ── User Resolution ───────────────────────────────────────────────────

    async def resolve_user(self, db: AsyncSession, profile: OAuthProfile) -> User:
        try:
            result = await db.execute(
                select(User)
                .join(Account, Account.user_id == User.id)
                .where(
                    Account.provider == profile.provider,
                    Account.provider_account_id == profile.account_id,
                )
            )
            user = result.scalar_one_or_none()
            if user is not None:
                return user

            if profile.email:
                existing = await db.execute(
                    select(User.id).where(func.lower(User.email) == profile.email)
                )
                if existing.scalar_one_or_none() is not None:
                    raise AuthenticationError(
                        "An account with this email already exists with a different sign-in method",
                        context={"provider": profile.provider},
                    )

            user = User(
                name=profile.name,
                email=profile.email,
                username=await self._unique_username(db, username_base(profile)),
                image=profile.image,
            )
            db.add(user)
            await db.flush()
            db.add(Account(
                user_id=user.id,
                provider=profile.provider,
                provider_account_id=profile.account_id,
            ))
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise AuthenticationError("Sign-in conflicted with another request, please retry")
        except SQLAlchemyError as e:
            logger.error("Database error resolving OAuth user: %s", e, exc_info=True)
            raise DatabaseError(context={"operation": "oauth_resolve_user"})

        logger.info("Created user %s from %s sign-in", user.username, profile.provider)
        return user

    async def _unique_username(self, db: AsyncSession, base: str) -> str:
        result = await db.execute(select(User.username).where(User.username.like(f"{base}%")))
        taken = set(result.scalars().all())
        if base not in taken:
            return base
        for n in range(1, 1000):
            candidate = f"{base}{n}"
            if candidate not in taken:
                return candidate
        return f"{base[:11]}_{uuid.uuid4().hex[:8]}"


oauth_service = OAuthService()
