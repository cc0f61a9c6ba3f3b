"""
CodeSync Backend — Authentication Routes
=========================================

What:  Registration, credential login, logout, session inspection/refresh
       and the OAuth redirect/callback pair.
How:   Every successful sign-in issues a JWT from the user row and sets it
       as the HTTP-only session cookie. The JSON body carries the same token
       for clients that prefer `Authorization: Bearer`.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from codesync.config import settings
from codesync.database import get_db_session
from codesync.dependencies import (
    clear_session_cookie,
    get_current_user,
    get_optional_user,
    set_session_cookie,
)
from codesync.exceptions import AuthenticationError
from codesync.models import User
from codesync.schemas.auth import (
    AuthResponse,
    LoginRequest,
    ProvidersResponse,
    RegisterRequest,
    SessionResponse,
)
from codesync.schemas.common import ErrorResponse, MessageResponse
from codesync.services.auth_service import IssuedSession, auth_service, create_session_token, session_user
from codesync.services.oauth_service import STATE_COOKIE_NAME, STATE_TTL, oauth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _auth_response(response: Response, session: IssuedSession) -> AuthResponse:
    set_session_cookie(response, session)
    return AuthResponse(user=session.user, token=session.token, expires_at=session.expires_at)


@router.post(
    "/register",
    status_code=201,
    response_model=AuthResponse,
    responses={400: {"description": "Invalid input or email/username taken", "model": ErrorResponse}},
    summary="Create an account with email and password",
)
async def register(
    body: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    user = await auth_service.register(db, body)
    return _auth_response(response, create_session_token(user))


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"description": "Invalid email or password", "model": ErrorResponse}},
    summary="Sign in with email and password",
)
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    user = await auth_service.authenticate(db, body.email, body.password)
    logger.info("User signed in: %s", user.username)
    return _auth_response(response, create_session_token(user))


@router.post("/logout", response_model=MessageResponse, summary="Sign out")
async def logout(response: Response) -> MessageResponse:
    clear_session_cookie(response)
    return MessageResponse(message="Signed out")


@router.get("/session", response_model=SessionResponse, summary="Current session identity")
async def get_session(
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
) -> SessionResponse:
    if user is None:
        return SessionResponse()
    return SessionResponse(
        user=session_user(user),
        expires_at=getattr(request.state, "session_expires_at", None),
    )


@router.post(
    "/session/refresh",
    response_model=AuthResponse,
    responses={401: {"description": "Not signed in", "model": ErrorResponse}},
    summary="Reissue the session token from the stored user",
)
async def refresh_session(
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    return _auth_response(response, await auth_service.refresh_session(db, user.id))


@router.get("/providers", response_model=ProvidersResponse, summary="Enabled sign-in methods")
async def list_providers() -> ProvidersResponse:
    return ProvidersResponse(providers=["credentials", *oauth_service.enabled_providers()])


# ── OAuth ─────────────────────────────────────────────────────────────────


@router.get(
    "/oauth/{provider}/authorize",
    status_code=302,
    responses={404: {"description": "Unknown or disabled provider", "model": ErrorResponse}},
    summary="Redirect to the OAuth provider",
)
async def oauth_authorize(provider: str) -> RedirectResponse:
    oauth_provider = oauth_service.get_provider(provider)
    state = oauth_service.create_state(oauth_provider)
    redirect = RedirectResponse(oauth_service.authorize_url(oauth_provider, state), status_code=302)
    redirect.set_cookie(
        key=STATE_COOKIE_NAME,
        value=state,
        max_age=int(STATE_TTL.total_seconds()),
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/api/auth/oauth",
    )
    return redirect


@router.get(
    "/oauth/{provider}/callback",
    status_code=302,
    responses={
        401: {"description": "Bad state, rejected code, or email bound to another sign-in method",
              "model": ErrorResponse},
        404: {"description": "Unknown or disabled provider", "model": ErrorResponse},
    },
    summary="Complete an OAuth sign-in",
)
async def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> RedirectResponse:
    oauth_provider = oauth_service.get_provider(provider)
    if error:
        raise AuthenticationError(f"Sign-in with {provider} was cancelled", context={"error": error})
    oauth_service.verify_state(oauth_provider, state, request.cookies.get(STATE_COOKIE_NAME))
    if not code:
        raise AuthenticationError("Missing authorization code")

    profile = await oauth_service.exchange_code(oauth_provider, code)
    user = await oauth_service.resolve_user(db, profile)
    logger.info("User signed in with %s: %s", provider, user.username)

    redirect = RedirectResponse(settings.frontend_url, status_code=302)
    set_session_cookie(redirect, create_session_token(user))
    redirect.delete_cookie(STATE_COOKIE_NAME, path="/api/auth/oauth")
    return redirect
