"""
CodeSync Backend — Request Dependencies
========================================

What:  FastAPI dependencies that resolve the session identity, plus the
       helpers that write and clear the session cookie.
How:   The token is read from `Authorization: Bearer <token>` first and from
       the HTTP-only session cookie second. A valid token names a user id;
       the user is loaded with the request's own database session so that
       services can modify it directly.

Usage:
    @router.post("/snippets")
    async def create(user: User = Depends(get_current_user)): ...

    @router.get("/snippets/{id}")
    async def detail(viewer: Optional[User] = Depends(get_optional_user)): ...
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from codesync.config import settings
from codesync.database import get_db_session
from codesync.exceptions import AuthenticationError
from codesync.models import User
from codesync.services.auth_service import IssuedSession, auth_service, decode_session_token

bearer_scheme = HTTPBearer(auto_error=False)


def session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.session_cookie_name)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """The signed-in user, or None for anonymous requests and bad/expired tokens."""
    token = session_token(request, credentials)
    if not token:
        return None
    claims = decode_session_token(token)
    if claims is None:
        return None
    user = await auth_service.get_user(db, claims["sub"])
    if user is not None:
        request.state.user_id = str(user.id)
        request.state.session_expires_at = datetime.fromtimestamp(claims["exp"], timezone.utc)
    return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise AuthenticationError()
    return user


# ── Session Cookie ────────────────────────────────────────────────────────


def set_session_cookie(response: Response, session: IssuedSession) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session.token,
        max_age=settings.session_ttl_minutes * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )
