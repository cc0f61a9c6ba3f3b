"""
CodeSync Backend — Authentication Service
==========================================

What:  Password hashing, session tokens, registration and credential login.
Why:   Every other service trusts the identity that this module puts into the
       session token, so hashing and signing live in exactly one place.
How:   - passlib CryptContext (bcrypt, BCRYPT_ROUNDS work factor). Hashing is
         CPU-bound, so it runs in a worker thread.
       - python-jose HS256 JWT. Claims mirror the session identity the client
         renders: sub, username, name, email, picture, iat, exp.
       - A token is always issued from a User row. Reissuing after a profile
         change therefore refreshes the client's cached identity.

Session lifecycle:
    unauthenticated
        → register / login / OAuth callback   → token issued from the DB row
    authenticated
        → profile edit, avatar change, /api/auth/session/refresh
                                              → token reissued from the DB row
        → logout                              → cookie cleared
    unauthenticated
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from codesync.config import settings
from codesync.exceptions import AuthenticationError, DatabaseError, ValidationError
from codesync.models import User
from codesync.schemas.auth import RegisterRequest
from codesync.schemas.user import SessionUser

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


# ── Passwords ─────────────────────────────────────────────────────────────


async def hash_password(password: str) -> str:
    return await asyncio.to_thread(pwd_context.hash, password)


async def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return await asyncio.to_thread(pwd_context.verify, plain_password, hashed_password)
    except ValueError:
        # Unrecognized or corrupted hash
        logger.warning("Stored password hash could not be parsed")
        return False


# ── Session Tokens ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class IssuedSession:
    token: str
    expires_at: datetime
    user: SessionUser


def session_user(user: User) -> SessionUser:
    return SessionUser(
        id=user.id,
        name=user.name,
        email=user.email,
        username=user.username,
        image=user.image,
    )


def create_session_token(user: User, ttl: Optional[timedelta] = None) -> IssuedSession:
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + (ttl or timedelta(minutes=settings.session_ttl_minutes))
    claims: Dict[str, Any] = {
        "sub": str(user.id),
        "username": user.username,
        "name": user.name,
        "email": user.email,
        "picture": user.image,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)
    return IssuedSession(token=token, expires_at=expires_at, user=session_user(user))


def decode_session_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the claims of a valid token, or None (bad signature, expired, malformed)."""
    try:
        claims = jwt.decode(
            token, settings.secret_key, algorithms=[ALGORITHM], options={"require_exp": True}
        )
    except JWTError as e:
        logger.debug("Rejected session token: %s", e)
        return None
    if not claims.get("sub"):
        return None
    return claims


# ── Service ───────────────────────────────────────────────────────────────


class AuthService:
    """
    Registration, credential login and session refresh.

    Lookups by email are case-insensitive; emails are stored lower-cased.
    """

    async def get_user(self, db: AsyncSession, user_id: Any) -> Optional[User]:
        try:
            uid = user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))
        except ValueError:
            return None
        return await db.get(User, uid)

    async def register(self, db: AsyncSession, data: RegisterRequest) -> User:
        email = data.email.lower()
        try:
            taken = await db.execute(
                select(User.email, User.username).where(
                    (func.lower(User.email) == email) | (User.username == data.username)
                )
            )
            for row in taken.all():
                if row.email and row.email.lower() == email:
                    raise ValidationError("User with this email already exists", field="email")
                raise ValidationError("Username is already taken", field="username")

            user = User(
                name=data.name,
                email=email,
                username=data.username,
                password_hash=await hash_password(data.password),
            )
            db.add(user)
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent registration
            await db.rollback()
            raise ValidationError("User with this email or username already exists")
        except SQLAlchemyError as e:
            logger.error("Database error during registration: %s", e, exc_info=True)
            raise DatabaseError(context={"operation": "register"})

        logger.info("User registered: %s (%s)", user.username, user.id)
        return user

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> User:
        """
        Verify email + password.

        Raises:
            AuthenticationError: unknown email, no password set (OAuth-only)
                or wrong password. The message is the same in every case.
        """
        try:
            result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
            user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error during login: %s", e, exc_info=True)
            raise DatabaseError(context={"operation": "login"})

        if user is None or not await verify_password(password, user.password_hash):
            logger.info("Failed login attempt for %s", email)
            raise AuthenticationError("Invalid email or password")
        return user

    async def refresh_session(self, db: AsyncSession, user_id: Any) -> IssuedSession:
        user = await self.get_user(db, user_id)
        if user is None:
            raise AuthenticationError()
        return create_session_token(user)


auth_service = AuthService()
