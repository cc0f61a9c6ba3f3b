"""Authentication request/response schemas."""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator

from codesync.schemas.common import CamelModel
from codesync.schemas.user import SessionUser, check_username

_PASSWORD_STRENGTH = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


class RegisterRequest(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    username: str
    password: str = Field(min_length=6, max_length=128)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return check_username(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not _PASSWORD_STRENGTH.match(v):
            raise ValueError(
                "Password must contain at least one uppercase letter, "
                "one lowercase letter, and one number"
            )
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class AuthResponse(CamelModel):
    user: SessionUser
    token: str
    expires_at: datetime


class SessionResponse(CamelModel):
    user: Optional[SessionUser] = None
    expires_at: Optional[datetime] = None


class ProvidersResponse(CamelModel):
    providers: List[str]
