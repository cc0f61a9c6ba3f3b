"""
CodeSync Backend — User Schemas
================================

What:  Shapes for user search results, author summaries, the session identity
       and the follow toggle, plus the username/URL rules shared with the
       profile and registration schemas.
"""

import re
import uuid
from typing import List, Optional

from pydantic import AnyHttpUrl, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from codesync.schemas.common import CamelModel, Pagination

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"
_URL = TypeAdapter(AnyHttpUrl)


def check_username(value: str) -> str:
    if len(value) < 3:
        raise ValueError("Username must be at least 3 characters")
    if len(value) > 20:
        raise ValueError("Username must be less than 20 characters")
    if not re.match(USERNAME_PATTERN, value):
        raise ValueError("Username can only contain letters, numbers, and underscores")
    return value


def check_url_or_blank(value: Optional[str]) -> Optional[str]:
    # "" clears the field; anything else must parse as an http(s) URL
    if value is None or value == "":
        return value
    try:
        _URL.validate_python(value)
    except PydanticValidationError:
        raise ValueError("Please enter a valid URL")
    return value


# ── Building Blocks ───────────────────────────────────────────────────────


class AuthorSummary(CamelModel):
    id: uuid.UUID
    name: Optional[str] = None
    username: str
    image: Optional[str] = None


class SessionUser(CamelModel):
    """The identity carried by a session token."""
    id: uuid.UUID
    name: Optional[str] = None
    email: Optional[str] = None
    username: str
    image: Optional[str] = None


class UserCounts(CamelModel):
    snippets: int = 0
    followers: int = 0
    following: int = 0
    likes: Optional[int] = None


# ── Listing ───────────────────────────────────────────────────────────────


class UserListItem(CamelModel):
    id: uuid.UUID
    name: Optional[str] = None
    username: str
    image: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    is_verified: bool = False
    count: UserCounts = Field(alias="_count")


class UserListResponse(CamelModel):
    users: List[UserListItem]
    pagination: Pagination


# ── Follows ───────────────────────────────────────────────────────────────


class FollowToggleResponse(CamelModel):
    is_following: bool
    followers_count: int
    message: str


class FollowStatusResponse(CamelModel):
    is_following: bool
    followers_count: int
    following_count: int
