"""
CodeSync Backend — Profile Schemas
===================================

What:  The public profile (what other people see), the owner's own profile
       (with preferences), the partial-update body, password change and the
       avatar response.
Why:   The public profile hides email/location according to the owner's
       privacy switches. Keeping it separate from ProfileResponse makes the
       difference explicit.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from codesync.schemas.common import CamelModel
from codesync.schemas.snippet import SnippetResponse
from codesync.schemas.user import UserCounts, check_url_or_blank, check_username


class PublicProfile(CamelModel):
    id: uuid.UUID
    name: Optional[str] = None
    username: str
    email: Optional[str] = None
    image: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github_url: Optional[str] = None
    twitter_url: Optional[str] = None
    is_verified: bool = False
    created_at: datetime
    count: UserCounts = Field(alias="_count")
    is_following: bool = False
    is_own_profile: bool = False
    # Only present with ?includeSnippets=true
    snippets: Optional[List[SnippetResponse]] = None


class ProfileResponse(CamelModel):
    id: uuid.UUID
    name: Optional[str] = None
    email: Optional[str] = None
    username: str
    image: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github_url: Optional[str] = None
    twitter_url: Optional[str] = None
    is_verified: bool = False
    created_at: datetime
    theme: str
    language: str
    default_snippet_visibility: str
    show_email: bool
    show_location: bool
    has_password: bool
    count: UserCounts = Field(alias="_count")


class ProfileUpdate(CamelModel):
    """Partial update: only the fields present in the request are written."""
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    username: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=160)
    location: Optional[str] = Field(default=None, max_length=50)
    website: Optional[str] = None
    github_url: Optional[str] = None
    twitter_url: Optional[str] = None
    image: Optional[str] = None
    theme: Optional[Literal["light", "dark", "system"]] = None
    language: Optional[str] = Field(default=None, min_length=2, max_length=5)
    default_snippet_visibility: Optional[Literal["public", "private"]] = None
    show_email: Optional[bool] = None
    show_location: Optional[bool] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: Optional[str]) -> Optional[str]:
        return check_username(v) if v is not None else v

    @field_validator("website", "github_url", "twitter_url", "image")
    @classmethod
    def validate_urls(cls, v: Optional[str]) -> Optional[str]:
        return check_url_or_blank(v)


class PasswordChange(CamelModel):
    # Optional here so a missing field is reported with the service's message
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class AvatarResponse(CamelModel):
    message: str
    user: ProfileResponse
    image_url: Optional[str] = None
