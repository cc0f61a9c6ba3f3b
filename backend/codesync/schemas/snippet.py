"""
CodeSync Backend — Snippet Schemas
===================================

What:  Request bodies for creating/updating snippets and the response shapes
       for lists, the explore feed, the detail view and the like toggle.

Validation Rules:
    - title: 1-100 chars. description: up to 500 chars.
    - content: 1-50000 chars. language: 1-30 chars.
    - tags: up to 10. Each tag is trimmed; empty and repeated tags are dropped.
    - isPublic: optional. When omitted the author's default visibility applies.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from codesync.schemas.comment import CommentResponse
from codesync.schemas.common import CamelModel, Pagination
from codesync.schemas.user import AuthorSummary


class SnippetCreate(CamelModel):
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    content: str = Field(min_length=1, max_length=50_000)
    language: str = Field(min_length=1, max_length=30)
    is_public: Optional[bool] = None
    tags: List[str] = Field(default_factory=list, max_length=10)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: List[str]) -> List[str]:
        seen = []
        for tag in v:
            tag = tag.strip()
            if not tag:
                continue
            if len(tag) > 50:
                raise ValueError("Tags must be at most 50 characters")
            if tag not in seen:
                seen.append(tag)
        return seen


class SnippetUpdate(SnippetCreate):
    """An update replaces the editable fields wholesale, under the create rules."""


class SnippetCounts(CamelModel):
    comments: int = 0
    likes: int = 0


class SnippetResponse(CamelModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    content: str
    language: str
    tags: List[str]
    is_public: bool
    views: int
    author_id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    author: AuthorSummary
    count: SnippetCounts = Field(alias="_count")


class SnippetListResponse(CamelModel):
    snippets: List[SnippetResponse]
    pagination: Pagination


class LanguageStat(CamelModel):
    name: str
    count: int


class ExploreResponse(CamelModel):
    snippets: List[SnippetResponse]
    top_languages: List[LanguageStat]
    trending_tags: List[str]
    total_count: int


class SnippetDetailResponse(CamelModel):
    snippet: SnippetResponse
    comments: List[CommentResponse]
    is_liked: bool


class LikeToggleResponse(CamelModel):
    is_liked: bool
    likes_count: int
    message: str


class LikeStatusResponse(CamelModel):
    is_liked: bool
    likes_count: int
