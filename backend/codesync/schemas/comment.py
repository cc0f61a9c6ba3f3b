"""Comment request/response schemas."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from codesync.schemas.common import CamelModel, Pagination
from codesync.schemas.user import AuthorSummary


class CommentCreate(CamelModel):
    content: str
    parent_id: Optional[str] = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty")
        if len(v) > 1000:
            raise ValueError("Comment must be less than 1000 characters")
        return v


class CommentCounts(CamelModel):
    replies: int = 0


class CommentResponse(CamelModel):
    id: uuid.UUID
    content: str
    snippet_id: uuid.UUID
    author_id: uuid.UUID
    parent_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    author: AuthorSummary
    count: CommentCounts = Field(alias="_count")
    # Filled for top-level comments in the threaded listing only
    replies: Optional[List["CommentResponse"]] = None


class CommentListResponse(CamelModel):
    comments: List[CommentResponse]
    pagination: Pagination
