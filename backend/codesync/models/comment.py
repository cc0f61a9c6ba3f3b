"""
CodeSync Backend — Comment Model
=================================

What:  ORM model for the `comments` table.
Why:   Comments are threaded one level deep: a top-level comment may carry
       replies, and a reply never has replies of its own. The service layer
       enforces the depth; the table only knows about the parent link.

Constraints:
    - snippet_id, author_id and parent_id all cascade on delete, so removing
      a snippet (or a parent comment) takes its whole thread with it.
    - A reply's parent belongs to the same snippet. Checked on insert by
      the comment service.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codesync.database import Base
from codesync.models.common import created_at_column, updated_at_column, uuid_pk


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[uuid.UUID] = uuid_pk()
    content: Mapped[str] = mapped_column(Text, nullable=False)
    snippet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("snippets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    author: Mapped["User"] = relationship()  # noqa: F821
    replies: Mapped[List["Comment"]] = relationship(
        order_by="Comment.created_at",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, snippet_id={self.snippet_id}, parent_id={self.parent_id})>"
