"""
CodeSync Backend — Snippet Model
=================================

What:  ORM models for the `snippets` and `snippet_tags` tables.
Why:   A snippet is the unit users share. Tags live in their own table so the
       same schema works on PostgreSQL and SQLite, and so tag filters and
       trending-tag statistics are plain SQL.

Table Design Rationale:
    - views: the only counter stored on the row. It is bumped with an atomic
      UPDATE, never read-modify-write.
    - author_id: ON DELETE CASCADE, so deleting a user removes their snippets.
    - snippet_tags.position keeps the order the author typed the tags in.
    - UNIQUE(snippet_id, name): a snippet never carries the same tag twice.
"""

import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codesync.database import Base
from codesync.models.common import created_at_column, updated_at_column, uuid_pk


class Snippet(Base):
    __tablename__ = "snippets"

    id: Mapped[uuid.UUID] = uuid_pk()
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    language: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    author: Mapped["User"] = relationship(back_populates="snippets")  # noqa: F821
    tag_links: Mapped[List["SnippetTag"]] = relationship(
        back_populates="snippet",
        cascade="all, delete-orphan",
        order_by="SnippetTag.position",
        passive_deletes=True,
    )

    @property
    def tags(self) -> List[str]:
        return [link.name for link in self.tag_links]

    def set_tags(self, names: Iterable[str]) -> None:
        """
        Replace the tag list, keeping rows for tags that survive.

        Reusing the existing SnippetTag objects matters: deleting and
        re-inserting the same (snippet_id, name) pair in one flush would hit
        the unique constraint, because the unit of work issues INSERTs
        before DELETEs.
        """
        existing = {link.name: link for link in self.tag_links}
        links = []
        for position, name in enumerate(names):
            link = existing.pop(name, None)
            if link is None:
                link = SnippetTag(name=name)
            link.position = position
            links.append(link)
        self.tag_links = links

    def __repr__(self) -> str:
        return f"<Snippet(id={self.id}, title='{self.title}', public={self.is_public})>"


class SnippetTag(Base):
    __tablename__ = "snippet_tags"

    id: Mapped[uuid.UUID] = uuid_pk()
    snippet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("snippets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    snippet: Mapped[Snippet] = relationship(back_populates="tag_links")

    __table_args__ = (
        UniqueConstraint("snippet_id", "name", name="uq_snippet_tags_snippet_name"),
    )
