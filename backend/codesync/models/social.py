"""
CodeSync Backend — Like and Follow Models
==========================================

What:  Join tables for the two social toggles.
Why:   A like is a (user, snippet) pair and a follow is a (follower,
       following) pair. Each pair exists at most once; the unique constraint
       is what makes the toggles safe under concurrent requests.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from codesync.database import Base
from codesync.models.common import created_at_column, uuid_pk


class Like(Base):
    __tablename__ = "likes"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    snippet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("snippets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        UniqueConstraint("user_id", "snippet_id", name="uq_likes_user_snippet"),
    )


class Follow(Base):
    __tablename__ = "follows"

    id: Mapped[uuid.UUID] = uuid_pk()
    follower_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    following_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
        CheckConstraint("follower_id <> following_id", name="ck_follows_not_self"),
    )
