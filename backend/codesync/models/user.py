"""
CodeSync Backend — User and Account Models
============================================

What:  ORM models for the `users` and `accounts` tables.
Why:   A user owns snippets, comments and likes, and participates in follows
       on both sides. An account links a user to an OAuth provider identity.

Table Design Rationale:
    - username: UNIQUE NOT NULL. The pre-check in the profile service gives a
      friendly message; the constraint is the authority under concurrency.
    - email: UNIQUE but nullable (some OAuth providers hide it).
    - password_hash: nullable. OAuth-only accounts have no password, and the
      password-change endpoint rejects them explicitly.
    - image / image_public_id: the image host URL plus its asset id, so the
      previous avatar can be destroyed on replacement.
    - No follower/like counters: counts are always derived at query time.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codesync.database import Base
from codesync.models.common import created_at_column, updated_at_column, uuid_pk


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    username: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ── Avatar ────────────────────────────────────────────────────────────
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    image_public_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ── Public Profile ────────────────────────────────────────────────────
    bio: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    github_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    twitter_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # ── Preferences ───────────────────────────────────────────────────────
    theme: Mapped[str] = mapped_column(String(10), nullable=False, default="system")
    language: Mapped[str] = mapped_column(String(5), nullable=False, default="en")
    default_snippet_visibility: Mapped[str] = mapped_column(
        String(10), nullable=False, default="public"
    )
    show_email: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    show_location: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    # Children are removed by ON DELETE CASCADE; the ORM never loads them for that
    accounts: Mapped[List["Account"]] = relationship(
        back_populates="user", passive_deletes=True
    )
    snippets: Mapped[List["Snippet"]] = relationship(  # noqa: F821
        back_populates="author", passive_deletes=True
    )

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"


class Account(Base):
    """An OAuth identity (provider + provider-side user id) linked to a user."""

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider: Mapped[str] = mapped_column(String(30), nullable=False)
    provider_account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = created_at_column()

    user: Mapped[User] = relationship(back_populates="accounts")

    __table_args__ = (
        UniqueConstraint("provider", "provider_account_id", name="uq_accounts_provider_account"),
    )
