"""Create users, accounts, snippets, tags, comments, likes and follows

Revision ID: 001
Revises: None
Create Date: 2024-06-01 00:00:00.000000+00:00

What:  The full initial schema. Mirrors codesync/models.
How:   Every child row cascades from its parent, so deleting a user removes
       their snippets, comments, likes and follows in the database itself.

Rollback: downgrade() drops every table (all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def _user_fk(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.Uuid(),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("username", sa.String(20), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("image", sa.String(500), nullable=True),
        sa.Column("image_public_id", sa.String(255), nullable=True),
        sa.Column("bio", sa.String(160), nullable=True),
        sa.Column("location", sa.String(50), nullable=True),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("github_url", sa.String(255), nullable=True),
        sa.Column("twitter_url", sa.String(255), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("theme", sa.String(10), nullable=False, server_default="system"),
        sa.Column("language", sa.String(5), nullable=False, server_default="en"),
        sa.Column(
            "default_snippet_visibility", sa.String(10), nullable=False, server_default="public"
        ),
        sa.Column("show_email", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("show_location", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    # Unique index doubles as the lookup index for /api/users/{username}
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("user_id"),
        sa.Column("provider", sa.String(30), nullable=False),
        sa.Column("provider_account_id", sa.String(255), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint(
            "provider", "provider_account_id", name="uq_accounts_provider_account"
        ),
    )
    op.create_index("ix_accounts_user_id", "accounts", ["user_id"])

    op.create_table(
        "snippets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("language", sa.String(30), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("views", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _user_fk("author_id"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_snippets_language", "snippets", ["language"])
    op.create_index("ix_snippets_is_public", "snippets", ["is_public"])
    op.create_index("ix_snippets_author_id", "snippets", ["author_id"])
    # Listing and explore both sort newest first
    op.create_index("idx_snippets_created_at", "snippets", [sa.text("created_at DESC")])

    op.create_table(
        "snippet_tags",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "snippet_id",
            sa.Uuid(),
            sa.ForeignKey("snippets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("snippet_id", "name", name="uq_snippet_tags_snippet_name"),
    )
    op.create_index("ix_snippet_tags_snippet_id", "snippet_tags", ["snippet_id"])
    op.create_index("ix_snippet_tags_name", "snippet_tags", ["name"])

    op.create_table(
        "comments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "snippet_id",
            sa.Uuid(),
            sa.ForeignKey("snippets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("author_id"),
        sa.Column(
            "parent_id",
            sa.Uuid(),
            sa.ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=True,
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_comments_snippet_id", "comments", ["snippet_id"])
    op.create_index("ix_comments_author_id", "comments", ["author_id"])
    op.create_index("ix_comments_parent_id", "comments", ["parent_id"])

    op.create_table(
        "likes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("user_id"),
        sa.Column(
            "snippet_id",
            sa.Uuid(),
            sa.ForeignKey("snippets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("created_at"),
        sa.UniqueConstraint("user_id", "snippet_id", name="uq_likes_user_snippet"),
    )
    op.create_index("ix_likes_user_id", "likes", ["user_id"])
    op.create_index("ix_likes_snippet_id", "likes", ["snippet_id"])

    op.create_table(
        "follows",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("follower_id"),
        _user_fk("following_id"),
        _timestamp("created_at"),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
        sa.CheckConstraint("follower_id <> following_id", name="ck_follows_not_self"),
    )
    op.create_index("ix_follows_follower_id", "follows", ["follower_id"])
    op.create_index("ix_follows_following_id", "follows", ["following_id"])


def downgrade() -> None:
    """Drop every table, children first."""
    op.drop_table("follows")
    op.drop_table("likes")
    op.drop_table("comments")
    op.drop_table("snippet_tags")
    op.drop_index("idx_snippets_created_at", table_name="snippets")
    op.drop_table("snippets")
    op.drop_table("accounts")
    op.drop_table("users")
