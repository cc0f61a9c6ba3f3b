"""
CodeSync Backend — Shared Query Pieces
=======================================

What:  COUNT subqueries, id parsing and ORM → schema converters used by the
       snippet, comment and user services.
Why:   Likes, comments, replies, followers and following are never stored;
       every response computes them at query time with these subqueries.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import aliased

from codesync.exceptions import NotFoundError
from codesync.models import Comment, Follow, Like, Snippet, User
from codesync.schemas.comment import CommentCounts, CommentResponse
from codesync.schemas.snippet import SnippetCounts, SnippetResponse
from codesync.schemas.user import AuthorSummary


def parse_id(value: Any, resource: str) -> uuid.UUID:
    """Path ids arrive as strings; a malformed one cannot match anything."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFoundError(resource=resource, resource_id=str(value))


# ── Snippet Counts ────────────────────────────────────────────────────────


def snippet_likes_count():
    return (
        select(func.count(Like.id))
        .where(Like.snippet_id == Snippet.id)
        .scalar_subquery()
        .label("likes_count")
    )


def snippet_comments_count():
    return (
        select(func.count(Comment.id))
        .where(Comment.snippet_id == Snippet.id)
        .scalar_subquery()
        .label("comments_count")
    )


# ── Comment Counts ────────────────────────────────────────────────────────


def comment_replies_count():
    reply = aliased(Comment)
    return (
        select(func.count(reply.id))
        .where(reply.parent_id == Comment.id)
        .scalar_subquery()
        .label("replies_count")
    )


# ── User Counts ───────────────────────────────────────────────────────────


def user_followers_count():
    return (
        select(func.count(Follow.id))
        .where(Follow.following_id == User.id)
        .scalar_subquery()
        .label("followers_count")
    )


def user_following_count():
    return (
        select(func.count(Follow.id))
        .where(Follow.follower_id == User.id)
        .scalar_subquery()
        .label("following_count")
    )


def user_likes_count():
    return (
        select(func.count(Like.id))
        .where(Like.user_id == User.id)
        .scalar_subquery()
        .label("likes_count")
    )


def user_snippets_count(public_only: bool = True):
    query = select(func.count(Snippet.id)).where(Snippet.author_id == User.id)
    if public_only:
        query = query.where(Snippet.is_public.is_(True))
    return query.scalar_subquery().label("snippets_count")


# ── Converters ────────────────────────────────────────────────────────────


def author_summary(user: User) -> AuthorSummary:
    return AuthorSummary.model_validate(user)


def snippet_response(snippet: Snippet, likes: int, comments: int) -> SnippetResponse:
    return SnippetResponse(
        id=snippet.id,
        title=snippet.title,
        description=snippet.description,
        content=snippet.content,
        language=snippet.language,
        tags=snippet.tags,
        is_public=snippet.is_public,
        views=snippet.views,
        author_id=snippet.author_id,
        created_at=snippet.created_at,
        updated_at=snippet.updated_at,
        author=author_summary(snippet.author),
        count=SnippetCounts(comments=comments or 0, likes=likes or 0),
    )


def comment_response(
    comment: Comment,
    replies_count: int,
    replies: Optional[list] = None,
) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        content=comment.content,
        snippet_id=comment.snippet_id,
        author_id=comment.author_id,
        parent_id=comment.parent_id,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        author=author_summary(comment.author),
        count=CommentCounts(replies=replies_count or 0),
        replies=replies,
    )
