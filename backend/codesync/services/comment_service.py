"""
CodeSync Backend — Comment Service
===================================

What:  Creating comments and listing a snippet's comment threads.
Why:   Threads are one level deep. A comment either sits at the top level
       or replies to a top-level comment of the same snippet.

Rules on create:
    - The snippet must be visible to the commenter (404 otherwise).
    - parentId, when given, must name a comment on the same snippet
      (400 "Parent comment not found") that is itself top-level
      (400 "Replies cannot be nested").
"""

import logging
import uuid
from collections import defaultdict
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from codesync.exceptions import DatabaseError, ValidationError
from codesync.models import Comment, User
from codesync.schemas.comment import CommentCreate, CommentListResponse, CommentResponse
from codesync.schemas.common import Pagination
from codesync.services.cache_service import cache_service
from codesync.services.queries import comment_replies_count, comment_response
from codesync.services.snippet_service import snippet_service

logger = logging.getLogger(__name__)


class CommentService:

    async def create(
        self,
        db: AsyncSession,
        snippet_id: str,
        author: User,
        data: CommentCreate,
    ) -> CommentResponse:
        snippet, _, _ = await snippet_service.get_visible(db, snippet_id, author)

        parent_id: Optional[uuid.UUID] = None
        if data.parent_id:
            parent = await self._find_parent(db, data.parent_id)
            if parent is None or parent.snippet_id != snippet.id:
                raise ValidationError("Parent comment not found", field="parentId")
            if parent.parent_id is not None:
                raise ValidationError("Replies cannot be nested", field="parentId")
            parent_id = parent.id

        comment = Comment(
            content=data.content,
            snippet_id=snippet.id,
            author_id=author.id,
            parent_id=parent_id,
        )
        try:
            db.add(comment)
            await db.flush()
            await db.refresh(comment, attribute_names=["author"])
        except SQLAlchemyError as e:
            logger.error("Database error creating comment on %s: %s", snippet_id, e, exc_info=True)
            raise DatabaseError(message="Could not post the comment. Please try again.")

        logger.info(
            "Comment %s added to snippet %s%s",
            comment.id,
            snippet.id,
            f" (reply to {parent_id})" if parent_id else "",
        )
        await cache_service.invalidate_snippet(snippet.id, author.id)
        return comment_response(comment, 0)

    async def list_threads(
        self,
        db: AsyncSession,
        snippet_id: str,
        viewer: Optional[User],
        page: int = 1,
        limit: int = 20,
    ) -> CommentListResponse:
        """
        Top-level comments (newest first, paginated), each with its replies
        (oldest first) and a reply count.
        """
        snippet, _, _ = await snippet_service.get_visible(db, snippet_id, viewer)
        top_level = (Comment.snippet_id == snippet.id, Comment.parent_id.is_(None))
        try:
            total = await db.scalar(select(func.count(Comment.id)).where(*top_level))
            rows = (
                await db.execute(
                    select(Comment, comment_replies_count())
                    .where(*top_level)
                    .options(selectinload(Comment.author))
                    .order_by(Comment.created_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                )
            ).all()

            replies_by_parent = defaultdict(list)
            parent_ids = [comment.id for comment, _ in rows]
            if parent_ids:
                replies = await db.execute(
                    select(Comment)
                    .where(Comment.parent_id.in_(parent_ids))
                    .options(selectinload(Comment.author))
                    .order_by(Comment.created_at.asc())
                )
                for reply in replies.scalars().all():
                    replies_by_parent[reply.parent_id].append(comment_response(reply, 0))
        except SQLAlchemyError as e:
            logger.error("Database error listing comments of %s: %s", snippet_id, e, exc_info=True)
            raise DatabaseError(message="Could not retrieve comments. Please try again.")

        return CommentListResponse(
            comments=[
                comment_response(comment, count, replies_by_parent[comment.id])
                for comment, count in rows
            ],
            pagination=Pagination.build(page, limit, total or 0),
        )

    async def _find_parent(self, db: AsyncSession, parent_id: str) -> Optional[Comment]:
        try:
            pid = uuid.UUID(parent_id)
        except ValueError:
            return None
        return await db.get(Comment, pid)


comment_service = CommentService()
