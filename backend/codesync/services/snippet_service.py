"""
CodeSync Backend — Snippet Service (Business Logic)
====================================================

What:  Listing, the explore feed, detail view, create/update/delete and the
       like toggle for code snippets.
Why:   Keeps every visibility and ownership rule in one place, independent of
       HTTP concerns. Routes only translate requests into these calls.
How:   Stateless singleton; each call receives the request's AsyncSession.
       Counts come from COUNT subqueries (services/queries.py). Writes flush
       and then re-read the row so the response reflects database state.

Visibility Rules:
    - A public snippet is visible to everyone.
    - A private snippet is visible to its author only. Everyone else gets
      404 "Snippet not found" (the same answer as a missing id), for reads,
      likes and comments alike.
    - Only the author may update or delete (403 otherwise).

Like Toggle (atomic):
    DELETE FROM likes WHERE user_id = :u AND snippet_id = :s
    → 1 row removed: unliked
    → 0 rows:        INSERT ... ON CONFLICT DO NOTHING, liked
    Two concurrent toggles can never produce a duplicate row or a
    unique-constraint error; the unique index absorbs the race.
"""

import logging
import uuid
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from codesync.database import dialect_insert
from codesync.exceptions import DatabaseError, NotFoundError, PermissionDeniedError
from codesync.models import Comment, Like, Snippet, SnippetTag, User
from codesync.models.common import utcnow
from codesync.schemas.snippet import (
    ExploreResponse,
    LanguageStat,
    LikeStatusResponse,
    LikeToggleResponse,
    SnippetCreate,
    SnippetDetailResponse,
    SnippetListResponse,
    SnippetResponse,
    SnippetUpdate,
)
from codesync.schemas.common import Pagination
from codesync.services.cache_service import CacheKeys, cache_service
from codesync.services.queries import (
    comment_replies_count,
    comment_response,
    parse_id,
    snippet_comments_count,
    snippet_likes_count,
    snippet_response,
)

logger = logging.getLogger(__name__)


def snippets_with_counts():
    """SELECT snippet, likes_count, comments_count with author and tags preloaded."""
    return select(Snippet, snippet_likes_count(), snippet_comments_count()).options(
        selectinload(Snippet.author),
        selectinload(Snippet.tag_links),
    )


def is_visible(snippet: Snippet, viewer: Optional[User]) -> bool:
    return snippet.is_public or (viewer is not None and snippet.author_id == viewer.id)


def split_tags(tags: Optional[str]) -> List[str]:
    if not tags:
        return []
    return [t.strip() for t in tags.split(",") if t.strip()]


class SnippetService:

    # ── Reads ─────────────────────────────────────────────────────────────

    async def list_public(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 20,
        language: Optional[str] = None,
        author_id: Optional[str] = None,
        search: Optional[str] = None,
        tags: Optional[str] = None,
    ) -> SnippetListResponse:
        """
        Paginated public snippets, newest first.

        Filters combine with AND:
            language   exact match
            author_id  snippets by one author (a malformed id matches nothing)
            search     case-insensitive substring of title OR description
            tags       comma list; a snippet matches when it has ANY of them
        """
        filters = [Snippet.is_public.is_(True)]
        if language:
            filters.append(Snippet.language == language)
        if author_id:
            try:
                filters.append(Snippet.author_id == uuid.UUID(author_id))
            except ValueError:
                return SnippetListResponse(snippets=[], pagination=Pagination.build(page, limit, 0))
        if search:
            filters.append(or_(
                Snippet.title.icontains(search, autoescape=True),
                Snippet.description.icontains(search, autoescape=True),
            ))
        tag_list = split_tags(tags)
        if tag_list:
            filters.append(Snippet.tag_links.any(SnippetTag.name.in_(tag_list)))

        try:
            total = await db.scalar(select(func.count(Snippet.id)).where(*filters))
            result = await db.execute(
                snippets_with_counts()
                .where(*filters)
                .order_by(Snippet.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            snippets = [snippet_response(s, likes, comments) for s, likes, comments in result.all()]
        except SQLAlchemyError as e:
            logger.error("Database error listing snippets: %s", e, exc_info=True)
            raise DatabaseError(message="Could not retrieve snippets. Please try again.")

        return SnippetListResponse(
            snippets=snippets,
            pagination=Pagination.build(page, limit, total or 0),
        )

    async def explore(self, db: AsyncSession, limit: int = 50) -> ExploreResponse:
        """Public feed plus the top 5 languages and the 10 most used tags."""
        public = Snippet.is_public.is_(True)
        try:
            result = await db.execute(
                snippets_with_counts().where(public).order_by(Snippet.created_at.desc()).limit(limit)
            )
            snippets = [snippet_response(s, likes, comments) for s, likes, comments in result.all()]

            language_count = func.count(Snippet.id)
            languages = await db.execute(
                select(Snippet.language, language_count)
                .where(public)
                .group_by(Snippet.language)
                .order_by(language_count.desc(), Snippet.language)
                .limit(5)
            )

            tag_count = func.count(SnippetTag.id)
            tags = await db.execute(
                select(SnippetTag.name, tag_count)
                .join(Snippet, Snippet.id == SnippetTag.snippet_id)
                .where(public)
                .group_by(SnippetTag.name)
                .order_by(tag_count.desc(), SnippetTag.name)
                .limit(10)
            )

            total = await db.scalar(select(func.count(Snippet.id)).where(public))
        except SQLAlchemyError as e:
            logger.error("Database error building explore feed: %s", e, exc_info=True)
            raise DatabaseError(message="Could not load the explore feed. Please try again.")

        return ExploreResponse(
            snippets=snippets,
            top_languages=[
                LanguageStat(name=name[:1].upper() + name[1:], count=count)
                for name, count in languages.all()
            ],
            trending_tags=[name for name, _ in tags.all()],
            total_count=total or 0,
        )

    async def list_mine(self, db: AsyncSession, user: User) -> List[SnippetResponse]:
        """Every snippet the user owns, public or private, most recently edited first."""
        try:
            result = await db.execute(
                snippets_with_counts()
                .where(Snippet.author_id == user.id)
                .order_by(Snippet.updated_at.desc())
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing snippets of %s: %s", user.id, e, exc_info=True)
            raise DatabaseError(message="Could not retrieve your snippets. Please try again.")
        return [snippet_response(s, likes, comments) for s, likes, comments in result.all()]

    async def get_visible(
        self,
        db: AsyncSession,
        snippet_id: str,
        viewer: Optional[User],
    ) -> Tuple[Snippet, int, int]:
        """
        Load a snippet with its counts, enforcing visibility.

        Raises:
            NotFoundError: missing, malformed id, or private and not the viewer's
        """
        sid = parse_id(snippet_id, "snippet")
        row = (await db.execute(snippets_with_counts().where(Snippet.id == sid))).one_or_none()
        if row is None or not is_visible(row[0], viewer):
            raise NotFoundError(resource="snippet", resource_id=str(snippet_id))
        return row[0], row[1], row[2]

    async def get_detail(
        self,
        db: AsyncSession,
        snippet_id: str,
        viewer: Optional[User],
    ) -> SnippetDetailResponse:
        """
        The snippet, all of its comments (newest first) and whether the viewer
        liked it. A view by anyone other than the author bumps `views`.
        """
        try:
            snippet, likes, comments = await self.get_visible(db, snippet_id, viewer)

            if viewer is None or viewer.id != snippet.author_id:
                await db.execute(
                    update(Snippet)
                    .where(Snippet.id == snippet.id)
                    .values(views=Snippet.views + 1)
                    .execution_options(synchronize_session=False)
                )
                await db.refresh(snippet, attribute_names=["views"])

            comment_rows = await db.execute(
                select(Comment, comment_replies_count())
                .where(Comment.snippet_id == snippet.id)
                .options(selectinload(Comment.author))
                .order_by(Comment.created_at.desc())
            )

            is_liked = False
            if viewer is not None:
                is_liked = await self._has_liked(db, viewer.id, snippet.id)
        except SQLAlchemyError as e:
            logger.error("Database error loading snippet %s: %s", snippet_id, e, exc_info=True)
            raise DatabaseError(message="Could not retrieve the snippet. Please try again.")

        return SnippetDetailResponse(
            snippet=snippet_response(snippet, likes, comments),
            comments=[comment_response(c, replies) for c, replies in comment_rows.all()],
            is_liked=is_liked,
        )

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(self, db: AsyncSession, author: User, data: SnippetCreate) -> SnippetResponse:
        is_public = data.is_public
        if is_public is None:
            is_public = author.default_snippet_visibility != "private"

        snippet = Snippet(
            title=data.title,
            description=data.description,
            content=data.content,
            language=data.language,
            is_public=is_public,
            author_id=author.id,
        )
        snippet.set_tags(data.tags)
        try:
            db.add(snippet)
            await db.flush()
            response = await self._reload(db, snippet.id)
        except SQLAlchemyError as e:
            logger.error("Database error creating snippet: %s", e, exc_info=True)
            raise DatabaseError(message="Could not save the snippet. Please try again.")

        logger.info("Snippet created: %s by %s (public=%s)", snippet.id, author.username, is_public)
        await cache_service.invalidate_snippet(snippet.id, author.id, include_explore=True)
        return response

    async def update(
        self,
        db: AsyncSession,
        snippet_id: str,
        user: User,
        data: SnippetUpdate,
    ) -> SnippetResponse:
        snippet = await self._get_owned(db, snippet_id, user)
        snippet.title = data.title
        snippet.description = data.description
        snippet.content = data.content
        snippet.language = data.language
        if data.is_public is not None:
            snippet.is_public = data.is_public
        snippet.set_tags(data.tags)
        # Tag-only edits never touch the snippets row, so onupdate would not fire
        snippet.updated_at = utcnow()
        try:
            await db.flush()
            response = await self._reload(db, snippet.id)
        except SQLAlchemyError as e:
            logger.error("Database error updating snippet %s: %s", snippet_id, e, exc_info=True)
            raise DatabaseError(message="Could not update the snippet. Please try again.")

        logger.info("Snippet updated: %s", snippet.id)
        await cache_service.invalidate_snippet(snippet.id, user.id, include_explore=True)
        return response

    async def delete(self, db: AsyncSession, snippet_id: str, user: User) -> None:
        snippet = await self._get_owned(db, snippet_id, user)
        try:
            # Comments, likes and tags go with it (ON DELETE CASCADE)
            await db.delete(snippet)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting snippet %s: %s", snippet_id, e, exc_info=True)
            raise DatabaseError(message="Could not delete the snippet. Please try again.")

        logger.info("Snippet deleted: %s by %s", snippet.id, user.username)
        await cache_service.invalidate_snippet(snippet.id, user.id, include_explore=True)

    # ── Likes ─────────────────────────────────────────────────────────────

    async def toggle_like(self, db: AsyncSession, snippet_id: str, user: User) -> LikeToggleResponse:
        snippet, _, _ = await self.get_visible(db, snippet_id, user)
        try:
            removed = await db.execute(
                delete(Like).where(Like.user_id == user.id, Like.snippet_id == snippet.id)
            )
            if removed.rowcount:
                is_liked = False
            else:
                await db.execute(
                    dialect_insert(db, Like)
                    .values(id=uuid.uuid4(), user_id=user.id, snippet_id=snippet.id)
                    .on_conflict_do_nothing(index_elements=["user_id", "snippet_id"])
                )
                is_liked = True
            likes_count = await self._likes_count(db, snippet.id)
        except SQLAlchemyError as e:
            logger.error("Database error toggling like on %s: %s", snippet_id, e, exc_info=True)
            raise DatabaseError(message="Could not update the like. Please try again.")

        await cache_service.invalidate_snippet(snippet.id, user.id)
        return LikeToggleResponse(
            is_liked=is_liked,
            likes_count=likes_count,
            message="Snippet liked" if is_liked else "Snippet unliked",
        )

    async def like_status(
        self,
        db: AsyncSession,
        snippet_id: str,
        viewer: Optional[User],
    ) -> LikeStatusResponse:
        snippet, likes, _ = await self.get_visible(db, snippet_id, viewer)
        is_liked = viewer is not None and await self._has_liked(db, viewer.id, snippet.id)
        return LikeStatusResponse(is_liked=is_liked, likes_count=likes or 0)

    # ── Internals ─────────────────────────────────────────────────────────

    async def _get_owned(self, db: AsyncSession, snippet_id: str, user: User) -> Snippet:
        sid = parse_id(snippet_id, "snippet")
        snippet = (
            await db.execute(
                select(Snippet).where(Snippet.id == sid).options(selectinload(Snippet.tag_links))
            )
        ).scalar_one_or_none()
        if snippet is None:
            raise NotFoundError(resource="snippet", resource_id=str(snippet_id))
        if snippet.author_id != user.id:
            # A private snippet stays hidden even from a would-be editor
            if not snippet.is_public:
                raise NotFoundError(resource="snippet", resource_id=str(snippet_id))
            raise PermissionDeniedError("You can only modify your own snippets")
        return snippet

    async def _reload(self, db: AsyncSession, snippet_id: uuid.UUID) -> SnippetResponse:
        row = (
            await db.execute(
                snippets_with_counts()
                .where(Snippet.id == snippet_id)
                .execution_options(populate_existing=True)
            )
        ).one()
        return snippet_response(*row)

    async def _has_liked(self, db: AsyncSession, user_id: uuid.UUID, snippet_id: uuid.UUID) -> bool:
        found = await db.scalar(
            select(Like.id).where(Like.user_id == user_id, Like.snippet_id == snippet_id)
        )
        return found is not None

    async def _likes_count(self, db: AsyncSession, snippet_id: uuid.UUID) -> int:
        return await db.scalar(
            select(func.count(Like.id)).where(Like.snippet_id == snippet_id)
        ) or 0


snippet_service = SnippetService()
