"""
CodeSync Backend — User Service
================================

What:  User search, public profiles and the follow toggle.
Why:   The public profile applies the owner's privacy switches (showEmail,
       showLocation) and hides private snippets from everyone else.

Follow Toggle:
    Same atomic pattern as likes: DELETE the (follower, following) row; if
    nothing was removed, INSERT ... ON CONFLICT DO NOTHING. Following
    yourself is rejected before any write.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from codesync.database import dialect_insert
from codesync.exceptions import DatabaseError, NotFoundError, ValidationError
from codesync.models import Follow, Snippet, User
from codesync.schemas.common import Pagination
from codesync.schemas.profile import PublicProfile
from codesync.schemas.user import (
    FollowStatusResponse,
    FollowToggleResponse,
    UserCounts,
    UserListItem,
    UserListResponse,
)
from codesync.services.queries import (
    snippet_response,
    user_followers_count,
    user_following_count,
    user_likes_count,
    user_snippets_count,
)
from codesync.services.snippet_service import snippets_with_counts

logger = logging.getLogger(__name__)

PROFILE_SNIPPETS_LIMIT = 20


class UserService:

    async def search(
        self,
        db: AsyncSession,
        query: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> UserListResponse:
        """Users whose name or username contains `query` (case-insensitive), newest first."""
        filters = []
        if query:
            filters.append(or_(
                User.name.icontains(query, autoescape=True),
                User.username.icontains(query, autoescape=True),
            ))
        try:
            total = await db.scalar(select(func.count(User.id)).where(*filters))
            result = await db.execute(
                select(
                    User,
                    user_snippets_count(public_only=True),
                    user_followers_count(),
                    user_following_count(),
                )
                .where(*filters)
                .order_by(User.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
        except SQLAlchemyError as e:
            logger.error("Database error searching users: %s", e, exc_info=True)
            raise DatabaseError(message="Could not search users. Please try again.")

        users = [
            UserListItem(
                id=user.id,
                name=user.name,
                username=user.username,
                image=user.image,
                bio=user.bio,
                location=user.location if user.show_location else None,
                is_verified=user.is_verified,
                count=UserCounts(snippets=snippets, followers=followers, following=following),
            )
            for user, snippets, followers, following in result.all()
        ]
        return UserListResponse(users=users, pagination=Pagination.build(page, limit, total or 0))

    async def get_profile(
        self,
        db: AsyncSession,
        username: str,
        viewer: Optional[User],
        include_snippets: bool = False,
    ) -> PublicProfile:
        own = viewer is not None and viewer.username == username
        try:
            row = (
                await db.execute(
                    select(
                        User,
                        user_snippets_count(public_only=not own),
                        user_followers_count(),
                        user_following_count(),
                        user_likes_count(),
                    ).where(User.username == username)
                )
            ).one_or_none()
            if row is None:
                raise NotFoundError(resource="user", resource_id=username)
            user, snippets, followers, following, likes = row

            is_following = False
            if viewer is not None and not own:
                is_following = await self._is_following(db, viewer.id, user.id)

            recent = None
            if include_snippets:
                query = snippets_with_counts().where(Snippet.author_id == user.id)
                if not own:
                    query = query.where(Snippet.is_public.is_(True))
                result = await db.execute(
                    query.order_by(Snippet.created_at.desc()).limit(PROFILE_SNIPPETS_LIMIT)
                )
                recent = [snippet_response(s, lk, cm) for s, lk, cm in result.all()]
        except SQLAlchemyError as e:
            logger.error("Database error loading profile %s: %s", username, e, exc_info=True)
            raise DatabaseError(message="Could not retrieve the profile. Please try again.")

        return PublicProfile(
            id=user.id,
            name=user.name,
            username=user.username,
            email=user.email if (own or user.show_email) else None,
            image=user.image,
            bio=user.bio,
            location=user.location if (own or user.show_location) else None,
            website=user.website,
            github_url=user.github_url,
            twitter_url=user.twitter_url,
            is_verified=user.is_verified,
            created_at=user.created_at,
            count=UserCounts(snippets=snippets, followers=followers, following=following, likes=likes),
            is_following=is_following,
            is_own_profile=own,
            snippets=recent,
        )

    # ── Follows ───────────────────────────────────────────────────────────

    async def toggle_follow(self, db: AsyncSession, username: str, follower: User) -> FollowToggleResponse:
        target = await self._get_by_username(db, username)
        if target.id == follower.id:
            raise ValidationError("Cannot follow yourself")

        try:
            removed = await db.execute(
                delete(Follow).where(
                    Follow.follower_id == follower.id,
                    Follow.following_id == target.id,
                )
            )
            if removed.rowcount:
                is_following = False
            else:
                await db.execute(
                    dialect_insert(db, Follow)
                    .values(id=uuid.uuid4(), follower_id=follower.id, following_id=target.id)
                    .on_conflict_do_nothing(index_elements=["follower_id", "following_id"])
                )
                is_following = True
            followers = await self._followers_count(db, target.id)
        except SQLAlchemyError as e:
            logger.error("Database error toggling follow of %s: %s", username, e, exc_info=True)
            raise DatabaseError(message="Could not update the follow. Please try again.")

        logger.info(
            "%s %s %s", follower.username, "followed" if is_following else "unfollowed", target.username
        )
        return FollowToggleResponse(
            is_following=is_following,
            followers_count=followers,
            message=f"{'Followed' if is_following else 'Unfollowed'} {target.username}",
        )

    async def follow_status(
        self,
        db: AsyncSession,
        username: str,
        viewer: Optional[User],
    ) -> FollowStatusResponse:
        target = await self._get_by_username(db, username)
        is_following = False
        if viewer is not None and viewer.id != target.id:
            is_following = await self._is_following(db, viewer.id, target.id)
        following = await db.scalar(
            select(func.count(Follow.id)).where(Follow.follower_id == target.id)
        )
        return FollowStatusResponse(
            is_following=is_following,
            followers_count=await self._followers_count(db, target.id),
            following_count=following or 0,
        )

    # ── Internals ─────────────────────────────────────────────────────────

    async def _get_by_username(self, db: AsyncSession, username: str) -> User:
        user = await db.scalar(select(User).where(User.username == username))
        if user is None:
            raise NotFoundError(resource="user", resource_id=username)
        return user

    async def _is_following(self, db: AsyncSession, follower_id: uuid.UUID, following_id: uuid.UUID) -> bool:
        found = await db.scalar(
            select(Follow.id).where(
                Follow.follower_id == follower_id,
                Follow.following_id == following_id,
            )
        )
        return found is not None

    async def _followers_count(self, db: AsyncSession, user_id: uuid.UUID) -> int:
        return await db.scalar(
            select(func.count(Follow.id)).where(Follow.following_id == user_id)
        ) or 0


user_service = UserService()
