"""
CodeSync Backend — Profile Service
===================================

What:  The signed-in user's own profile: read, partial update, password
       change and avatar upload/removal.
Why:   Every mutation here changes something the session token carries
       (name, username, image), so the routes reissue the session from the
       row this service returns.

Avatar Workflow (POST /api/profile/avatar):
    ┌──────────┐    ┌─────────────┐    ┌──────────┐    ┌──────────────┐
    │ Validate │───▶│  Upload new │───▶│  Store   │───▶│ Destroy old  │
    │ type/size│    │ (Cloudinary)│    │ url + id │    │ (best effort)│
    └──────────┘    └─────────────┘    └──────────┘    └──────────────┘
    A failed destroy is logged and ignored; a failed upload is a 503 and
    leaves the stored avatar untouched.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from codesync.config import settings
from codesync.exceptions import DatabaseError, ImageHostError, NotFoundError, ValidationError
from codesync.models import User
from codesync.schemas.profile import PasswordChange, ProfileResponse, ProfileUpdate
from codesync.schemas.user import UserCounts
from codesync.services.auth_service import hash_password, verify_password
from codesync.services.image_service import avatar_public_id, image_service
from codesync.services.queries import (
    user_followers_count,
    user_following_count,
    user_likes_count,
    user_snippets_count,
)

logger = logging.getLogger(__name__)

ALLOWED_AVATAR_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
MIN_PASSWORD_LENGTH = 6


class ProfileService:

    async def get(self, db: AsyncSession, user_id) -> ProfileResponse:
        try:
            row = (
                await db.execute(
                    select(
                        User,
                        user_snippets_count(public_only=False),
                        user_followers_count(),
                        user_following_count(),
                        user_likes_count(),
                    )
                    .where(User.id == user_id)
                    .execution_options(populate_existing=True)
                )
            ).one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error loading profile %s: %s", user_id, e, exc_info=True)
            raise DatabaseError(message="Could not retrieve your profile. Please try again.")
        if row is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))

        user, snippets, followers, following, likes = row
        return ProfileResponse(
            id=user.id,
            name=user.name,
            email=user.email,
            username=user.username,
            image=user.image,
            bio=user.bio,
            location=user.location,
            website=user.website,
            github_url=user.github_url,
            twitter_url=user.twitter_url,
            is_verified=user.is_verified,
            created_at=user.created_at,
            theme=user.theme,
            language=user.language,
            default_snippet_visibility=user.default_snippet_visibility,
            show_email=user.show_email,
            show_location=user.show_location,
            has_password=user.has_password,
            count=UserCounts(snippets=snippets, followers=followers, following=following, likes=likes),
        )

    async def update(self, db: AsyncSession, user: User, data: ProfileUpdate) -> ProfileResponse:
        """
        Write only the fields present in the request.

        A username held by someone else is rejected up front; the unique
        constraint catches the case where another request claims it between
        the check and the write. Either way the stored username is unchanged.
        """
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        new_username = changes.get("username")
        if new_username and new_username != user.username:
            taken = await db.scalar(
                select(User.id).where(User.username == new_username, User.id != user.id)
            )
            if taken is not None:
                raise ValidationError("Username is already taken", field="username")

        for field, value in changes.items():
            setattr(user, field, value)

        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ValidationError("Username is already taken", field="username")
        except SQLAlchemyError as e:
            logger.error("Database error updating profile %s: %s", user.id, e, exc_info=True)
            raise DatabaseError(message="Could not update your profile. Please try again.")

        logger.info("Profile updated: %s (%s)", user.username, ", ".join(sorted(changes)) or "no fields")
        return await self.get(db, user.id)

    async def change_password(self, db: AsyncSession, user: User, data: PasswordChange) -> None:
        if not data.current_password or not data.new_password:
            raise ValidationError("Current password and new password are required")
        if len(data.new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"New password must be at least {MIN_PASSWORD_LENGTH} characters long",
                field="newPassword",
            )
        if not user.has_password:
            raise ValidationError(
                "Cannot change password for OAuth accounts. Please set a password first."
            )
        if not await verify_password(data.current_password, user.password_hash):
            raise ValidationError("Current password is incorrect", field="currentPassword")

        user.password_hash = await hash_password(data.new_password)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error changing password for %s: %s", user.id, e, exc_info=True)
            raise DatabaseError(message="Could not change your password. Please try again.")
        logger.info("Password changed for %s", user.username)

    # ── Avatar ────────────────────────────────────────────────────────────

    def validate_avatar(self, content_type: Optional[str], size: int) -> None:
        if not content_type or not content_type.startswith("image/"):
            raise ValidationError("File must be an image", field="avatar")
        if content_type not in ALLOWED_AVATAR_TYPES:
            raise ValidationError(
                "Only JPEG, PNG, GIF, and WebP images are allowed",
                field="avatar",
                context={"content_type": content_type},
            )
        if size == 0:
            raise ValidationError("File is empty", field="avatar")
        if size > settings.avatar_max_size:
            limit_mb = settings.avatar_max_size / (1024 * 1024)
            raise ValidationError(
                f"File size must be less than {limit_mb:g}MB",
                field="avatar",
                context={"size": size},
            )

    async def upload_avatar(
        self,
        db: AsyncSession,
        user: User,
        content: bytes,
        content_type: Optional[str],
    ) -> ProfileResponse:
        self.validate_avatar(content_type, len(content))
        if not image_service.configured:
            raise ImageHostError("Image upload service is not configured")

        previous_public_id = user.image_public_id
        uploaded = await image_service.upload_avatar(content, avatar_public_id(user.id))
        user.image = uploaded.url
        user.image_public_id = uploaded.public_id
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving avatar for %s: %s", user.id, e, exc_info=True)
            raise DatabaseError(message="Could not save your avatar. Please try again.")

        if previous_public_id and previous_public_id != uploaded.public_id:
            await self._destroy_quietly(previous_public_id)
        return await self.get(db, user.id)

    async def remove_avatar(self, db: AsyncSession, user: User) -> ProfileResponse:
        if user.image_public_id:
            await self._destroy_quietly(user.image_public_id)
        user.image = None
        user.image_public_id = None
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error removing avatar for %s: %s", user.id, e, exc_info=True)
            raise DatabaseError(message="Could not remove your avatar. Please try again.")
        return await self.get(db, user.id)

    async def _destroy_quietly(self, public_id: str) -> None:
        try:
            await image_service.destroy(public_id)
        except ImageHostError as e:
            logger.warning("Could not destroy previous avatar %s: %s", public_id, e.message)


profile_service = ProfileService()
