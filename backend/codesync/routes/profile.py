"""
CodeSync Backend — Profile Routes
==================================

What:  The signed-in user's own profile, password and avatar.
How:   Every mutation that touches the session identity (profile fields,
       avatar) reissues the session cookie from the updated row in the same
       response, so the client never shows a stale name/username/image.

Route Inventory:
    GET    /api/profile            full profile with preferences
    PUT    /api/profile            partial update (reissues session)
    PUT    /api/profile/password   change password
    POST   /api/profile/avatar     upload avatar (multipart `avatar`, reissues session)
    DELETE /api/profile/avatar     remove avatar (reissues session)
"""

import logging

from fastapi import APIRouter, Depends, File, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from codesync.database import get_db_session
from codesync.dependencies import get_current_user, set_session_cookie
from codesync.models import User
from codesync.schemas.common import ErrorResponse, MessageResponse
from codesync.schemas.profile import AvatarResponse, PasswordChange, ProfileResponse, ProfileUpdate
from codesync.services.auth_service import create_session_token
from codesync.services.profile_service import profile_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile", tags=["Profile"])

AUTH_REQUIRED = {401: {"description": "Not signed in", "model": ErrorResponse}}


@router.get("", response_model=ProfileResponse, responses=AUTH_REQUIRED, summary="My profile")
async def get_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProfileResponse:
    return await profile_service.get(db, user.id)


@router.put(
    "",
    response_model=ProfileResponse,
    responses={400: {"description": "Invalid input or username taken", "model": ErrorResponse}, **AUTH_REQUIRED},
    summary="Update my profile",
)
async def update_profile(
    body: ProfileUpdate,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ProfileResponse:
    profile = await profile_service.update(db, user, body)
    set_session_cookie(response, create_session_token(user))
    return profile


@router.put(
    "/password",
    response_model=MessageResponse,
    responses={400: {"description": "Missing fields, weak or wrong password, OAuth-only account",
                     "model": ErrorResponse}, **AUTH_REQUIRED},
    summary="Change my password",
)
async def change_password(
    body: PasswordChange,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await profile_service.change_password(db, user, body)
    return MessageResponse(message="Password updated successfully")


@router.post(
    "/avatar",
    response_model=AvatarResponse,
    responses={
        400: {"description": "Not an allowed image or too large", "model": ErrorResponse},
        **AUTH_REQUIRED,
        503: {"description": "Image host unavailable", "model": ErrorResponse},
    },
    summary="Upload a new avatar",
)
async def upload_avatar(
    response: Response,
    avatar: UploadFile = File(..., description="JPEG, PNG, GIF or WebP image"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> AvatarResponse:
    content = await avatar.read()
    profile = await profile_service.upload_avatar(db, user, content, avatar.content_type)
    set_session_cookie(response, create_session_token(user))
    logger.info("Avatar updated for %s", user.username)
    return AvatarResponse(message="Avatar uploaded successfully", user=profile, image_url=profile.image)


@router.delete(
    "/avatar",
    response_model=AvatarResponse,
    responses=AUTH_REQUIRED,
    summary="Remove my avatar",
)
async def remove_avatar(
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> AvatarResponse:
    profile = await profile_service.remove_avatar(db, user)
    set_session_cookie(response, create_session_token(user))
    return AvatarResponse(message="Avatar removed successfully", user=profile)
