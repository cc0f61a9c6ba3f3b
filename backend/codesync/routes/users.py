"""
CodeSync Backend — User Routes
===============================

What:  User search, public profiles and the follow toggle.

Route Inventory:
    GET  /api/users                       search (name or username)
    GET  /api/users/{username}            public profile (+ ?includeSnippets=true)
    GET  /api/users/{username}/follow     follow status and counts
    POST /api/users/{username}/follow     follow or unfollow (auth)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from codesync.database import get_db_session
from codesync.dependencies import get_current_user, get_optional_user
from codesync.models import User
from codesync.schemas.common import ErrorResponse
from codesync.schemas.profile import PublicProfile
from codesync.schemas.user import FollowStatusResponse, FollowToggleResponse, UserListResponse
from codesync.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])

USER_NOT_FOUND = {404: {"description": "User not found", "model": ErrorResponse}}


@router.get("", response_model=UserListResponse, summary="Search users")
async def search_users(
    query: Optional[str] = Query(default=None, description="Substring of name or username"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> UserListResponse:
    return await user_service.search(db, query=query, page=page, limit=limit)


@router.get(
    "/{username}",
    response_model=PublicProfile,
    responses=USER_NOT_FOUND,
    summary="Public profile",
)
async def get_user(
    username: str,
    include_snippets: bool = Query(default=False, alias="includeSnippets"),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> PublicProfile:
    return await user_service.get_profile(db, username, viewer, include_snippets=include_snippets)


@router.get("/{username}/follow", response_model=FollowStatusResponse, responses=USER_NOT_FOUND)
async def follow_status(
    username: str,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> FollowStatusResponse:
    return await user_service.follow_status(db, username, viewer)


@router.post(
    "/{username}/follow",
    response_model=FollowToggleResponse,
    responses={
        400: {"description": "Cannot follow yourself", "model": ErrorResponse},
        401: {"description": "Not signed in", "model": ErrorResponse},
        **USER_NOT_FOUND,
    },
    summary="Follow or unfollow a user",
)
async def toggle_follow(
    username: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FollowToggleResponse:
    return await user_service.toggle_follow(db, username, user)
