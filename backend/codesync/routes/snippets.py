"""
CodeSync Backend — Snippet Routes
==================================

What:  CRUD for snippets, the explore feed, the owner's list, likes and
       comments (all nested under /api/snippets).
How:   Thin handlers: parse query/path/body, resolve the session identity,
       delegate to the services, return the schema.

Route Inventory:
    GET    /api/snippets                  public list (filters + pagination)
    POST   /api/snippets                  create (auth)
    GET    /api/snippets/explore          feed + language/tag statistics
    GET    /api/snippets/my-snippets      the caller's snippets (auth)
    GET    /api/snippets/{id}             detail + comments + isLiked
    PUT    /api/snippets/{id}             update (author only)
    DELETE /api/snippets/{id}             delete (author only)
    GET    /api/snippets/{id}/like        like status
    POST   /api/snippets/{id}/like        toggle like (auth)
    GET    /api/snippets/{id}/comments    threaded comments (paginated)
    POST   /api/snippets/{id}/comments    add comment or reply (auth)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from codesync.database import get_db_session
from codesync.dependencies import get_current_user, get_optional_user
from codesync.models import User
from codesync.schemas.comment import CommentCreate, CommentListResponse, CommentResponse
from codesync.schemas.common import ErrorResponse, MessageResponse
from codesync.schemas.snippet import (
    ExploreResponse,
    LikeStatusResponse,
    LikeToggleResponse,
    SnippetCreate,
    SnippetDetailResponse,
    SnippetListResponse,
    SnippetResponse,
    SnippetUpdate,
)
from codesync.services.comment_service import comment_service
from codesync.services.snippet_service import snippet_service

router = APIRouter(prefix="/api/snippets", tags=["Snippets"])

NOT_FOUND = {404: {"description": "Snippet not found (or private)", "model": ErrorResponse}}
AUTH_REQUIRED = {401: {"description": "Not signed in", "model": ErrorResponse}}
BAD_INPUT = {400: {"description": "Invalid input", "model": ErrorResponse}}


@router.get("", response_model=SnippetListResponse, summary="List public snippets")
async def list_snippets(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    language: Optional[str] = Query(default=None),
    author_id: Optional[str] = Query(default=None, alias="authorId"),
    search: Optional[str] = Query(default=None, description="Substring of title or description"),
    tags: Optional[str] = Query(default=None, description="Comma separated; matches any"),
    db: AsyncSession = Depends(get_db_session),
) -> SnippetListResponse:
    return await snippet_service.list_public(
        db,
        page=page,
        limit=limit,
        language=language,
        author_id=author_id,
        search=search,
        tags=tags,
    )


@router.post(
    "",
    status_code=201,
    response_model=SnippetResponse,
    responses={**BAD_INPUT, **AUTH_REQUIRED},
    summary="Create a snippet",
)
async def create_snippet(
    body: SnippetCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SnippetResponse:
    return await snippet_service.create(db, user, body)


@router.get("/explore", response_model=ExploreResponse, summary="Explore feed")
async def explore(
    limit: int = Query(default=50, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> ExploreResponse:
    return await snippet_service.explore(db, limit=limit)


@router.get(
    "/my-snippets",
    response_model=List[SnippetResponse],
    responses=AUTH_REQUIRED,
    summary="The caller's snippets, public and private",
)
async def my_snippets(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[SnippetResponse]:
    return await snippet_service.list_mine(db, user)


@router.get(
    "/{snippet_id}",
    response_model=SnippetDetailResponse,
    responses=NOT_FOUND,
    summary="Get a snippet with its comments",
)
async def get_snippet(
    snippet_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> SnippetDetailResponse:
    return await snippet_service.get_detail(db, snippet_id, viewer)


@router.put(
    "/{snippet_id}",
    response_model=SnippetResponse,
    responses={
        **BAD_INPUT,
        **AUTH_REQUIRED,
        403: {"description": "Not the author", "model": ErrorResponse},
        **NOT_FOUND,
    },
    summary="Update a snippet",
)
async def update_snippet(
    snippet_id: str,
    body: SnippetUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SnippetResponse:
    return await snippet_service.update(db, snippet_id, user, body)


@router.delete(
    "/{snippet_id}",
    response_model=MessageResponse,
    responses={
        **AUTH_REQUIRED,
        403: {"description": "Not the author", "model": ErrorResponse},
        **NOT_FOUND,
    },
    summary="Delete a snippet and its comments and likes",
)
async def delete_snippet(
    snippet_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await snippet_service.delete(db, snippet_id, user)
    return MessageResponse(message="Snippet deleted successfully")


# ── Likes ─────────────────────────────────────────────────────────────────


@router.get("/{snippet_id}/like", response_model=LikeStatusResponse, responses=NOT_FOUND)
async def like_status(
    snippet_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> LikeStatusResponse:
    return await snippet_service.like_status(db, snippet_id, viewer)


@router.post(
    "/{snippet_id}/like",
    response_model=LikeToggleResponse,
    responses={**AUTH_REQUIRED, **NOT_FOUND},
    summary="Like or unlike a snippet",
)
async def toggle_like(
    snippet_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> LikeToggleResponse:
    return await snippet_service.toggle_like(db, snippet_id, user)


# ── Comments ──────────────────────────────────────────────────────────────


@router.get("/{snippet_id}/comments", response_model=CommentListResponse, responses=NOT_FOUND)
async def list_comments(
    snippet_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> CommentListResponse:
    return await comment_service.list_threads(db, snippet_id, viewer, page=page, limit=limit)


@router.post(
    "/{snippet_id}/comments",
    status_code=201,
    response_model=CommentResponse,
    responses={**BAD_INPUT, **AUTH_REQUIRED, **NOT_FOUND},
    summary="Comment on a snippet or reply to a comment",
)
async def create_comment(
    snippet_id: str,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CommentResponse:
    return await comment_service.create(db, snippet_id, user, body)
