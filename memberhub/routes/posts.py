"""Forum routes"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth.identity import Identity, get_identity
from ..config import Settings
from ..dependencies import get_app_settings, get_forum_service, page_limit
from ..models.post import Comment, CommentCreate, Post, PostCreate, PostPage
from ..services.forum_service import ForumService

router = APIRouter()


@router.get("", response_model=PostPage)
async def list_posts(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    service: ForumService = Depends(get_forum_service),
    settings: Settings = Depends(get_app_settings),
):
    """List posts, newest first"""
    return service.list_posts(page, page_limit(limit, settings.posts_page_size, settings))


@router.post("", status_code=201, response_model=Post)
async def create_post(
    data: PostCreate,
    identity: Identity = Depends(get_identity),
    service: ForumService = Depends(get_forum_service),
):
    return await service.create_post(data, identity)


@router.get("/{post_id}", response_model=Post)
async def get_post(
    post_id: str,
    identity: Identity = Depends(get_identity),
    service: ForumService = Depends(get_forum_service),
):
    return service.get_post(post_id)


@router.post("/{post_id}/comments", status_code=201, response_model=Comment)
async def create_comment(
    post_id: str,
    data: CommentCreate,
    identity: Identity = Depends(get_identity),
    service: ForumService = Depends(get_forum_service),
):
    """Add a comment to a post"""
    return await service.create_comment(post_id, data, identity)


@router.post("/{post_id}/like", response_model=Post)
async def like_post(
    post_id: str,
    identity: Identity = Depends(get_identity),
    service: ForumService = Depends(get_forum_service),
):
    return await service.like_post(post_id)
