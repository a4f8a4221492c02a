from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from blog.cache import CacheManager
from blog.database import get_db
from blog.dependencies import get_cache
from blog.schemas import CommentCreate, CommentDeleted, CommentResponse, CommentUpdate
from blog.services import comment_service

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])


@router.post("", status_code=201, response_model=CommentResponse)
async def create_comment(
    data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return await comment_service.add_comment(db, cache, data)


@router.api_route("/{comment_id}", methods=["PUT", "PATCH"], response_model=CommentResponse)
async def update_comment(
    comment_id: int,
    data: CommentUpdate,
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    comment = await comment_service.update_comment(db, cache, comment_id, data)
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    return comment


@router.delete("/{comment_id}", response_model=CommentDeleted)
async def delete_comment(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    result = await comment_service.delete_comment(db, cache, comment_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    return result
