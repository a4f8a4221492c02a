from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blog.cache import CacheManager
from blog.database import get_db
from blog.dependencies import get_cache
from blog.schemas import (
    ArticleCreate,
    ArticleDetail,
    ArticleRecord,
    ArticleSummary,
    ArticleUpdate,
    CommentResponse,
    MessageResponse,
)
from blog.services import article_service, comment_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])


@router.get("", response_model=list[ArticleSummary])
async def list_articles(
    performance_test: str | None = Query(
        None, description="When present (any value) the cache is bypassed."
    ),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return await article_service.get_listing(db, cache, bypass_cache=performance_test is not None)


@router.get("/search", response_model=list[ArticleSummary])
async def search_articles(q: str | None = None, db: AsyncSession = Depends(get_db)):
    return await article_service.search_articles(db, q)


@router.get("/{article_id}", response_model=ArticleDetail)
async def get_article(article_id: int, db: AsyncSession = Depends(get_db)):
    article = await article_service.get_article(db, article_id)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article


@router.post("", status_code=201, response_model=ArticleRecord)
async def create_article(
    data: ArticleCreate,
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return await article_service.create_article(db, cache, data)


@router.api_route("/{article_id}", methods=["PUT", "PATCH"], response_model=ArticleRecord)
async def update_article(
    article_id: int,
    data: ArticleUpdate,
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    article = await article_service.update_article(db, cache, article_id, data)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article


@router.delete("/{article_id}", response_model=MessageResponse)
async def delete_article(
    article_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    deleted = await article_service.delete_article(db, cache, article_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Article not found")
    return {"message": "Article deleted successfully"}


@router.get("/{article_id}/comments", response_model=list[CommentResponse])
async def list_comments(article_id: int, db: AsyncSession = Depends(get_db)):
    return await comment_service.list_comments(db, article_id)
