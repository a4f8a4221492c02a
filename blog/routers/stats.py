from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog.cache import CacheManager
from blog.database import get_db
from blog.dependencies import get_cache
from blog.schemas import StatsResponse
from blog.services import stats_service

router = APIRouter(prefix="/api/v1/stats", tags=["stats"])


@router.get("", response_model=StatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    stats = await stats_service.get_stats(db, cache)
    # Hit/miss counters are live, never part of the memoized payload.
    return StatsResponse(**stats, cache_info=cache.stats)
