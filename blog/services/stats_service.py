"""
Stats service — site-wide aggregates, memoized under the ``stats`` key
and evicted together with the article listing on every content write.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from blog.cache import STATS_KEY, CacheManager
from blog.config import settings
from blog.models import Article, Comment, User


async def compute_stats(db: AsyncSession) -> dict:
    total_articles = (await db.execute(select(func.count()).select_from(Article))).scalar_one()
    total_comments = (await db.execute(select(func.count()).select_from(Comment))).scalar_one()
    total_users = (await db.execute(select(func.count()).select_from(User))).scalar_one()

    avg_comments = total_comments / total_articles if total_articles > 0 else 0
    return {
        "total_articles": total_articles,
        "total_comments": total_comments,
        "total_users": total_users,
        "avg_comments_per_article": round(avg_comments, 2),
    }


async def get_stats(db: AsyncSession, cache: CacheManager) -> dict:
    """Return the aggregates, computing them at most once per ``CACHE_TTL_STATS``."""
    return await cache.remember(STATS_KEY, settings.CACHE_TTL_STATS, lambda: compute_stats(db))
