"""
Article service — business logic for the Article aggregate.

Design notes
------------
- The listing is memoized under ``articles.index`` for
  ``settings.CACHE_TTL_LIST`` seconds.  Every article write evicts the
  listing and stats entries (``cache.invalidate_content``); no finer
  grained invalidation is attempted.
- Mutations commit before they invalidate, so a read that repopulates the
  cache after the eviction sees the committed row.  A concurrent read that
  started before the commit can still put a stale listing back; that
  window is accepted and closed by the TTL.
- Eager loading via ``joinedload`` (many-to-one: author, comment user) and
  ``selectinload`` (one-to-many: comments) keeps detail reads at a fixed
  number of statements.  Listing comment counts come from a correlated
  ``COUNT`` subquery instead of loading every comment.
- Search runs a parameterised ``LIKE`` against the folded shadow columns
  with wildcard escaping, so user input never becomes SQL.
"""
import logging
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blog.cache import LISTING_KEY, CacheManager
from blog.config import settings
from blog.exceptions import ValidationFailure
from blog.models import Article, Comment, User, utcnow
from blog.schemas import ArticleCreate, ArticleUpdate
from blog.text import fold, summarize

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _author_name(article: Article) -> str | None:
    return article.author.name if article.author is not None else None


def _article_to_summary(article: Article, comments_count: int) -> dict:
    """Serialise an Article to the truncated listing/search projection."""
    return {
        "id": article.id,
        "title": article.title,
        "content": summarize(article.content),
        "author": _author_name(article),
        "comments_count": comments_count,
        "published_at": _iso(article.published_at),
        "created_at": _iso(article.created_at),
    }


def _article_to_record(article: Article, author_name: str | None) -> dict:
    """Serialise an Article as stored, returned by create/update."""
    return {
        "id": article.id,
        "title": article.title,
        "content": article.content,
        "author_id": article.author_id,
        "author": author_name,
        "image_path": article.image_path,
        "published_at": _iso(article.published_at),
        "created_at": _iso(article.created_at),
        "updated_at": _iso(article.updated_at),
    }


def _article_detail_to_dict(article: Article) -> dict:
    return {
        "id": article.id,
        "title": article.title,
        "content": article.content,
        "author": _author_name(article),
        "author_id": article.author_id,
        "image_path": article.image_path,
        "published_at": _iso(article.published_at),
        "created_at": _iso(article.created_at),
        "comments": [
            {
                "id": c.id,
                "content": c.content,
                "user": c.user.name if c.user is not None else None,
                "created_at": _iso(c.created_at),
            }
            for c in article.comments
        ],
    }


def _summary_query():
    """SELECT of articles with their author and comment count, oldest first."""
    comments_count = (
        select(func.count(Comment.id))
        .where(Comment.article_id == Article.id)
        .correlate(Article)
        .scalar_subquery()
    )
    return (
        select(Article, comments_count.label("comments_count"))
        .options(joinedload(Article.author))
        .order_by(Article.id)
        .execution_options(populate_existing=True)
    )


async def _fetch_summaries(db: AsyncSession, query) -> list[dict]:
    result = await db.execute(query)
    return [_article_to_summary(article, count) for article, count in result.all()]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def build_listing(db: AsyncSession) -> list[dict]:
    """Compute the article listing straight from the database."""
    return await _fetch_summaries(db, _summary_query())


async def get_listing(
    db: AsyncSession, cache: CacheManager, bypass_cache: bool = False
) -> list[dict]:
    """
    Return the article listing, memoized for ``settings.CACHE_TTL_LIST``
    seconds.

    With *bypass_cache* the listing is recomputed and the cache is neither
    read nor written.
    """
    if bypass_cache:
        return await build_listing(db)
    return await cache.remember(
        LISTING_KEY, settings.CACHE_TTL_LIST, lambda: build_listing(db)
    )


async def get_article(db: AsyncSession, article_id: int) -> dict | None:
    """
    Return the detail dict for *article_id* with its author and every
    comment (and comment author) eagerly loaded.

    Returns None when the article does not exist.
    """
    q = (
        select(Article)
        .where(Article.id == article_id)
        .options(
            joinedload(Article.author),
            selectinload(Article.comments).joinedload(Comment.user),
        )
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    article = result.unique().scalar_one_or_none()
    if article is None:
        return None
    return _article_detail_to_dict(article)


async def search_articles(db: AsyncSession, query: str | None) -> list[dict]:
    """
    Return summaries of articles whose title or content contains *query*,
    ignoring case and accents.

    An empty or blank query returns an empty list without touching the
    database.
    """
    needle = fold((query or "").strip())
    if not needle:
        return []
    q = _summary_query().where(
        or_(
            Article.title_folded.contains(needle, autoescape=True),
            Article.content_folded.contains(needle, autoescape=True),
        )
    )
    return await _fetch_summaries(db, q)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, cache: CacheManager, data: ArticleCreate) -> dict:
    """
    Create an article published now and return its stored record.

    Raises ``ValidationFailure`` when ``author_id`` does not reference an
    existing user.
    """
    author = await db.get(User, data.author_id)
    if author is None:
        raise ValidationFailure({"author_id": "The selected author does not exist."})

    article = Article(
        title=data.title,
        content=data.content,
        author_id=author.id,
        image_path=data.image_path,
        published_at=utcnow(),
    )
    db.add(article)
    await db.commit()
    await cache.invalidate_content()

    logger.info("Article %d created by user %d", article.id, author.id)
    return _article_to_record(article, author.name)


async def update_article(
    db: AsyncSession, cache: CacheManager, article_id: int, data: ArticleUpdate
) -> dict | None:
    """
    Apply the fields present in *data* to the article and return its
    updated record, or None when the article does not exist.
    """
    q = (
        select(Article)
        .where(Article.id == article_id)
        .options(joinedload(Article.author))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    article = result.scalar_one_or_none()
    if article is None:
        return None

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(article, field, value)

    await db.commit()
    await cache.invalidate_content()
    return _article_to_record(article, _author_name(article))


async def delete_article(db: AsyncSession, cache: CacheManager, article_id: int) -> bool:
    """
    Delete the article identified by *article_id*.

    Returns True on success, False when the article does not exist.
    Comments go with it through the ``ON DELETE CASCADE`` foreign key.
    """
    article = await db.get(Article, article_id)
    if article is None:
        return False

    await db.delete(article)
    await db.commit()
    await cache.invalidate_content()
    logger.info("Article %d deleted", article_id)
    return True
