"""
Comment service — comments attached to an Article by a User.

Every write commits and then evicts the listing/stats cache entries,
since comment counts are part of the article listing.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blog.cache import CacheManager
from blog.exceptions import ValidationFailure
from blog.models import Article, Comment, User
from blog.schemas import CommentCreate, CommentUpdate

logger = logging.getLogger(__name__)


def _comment_to_dict(comment: Comment, user_name: str | None) -> dict:
    return {
        "id": comment.id,
        "article_id": comment.article_id,
        "user_id": comment.user_id,
        "user": user_name,
        "content": comment.content,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
        "updated_at": comment.updated_at.isoformat() if comment.updated_at else None,
    }


def _with_user(comment: Comment) -> dict:
    return _comment_to_dict(comment, comment.user.name if comment.user is not None else None)


async def list_comments(db: AsyncSession, article_id: int) -> list[dict]:
    """
    Return the comments of *article_id*, newest first, with author names.

    An unknown article simply has no comments.
    """
    q = (
        select(Comment)
        .where(Comment.article_id == article_id)
        .options(joinedload(Comment.user))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return [_with_user(c) for c in result.scalars().all()]


async def add_comment(db: AsyncSession, cache: CacheManager, data: CommentCreate) -> dict:
    """
    Create a comment and return it with its author name resolved.

    Raises ``ValidationFailure`` listing every reference (``article_id``,
    ``user_id``) that does not resolve to an existing row.
    """
    errors: dict[str, str] = {}
    if await db.get(Article, data.article_id) is None:
        errors["article_id"] = "The selected article does not exist."
    user = await db.get(User, data.user_id)
    if user is None:
        errors["user_id"] = "The selected user does not exist."
    if errors:
        raise ValidationFailure(errors)

    comment = Comment(
        content=data.content,
        article_id=data.article_id,
        user_id=user.id,
    )
    db.add(comment)
    await db.commit()
    await cache.invalidate_content()

    logger.info("Comment %d added to article %d", comment.id, comment.article_id)
    return _comment_to_dict(comment, user.name)


async def update_comment(
    db: AsyncSession, cache: CacheManager, comment_id: int, data: CommentUpdate
) -> dict | None:
    """Replace the content of a comment; returns None when it does not exist."""
    q = (
        select(Comment)
        .where(Comment.id == comment_id)
        .options(joinedload(Comment.user))
        .execution_options(populate_existing=True)
    )
    comment = (await db.execute(q)).scalar_one_or_none()
    if comment is None:
        return None

    comment.content = data.content
    await db.commit()
    await cache.invalidate_content()
    return _with_user(comment)


async def delete_comment(db: AsyncSession, cache: CacheManager, comment_id: int) -> dict | None:
    """
    Delete a comment and report what is left on its article.

    Returns None when the comment does not exist.  Otherwise the result
    carries ``remaining_count`` and ``first_remaining`` (the lowest-id
    remaining comment, or None when the article has none left).
    """
    comment = await db.get(Comment, comment_id)
    if comment is None:
        return None

    article_id = comment.article_id
    await db.delete(comment)
    await db.commit()
    await cache.invalidate_content()

    q = (
        select(Comment)
        .where(Comment.article_id == article_id)
        .options(joinedload(Comment.user))
        .order_by(Comment.id)
        .execution_options(populate_existing=True)
    )
    remaining = (await db.execute(q)).scalars().all()

    logger.info("Comment %d deleted, %d left on article %d", comment_id, len(remaining), article_id)
    return {
        "message": "Comment deleted successfully",
        "remaining_count": len(remaining),
        "first_remaining": _with_user(remaining[0]) if remaining else None,
    }
