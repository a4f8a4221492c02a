"""
User service — the authors referenced by articles and comments.

Users are not cached: the set is small and nothing in the listing or
stats payloads depends on user fields other than the display name.
"""
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from blog.exceptions import Conflict
from blog.models import User
from blog.schemas import UserCreate


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


async def get_users(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(User).order_by(User.id))
    return [_user_to_dict(u) for u in result.scalars().all()]


async def get_user(db: AsyncSession, user_id: int) -> dict | None:
    """
    Return *user_id* with the id and title of each of their articles, or
    None when the user does not exist.
    """
    q = (
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.articles))
        .execution_options(populate_existing=True)
    )
    user = (await db.execute(q)).scalar_one_or_none()
    if user is None:
        return None

    data = _user_to_dict(user)
    data["articles"] = [
        {"id": a.id, "title": a.title}
        for a in sorted(user.articles, key=lambda a: a.id)
    ]
    return data


async def create_user(db: AsyncSession, data: UserCreate) -> dict:
    """
    Create a user and return its serialised dict.

    Email uniqueness is enforced by the database; a collision raises
    ``Conflict`` and the request transaction is rolled back by ``get_db``.
    """
    user = User(name=data.name, email=data.email)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise Conflict("A user with this email already exists") from exc
    return _user_to_dict(user)
