"""Alembic environment for the blog schema.

Migrations run through the same ``build_engine`` the application uses, so
SQLite databases get foreign keys switched on and batch mode for ALTERs.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import make_url

from blog.config import settings
from blog.database import Base, build_engine

import blog.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# The URL always comes from Settings; alembic.ini carries no credentials.
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

target_metadata = Base.metadata


def _configure_options(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": make_url(url).get_backend_name() == "sqlite",
    }


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout instead of applying it."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def _apply(connection) -> None:
    context.configure(connection=connection, **_configure_options(settings.DATABASE_URL))
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = build_engine(settings.DATABASE_URL)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_apply)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
