"""Engine and session plumbing shared by the API and the migration runner.

One async engine is created per process from ``settings.database_url``.
Route handlers get a short-lived :class:`AsyncSession` through
:func:`get_session`; the app lifespan calls :func:`init_db` on startup and
:func:`dispose_engine` on shutdown.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from alembic.config import Config
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from task_tracker import models as _models
from task_tracker.core.config import settings
from task_tracker.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

# Tables must be on SQLModel.metadata before create_all or autogenerate runs.
_TABLE_MODULES = _models

BACKEND_ROOT = Path(__file__).resolve().parents[2]
MIGRATION_VERSIONS_DIR = BACKEND_ROOT / "migrations" / "versions"
_POSTGRES_SCHEMES = frozenset({"postgres", "postgresql"})

logger = get_logger(__name__)


def async_database_url(database_url: str) -> str:
    """Point bare Postgres URLs at the async psycopg driver.

    URLs that already name a driver (``postgresql+psycopg``, ``sqlite+aiosqlite``)
    pass through untouched.
    """
    scheme, sep, rest = database_url.partition("://")
    if sep and scheme in _POSTGRES_SCHEMES:
        return f"postgresql+psycopg://{rest}"
    return database_url


async_engine: AsyncEngine = create_async_engine(
    async_database_url(settings.database_url),
    pool_pre_ping=True,
)
async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def alembic_config() -> Config:
    config = Config(str(BACKEND_ROOT / "alembic.ini"))
    # Keep the task tracker's log handlers when migrating at startup.
    config.attributes["configure_logger"] = False
    return config


def has_migration_scripts() -> bool:
    return any(MIGRATION_VERSIONS_DIR.glob("*.py"))


def upgrade_to_head() -> None:
    """Run ``alembic upgrade head`` synchronously."""
    from alembic import command

    logger.info("db.migrations.starting")
    command.upgrade(alembic_config(), "head")
    logger.info("db.migrations.complete")


async def init_db() -> None:
    """Bring the schema up to date before the app serves requests.

    With ``db_auto_migrate`` on, Alembic owns the schema. Otherwise, or when no
    revision scripts ship with the build, tables are created from metadata.
    """
    if settings.db_auto_migrate:
        if has_migration_scripts():
            await asyncio.to_thread(upgrade_to_head)
            return
        logger.warning("db.migrations.missing falling_back_to=create_all")

    async with async_engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)


async def dispose_engine() -> None:
    await async_engine.dispose()
    logger.info("db.engine.disposed")


async def _rollback_if_open(session: AsyncSession) -> None:
    try:
        open_transaction = session.in_transaction()
    except SQLAlchemyError:
        logger.exception("db.session.inspect_failed")
        return
    if not open_transaction:
        return
    try:
        await session.rollback()
    except SQLAlchemyError:
        logger.exception("db.session.rollback_failed")


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, uncommitted work discarded."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await _rollback_if_open(session)
