import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings
from errors import BackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Base = declarative_base()


def make_engine(database_url: str) -> AsyncEngine:
    """Create an async engine; SQLite connections get foreign keys switched on
    so that deleting a book cascades to its copies."""
    if not database_url.startswith("sqlite"):
        return create_async_engine(database_url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in database_url or database_url.rstrip("/").endswith(":"):
        kwargs["poolclass"] = StaticPool
    new_engine = create_async_engine(database_url, **kwargs)

    @event.listens_for(new_engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return new_engine


def make_sessionmaker(bind: AsyncEngine) -> sessionmaker:
    return sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = make_engine(get_settings().database_url)
AsyncSessionLocal = make_sessionmaker(engine)


async def init_db(bind: AsyncEngine | None = None):
    # models must be imported so their tables are registered on Base
    import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")


def backend_message(exc: SQLAlchemyError) -> str:
    """The driver's own message, without SQLAlchemy's statement dump."""
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


async def safe_query(db: AsyncSession, query: Callable[[AsyncSession], Awaitable[T]], operation: str) -> T:
    """Run a statement, turning driver failures into BackendError."""
    try:
        return await query(db)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Query failed (%s): %s", operation, e)
        raise BackendError(backend_message(e)) from e


async def safe_commit(db: AsyncSession, operation: str) -> None:
    """Commit, rolling back and raising BackendError on failure."""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Commit failed (%s): %s", operation, e)
        raise BackendError(backend_message(e)) from e
    logger.debug("Committed %s", operation)
