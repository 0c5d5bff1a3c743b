"""Async database engine and session management.

A ``Database`` instance owns the async engine and session factory for the
lifetime of the process. It is created once at startup, stored on
``app.state`` and disposed on shutdown.
"""

from collections.abc import AsyncGenerator, Iterator
from contextlib import asynccontextmanager, contextmanager

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from brgy_api.core.errors import StoreUnavailableError


class Database:
    """Async SQLAlchemy engine plus session factory.

    Args:
        database_url: Async connection string.
        schema: Optional PostgreSQL schema for isolated environments.
        **kwargs: Additional arguments passed to create_async_engine.
    """

    def __init__(self, database_url: str, *, schema: str | None = None, **kwargs: object) -> None:
        if schema is not None:
            connect_args = kwargs.pop("connect_args", {})
            if not isinstance(connect_args, dict):
                msg = "connect_args must be a dict"
                raise TypeError(msg)
            connect_args["options"] = f"-c search_path={schema},public"
            kwargs["connect_args"] = connect_args
        # Pool sizing only applies to connection-pooled engines (not SQLite/StaticPool)
        uses_static_pool = kwargs.get("poolclass") is StaticPool or "sqlite" in database_url
        if not uses_static_pool:
            kwargs.setdefault("pool_size", 10)
            kwargs.setdefault("max_overflow", 5)
            kwargs.setdefault("pool_pre_ping", True)
        self.engine: AsyncEngine = create_async_engine(database_url, **kwargs)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """Open a session that is closed when the block exits."""
        async with self.session_factory() as session:
            yield session

    async def dispose(self) -> None:
        """Dispose of the engine and release pooled connections."""
        await self.engine.dispose()


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """Convert persistence failures into ``StoreUnavailableError``.

    Unique-constraint violations pass through untouched so callers can map
    them to domain conflicts.

    Args:
        operation: Short description used in the log record.
    """
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.opt(exception=exc).error(f"Store operation failed: {operation}")
        raise StoreUnavailableError from exc
