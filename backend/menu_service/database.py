"""
Menu Service Backend: Store Client
===================================

What:  ``MenuStore`` owns the async SQLAlchemy engine, the session factory and
       their lifecycle (open at startup, close at shutdown).
How:   One instance is built from settings in the app lifespan and handed to
       MenuService. Nothing here is a module-level global, so tests build a
       store against a throwaway SQLite file.
Who:   MenuService (queries), the health route (ping), Alembic (``Base``).

Connection Pooling:
    pool_size / max_overflow:  persistent connections plus burst headroom
    pool_pre_ping:             validates connections before use
    pool_recycle=3600:         recycles connections every hour
    SQLite URLs skip the pool options; aiosqlite manages its own connections.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from menu_service.config import Settings
from menu_service.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that mean "the store could not serve this call"
STORE_ERRORS = (SQLAlchemyError, OSError)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object between the models, ``MenuStore.open``
    (create_all) and Alembic autogenerate.
    """
    pass


class MenuStore:
    """
    Explicitly constructed client for the relational store.

    Lifecycle:
        store = MenuStore.from_settings(settings)
        await store.open(create_tables=True)   # startup
        ... await store.run(operation, "describe") ...
        await store.close()                    # shutdown

    Every call made through ``run`` gets its own session and is bounded by
    ``timeout``; driver errors and timeouts surface as StoreUnavailableError.
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 10,
        max_overflow: int = 5,
        pool_pre_ping: bool = True,
        echo: bool = False,
        timeout: float = 10.0,
        connect_attempts: int = 3,
        connect_min_wait: int = 1,
        connect_max_wait: int = 10,
    ):
        self.url = url
        self.timeout = timeout
        self.connect_attempts = connect_attempts
        self.connect_min_wait = connect_min_wait
        self.connect_max_wait = connect_max_wait

        engine_kwargs = {"pool_pre_ping": pool_pre_ping, "echo": echo}
        if not url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=3600,
            )
        self.engine = create_async_engine(url, **engine_kwargs)

        # expire_on_commit=False: attributes stay readable after commit,
        # outside the session that loaded them
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "MenuStore":
        return cls(
            settings.sqlalchemy_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            echo=settings.log_level == "DEBUG",
            timeout=settings.store_timeout_seconds,
            connect_attempts=settings.db_connect_attempts,
            connect_min_wait=settings.db_connect_min_wait,
            connect_max_wait=settings.db_connect_max_wait,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def open(self, create_tables: bool = False) -> None:
        """
        Verify connectivity and optionally create missing tables.

        How:   ``SELECT 1`` inside a tenacity retry loop with exponential
               backoff, so a database that is still booting (docker compose)
               does not fail the whole startup.
        Raises:
            StoreUnavailableError once all attempts are exhausted.
        """
        # Registers the `menu` table on Base.metadata
        from menu_service.models import menu_item  # noqa: F401

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.connect_attempts),
            wait=wait_exponential(min=self.connect_min_wait, max=self.connect_max_wait),
            retry=retry_if_exception_type(STORE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    async with self.engine.begin() as conn:
                        await conn.execute(text("SELECT 1"))
                        if create_tables:
                            await conn.run_sync(Base.metadata.create_all)
        except STORE_ERRORS as e:
            logger.error("Could not open menu store: %s", str(e))
            raise StoreUnavailableError(
                message="Could not connect to the menu store.",
                context={"error": str(e), "attempts": self.connect_attempts},
            ) from e

        logger.info("Menu store open (tables created: %s)", create_tables)

    async def close(self) -> None:
        """Dispose the engine, closing every pooled connection."""
        await self.engine.dispose()
        logger.info("Menu store closed")

    # ── Sessions ──────────────────────────────────────────────────────────

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a fresh session; roll back on any error, always close.

        Writes are committed explicitly by the caller so commit failures are
        raised inside ``run`` and translated like any other store error.
        """
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def run(
        self,
        operation: Callable[[AsyncSession], Awaitable[T]],
        description: str,
    ) -> T:
        """
        Execute ``operation(session)`` bounded by the store timeout.

        Application errors raised by ``operation`` (e.g. NotFoundError)
        propagate unchanged; driver errors and timeouts become
        StoreUnavailableError.
        """

        async def _execute() -> T:
            async with self.session() as session:
                return await operation(session)

        try:
            return await asyncio.wait_for(_execute(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("Store operation '%s' timed out after %.1fs", description, self.timeout)
            raise StoreUnavailableError(
                message="The menu store did not respond in time. Please try again later.",
                context={"operation": description, "timeout": self.timeout},
            ) from e
        except STORE_ERRORS as e:
            logger.error("Store operation '%s' failed: %s", description, str(e))
            raise StoreUnavailableError(
                context={"operation": description, "error_type": type(e).__name__},
            ) from e

    async def ping(self) -> bool:
        """Lightweight connectivity probe for the health check."""
        try:
            async with self.engine.connect() as conn:
                await asyncio.wait_for(conn.execute(text("SELECT 1")), timeout=self.timeout)
            return True
        except (asyncio.TimeoutError, *STORE_ERRORS) as e:
            logger.warning("Store ping failed: %s", str(e))
            return False
