"""
DatabaseService: the one async engine of the process.

Every ranking operation opens its own unit of work here:

- ``get_session()`` for reads (no commit),
- ``get_transaction()`` for writes (commit on clean exit, rollback on any
  exception, domain errors included),
- ``get_locked_entity()`` inside a transaction for ``SELECT … FOR UPDATE``
  by primary key.

Service code never calls ``session.commit()`` itself.

Engine settings are read from Config once, at ``initialize()``:
DATABASE_URL, DATABASE_ECHO, DATABASE_POOL_SIZE, DATABASE_MAX_OVERFLOW,
DATABASE_POOL_RECYCLE, DATABASE_POOL_TIMEOUT and
DATABASE_STATEMENT_TIMEOUT_MS (PostgreSQL only, applied per transaction
with ``SET LOCAL``). With ``TESTING`` set the engine uses ``NullPool`` so
every session gets a fresh connection.

SQLite drops the ``FOR UPDATE`` clause; writers
are serialized by SQLite's database lock instead.

    async with DatabaseService.get_transaction() as session:
        group = await DatabaseService.get_locked_entity(session, LeagueGroup, group_id)
        group.current_count += 1
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional, Type, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from src.core.config.config import Config
from src.core.database.base import Base
from src.core.logging.logger import get_logger
from src.modules.shared.exceptions import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
)

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class _EngineSettings:
    url: str
    echo: bool
    pooled: bool
    statement_timeout_ms: int
    pool_options: Dict[str, int] = field(default_factory=dict)

    @property
    def scheme(self) -> str:
        return self.url.partition(":")[0] or "unknown"

    @property
    def is_postgres(self) -> bool:
        return self.scheme.startswith("postgresql")

    def engine_kwargs(self) -> Dict[str, Any]:
        if not self.pooled:
            return {"echo": self.echo, "poolclass": NullPool}
        return {"echo": self.echo, "poolclass": AsyncAdaptedQueuePool, **self.pool_options}

    @classmethod
    def from_config(cls) -> "_EngineSettings":
        url = Config.DATABASE_URL
        if not isinstance(url, str) or not url:
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        return cls(
            url=url,
            echo=bool(Config.DATABASE_ECHO),
            pooled=not (Config.TESTING or Config.is_testing()),
            statement_timeout_ms=Config.DATABASE_STATEMENT_TIMEOUT_MS,
            pool_options={
                "pool_size": Config.DATABASE_POOL_SIZE,
                "max_overflow": Config.DATABASE_MAX_OVERFLOW,
                "pool_recycle": Config.DATABASE_POOL_RECYCLE,
                "pool_timeout": Config.DATABASE_POOL_TIMEOUT,
            },
        )


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 2)


class DatabaseService:
    """Class-level engine and session factory; never instantiated."""

    _engine: Optional[AsyncEngine] = None
    _sessions: Optional[async_sessionmaker[AsyncSession]] = None
    _settings: Optional[_EngineSettings] = None
    _lifecycle_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    @classmethod
    async def initialize(cls) -> None:
        """
        Create the engine. A second call is a no-op.

        Raises:
            DatabaseInitializationError: bad configuration or engine creation failure.
        """
        async with cls._lifecycle_lock:
            if cls._engine is not None:
                return

            try:
                settings = _EngineSettings.from_config()
                engine = create_async_engine(settings.url, **settings.engine_kwargs())
            except DatabaseInitializationError:
                logger.error("DATABASE_URL is missing or invalid")
                raise
            except Exception as exc:
                logger.error("Could not create the database engine", exc_info=True)
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            cls._engine = engine
            cls._settings = settings
            cls._sessions = async_sessionmaker(engine, expire_on_commit=False)

            logger.info(
                "Database engine ready",
                extra={"url_scheme": settings.scheme, "pooled": settings.pooled},
            )

    @classmethod
    async def shutdown(cls) -> None:
        async with cls._lifecycle_lock:
            engine = cls._engine
            if engine is None:
                return

            cls._engine = None
            cls._sessions = None
            cls._settings = None
            await engine.dispose()
            logger.info("Database engine disposed")

    @classmethod
    async def create_schema(cls) -> None:
        """Create any missing tables registered on ``Base.metadata``."""
        engine = cls._require_engine()

        # Importing the package registers every model on Base.metadata.
        import src.database.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Schema ready", extra={"tables": sorted(Base.metadata.tables)})

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    async def health_check(cls) -> bool:
        """``SELECT 1``; False instead of raising when unreachable or not initialized."""
        if cls._engine is None:
            logger.warning("Health check on an uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except DBAPIError as exc:
            logger.warning(
                "Database health check failed",
                extra={"error_type": type(exc).__name__, "duration_ms": _elapsed_ms(start)},
            )
            return False

        logger.debug("Database health check ok", extra={"duration_ms": _elapsed_ms(start)})
        return True

    # ========================================================================
    # Units of work
    # ========================================================================

    @classmethod
    def _require_engine(cls) -> AsyncEngine:
        if cls._engine is None:
            raise DatabaseNotInitializedError(
                "DatabaseService.initialize() must run before the database is used"
            )
        return cls._engine

    @classmethod
    def _new_session(cls) -> AsyncSession:
        cls._require_engine()
        assert cls._sessions is not None
        return cls._sessions()

    @classmethod
    async def _limit_statement_time(cls, session: AsyncSession) -> None:
        settings = cls._settings
        if settings is not None and settings.is_postgres:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {int(settings.statement_timeout_ms)}")
            )

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncIterator[AsyncSession]:
        """
        Read session. Nothing is committed.

        Raises:
            DatabaseNotInitializedError
        """
        async with cls._new_session() as session:
            await cls._limit_statement_time(session)
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncIterator[AsyncSession]:
        """
        Write session: commit on success, rollback and re-raise on any error.

        IntegrityError is logged at DEBUG; the allocator and the points
        ledger turn unique-key conflicts into domain errors or retries.

        Raises:
            DatabaseNotInitializedError
        """
        start = time.perf_counter()
        async with cls._new_session() as session:
            try:
                await cls._limit_statement_time(session)
                yield session
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                logger.debug(
                    "Transaction rolled back on a constraint conflict",
                    extra={"error_type": type(exc).__name__, "duration_ms": _elapsed_ms(start)},
                )
                raise
            except DBAPIError as exc:
                await session.rollback()
                logger.error(
                    "Transaction failed in the database; rolled back",
                    extra={"error_type": type(exc).__name__, "duration_ms": _elapsed_ms(start)},
                    exc_info=True,
                )
                raise
            except Exception as exc:
                await session.rollback()
                logger.debug(
                    "Transaction rolled back",
                    extra={"error_type": type(exc).__name__, "duration_ms": _elapsed_ms(start)},
                )
                raise

    @classmethod
    async def get_locked_entity(
        cls,
        session: AsyncSession,
        model: Type[T],
        primary_key: Any,
    ) -> Optional[T]:
        """
        Row by primary key under ``FOR UPDATE``, re-read even when already
        in the session. Only meaningful inside ``get_transaction()``.
        """
        return await session.get(
            model,
            primary_key,
            with_for_update=True,
            populate_existing=True,
        )
