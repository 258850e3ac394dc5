"""Async database engine and session management.

Provides:
    - build_engine: Create an async engine for a URL (PostgreSQL or SQLite).
    - build_session_factory: A sessionmaker bound to an engine.
    - get_ledger_store: The process-wide LedgerStore (lazy singleton).
    - init_db / close_db: Lifecycle hooks for FastAPI's lifespan.

Concurrency model per backend:
    - PostgreSQL runs READ COMMITTED; check-then-write sequences take
      SELECT ... FOR UPDATE row locks (see repositories.py).
    - SQLite ignores FOR UPDATE, so every transaction starts with
      BEGIN IMMEDIATE, taking the database write lock up front. Concurrent
      units of work therefore run one after another.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from milestone_escrow.config import get_settings
from milestone_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from milestone_escrow.infrastructure.database.unit_of_work import LedgerStore

logger = get_logger(__name__)

# Module-level singletons (initialized lazily / in init_db)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_ledger_store: LedgerStore | None = None


def _enable_sqlite_immediate_transactions(engine: AsyncEngine) -> None:
    """Make pysqlite emit BEGIN IMMEDIATE instead of its lazy implicit BEGIN."""

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
) -> AsyncEngine:
    """Create an async engine, applying backend-specific locking behaviour."""
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": pool_timeout},
        )
        _enable_sqlite_immediate_transactions(engine)
        return engine

    return create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
        echo=echo,
        isolation_level="READ COMMITTED",
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def _get_engine() -> AsyncEngine:
    """Get or create the async engine (lazy singleton)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(
            settings.database_url,
            echo=settings.db_echo_sql,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
        )
        logger.info(
            "database.engine_created",
            backend=_engine.dialect.name,
            pool_size=settings.db_pool_size,
        )
    return _engine


def _get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory (lazy singleton)."""
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(_get_engine())
    return _session_factory


def get_ledger_store() -> LedgerStore:
    """Return the process-wide LedgerStore bound to the configured database."""
    global _ledger_store
    if _ledger_store is None:
        from milestone_escrow.infrastructure.database.unit_of_work import LedgerStore

        _ledger_store = LedgerStore(
            _get_session_factory(),
            timeout_seconds=get_settings().unit_of_work_timeout_seconds,
        )
    return _ledger_store


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    from milestone_escrow.infrastructure.database.orm_models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Initialize the database engine and create tables if they don't exist.

    Called during FastAPI's lifespan startup. Outside development the schema is
    expected to be managed by migrations.
    """
    engine = _get_engine()
    settings = get_settings()

    if settings.is_development:
        await create_schema(engine)
        logger.info("database.tables_created")
    else:
        logger.info("database.skipping_create_all", reason="not in development mode")


async def close_db() -> None:
    """Dispose of the database engine. Called during FastAPI's lifespan shutdown."""
    global _engine, _session_factory, _ledger_store
    if _engine is not None:
        await _engine.dispose()
        logger.info("database.engine_disposed")
        _engine = None
        _session_factory = None
        _ledger_store = None
