"""
Database engine, connection pool and sessions.

The pool is created once by ``db_manager.init()`` at application startup,
reused for the lifetime of the process, and drained by ``db_manager.close()``
at shutdown.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy import event, make_url, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from gatepass.core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

ASYNC_DRIVERS = {
    "postgres": "postgresql+asyncpg",
    "postgresql": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}
# libpq options that asyncpg.connect does not accept
LIBPQ_ONLY_ARGS = {"sslmode", "channel_binding"}

# Connections held longer than this are most likely stuck behind an event lock
LONG_CHECKOUT_SECONDS = 30


def async_database_url(raw_url: str) -> str:
    """Rewrite a database URL to use the async driver for its backend."""
    scheme, sep, rest = raw_url.partition("://")
    if sep and scheme in ASYNC_DRIVERS:
        raw_url = f"{ASYNC_DRIVERS[scheme]}://{rest}"

    parts = urlsplit(raw_url)
    if not parts.query or not parts.scheme.startswith("postgresql"):
        return raw_url
    query = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k.lower() not in LIBPQ_ONLY_ARGS
    ]
    return urlunsplit(parts._replace(query=urlencode(query)))


def masked(url: Any) -> str:
    return str(make_url(str(url)).render_as_string(hide_password=True))


def _engine_options(db_url: str) -> Dict[str, Any]:
    db = settings.database
    options: Dict[str, Any] = {
        "echo": db.DB_ECHO,
        "pool_pre_ping": db.DB_POOL_PRE_PING,
        "pool_recycle": db.DB_POOL_RECYCLE,
    }

    if db_url.startswith("sqlite"):
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": db.DB_SQLITE_TIMEOUT,
        }
        if ":memory:" in db_url:
            options["poolclass"] = StaticPool
        return options

    # A reservation waiting on a locked event row gives up after lock_timeout
    options.update(
        pool_size=db.DB_POOL_SIZE,
        max_overflow=db.DB_MAX_OVERFLOW,
        pool_timeout=db.DB_POOL_TIMEOUT,
        connect_args={
            "command_timeout": db.DB_COMMAND_TIMEOUT,
            "server_settings": {
                "application_name": settings.PROJECT_NAME,
                "statement_timeout": str(db.DB_STATEMENT_TIMEOUT),
                "lock_timeout": str(db.DB_LOCK_TIMEOUT),
                "idle_in_transaction_session_timeout": str(
                    db.DB_IDLE_IN_TRANSACTION_TIMEOUT
                ),
            },
        },
    )
    return options


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """
    SQLite has no row locks. Every transaction takes the database write lock
    when it begins, so concurrent lock-check-write sequences run one at a time.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        # Hand transaction control to the "begin" hook below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _watch_pool(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "checkout")
    def on_checkout(dbapi_connection: Any, record: Any, proxy: Any) -> None:
        record.info["checked_out_at"] = time.monotonic()

    @event.listens_for(engine.sync_engine, "checkin")
    def on_checkin(dbapi_connection: Any, record: Any) -> None:
        started = record.info.pop("checked_out_at", None)
        if started is None:
            return
        held = time.monotonic() - started
        if held > LONG_CHECKOUT_SECONDS:
            logger.warning(f"Database connection held for {held:.2f}s")

    @event.listens_for(engine.sync_engine, "invalidate")
    def on_invalidate(dbapi_connection: Any, record: Any, exception: Any) -> None:
        logger.warning(f"Database connection invalidated: {exception}")


class DatabaseManager:
    """Owns the async engine, its pool and the session factory"""

    def __init__(self) -> None:
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_initialized(self) -> bool:
        return self.engine is not None

    def init(self, database_url: Optional[str] = None) -> None:
        if self.engine is not None:
            logger.debug("Database engine already initialized")
            return

        db_url = async_database_url(database_url or settings.database.database_url)
        self.engine = create_async_engine(db_url, **_engine_options(db_url))
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        if self.engine.dialect.name == "sqlite":
            _serialize_sqlite_writers(self.engine)
        _watch_pool(self.engine)

        logger.info(f"Database engine initialized for {masked(db_url)}")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits leftover work on exit and rolls back on error"""
        if not self.session_factory:
            raise RuntimeError("Database not initialized. Call db_manager.init() on startup.")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def health_check(self) -> Dict[str, Any]:
        if not self.engine:
            return {"status": "error", "message": "Database engine not initialized"}

        started = time.perf_counter()
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "error", "message": "Database unavailable"}

        return {
            "status": "healthy",
            "response_time_ms": round((time.perf_counter() - started) * 1000, 2),
            "pool": self.pool_status(),
            "database_url": masked(self.engine.url),
        }

    def pool_status(self) -> Dict[str, Any]:
        if not self.engine:
            return {}
        pool = self.engine.pool
        status: Dict[str, Any] = {"pool_class": type(pool).__name__}
        for name in ("size", "checkedin", "checkedout", "overflow"):
            probe = getattr(pool, name, None)
            if callable(probe):
                status[name] = probe()
        return status

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            logger.info("Database engine closed")
        self.engine = None
        self.session_factory = None


db_manager = DatabaseManager()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions"""
    async with db_manager.get_session() as session:
        yield session
