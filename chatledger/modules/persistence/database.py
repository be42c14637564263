"""Connection lifecycle for chat persistence.

Supports SQLite via aiosqlite (local/dev/tests) and PostgreSQL via asyncpg
(production) through SQLAlchemy's asyncio extension.

The manager is constructed explicitly and handed to every repository. The
first acquisition creates the engine and probes it; the outcome (available
or not) is remembered for the lifetime of the manager and never retried.
Callers decide how to degrade when no handle is available.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

logger = logging.getLogger(__name__)

# Failures that mean "the store did not answer", as opposed to bugs.
STORE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


def resolve_db_url(db_url: str) -> str:
    """Resolve the database URL, creating directories for relative SQLite paths."""
    if db_url.startswith("sqlite") and ":///" in db_url:
        prefix, db_path = db_url.split(":///", 1)
        if db_path and db_path != ":memory:" and not os.path.isabs(db_path):
            full_path = Path.cwd() / db_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            db_url = f"{prefix}:///{full_path}"
            logger.info("SQLite path resolved to: %s", full_path)
    return db_url


def _redact(db_url: str) -> str:
    return db_url.split("@")[-1] if "@" in db_url else db_url


class DatabaseHandle:
    """An initialized engine plus its session factory."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session wrapped in a single transaction."""
        async with self.session_factory() as session:
            async with session.begin():
                yield session


class ConnectionManager:
    """Owns the backing-store connection lifecycle."""

    def __init__(
        self,
        database_url: str,
        *,
        connect_timeout: float = 5.0,
        idle_timeout: int = 20,
        max_lifetime: int = 60 * 30,
        pool_size: int = 5,
        max_overflow: int = 10,
        auto_create_schema: bool = False,
        echo: bool = False,
    ):
        self.database_url = database_url
        self.connect_timeout = connect_timeout
        self.idle_timeout = idle_timeout
        self.max_lifetime = max_lifetime
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.auto_create_schema = auto_create_schema
        self.echo = echo

        self._handle: Optional[DatabaseHandle] = None
        self._attempted = False
        self._closed = False
        self._lock: Optional[asyncio.Lock] = None

    @classmethod
    def from_settings(cls, settings) -> "ConnectionManager":
        return cls(
            settings.database_url,
            connect_timeout=settings.database_connect_timeout,
            idle_timeout=settings.database_idle_timeout,
            max_lifetime=settings.database_max_lifetime,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            auto_create_schema=settings.database_auto_create_schema,
        )

    @property
    def attempted(self) -> bool:
        return self._attempted

    async def init(self) -> Optional[DatabaseHandle]:
        """Initialize once; later calls return the remembered outcome."""
        if self._attempted:
            return self._handle
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if not self._attempted:
                self._attempted = True
                self._handle = await self._connect()
        return self._handle

    async def acquire(self) -> Optional[DatabaseHandle]:
        """Return the shared handle, or None when the store is unavailable."""
        if self._closed:
            return None
        return await self.init()

    async def is_available(self) -> bool:
        return await self.acquire() is not None

    async def close(self) -> None:
        """Dispose the engine. The manager reports unavailable afterwards."""
        self._closed = True
        if self._handle is not None:
            await self._handle.engine.dispose()
            self._handle = None
            logger.info("Database connection closed")

    def _engine_options(self, db_url: str) -> Dict[str, Any]:
        options: Dict[str, Any] = {"echo": self.echo}
        if db_url.startswith("postgresql"):
            connect_args: Dict[str, Any] = {"timeout": self.connect_timeout}
            if self.idle_timeout > 0:
                # Server-side reaping of idle sessions (PostgreSQL 14+)
                connect_args["server_settings"] = {
                    "idle_session_timeout": str(self.idle_timeout * 1000)
                }
            options.update(
                connect_args=connect_args,
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_timeout=self.connect_timeout,
                pool_recycle=self.max_lifetime,
                pool_pre_ping=True,
            )
        elif db_url.startswith("sqlite"):
            options["connect_args"] = {"timeout": self.connect_timeout}
        else:
            options.update(pool_pre_ping=True, pool_recycle=self.max_lifetime)
        return options

    async def _probe(self, engine: AsyncEngine) -> None:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if self.auto_create_schema:
                await conn.run_sync(Base.metadata.create_all)
                logger.info("Chat database tables created/verified")

    async def _connect(self) -> Optional[DatabaseHandle]:
        engine: Optional[AsyncEngine] = None
        db_url = self.database_url
        try:
            db_url = resolve_db_url(db_url)
            engine = create_async_engine(db_url, **self._engine_options(db_url))
            await asyncio.wait_for(self._probe(engine), timeout=self.connect_timeout)
        except (ArgumentError, ImportError, *STORE_ERRORS) as e:
            logger.error("Failed to initialize database connection to %s: %s", _redact(db_url), e)
            logger.warning("Application will run in offline mode")
            if engine is not None:
                await engine.dispose()
            return None

        logger.info("Database connection initialized successfully: %s", _redact(db_url))
        return DatabaseHandle(engine)
