"""Async database manager for Keyguard-Engine (single-DB)."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from keyguard_engine.common.config import KeyguardSettings, get_settings
from keyguard_engine.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import keyguard_engine.projects.models  # noqa: F401
import keyguard_engine.licensing.models  # noqa: F401
import keyguard_engine.usage.models  # noqa: F401


def _install_sqlite_listeners(engine: AsyncEngine) -> None:
    """Enforce foreign keys and start every transaction with BEGIN IMMEDIATE.

    SQLite has no row locks, so activation's read-count-insert sequence is
    only atomic if writers are serialised from the start of the transaction.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # take BEGIN away from the driver; the "begin" hook below emits it
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class DatabaseManager:
    """Manages a single async database engine."""

    def __init__(self, settings: KeyguardSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        url = self._settings.db_url
        self.engine = create_async_engine(url, echo=False)
        if self.engine.dialect.name == "sqlite":
            _install_sqlite_listeners(self.engine)
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
