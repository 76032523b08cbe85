"""SQLite database handle shared by the conversation, message and memory stores."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from concierge.models.config import StoreConfig
from concierge.store.pool import open_connection

if TYPE_CHECKING:
    from concierge.store.pool import StorePool

# ── Exceptions ─────────────────────────────────────────────────────────────────


class StoreError(Exception):
    """Base class for store errors."""


class ConversationNotFoundError(StoreError):
    """Raised when a conversation does not exist, is archived, or has another owner."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id!r}")
        self.conversation_id = conversation_id


class DuplicateIDError(StoreError):
    """Raised when attempting to insert a record with a duplicate primary key."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Duplicate ID: {record_id!r}")
        self.record_id = record_id


class MemoryTooLargeError(StoreError):
    """Raised when a memory document exceeds the configured character cap."""

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"Memory document is {length} characters, limit is {limit}")
        self.length = length
        self.limit = limit


# ── Database ───────────────────────────────────────────────────────────────────


class Database:
    """
    Owner of one SQLite connection and the schema applied to it.

    When a ``StorePool`` is supplied the connection is borrowed from the
    pool and ``close()`` leaves it open; the pool owns its lifetime. Without
    a pool a private connection is opened and closed here.

    Usage::

        db = Database(StoreConfig(db_path="/tmp/c.db"))
        await db.initialize()
        try:
            messages = MessageStore(db)
            ...
        finally:
            await db.close()
    """

    def __init__(self, config: StoreConfig, pool: StorePool | None = None) -> None:
        self._config = config
        self._db_path = str(Path(config.db_path).expanduser())
        self._pool = pool
        self._conn: aiosqlite.Connection | None = None
        self._private_lock: asyncio.Lock | None = None
        self._logger = structlog.get_logger("concierge.store")

    @property
    def db_path(self) -> str:
        return self._db_path

    async def initialize(self) -> None:
        """
        Open (or borrow) the connection and apply ``schema.sql``.

        The schema uses ``CREATE ... IF NOT EXISTS`` throughout, so calling
        this against an existing database is safe.

        Raises:
            aiosqlite.Error: If the database cannot be opened or the schema fails.
        """
        if self._pool is not None:
            conn = await self._pool.acquire(
                self._db_path,
                wal_mode=self._config.wal_mode,
                connection_timeout=self._config.connection_timeout,
            )
        else:
            conn = await open_connection(
                self._db_path,
                wal_mode=self._config.wal_mode,
                connection_timeout=self._config.connection_timeout,
            )
            self._private_lock = asyncio.Lock()

        schema = (Path(__file__).parent / "schema.sql").read_text()
        await conn.executescript(schema)
        await conn.commit()

        self._conn = conn
        self._logger.info("store_initialized", db_path=self._db_path)

    async def close(self) -> None:
        """Release the connection. A pool-owned connection is left open."""
        if self._conn is None:
            return
        if self._pool is None:
            await self._conn.close()
        self._conn = None

    def conn(self) -> aiosqlite.Connection:
        """Return the live connection or raise ``StoreError`` before ``initialize()``."""
        if self._conn is None:
            raise StoreError("Store is not initialized. Call initialize() first.")
        return self._conn

    def _lock(self) -> asyncio.Lock:
        if self._pool is not None:
            return self._pool.write_lock(self._db_path)
        if self._private_lock is None:
            raise StoreError("Store is not initialized. Call initialize() first.")
        return self._private_lock

    @asynccontextmanager
    async def write(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Serialise a group of write statements and commit them together.

        Rolls back when the body raises. All stores sharing this connection
        go through the same lock, so a commit never flushes another task's
        half-finished statements.
        """
        conn = self.conn()
        async with self._lock():
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()
