"""Durable per-user memory document."""

from __future__ import annotations

import structlog

from concierge.models.conversation import UserMemory, now_us
from concierge.store.database import Database, MemoryTooLargeError


class UserMemoryStore:
    """
    One free-form memory document per owner key.

    Updates replace the whole document; there is no merge.
    """

    def __init__(self, db: Database, *, max_chars: int = 4000) -> None:
        self._db = db
        self._max_chars = max_chars
        self._logger = structlog.get_logger("concierge.store.memory")

    @property
    def max_chars(self) -> int:
        return self._max_chars

    async def get(self, owner_key: str) -> UserMemory | None:
        """Return the memory document for *owner_key*, or None if none was ever written."""
        conn = self._db.conn()
        async with conn.execute(
            "SELECT owner_key, content, updated_at FROM user_memories WHERE owner_key = ?",
            (owner_key,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return UserMemory(
            owner_key=row["owner_key"],
            content=row["content"],
            updated_at=row["updated_at"],
        )

    async def upsert(self, owner_key: str, content: str) -> UserMemory:
        """
        Replace the memory document for *owner_key*.

        Raises:
            MemoryTooLargeError: If *content* is longer than ``max_chars``.
        """
        if len(content) > self._max_chars:
            raise MemoryTooLargeError(len(content), self._max_chars)
        now = now_us()
        async with self._db.write() as conn:
            await conn.execute(
                """
                INSERT INTO user_memories (owner_key, content, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(owner_key) DO UPDATE SET
                    content = excluded.content,
                    updated_at = excluded.updated_at
                """,
                (owner_key, content, now),
            )
        self._logger.debug("memory_upserted", chars=len(content))
        return UserMemory(owner_key=owner_key, content=content, updated_at=now)
