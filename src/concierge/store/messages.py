"""Append-only message log."""

from __future__ import annotations

import json
from typing import Any

import aiosqlite
import structlog

from concierge.ids import make_id
from concierge.models.conversation import ContentType, Message, Role, now_us
from concierge.store.database import ConversationNotFoundError, Database, DuplicateIDError

_COLUMNS = "id, conversation_id, role, content, content_type, metadata, created_at"


class MessageStore:
    """
    Append-only, SQLite-backed message log.

    Messages are never updated or deleted. Every read returns messages in
    chronological order. ``created_at`` is assigned inside the insert as
    ``max(now, newest + 1)`` for the conversation, so timestamps are unique
    and strictly increasing per conversation even when the clock stalls or
    steps backwards.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._logger = structlog.get_logger("concierge.store.messages")

    async def create(self, message: Message) -> Message:
        """
        Append a message.

        Args:
            message: The message to persist. An empty ``id`` is replaced
                with a fresh ``msg_<ulid>``. ``created_at`` is always
                assigned by the store.

        Returns:
            A copy of the message carrying its stored ``id`` and ``created_at``.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.
            DuplicateIDError: If a message with this ID already exists.
        """
        message_id = message.id or make_id("msg")
        meta_json = json.dumps(message.metadata) if message.metadata is not None else None
        try:
            async with self._db.write() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO messages ({_COLUMNS})
                    SELECT ?, ?, ?, ?, ?, ?, MAX(?, COALESCE(MAX(created_at) + 1, 0))
                    FROM messages WHERE conversation_id = ?
                    """,
                    (
                        message_id,
                        message.conversation_id,
                        message.role.value,
                        message.content,
                        message.content_type.value,
                        meta_json,
                        now_us(),
                        message.conversation_id,
                    ),
                )
                async with conn.execute(
                    "SELECT created_at FROM messages WHERE id = ?", (message_id,)
                ) as cursor:
                    row = await cursor.fetchone()
                created_at = int(row[0])
                await conn.execute(
                    "UPDATE conversations SET updated_at = MAX(updated_at, ?) WHERE id = ?",
                    (created_at, message.conversation_id),
                )
        except aiosqlite.IntegrityError as exc:
            if "FOREIGN KEY" in str(exc):
                raise ConversationNotFoundError(message.conversation_id) from exc
            raise DuplicateIDError(message_id) from exc

        self._logger.debug(
            "message_created",
            conversation_id=message.conversation_id,
            message_id=message_id,
            role=message.role.value,
        )
        return message.model_copy(update={"id": message_id, "created_at": created_at})

    # ── Counts ─────────────────────────────────────────────────────────────────

    async def count_all(self, conversation_id: str) -> int:
        return await self._scalar(
            "SELECT COUNT(*) FROM messages WHERE conversation_id = ?",
            (conversation_id,),
        )

    async def count_since(self, conversation_id: str, cursor: int) -> int:
        """Count messages created strictly after *cursor*."""
        return await self._scalar(
            "SELECT COUNT(*) FROM messages WHERE conversation_id = ? AND created_at > ?",
            (conversation_id, cursor),
        )

    # ── Lists ──────────────────────────────────────────────────────────────────

    async def list_all(self, conversation_id: str) -> list[Message]:
        return await self._fetch(
            f"SELECT {_COLUMNS} FROM messages WHERE conversation_id = ? ORDER BY created_at ASC",
            (conversation_id,),
        )

    async def list_since(self, conversation_id: str, cursor: int) -> list[Message]:
        """All messages created strictly after *cursor*, oldest first."""
        return await self._fetch(
            f"SELECT {_COLUMNS} FROM messages"
            " WHERE conversation_id = ? AND created_at > ?"
            " ORDER BY created_at ASC",
            (conversation_id, cursor),
        )

    async def list_recent(self, conversation_id: str, limit: int) -> list[Message]:
        """The newest *limit* messages, returned oldest first."""
        rows = await self._fetch(
            f"SELECT {_COLUMNS} FROM messages WHERE conversation_id = ?"
            " ORDER BY created_at DESC LIMIT ?",
            (conversation_id, limit),
        )
        rows.reverse()
        return rows

    async def list_recent_since(
        self, conversation_id: str, cursor: int, limit: int
    ) -> list[Message]:
        """The newest *limit* messages created strictly after *cursor*, oldest first."""
        rows = await self._fetch(
            f"SELECT {_COLUMNS} FROM messages"
            " WHERE conversation_id = ? AND created_at > ?"
            " ORDER BY created_at DESC LIMIT ?",
            (conversation_id, cursor, limit),
        )
        rows.reverse()
        return rows

    # ── Helpers ────────────────────────────────────────────────────────────────

    async def _scalar(self, sql: str, params: tuple[Any, ...]) -> int:
        conn = self._db.conn()
        async with conn.execute(sql, params) as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def _fetch(self, sql: str, params: tuple[Any, ...]) -> list[Message]:
        conn = self._db.conn()
        async with conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_message(r) for r in rows]


def _row_to_message(row: aiosqlite.Row) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=Role(row["role"]),
        content=row["content"],
        content_type=ContentType(row["content_type"]),
        metadata=json.loads(row["metadata"]) if row["metadata"] else None,
        created_at=row["created_at"],
    )
