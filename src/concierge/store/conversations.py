"""Conversation records: ownership, title, rolling summary and its cursor."""

from __future__ import annotations

import aiosqlite
import structlog

from concierge.ids import make_id
from concierge.models.conversation import Conversation, ConversationWithMessages, now_us
from concierge.store.database import ConversationNotFoundError, Database, DuplicateIDError
from concierge.store.messages import _COLUMNS as _MESSAGE_COLUMNS
from concierge.store.messages import _row_to_message


class ConversationStore:
    """
    SQLite-backed conversation records.

    Every owner-scoped read excludes archived conversations: an archived
    conversation, a conversation that does not exist and a conversation
    owned by someone else are indistinguishable to callers.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._logger = structlog.get_logger("concierge.store.conversations")

    async def create(
        self,
        owner_key: str,
        *,
        title: str | None = None,
        conversation_id: str | None = None,
    ) -> Conversation:
        """
        Insert a new conversation owned by *owner_key*.

        Raises:
            DuplicateIDError: If *conversation_id* is already taken.
        """
        conversation = Conversation(
            id=conversation_id or make_id("conv"),
            owner_key=owner_key,
            title=title,
        )
        try:
            async with self._db.write() as conn:
                await conn.execute(
                    """
                    INSERT INTO conversations (id, owner_key, title, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        conversation.id,
                        owner_key,
                        title,
                        conversation.created_at,
                        conversation.updated_at,
                    ),
                )
        except aiosqlite.IntegrityError as exc:
            raise DuplicateIDError(conversation.id) from exc
        self._logger.info("conversation_created", conversation_id=conversation.id)
        return conversation

    async def get_by_id(self, conversation_id: str, owner_key: str) -> Conversation:
        """
        Fetch a live conversation owned by *owner_key*.

        Raises:
            ConversationNotFoundError: If absent, archived, or owned by another key.
        """
        conn = self._db.conn()
        async with conn.execute(
            """
            SELECT * FROM conversations
            WHERE id = ? AND owner_key = ? AND archived_at IS NULL
            """,
            (conversation_id, owner_key),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise ConversationNotFoundError(conversation_id)
        return _row_to_conversation(row)

    async def get_summary_and_cursor(self, conversation_id: str) -> tuple[str | None, int | None]:
        """
        Read the rolling summary and its cursor in one query.

        Returns ``(None, None)`` for a conversation that has never been
        summarised.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.
        """
        conn = self._db.conn()
        async with conn.execute(
            "SELECT summary, summary_up_to FROM conversations WHERE id = ?",
            (conversation_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise ConversationNotFoundError(conversation_id)
        return row["summary"], row["summary_up_to"]

    async def update_summary_and_cursor(
        self, conversation_id: str, summary: str, cursor: int
    ) -> bool:
        """
        Replace the summary and advance the cursor in a single statement.

        The cursor never moves backwards: when another writer already
        advanced it past *cursor* the row is left untouched.

        Returns:
            True when the row was updated, False when a newer summary won.
        """
        async with self._db.write() as conn:
            result = await conn.execute(
                """
                UPDATE conversations
                SET summary = ?, summary_up_to = ?, updated_at = ?
                WHERE id = ? AND (summary_up_to IS NULL OR summary_up_to <= ?)
                """,
                (summary, cursor, now_us(), conversation_id, cursor),
            )
            updated = result.rowcount > 0
        if not updated:
            self._logger.warning(
                "summary_cursor_not_advanced",
                conversation_id=conversation_id,
                cursor=cursor,
            )
        return updated

    async def update_title(self, conversation_id: str, title: str) -> None:
        async with self._db.write() as conn:
            result = await conn.execute(
                "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ?",
                (title, now_us(), conversation_id),
            )
            if result.rowcount == 0:
                raise ConversationNotFoundError(conversation_id)

    async def archive(self, conversation_id: str, owner_key: str) -> None:
        """
        Soft-delete a conversation. Its messages are retained.

        Raises:
            ConversationNotFoundError: If absent, already archived, or foreign.
        """
        now = now_us()
        async with self._db.write() as conn:
            result = await conn.execute(
                """
                UPDATE conversations SET archived_at = ?, updated_at = ?
                WHERE id = ? AND owner_key = ? AND archived_at IS NULL
                """,
                (now, now, conversation_id, owner_key),
            )
            if result.rowcount == 0:
                raise ConversationNotFoundError(conversation_id)
        self._logger.info("conversation_archived", conversation_id=conversation_id)

    async def list(
        self, owner_key: str, *, limit: int = 20, offset: int = 0
    ) -> tuple[list[Conversation], int]:
        """
        List live conversations for *owner_key*, most recently updated first.

        Returns:
            ``(page, total)`` where *total* counts every live conversation.
        """
        conn = self._db.conn()
        async with conn.execute(
            "SELECT COUNT(*) FROM conversations WHERE owner_key = ? AND archived_at IS NULL",
            (owner_key,),
        ) as cursor:
            row = await cursor.fetchone()
        total = int(row[0]) if row else 0

        async with conn.execute(
            """
            SELECT * FROM conversations
            WHERE owner_key = ? AND archived_at IS NULL
            ORDER BY updated_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (owner_key, limit, offset),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_conversation(r) for r in rows], total

    async def get_with_messages(
        self, conversation_id: str, owner_key: str
    ) -> ConversationWithMessages:
        """Fetch a live owned conversation together with its full message log."""
        conversation = await self.get_by_id(conversation_id, owner_key)
        conn = self._db.conn()
        async with conn.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages"
            " WHERE conversation_id = ? ORDER BY created_at ASC",
            (conversation_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return ConversationWithMessages(
            conversation=conversation,
            messages=[_row_to_message(r) for r in rows],
        )


def _row_to_conversation(row: aiosqlite.Row) -> Conversation:
    return Conversation(
        id=row["id"],
        owner_key=row["owner_key"],
        title=row["title"],
        summary=row["summary"],
        summary_up_to=row["summary_up_to"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        archived_at=row["archived_at"],
    )
