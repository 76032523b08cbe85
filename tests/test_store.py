"""Tests for MessageStore, ConversationStore, UserMemoryStore and StorePool."""

from __future__ import annotations

import asyncio

import pytest

from concierge.models.config import StoreConfig
from concierge.models.conversation import ContentType, Message, Role
from concierge.store.database import (
    ConversationNotFoundError,
    Database,
    DuplicateIDError,
    MemoryTooLargeError,
    StoreError,
)
from concierge.store.messages import MessageStore
from tests.conftest import OWNER, make_message


async def _append(messages: MessageStore, conversation_id: str, count: int) -> list[Message]:
    stored = []
    for i in range(count):
        role = Role.USER if i % 2 == 0 else Role.ASSISTANT
        stored.append(await messages.create(make_message(conversation_id, role, f"m{i}")))
    return stored


class TestMessageStore:
    async def test_create_assigns_id_and_timestamp(self, messages, conversation):
        """create() fills in a msg_ id and a positive created_at."""
        stored = await messages.create(make_message(conversation.id))
        assert stored.id.startswith("msg_")
        assert stored.created_at > 0
        loaded = await messages.list_all(conversation.id)
        assert [m.id for m in loaded] == [stored.id]

    async def test_explicit_id_is_kept(self, messages, conversation):
        """A caller-supplied id is stored as-is."""
        msg = make_message(conversation.id).model_copy(update={"id": "msg_fixed"})
        stored = await messages.create(msg)
        assert stored.id == "msg_fixed"

    async def test_duplicate_id_raises(self, messages, conversation):
        """Reusing a message id raises DuplicateIDError."""
        msg = make_message(conversation.id).model_copy(update={"id": "msg_dup"})
        await messages.create(msg)
        with pytest.raises(DuplicateIDError):
            await messages.create(msg)

    async def test_unknown_conversation_raises(self, messages):
        """Appending to a missing conversation raises ConversationNotFoundError."""
        with pytest.raises(ConversationNotFoundError):
            await messages.create(make_message("conv_missing"))

    async def test_timestamps_strictly_increase_when_clock_stalls(
        self, messages, conversation, monkeypatch
    ):
        """A frozen clock still yields unique, increasing created_at values."""
        monkeypatch.setattr("concierge.store.messages.now_us", lambda: 1_000)
        stored = await _append(messages, conversation.id, 5)
        stamps = [m.created_at for m in stored]
        assert stamps == [1_000, 1_001, 1_002, 1_003, 1_004]

    async def test_timestamps_never_go_backwards(self, messages, conversation, monkeypatch):
        """A clock stepping backwards cannot reorder the log."""
        clock = iter([5_000, 4_000, 3_000])
        monkeypatch.setattr("concierge.store.messages.now_us", lambda: next(clock))
        stored = await _append(messages, conversation.id, 3)
        assert [m.created_at for m in stored] == [5_000, 5_001, 5_002]
        assert [m.content for m in await messages.list_all(conversation.id)] == [
            "m0",
            "m1",
            "m2",
        ]

    async def test_concurrent_appends_get_unique_timestamps(self, messages, conversation):
        """Concurrent create() calls on one conversation never collide."""
        await asyncio.gather(
            *(messages.create(make_message(conversation.id, content=f"c{i}")) for i in range(10))
        )
        loaded = await messages.list_all(conversation.id)
        stamps = [m.created_at for m in loaded]
        assert len(set(stamps)) == 10
        assert stamps == sorted(stamps)

    async def test_metadata_and_content_type_round_trip(self, messages, conversation):
        """Metadata is stored as JSON and content_type is preserved."""
        await messages.create(
            Message(
                conversation_id=conversation.id,
                role=Role.USER,
                content="[Action completed: install_plugin was successful]",
                content_type=ContentType.ACTION_RESULT,
                metadata={"intent": "action_request", "suggestions": []},
            )
        )
        (loaded,) = await messages.list_all(conversation.id)
        assert loaded.content_type == ContentType.ACTION_RESULT
        assert loaded.metadata == {"intent": "action_request", "suggestions": []}

    async def test_counts(self, messages, conversation):
        """count_all counts everything; count_since is strictly after the cursor."""
        stored = await _append(messages, conversation.id, 6)
        assert await messages.count_all(conversation.id) == 6
        assert await messages.count_since(conversation.id, stored[1].created_at) == 4
        assert await messages.count_since(conversation.id, stored[-1].created_at) == 0

    async def test_list_since_is_exclusive_and_chronological(self, messages, conversation):
        stored = await _append(messages, conversation.id, 5)
        since = await messages.list_since(conversation.id, stored[2].created_at)
        assert [m.id for m in since] == [stored[3].id, stored[4].id]

    async def test_list_recent_returns_newest_oldest_first(self, messages, conversation):
        """list_recent picks the newest N but returns them in chronological order."""
        stored = await _append(messages, conversation.id, 6)
        recent = await messages.list_recent(conversation.id, 3)
        assert [m.id for m in recent] == [m.id for m in stored[3:]]

    async def test_list_recent_since(self, messages, conversation):
        stored = await _append(messages, conversation.id, 8)
        recent = await messages.list_recent_since(conversation.id, stored[1].created_at, 4)
        assert [m.id for m in recent] == [m.id for m in stored[4:]]
        fewer = await messages.list_recent_since(conversation.id, stored[5].created_at, 4)
        assert [m.id for m in fewer] == [m.id for m in stored[6:]]

    async def test_append_bumps_conversation_updated_at(
        self, messages, conversations, conversation
    ):
        stored = await messages.create(make_message(conversation.id))
        loaded = await conversations.get_by_id(conversation.id, OWNER)
        assert loaded.updated_at >= stored.created_at


class TestConversationStore:
    async def test_create_and_get(self, conversations):
        """A created conversation is readable by its owner."""
        created = await conversations.create(OWNER, title="DCA plans")
        assert created.id.startswith("conv_")
        loaded = await conversations.get_by_id(created.id, OWNER)
        assert loaded.title == "DCA plans"
        assert loaded.summary is None
        assert loaded.summary_up_to is None
        assert loaded.is_archived is False

    async def test_duplicate_id_raises(self, conversations):
        await conversations.create(OWNER, conversation_id="conv_dup")
        with pytest.raises(DuplicateIDError):
            await conversations.create(OWNER, conversation_id="conv_dup")

    async def test_foreign_owner_cannot_read(self, conversations, conversation):
        """A conversation owned by someone else looks absent."""
        with pytest.raises(ConversationNotFoundError):
            await conversations.get_by_id(conversation.id, "0xsomeoneelse")

    async def test_archived_is_hidden(self, conversations, conversation):
        """Archived conversations are excluded from get_by_id and list."""
        await conversations.archive(conversation.id, OWNER)
        with pytest.raises(ConversationNotFoundError):
            await conversations.get_by_id(conversation.id, OWNER)
        page, total = await conversations.list(OWNER)
        assert page == []
        assert total == 0

    async def test_archive_twice_raises(self, conversations, conversation):
        await conversations.archive(conversation.id, OWNER)
        with pytest.raises(ConversationNotFoundError):
            await conversations.archive(conversation.id, OWNER)

    async def test_archive_keeps_messages(self, conversations, messages, conversation):
        await messages.create(make_message(conversation.id))
        await conversations.archive(conversation.id, OWNER)
        assert await messages.count_all(conversation.id) == 1

    async def test_summary_and_cursor_missing_conversation(self, conversations):
        with pytest.raises(ConversationNotFoundError):
            await conversations.get_summary_and_cursor("conv_missing")

    async def test_update_summary_and_cursor(self, conversations, conversation):
        """Summary and cursor are written together."""
        assert await conversations.get_summary_and_cursor(conversation.id) == (None, None)
        applied = await conversations.update_summary_and_cursor(conversation.id, "s1", 100)
        assert applied is True
        assert await conversations.get_summary_and_cursor(conversation.id) == ("s1", 100)

    async def test_cursor_never_moves_backwards(self, conversations, conversation):
        """An older cursor is rejected and the newer summary is kept."""
        await conversations.update_summary_and_cursor(conversation.id, "newer", 200)
        applied = await conversations.update_summary_and_cursor(conversation.id, "older", 100)
        assert applied is False
        assert await conversations.get_summary_and_cursor(conversation.id) == ("newer", 200)

    async def test_update_title(self, conversations, conversation):
        await conversations.update_title(conversation.id, "Hi")
        loaded = await conversations.get_by_id(conversation.id, OWNER)
        assert loaded.title == "Hi"

    async def test_update_title_missing_raises(self, conversations):
        with pytest.raises(ConversationNotFoundError):
            await conversations.update_title("conv_missing", "x")

    async def test_list_is_paginated_newest_first(self, conversations, messages):
        """list() orders by latest activity and reports the full total."""
        created = [await conversations.create(OWNER) for _ in range(3)]
        await conversations.create("0xother")
        # Activity on the oldest conversation moves it to the front.
        await messages.create(make_message(created[0].id))

        page, total = await conversations.list(OWNER, limit=2)
        assert total == 3
        assert [c.id for c in page][0] == created[0].id
        assert len(page) == 2

        rest, total = await conversations.list(OWNER, limit=2, offset=2)
        assert total == 3
        assert len(rest) == 1

    async def test_get_with_messages(self, conversations, messages, conversation):
        await _append(messages, conversation.id, 3)
        full = await conversations.get_with_messages(conversation.id, OWNER)
        assert full.conversation.id == conversation.id
        assert [m.content for m in full.messages] == ["m0", "m1", "m2"]


class TestUserMemoryStore:
    async def test_get_missing_returns_none(self, memory_store):
        assert await memory_store.get(OWNER) is None

    async def test_upsert_replaces_whole_document(self, memory_store):
        """A second upsert replaces the document, it does not merge."""
        await memory_store.upsert(OWNER, "# Prefs\n- likes ETH")
        await memory_store.upsert(OWNER, "# Prefs\n- weekly DCA")
        memory = await memory_store.get(OWNER)
        assert memory is not None
        assert memory.content == "# Prefs\n- weekly DCA"

    async def test_documents_are_per_owner(self, memory_store):
        await memory_store.upsert(OWNER, "a")
        await memory_store.upsert("0xother", "b")
        assert (await memory_store.get(OWNER)).content == "a"
        assert (await memory_store.get("0xother")).content == "b"

    async def test_too_large_raises(self, memory_store):
        with pytest.raises(MemoryTooLargeError):
            await memory_store.upsert(OWNER, "x" * 4001)
        assert await memory_store.get(OWNER) is None

    async def test_limit_is_inclusive(self, memory_store):
        await memory_store.upsert(OWNER, "x" * 4000)
        assert len((await memory_store.get(OWNER)).content) == 4000


class TestDatabase:
    async def test_pool_shares_one_connection_per_path(self, config, pool):
        """Two Databases on the same path share the pooled connection."""
        a = Database(config.store, pool=pool)
        b = Database(config.store, pool=pool)
        await a.initialize()
        await b.initialize()
        assert a.conn() is b.conn()

    async def test_private_connection_without_pool(self, tmp_path):
        d = Database(StoreConfig(db_path=str(tmp_path / "private.db")))
        await d.initialize()
        try:
            store = MessageStore(d)
            assert await store.count_all("conv_none") == 0
        finally:
            await d.close()

    async def test_conn_before_initialize_raises(self, config):
        d = Database(config.store)
        with pytest.raises(StoreError):
            d.conn()

    async def test_write_before_initialize_raises(self, config):
        d = Database(config.store)
        with pytest.raises(StoreError):
            async with d.write():
                pass
        with pytest.raises(StoreError):
            d._lock()

    async def test_initialize_is_idempotent(self, config, pool, db):
        """Re-applying the schema to an existing database is a no-op."""
        again = Database(config.store, pool=pool)
        await again.initialize()
        assert again.conn() is db.conn()
