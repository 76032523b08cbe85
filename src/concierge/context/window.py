"""Bounded, summary-aware context windows."""

from __future__ import annotations

import structlog

from concierge.compaction.summarizer import SummarizationError, Summarizer
from concierge.models.config import ContextConfig
from concierge.models.conversation import Window
from concierge.store.conversations import ConversationStore
from concierge.store.messages import MessageStore

logger = structlog.get_logger("concierge.context")


class ContextWindowManager:
    """
    Decide which messages of a conversation the completion engine sees.

    The conversation's ``summary_up_to`` cursor splits the log in two:
    messages at or before it are represented only by the rolling summary,
    messages after it are "active". Active messages are passed verbatim up
    to ``window_size``; once more than ``summarize_trigger`` of them pile up
    they are summarised synchronously before the turn proceeds, and the
    cursor advances past everything but the newest ``window_size``.

    Summarisation failures degrade the window and never fail the turn. Store
    errors do propagate.
    """

    def __init__(
        self,
        messages: MessageStore,
        conversations: ConversationStore,
        summarizer: Summarizer,
        config: ContextConfig,
    ) -> None:
        self._messages = messages
        self._conversations = conversations
        self._summarizer = summarizer
        self._config = config

    async def get_window(self, conversation_id: str) -> Window:
        summary, cursor = await self._conversations.get_summary_and_cursor(conversation_id)
        if cursor is None:
            return await self._window_without_cursor(conversation_id)
        return await self._window_since_cursor(conversation_id, summary, cursor)

    async def _window_without_cursor(self, conversation_id: str) -> Window:
        window_size = self._config.window_size
        total = await self._messages.count_all(conversation_id)
        logger.debug(
            "context_window_state",
            conversation_id=conversation_id,
            total=total,
            window_size=window_size,
            summarize_trigger=self._config.summarize_trigger,
            has_cursor=False,
        )

        if total <= window_size or total <= self._config.summarize_trigger:
            messages = await self._messages.list_all(conversation_id)
            return Window(messages=messages, total=total)

        # First summarisation of this conversation.
        all_messages = await self._messages.list_all(conversation_id)
        try:
            await self._summarizer.summarize_old_messages(conversation_id, all_messages)
        except SummarizationError as exc:
            logger.error(
                "synchronous_summarization_failed",
                conversation_id=conversation_id,
                error=str(exc),
            )
            return Window(messages=all_messages, total=total)

        summary, cursor = await self._conversations.get_summary_and_cursor(conversation_id)
        if cursor is not None:
            recent = await self._messages.list_recent_since(conversation_id, cursor, window_size)
            return Window(messages=recent, summary=summary, total=len(recent))

        recent = await self._messages.list_recent(conversation_id, window_size)
        return Window(messages=recent, summary=summary, total=total)

    async def _window_since_cursor(
        self, conversation_id: str, summary: str | None, cursor: int
    ) -> Window:
        window_size = self._config.window_size
        active = await self._messages.count_since(conversation_id, cursor)
        logger.debug(
            "context_window_state",
            conversation_id=conversation_id,
            active_count=active,
            window_size=window_size,
            summarize_trigger=self._config.summarize_trigger,
            has_cursor=True,
        )

        if active <= window_size:
            messages = await self._messages.list_since(conversation_id, cursor)
            return Window(messages=messages, summary=summary, total=active)

        if active > self._config.summarize_trigger:
            since_cursor = await self._messages.list_since(conversation_id, cursor)
            try:
                await self._summarizer.summarize_old_messages(conversation_id, since_cursor)
            except SummarizationError as exc:
                # Keep going with the previous summary and the newest window.
                logger.error(
                    "synchronous_summarization_failed",
                    conversation_id=conversation_id,
                    error=str(exc),
                )

            summary, new_cursor = await self._conversations.get_summary_and_cursor(
                conversation_id
            )
            cursor = new_cursor if new_cursor is not None else cursor
            recent = await self._messages.list_recent_since(conversation_id, cursor, window_size)
            return Window(messages=recent, summary=summary, total=len(recent))

        recent = await self._messages.list_recent_since(conversation_id, cursor, window_size)
        return Window(messages=recent, summary=summary, total=active)
