"""Incremental summarisation of the older part of a conversation."""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from concierge.events.bus import ConciergeEvent, EventBus
from concierge.llm.completion import CompletionEngine, CompletionError, CompletionRequest
from concierge.models.config import ContextConfig
from concierge.models.conversation import Message
from concierge.store.conversations import ConversationStore
from concierge.store.database import StoreError

logger = structlog.get_logger("concierge.compaction")

SUMMARIZATION_PROMPT = """\
Summarize the following conversation between a user and the assistant. Focus on:
- Key user intents and requests
- Important decisions made
- Assets, amounts, chains, and addresses mentioned
- Actions taken or pending

Be concise but preserve all actionable details. \
This summary will be used as context for future messages."""


class SummarizationError(Exception):
    """Raised when a summarisation run produces or persists nothing."""

    def __init__(self, conversation_id: str, reason: str) -> None:
        super().__init__(f"Summarization of {conversation_id!r} failed: {reason}")
        self.conversation_id = conversation_id
        self.reason = reason


def render_transcript(messages: Sequence[Message]) -> str:
    """Render messages as ``[role]: content`` blocks separated by blank lines."""
    return "".join(f"[{m.role.value}]: {m.content}\n\n" for m in messages)


def build_summarization_prompt(previous_summary: str | None, messages: Sequence[Message]) -> str:
    prompt = SUMMARIZATION_PROMPT
    if previous_summary is not None:
        prompt += "\n\n## Previous Summary\n\n" + previous_summary
    return prompt + "\n\n## Messages to Summarize\n\n" + render_transcript(messages)


class Summarizer:
    """
    Fold everything but the newest ``window_size`` messages into the rolling summary.

    The previous summary is fed back into the prompt, so each run extends it
    instead of starting over. The new summary and the advanced cursor are
    written by a single statement.

    Example::

        summarizer = Summarizer(conversations, engine, ContextConfig(), bus)
        await summarizer.summarize_old_messages(conversation_id, all_since_cursor)
    """

    def __init__(
        self,
        conversations: ConversationStore,
        engine: CompletionEngine,
        config: ContextConfig,
        event_bus: EventBus | None = None,
    ) -> None:
        self._conversations = conversations
        self._engine = engine
        self._config = config
        self._event_bus = event_bus

    async def summarize_old_messages(
        self, conversation_id: str, messages: Sequence[Message]
    ) -> bool:
        """
        Summarise ``messages[:-window_size]`` into the conversation summary.

        Args:
            conversation_id: Conversation being summarised.
            messages: Chronological messages not yet covered by the summary.

        Returns:
            False when there was nothing to summarise, True otherwise.

        Raises:
            SummarizationError: If the completion fails, returns no text, or
                the summary cannot be stored.
        """
        window_size = self._config.window_size
        if len(messages) <= window_size:
            return False

        old = list(messages[: len(messages) - window_size])
        log = logger.bind(conversation_id=conversation_id)

        try:
            previous, _ = await self._conversations.get_summary_and_cursor(conversation_id)
            request = CompletionRequest(
                system="",
                messages=[{"role": "user", "content": build_summarization_prompt(previous, old)}],
                max_tokens=self._config.summary_max_tokens,
                model=self._config.summary_model,
            )
            response = await self._engine.complete(request)
            summary = response.text
            if not summary:
                raise SummarizationError(conversation_id, "empty response from completion engine")

            cursor = old[-1].created_at
            applied = await self._conversations.update_summary_and_cursor(
                conversation_id, summary, cursor
            )
        except SummarizationError as exc:
            self._publish_failure(conversation_id, exc)
            raise
        except (CompletionError, StoreError) as exc:
            self._publish_failure(conversation_id, exc)
            raise SummarizationError(conversation_id, str(exc)) from exc

        log.info(
            "conversation_summary_updated",
            summary_length=len(summary),
            summary_up_to=cursor,
            summarized_count=len(old),
            applied=applied,
        )
        if self._event_bus is not None:
            self._event_bus.publish(
                ConciergeEvent.SUMMARIZATION_COMPLETED,
                {
                    "conversation_id": conversation_id,
                    "summarized_count": len(old),
                    "cursor": cursor,
                    "applied": applied,
                },
            )
        return True

    def _publish_failure(self, conversation_id: str, exc: Exception) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(
                ConciergeEvent.SUMMARIZATION_FAILED,
                {"conversation_id": conversation_id, "error": str(exc)},
            )
