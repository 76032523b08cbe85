"""Typed payload definitions for each ConciergeEvent.

Usage example::

    from concierge.events.bus import ConciergeEvent, EventBus
    from concierge.events.payloads import SummarizationCompletedPayload

    def on_summary(event: ConciergeEvent, payload: SummarizationCompletedPayload) -> None:
        print(f"{payload['summarized_count']} messages folded into the summary")

    bus.subscribe(ConciergeEvent.SUMMARIZATION_COMPLETED, on_summary)  # type: ignore[arg-type]
"""

from __future__ import annotations

from typing import TypedDict


class ConversationCreatedPayload(TypedDict):
    """Payload for :attr:`ConciergeEvent.CONVERSATION_CREATED`."""

    conversation_id: str


class ConversationArchivedPayload(TypedDict):
    """Payload for :attr:`ConciergeEvent.CONVERSATION_ARCHIVED`."""

    conversation_id: str


class MessageCreatedPayload(TypedDict):
    """Payload for :attr:`ConciergeEvent.MESSAGE_CREATED`."""

    conversation_id: str
    message_id: str
    role: str
    content_type: str


class SummarizationCompletedPayload(TypedDict):
    """Payload for :attr:`ConciergeEvent.SUMMARIZATION_COMPLETED`."""

    conversation_id: str
    summarized_count: int
    """Messages folded into the summary by this run."""
    cursor: int
    """New ``summary_up_to`` value."""
    applied: bool
    """False when a concurrent run had already advanced the cursor further."""


class SummarizationFailedPayload(TypedDict):
    """Payload for :attr:`ConciergeEvent.SUMMARIZATION_FAILED`."""

    conversation_id: str
    error: str


class MemoryUpdatedPayload(TypedDict):
    """Payload for :attr:`ConciergeEvent.MEMORY_UPDATED`. Carries no user identity."""

    chars: int


class SuggestionCreatedPayload(TypedDict):
    conversation_id: str
    suggestion_id: str
    plugin_id: str


class PendingBuildPayload(TypedDict):
    """Payload for both pending-build events."""

    conversation_id: str
    suggestion_id: str
