"""Concierge event bus."""

from concierge.events.bus import ConciergeEvent, EventBus, Handler
from concierge.events.payloads import (
    ConversationArchivedPayload,
    ConversationCreatedPayload,
    MemoryUpdatedPayload,
    MessageCreatedPayload,
    PendingBuildPayload,
    SuggestionCreatedPayload,
    SummarizationCompletedPayload,
    SummarizationFailedPayload,
)

__all__ = [
    "ConciergeEvent",
    "ConversationArchivedPayload",
    "ConversationCreatedPayload",
    "EventBus",
    "Handler",
    "MemoryUpdatedPayload",
    "MessageCreatedPayload",
    "PendingBuildPayload",
    "SuggestionCreatedPayload",
    "SummarizationCompletedPayload",
    "SummarizationFailedPayload",
]
