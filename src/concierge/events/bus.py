"""In-process pub/sub event bus for conversation lifecycle events."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import structlog

Handler = Callable[["ConciergeEvent", dict[str, Any]], None | Awaitable[None]]


class ConciergeEvent(StrEnum):
    """All event types published by Concierge components.

    Payload keys are documented in :mod:`concierge.events.payloads`.
    """

    # Conversation lifecycle
    CONVERSATION_CREATED = "conversation.created"
    CONVERSATION_ARCHIVED = "conversation.archived"

    # Message log
    MESSAGE_CREATED = "message.created"

    # Rolling summary
    SUMMARIZATION_COMPLETED = "summarization.completed"
    SUMMARIZATION_FAILED = "summarization.failed"

    # User memory
    MEMORY_UPDATED = "memory.updated"

    # Suggestions and deferred builds
    SUGGESTION_CREATED = "suggestion.created"
    PENDING_BUILD_STORED = "pending_build.stored"
    PENDING_BUILD_CONSUMED = "pending_build.consumed"


class EventBus:
    """
    Simple in-process pub/sub event bus.

    - Sync handlers are called inline within ``publish()``.
    - Async handlers are scheduled via ``asyncio.create_task()``.
    - Handler exceptions are logged and never reach the publisher.

    One bus is normally shared by every component of a ``ConciergeService``.

    Example::

        bus = EventBus()

        def on_summary(event, payload):
            print(f"Summarised up to {payload['cursor']}")

        bus.subscribe(ConciergeEvent.SUMMARIZATION_COMPLETED, on_summary)
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self._handlers: dict[ConciergeEvent, list[Handler]] = {}
        self._global_handlers: list[Handler] = []
        self._logger = logger or structlog.get_logger("concierge.events")

    def subscribe(self, event: ConciergeEvent, handler: Handler) -> None:
        """Register a sync or async ``(event, payload)`` handler for one event type."""
        self._handlers.setdefault(event, []).append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        self._global_handlers.append(handler)

    def unsubscribe(self, event: ConciergeEvent, handler: Handler) -> None:
        """Remove a previously registered handler. No-op if not found."""
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: ConciergeEvent, payload: dict[str, Any]) -> None:
        """
        Publish an event to all registered handlers.

        Args:
            event: The event type to publish.
            payload: Event-specific data dictionary.
        """
        for handler in [*self._handlers.get(event, []), *self._global_handlers]:
            try:
                result = handler(event, payload)
                if asyncio.iscoroutine(result):
                    try:
                        loop = asyncio.get_running_loop()
                    except RuntimeError:
                        result.close()
                        continue
                    loop.create_task(result)  # noqa: RUF006
            except Exception as exc:
                self._logger.error(
                    "event_handler_error",
                    event=str(event),
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(exc),
                )
