"""The optional update_memory side-channel shared by Detect and Confirm."""

from __future__ import annotations

import structlog

from concierge.agent.prompts import memory_section
from concierge.events.bus import ConciergeEvent, EventBus
from concierge.llm.completion import CompletionResponse, ToolDefinition
from concierge.llm.tools import (
    UPDATE_MEMORY,
    ToolOutputError,
    UpdateMemory,
    decode_tool_call,
    update_memory_tool,
)
from concierge.store.database import StoreError
from concierge.store.memory import UserMemoryStore

logger = structlog.get_logger("concierge.agent.memory")


class MemoryChannel:
    """
    Read the user's memory into prompts and apply model-requested rewrites.

    Every failure here is logged and swallowed: memory is best-effort and
    never fails a turn. When no store is configured the channel is inert.
    """

    def __init__(self, store: UserMemoryStore | None, event_bus: EventBus | None = None) -> None:
        self._store = store
        self._event_bus = event_bus

    @property
    def enabled(self) -> bool:
        return self._store is not None

    def tools(self) -> list[ToolDefinition]:
        if self._store is None:
            return []
        return [update_memory_tool(self._store.max_chars)]

    async def load_section(self, owner_key: str) -> str:
        if self._store is None:
            return ""
        try:
            memory = await self._store.get(owner_key)
        except StoreError as exc:
            logger.warning("memory_load_failed", error=str(exc))
            return ""
        return memory_section(memory.content if memory else None)

    def extract(self, response: CompletionResponse) -> UpdateMemory | None:
        """Return the first well-formed update_memory payload. Malformed ones are skipped."""
        for call in response.tool_calls(UPDATE_MEMORY):
            try:
                payload = decode_tool_call(call)
            except ToolOutputError as exc:
                logger.warning("update_memory_malformed", error=exc.reason)
                continue
            if isinstance(payload, UpdateMemory):
                return payload
        return None

    async def apply(self, owner_key: str, response: CompletionResponse) -> None:
        """Persist the update_memory payload in *response*, if any."""
        if self._store is None:
            return
        update = self.extract(response)
        if update is None:
            return
        limit = self._store.max_chars
        if len(update.content) > limit:
            logger.warning("memory_update_rejected_too_large", length=len(update.content), max=limit)
            return
        try:
            await self._store.upsert(owner_key, update.content)
        except StoreError as exc:
            logger.error("memory_update_failed", error=str(exc))
            return
        logger.debug("memory_updated", length=len(update.content))
        if self._event_bus is not None:
            self._event_bus.publish(ConciergeEvent.MEMORY_UPDATED, {"chars": len(update.content)})
