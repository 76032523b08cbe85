"""Collaborators shared by the three abilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from concierge.agent.memory import MemoryChannel
from concierge.cache.suggestions import SuggestionCache
from concierge.events.bus import ConciergeEvent, EventBus
from concierge.llm.completion import CompletionEngine
from concierge.models.conversation import ContentType, Message, Role
from concierge.services.plugins import PluginSkillsProvider
from concierge.services.verifier import VerifierClient
from concierge.store.conversations import ConversationStore
from concierge.store.messages import MessageStore


@dataclass
class AgentDeps:
    """Everything an ability may touch. Optional collaborators may be None."""

    messages: MessageStore
    conversations: ConversationStore
    engine: CompletionEngine
    suggestions: SuggestionCache
    memory: MemoryChannel = field(default_factory=lambda: MemoryChannel(None))
    verifier: VerifierClient | None = None
    skills: PluginSkillsProvider | None = None
    event_bus: EventBus | None = None

    def publish(self, event: ConciergeEvent, payload: dict[str, Any]) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event, payload)

    async def store_message(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        *,
        content_type: ContentType = ContentType.TEXT,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        stored = await self.messages.create(
            Message(
                conversation_id=conversation_id,
                role=role,
                content=content,
                content_type=content_type,
                metadata=metadata,
            )
        )
        self.publish(
            ConciergeEvent.MESSAGE_CREATED,
            {
                "conversation_id": conversation_id,
                "message_id": stored.id,
                "role": stored.role.value,
                "content_type": stored.content_type.value,
            },
        )
        return stored
