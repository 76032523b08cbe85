"""
Concierge: conversational orchestration for a self-custodial wallet assistant.

Primary entry point::

    from concierge import ConciergeConfig, ConciergeService, SendMessageRequest

    async with await ConciergeService.create(ConciergeConfig.from_env()) as service:
        conversation = await service.create_conversation("0xabc")
        response = await service.send_message(
            conversation.id, SendMessageRequest(owner_key="0xabc", content="Hi!")
        )
        print(response.message.content)
"""

from concierge.service import ConciergeService
from concierge.models import (
    ActionResult,
    Balance,
    CacheConfig,
    CompletionConfig,
    ConciergeConfig,
    ContentType,
    ContextConfig,
    Conversation,
    ConversationWithMessages,
    InstallRequired,
    LoggingConfig,
    MemoryConfig,
    Message,
    MessageContext,
    PolicyReady,
    Role,
    SendMessageRequest,
    SendMessageResponse,
    StoreConfig,
    Suggestion,
    UserMemory,
    VerifierConfig,
    Window,
)
from concierge.errors import (
    ConciergeError,
    ConfigurationError,
    ConversationAccessError,
    MalformedOutputError,
    NotFoundError,
    SuggestionNotFoundError,
    UpstreamError,
    ValidationError,
)
from concierge.events.bus import ConciergeEvent, EventBus
from concierge.observability import configure_logging

__version__ = "0.1.0"

__all__ = [
    # Core
    "ConciergeService",
    "configure_logging",
    # Config
    "CacheConfig",
    "CompletionConfig",
    "ConciergeConfig",
    "ContextConfig",
    "LoggingConfig",
    "MemoryConfig",
    "StoreConfig",
    "VerifierConfig",
    # Data models
    "ActionResult",
    "Balance",
    "ContentType",
    "Conversation",
    "ConversationWithMessages",
    "InstallRequired",
    "Message",
    "MessageContext",
    "PolicyReady",
    "Role",
    "SendMessageRequest",
    "SendMessageResponse",
    "Suggestion",
    "UserMemory",
    "Window",
    # Errors
    "ConciergeError",
    "ConfigurationError",
    "ConversationAccessError",
    "MalformedOutputError",
    "NotFoundError",
    "SuggestionNotFoundError",
    "UpstreamError",
    "ValidationError",
    # Events
    "ConciergeEvent",
    "EventBus",
]
