"""Concierge data models."""

from concierge.models.agent import (
    ActionResult,
    Balance,
    InstallRequired,
    MessageContext,
    PolicyReady,
    SendMessageRequest,
    SendMessageResponse,
    Suggestion,
)
from concierge.models.config import (
    CacheConfig,
    CompletionConfig,
    ConciergeConfig,
    ContextConfig,
    LoggingConfig,
    MemoryConfig,
    StoreConfig,
    VerifierConfig,
)
from concierge.models.conversation import (
    ContentType,
    Conversation,
    ConversationWithMessages,
    Message,
    Role,
    UserMemory,
    Window,
)

__all__ = [
    # Config
    "CacheConfig",
    "CompletionConfig",
    "ConciergeConfig",
    "ContextConfig",
    "LoggingConfig",
    "MemoryConfig",
    "StoreConfig",
    "VerifierConfig",
    # Conversation
    "ContentType",
    "Conversation",
    "ConversationWithMessages",
    "Message",
    "Role",
    "UserMemory",
    "Window",
    # Agent I/O
    "ActionResult",
    "Balance",
    "InstallRequired",
    "MessageContext",
    "PolicyReady",
    "SendMessageRequest",
    "SendMessageResponse",
    "Suggestion",
]
