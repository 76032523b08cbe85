"""SQLite persistence for conversations, messages and user memory."""

from concierge.store.conversations import ConversationStore
from concierge.store.database import (
    ConversationNotFoundError,
    Database,
    DuplicateIDError,
    MemoryTooLargeError,
    StoreError,
)
from concierge.store.memory import UserMemoryStore
from concierge.store.messages import MessageStore
from concierge.store.pool import StorePool

__all__ = [
    "ConversationNotFoundError",
    "ConversationStore",
    "Database",
    "DuplicateIDError",
    "MemoryTooLargeError",
    "MessageStore",
    "StorePool",
    "StoreError",
    "UserMemoryStore",
]
