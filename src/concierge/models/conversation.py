"""Conversation, message and memory data models."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


def now_us() -> int:
    """Current wall-clock time as integer microseconds since the epoch."""
    return time.time_ns() // 1_000


class Role(StrEnum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ContentType(StrEnum):
    """Content-type tag for a message."""

    TEXT = "text"
    ACTION_RESULT = "action_result"
    """Synthetic user turn describing an action outcome. Clients hide these."""


class Message(BaseModel):
    """
    A single immutable conversation turn.

    ``id`` and ``created_at`` are assigned by the store when left empty.
    ``created_at`` is strictly increasing within a conversation, so it
    doubles as the summarisation cursor unit.
    """

    id: str = ""
    conversation_id: str
    role: Role
    content: str
    content_type: ContentType = ContentType.TEXT
    metadata: dict[str, Any] | None = None
    created_at: int = Field(
        default=0,
        description="Unix microsecond timestamp. 0 until the store assigns it.",
    )


class Conversation(BaseModel):
    """A conversation record owned by a user public key."""

    id: str
    owner_key: str
    title: str | None = None
    summary: str | None = None
    summary_up_to: int | None = Field(
        default=None,
        description="created_at of the newest message already folded into summary.",
    )
    created_at: int = Field(default_factory=now_us)
    updated_at: int = Field(default_factory=now_us)
    archived_at: int | None = None

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None


class ConversationWithMessages(BaseModel):
    """A conversation together with its full message log."""

    conversation: Conversation
    messages: list[Message] = Field(default_factory=list)


class UserMemory(BaseModel):
    """The free-form memory document kept for one user identity."""

    owner_key: str
    content: str = ""
    updated_at: int = Field(default_factory=now_us)


@dataclass
class Window:
    """
    Bounded view of a conversation handed to the completion engine.

    Built fresh for every request and never cached: the conversation may
    have changed between two requests.
    """

    messages: list[Message] = field(default_factory=list)
    summary: str | None = None
    total: int = 0

    @property
    def has_summary(self) -> bool:
        return self.summary is not None

    def completion_messages(self) -> list[dict[str, str]]:
        """Return the window as role/content dicts, skipping system messages."""
        return [
            {"role": m.role.value, "content": m.content}
            for m in self.messages
            if m.role != Role.SYSTEM
        ]
