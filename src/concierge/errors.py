"""Caller-facing error taxonomy.

Components below the ability router raise their own errors (``StoreError``,
``CompletionError``, ``VerifierError``...). The router translates them into
one of the classes here, which the transport layer maps to responses.
"""

from __future__ import annotations


class ConciergeError(Exception):
    """Base class for errors surfaced to callers of the service."""


class NotFoundError(ConciergeError):
    """A conversation or suggestion does not exist, is archived, or belongs to someone else."""


class ConversationAccessError(NotFoundError):
    """Raised when a conversation is absent, archived or owned by another identity."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id!r}")
        self.conversation_id = conversation_id


class SuggestionNotFoundError(NotFoundError):
    """Raised when a selected suggestion id is unknown or has expired."""

    def __init__(self, suggestion_id: str) -> None:
        super().__init__(f"Suggestion not found or expired: {suggestion_id!r}")
        self.suggestion_id = suggestion_id


class ValidationError(ConciergeError):
    """A request is missing required fields. Raised before any external call."""


class UpstreamError(ConciergeError):
    """The completion engine or verifier failed. The turn failed; callers may retry it."""


class MalformedOutputError(ConciergeError):
    """A forced or required structured tool output was missing or unparsable."""


class ConfigurationError(ConciergeError):
    """A collaborator the request needs is not configured."""
