"""Context window management."""

from concierge.context.window import ContextWindowManager

__all__ = ["ContextWindowManager"]
