"""Completion engine adapter and structured tool outputs."""

from concierge.llm.completion import (
    CompletionEngine,
    CompletionError,
    CompletionRequest,
    CompletionResponse,
    TextBlock,
    ToolCallBlock,
    ToolChoice,
    ToolDefinition,
)
from concierge.llm.tools import (
    BuildPolicy,
    ConfirmAction,
    RespondToUser,
    ToolOutputError,
    ToolSuggestion,
    UpdateMemory,
    decode_tool_call,
)

__all__ = [
    "BuildPolicy",
    "CompletionEngine",
    "CompletionError",
    "CompletionRequest",
    "CompletionResponse",
    "ConfirmAction",
    "RespondToUser",
    "TextBlock",
    "ToolCallBlock",
    "ToolChoice",
    "ToolDefinition",
    "ToolOutputError",
    "ToolSuggestion",
    "UpdateMemory",
    "decode_tool_call",
]
