"""
Structured tool outputs.

Each tool the abilities offer to the model has a JSON input schema and a
matching pydantic record. ``decode_tool_call()`` turns a raw tool call into
the record selected by the tool name.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from concierge.llm.completion import ToolCallBlock, ToolDefinition

RESPOND_TO_USER = "respond_to_user"
BUILD_POLICY = "build_policy"
CONFIRM_ACTION = "confirm_action"
UPDATE_MEMORY = "update_memory"


class ToolOutputError(Exception):
    """Raised when a tool call has an unknown name or arguments that do not fit its schema."""

    def __init__(self, tool_name: str, reason: str) -> None:
        super().__init__(f"Invalid {tool_name!r} tool output: {reason}")
        self.tool_name = tool_name
        self.reason = reason


# ── Payloads ───────────────────────────────────────────────────────────────────


class ToolSuggestion(BaseModel):
    plugin_id: str = ""
    title: str = ""
    description: str = ""


class RespondToUser(BaseModel):
    """Reply to a free-form turn, with the detected intent and optional suggestions."""

    # The model may answer with an intent outside the advertised enum.
    intent: str = ""
    response: str
    suggestions: list[ToolSuggestion] = Field(default_factory=list)


class BuildPolicy(BaseModel):
    configuration: dict[str, Any]
    explanation: str


class ConfirmAction(BaseModel):
    response: str
    next_steps: list[str] = Field(default_factory=list)


class UpdateMemory(BaseModel):
    content: str


ToolPayload = RespondToUser | BuildPolicy | ConfirmAction | UpdateMemory

_PAYLOADS: dict[str, type[BaseModel]] = {
    RESPOND_TO_USER: RespondToUser,
    BUILD_POLICY: BuildPolicy,
    CONFIRM_ACTION: ConfirmAction,
    UPDATE_MEMORY: UpdateMemory,
}


def decode_tool_call(call: ToolCallBlock) -> ToolPayload:
    """
    Decode *call* into its payload record.

    Raises:
        ToolOutputError: On an unknown tool name, non-object arguments, or
            arguments that fail validation.
    """
    model = _PAYLOADS.get(call.name)
    if model is None:
        raise ToolOutputError(call.name, "unknown tool")
    if call.arguments is None:
        raise ToolOutputError(call.name, "arguments are not a JSON object")
    try:
        return model.model_validate(call.arguments)  # type: ignore[return-value]
    except PydanticValidationError as exc:
        raise ToolOutputError(call.name, str(exc)) from exc


# ── Definitions ────────────────────────────────────────────────────────────────

RESPOND_TO_USER_TOOL = ToolDefinition(
    name=RESPOND_TO_USER,
    description=(
        "Respond to the user with detected intent and optional suggestions "
        "for actions they can take."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "intent": {
                "type": "string",
                "enum": ["action_request", "general_question", "unclear"],
                "description": (
                    "The detected user intent: 'action_request' for DCA/swap/send requests, "
                    "'general_question' for informational queries, 'unclear' when more "
                    "context is needed."
                ),
            },
            "response": {
                "type": "string",
                "description": "The response text to show the user.",
            },
            "suggestions": {
                "type": "array",
                "description": (
                    "Optional action suggestions based on the user's intent. "
                    "Only include for action_request intents."
                ),
                "items": {
                    "type": "object",
                    "properties": {
                        "plugin_id": {
                            "type": "string",
                            "description": "The plugin ID that can handle this action.",
                        },
                        "title": {
                            "type": "string",
                            "description": (
                                "A short, descriptive title for the suggestion "
                                "(e.g., 'Weekly DCA into ETH')."
                            ),
                        },
                        "description": {
                            "type": "string",
                            "description": "A brief description of what this suggestion will do.",
                        },
                    },
                    "required": ["plugin_id", "title", "description"],
                },
            },
        },
        "required": ["intent", "response"],
    },
)

BUILD_POLICY_TOOL = ToolDefinition(
    name=BUILD_POLICY,
    description="Build a policy configuration based on the user's conversation and the plugin's schema.",
    input_schema={
        "type": "object",
        "properties": {
            "configuration": {
                "type": "object",
                "description": (
                    "The configuration object matching the plugin's recipe schema. Include "
                    "all required fields based on conversation context."
                ),
                "additionalProperties": True,
            },
            "explanation": {
                "type": "string",
                "description": "A brief human-readable explanation of what was configured.",
            },
        },
        "required": ["configuration", "explanation"],
    },
)

CONFIRM_ACTION_TOOL = ToolDefinition(
    name=CONFIRM_ACTION,
    description="Generate a confirmation message for a completed action (success or failure).",
    input_schema={
        "type": "object",
        "properties": {
            "response": {
                "type": "string",
                "description": (
                    "A friendly, concise message confirming the action result. For success: "
                    "celebrate and summarize what was set up. For failure: explain what went "
                    "wrong and offer help."
                ),
            },
            "next_steps": {
                "type": "array",
                "description": "Optional list of suggested next actions the user might want to take.",
                "items": {"type": "string"},
            },
        },
        "required": ["response"],
    },
)


def update_memory_tool(max_chars: int = 4000) -> ToolDefinition:
    return ToolDefinition(
        name=UPDATE_MEMORY,
        description=(
            "Update your persistent memory about this user. Send the COMPLETE updated "
            "memory document (markdown). This replaces the entire document. Only call "
            "this when you learn something new worth remembering."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": (
                        "The full updated memory document in markdown format. "
                        f"Max {max_chars} characters."
                    ),
                },
            },
            "required": ["content"],
        },
    )
