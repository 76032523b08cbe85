"""Completion engine adapter over litellm."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from concierge.models.config import CompletionConfig

_logger = structlog.get_logger("concierge.llm")


class CompletionError(Exception):
    """Raised when the completion engine call fails or returns nothing usable."""


@dataclass(frozen=True)
class ToolDefinition:
    """A tool the model may call, described by a JSON schema for its input."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_litellm(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


@dataclass(frozen=True)
class ToolChoice:
    """
    How the model must use the offered tools.

    ``auto`` lets the model answer in text; ``tool`` forces the named tool.
    """

    type: Literal["auto", "tool"] = "auto"
    name: str | None = None

    @classmethod
    def force(cls, name: str) -> ToolChoice:
        return cls(type="tool", name=name)

    def to_litellm(self) -> str | dict[str, Any]:
        if self.type == "tool" and self.name:
            return {"type": "function", "function": {"name": self.name}}
        return "auto"


@dataclass
class CompletionRequest:
    """One completion call: system prompt, ordered turns, optional tools."""

    system: str
    messages: list[dict[str, str]]
    tools: list[ToolDefinition] = field(default_factory=list)
    tool_choice: ToolChoice | None = None
    max_tokens: int | None = None
    model: str | None = None


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ToolCallBlock:
    """
    A tool invocation emitted by the model.

    ``arguments`` is None when the raw argument string is not a JSON object.
    """

    name: str
    arguments: dict[str, Any] | None
    raw_arguments: str = ""
    id: str | None = None


ContentBlock = TextBlock | ToolCallBlock


@dataclass
class CompletionResponse:
    """Ordered content blocks of one completion."""

    blocks: list[ContentBlock] = field(default_factory=list)
    model: str = ""
    finish_reason: str | None = None

    @property
    def text(self) -> str:
        """All text blocks joined, stripped."""
        return "".join(b.text for b in self.blocks if isinstance(b, TextBlock)).strip()

    def tool_calls(self, name: str | None = None) -> list[ToolCallBlock]:
        return [
            b
            for b in self.blocks
            if isinstance(b, ToolCallBlock) and (name is None or b.name == name)
        ]

    def first_tool_call(self, name: str) -> ToolCallBlock | None:
        calls = self.tool_calls(name)
        return calls[0] if calls else None


class CompletionEngine:
    """
    Issue chat completions through ``litellm.acompletion``.

    Tool definitions and tool choice are translated to the OpenAI function
    format litellm accepts for every provider. Any provider failure surfaces
    as ``CompletionError``; cancellation propagates untouched.
    """

    def __init__(self, config: CompletionConfig) -> None:
        self._config = config

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        import litellm

        model = request.model or self._config.model
        messages: list[dict[str, str]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.extend(request.messages)

        call_kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": request.max_tokens or self._config.max_tokens,
            "timeout": self._config.timeout_seconds,
        }
        if self._config.temperature is not None:
            call_kwargs["temperature"] = self._config.temperature
        if request.tools:
            call_kwargs["tools"] = [t.to_litellm() for t in request.tools]
            call_kwargs["tool_choice"] = (request.tool_choice or ToolChoice()).to_litellm()

        try:
            response = await litellm.acompletion(**call_kwargs)
        except Exception as exc:
            _logger.warning("completion_failed", model=model, error=str(exc))
            raise CompletionError(f"completion with {model!r} failed: {exc}") from exc

        if not response.choices:
            raise CompletionError(f"completion with {model!r} returned no choices")
        choice = response.choices[0]
        result = CompletionResponse(
            blocks=_blocks_from_message(choice.message),
            model=getattr(response, "model", None) or model,
            finish_reason=getattr(choice, "finish_reason", None),
        )
        _logger.debug(
            "completion_received",
            model=model,
            blocks=len(result.blocks),
            tool_calls=[c.name for c in result.tool_calls()],
        )
        return result


def _blocks_from_message(message: Any) -> list[ContentBlock]:
    blocks: list[ContentBlock] = []
    content = getattr(message, "content", None)
    if content:
        blocks.append(TextBlock(text=content))
    for call in getattr(message, "tool_calls", None) or []:
        function = call.function
        raw = function.arguments or ""
        blocks.append(
            ToolCallBlock(
                name=function.name,
                arguments=_parse_arguments(raw),
                raw_arguments=raw,
                id=getattr(call, "id", None),
            )
        )
    return blocks


def _parse_arguments(raw: str) -> dict[str, Any] | None:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
