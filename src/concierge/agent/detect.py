"""Detect: answer a free-form turn and offer plugin suggestions."""

from __future__ import annotations

import structlog

from concierge.agent.base import AgentDeps
from concierge.agent.prompts import (
    MEMORY_MANAGEMENT_INSTRUCTIONS,
    detect_prompt,
    truncate_title,
    with_summary,
)
from concierge.cache.volatile import CacheError
from concierge.errors import MalformedOutputError
from concierge.events.bus import ConciergeEvent
from concierge.ids import make_id
from concierge.llm.completion import CompletionRequest, CompletionResponse, ToolChoice
from concierge.llm.tools import (
    RESPOND_TO_USER,
    RESPOND_TO_USER_TOOL,
    RespondToUser,
    ToolOutputError,
    decode_tool_call,
)
from concierge.models.agent import SendMessageRequest, SendMessageResponse, Suggestion
from concierge.models.conversation import Role, Window
from concierge.store.database import StoreError

logger = structlog.get_logger("concierge.agent.detect")


class DetectAbility:
    """
    Default ability for plain user text.

    The model answers through ``respond_to_user``. When it answers in plain
    text instead, that text is used as the reply without suggestions.
    """

    def __init__(self, deps: AgentDeps) -> None:
        self._deps = deps

    async def run(
        self, conversation_id: str, request: SendMessageRequest, window: Window
    ) -> SendMessageResponse:
        deps = self._deps
        log = logger.bind(conversation_id=conversation_id)

        await deps.store_message(conversation_id, Role.USER, request.content)

        plugins = await deps.skills.get_skills() if deps.skills is not None else []
        base = detect_prompt(request.balances, request.addresses, plugins)
        base += await deps.memory.load_section(request.owner_key)
        if deps.memory.enabled:
            base += MEMORY_MANAGEMENT_INSTRUCTIONS

        messages = window.completion_messages()
        messages.append({"role": "user", "content": request.content})

        # A forced tool would rule out the memory side-channel.
        tool_choice = ToolChoice() if deps.memory.enabled else ToolChoice.force(RESPOND_TO_USER)
        response = await deps.engine.complete(
            CompletionRequest(
                system=with_summary(base, window.summary),
                messages=messages,
                tools=[RESPOND_TO_USER_TOOL, *deps.memory.tools()],
                tool_choice=tool_choice,
            )
        )

        await deps.memory.apply(request.owner_key, response)

        reply = _respond_payload(response)
        if reply is not None:
            result = await self._reply_with_suggestions(conversation_id, reply)
        elif response.text:
            log.info("respond_to_user_missing_using_text")
            stored = await deps.store_message(conversation_id, Role.ASSISTANT, response.text)
            result = SendMessageResponse(message=stored)
        else:
            raise MalformedOutputError("no respond_to_user tool output or text in completion")

        if window.total <= 2:
            try:
                await deps.conversations.update_title(
                    conversation_id, truncate_title(request.content)
                )
            except StoreError as exc:
                log.warning("title_update_failed", error=str(exc))

        return result

    async def _reply_with_suggestions(
        self, conversation_id: str, reply: RespondToUser
    ) -> SendMessageResponse:
        deps = self._deps
        suggestions: list[Suggestion] = []
        for proposed in reply.suggestions:
            suggestion = Suggestion(
                id=make_id("sug"),
                plugin_id=proposed.plugin_id,
                title=proposed.title,
                description=proposed.description,
            )
            suggestions.append(suggestion)
            try:
                await deps.suggestions.put(suggestion)
            except CacheError as exc:
                logger.warning(
                    "suggestion_cache_write_failed",
                    conversation_id=conversation_id,
                    suggestion_id=suggestion.id,
                    error=str(exc),
                )
                continue
            deps.publish(
                ConciergeEvent.SUGGESTION_CREATED,
                {
                    "conversation_id": conversation_id,
                    "suggestion_id": suggestion.id,
                    "plugin_id": suggestion.plugin_id,
                },
            )

        stored = await deps.store_message(
            conversation_id,
            Role.ASSISTANT,
            reply.response,
            metadata={
                "intent": reply.intent,
                "suggestions": [s.model_dump() for s in suggestions],
            },
        )
        return SendMessageResponse(message=stored, suggestions=suggestions)


def _respond_payload(response: CompletionResponse) -> RespondToUser | None:
    for call in response.tool_calls(RESPOND_TO_USER):
        try:
            payload = decode_tool_call(call)
        except ToolOutputError as exc:
            logger.warning("respond_to_user_malformed", error=exc.reason)
            continue
        if isinstance(payload, RespondToUser):
            return payload
    return None
