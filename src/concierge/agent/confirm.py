"""Confirm: acknowledge an action the user performed in the client app."""

from __future__ import annotations

import structlog

from concierge.agent.base import AgentDeps
from concierge.agent.build import BuildAbility
from concierge.agent.prompts import action_result_message, confirm_action_prompt, with_summary
from concierge.cache.volatile import CacheError
from concierge.errors import ConciergeError, MalformedOutputError, ValidationError
from concierge.events.bus import ConciergeEvent
from concierge.llm.completion import CompletionError, CompletionRequest, ToolChoice
from concierge.llm.tools import (
    CONFIRM_ACTION,
    CONFIRM_ACTION_TOOL,
    ConfirmAction,
    ToolOutputError,
    decode_tool_call,
)
from concierge.models.agent import SendMessageRequest, SendMessageResponse
from concierge.models.conversation import ContentType, Role, Window
from concierge.services.verifier import VerifierError
from concierge.store.database import StoreError

logger = structlog.get_logger("concierge.agent.confirm")

INSTALL_PLUGIN_ACTION = "install_plugin"


class ConfirmAbility:
    """
    Confirm an action result and, after a successful plugin install, resume
    the policy build that was waiting for it.
    """

    def __init__(self, deps: AgentDeps, build: BuildAbility) -> None:
        self._deps = deps
        self._build = build

    async def run(
        self, conversation_id: str, request: SendMessageRequest, window: Window
    ) -> SendMessageResponse:
        deps = self._deps
        result = request.action_result
        if result is None:
            raise ValidationError("action_result is required for action confirmation")

        base = confirm_action_prompt(result) + await deps.memory.load_section(request.owner_key)

        action_text = action_result_message(result)
        messages = window.completion_messages()
        messages.append({"role": "user", "content": action_text})

        await deps.store_message(
            conversation_id, Role.USER, action_text, content_type=ContentType.ACTION_RESULT
        )

        tool_choice = ToolChoice() if deps.memory.enabled else ToolChoice.force(CONFIRM_ACTION)
        response = await deps.engine.complete(
            CompletionRequest(
                system=with_summary(base, window.summary),
                messages=messages,
                tools=[CONFIRM_ACTION_TOOL, *deps.memory.tools()],
                tool_choice=tool_choice,
            )
        )

        call = response.first_tool_call(CONFIRM_ACTION)
        if call is None:
            raise MalformedOutputError("no confirm_action tool output in completion")
        try:
            confirmation = decode_tool_call(call)
        except ToolOutputError as exc:
            raise MalformedOutputError(str(exc)) from exc
        if not isinstance(confirmation, ConfirmAction):
            raise MalformedOutputError("confirm_action tool output has the wrong shape")

        await deps.memory.apply(request.owner_key, response)

        stored = await deps.store_message(conversation_id, Role.ASSISTANT, confirmation.response)

        if result.action == INSTALL_PLUGIN_ACTION and result.success:
            resumed = await self._resume_pending_build(conversation_id, request, window)
            if resumed is not None:
                return resumed.model_copy(update={"message": stored})
        return SendMessageResponse(message=stored)

    async def _resume_pending_build(
        self, conversation_id: str, request: SendMessageRequest, window: Window
    ) -> SendMessageResponse | None:
        deps = self._deps
        log = logger.bind(conversation_id=conversation_id)
        try:
            suggestion_id = await deps.suggestions.take_pending_build(conversation_id)
        except CacheError as exc:
            log.warning("pending_build_lookup_failed", error=str(exc))
            return None
        if not suggestion_id:
            return None

        deps.publish(
            ConciergeEvent.PENDING_BUILD_CONSUMED,
            {"conversation_id": conversation_id, "suggestion_id": suggestion_id},
        )
        build_request = SendMessageRequest(
            owner_key=request.owner_key,
            selected_suggestion_id=suggestion_id,
            context=request.context,
            access_token=request.access_token,
        )
        try:
            return await self._build.run(conversation_id, build_request, window)
        except (
            ConciergeError,
            CompletionError,
            VerifierError,
            StoreError,
            CacheError,
        ) as exc:
            log.warning("auto_continue_build_failed", suggestion_id=suggestion_id, error=str(exc))
            return None
