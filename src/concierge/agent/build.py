"""Build: turn a selected suggestion into a policy awaiting confirmation."""

from __future__ import annotations

import json

import structlog

from concierge.agent.amounts import convert_amount_to_base_units
from concierge.agent.base import AgentDeps
from concierge.agent.prompts import policy_builder_prompt, with_summary
from concierge.cache.volatile import CacheError
from concierge.errors import (
    ConfigurationError,
    MalformedOutputError,
    SuggestionNotFoundError,
    ValidationError,
)
from concierge.events.bus import ConciergeEvent
from concierge.llm.completion import CompletionRequest, ToolChoice
from concierge.llm.tools import (
    BUILD_POLICY,
    BUILD_POLICY_TOOL,
    BuildPolicy,
    ToolOutputError,
    decode_tool_call,
)
from concierge.models.agent import (
    InstallRequired,
    PolicyReady,
    SendMessageRequest,
    SendMessageResponse,
    Suggestion,
)
from concierge.models.conversation import Role, Window
from concierge.services.verifier import VerifierError

logger = structlog.get_logger("concierge.agent.build")

REVIEW_SUFFIX = "\n\nPlease review and confirm to create the policy."


class BuildAbility:
    """
    Build a policy configuration for the plugin behind a cached suggestion.

    Flow: suggestion lookup, optional install check, recipe schema fetch,
    one forced ``build_policy`` completion, amount conversion, and the
    verifier's suggest call. A plugin that is not installed yet short-circuits
    into an install-required reply and leaves a pending-build marker behind
    so a later successful install can resume here.
    """

    def __init__(self, deps: AgentDeps) -> None:
        self._deps = deps

    async def run(
        self, conversation_id: str, request: SendMessageRequest, window: Window
    ) -> SendMessageResponse:
        deps = self._deps
        log = logger.bind(conversation_id=conversation_id)

        if not request.selected_suggestion_id:
            raise ValidationError("selected_suggestion_id is required for policy building")

        suggestion = await deps.suggestions.get(request.selected_suggestion_id)
        if suggestion is None:
            raise SuggestionNotFoundError(request.selected_suggestion_id)

        verifier = deps.verifier
        if verifier is None:
            raise ConfigurationError("verifier client not configured")

        if request.access_token:
            try:
                installed = await verifier.is_plugin_installed(
                    request.access_token, suggestion.plugin_id
                )
            except VerifierError as exc:
                # Indeterminate: carry on as if installed.
                log.warning(
                    "plugin_install_check_failed",
                    plugin_id=suggestion.plugin_id,
                    error=str(exc),
                )
            else:
                if not installed:
                    return await self._install_required(conversation_id, suggestion)

        schema = await verifier.get_recipe_schema(suggestion.plugin_id)
        schema_json = json.dumps(schema.configuration, indent=2)
        examples_json = (
            json.dumps(schema.configuration_example, indent=2)
            if schema.configuration_example
            else ""
        )

        base = policy_builder_prompt(
            suggestion, schema_json, examples_json, request.balances, request.addresses
        )
        base += await deps.memory.load_section(request.owner_key)

        response = await deps.engine.complete(
            CompletionRequest(
                system=with_summary(base, window.summary),
                messages=window.completion_messages(),
                tools=[BUILD_POLICY_TOOL],
                tool_choice=ToolChoice.force(BUILD_POLICY),
            )
        )

        call = response.first_tool_call(BUILD_POLICY)
        if call is None:
            raise MalformedOutputError("no build_policy tool output in completion")
        try:
            payload = decode_tool_call(call)
        except ToolOutputError as exc:
            raise MalformedOutputError(str(exc)) from exc
        if not isinstance(payload, BuildPolicy):
            raise MalformedOutputError("build_policy tool output has the wrong shape")

        configuration = dict(payload.configuration)
        convert_amount_to_base_units(configuration, request.balances)

        policy_suggest = await verifier.get_policy_suggest(suggestion.plugin_id, configuration)

        if payload.explanation:
            content = payload.explanation + REVIEW_SUFFIX
        else:
            content = (
                f"I've prepared your {suggestion.title}. Please review the details below "
                "and confirm to create the policy."
            )

        stored = await deps.store_message(
            conversation_id,
            Role.ASSISTANT,
            content,
            metadata={
                "type": "policy_ready",
                "action": "create_policy",
                "plugin_id": suggestion.plugin_id,
                "policy_suggest": policy_suggest,
                "configuration": configuration,
            },
        )
        log.info("policy_ready", plugin_id=suggestion.plugin_id)
        return SendMessageResponse(
            message=stored,
            policy_ready=PolicyReady(
                plugin_id=suggestion.plugin_id,
                configuration=configuration,
                policy_suggest=policy_suggest,
            ),
        )

    async def _install_required(
        self, conversation_id: str, suggestion: Suggestion
    ) -> SendMessageResponse:
        deps = self._deps
        try:
            await deps.suggestions.store_pending_build(conversation_id, suggestion.id)
        except CacheError as exc:
            logger.warning(
                "pending_build_store_failed", conversation_id=conversation_id, error=str(exc)
            )
        else:
            deps.publish(
                ConciergeEvent.PENDING_BUILD_STORED,
                {"conversation_id": conversation_id, "suggestion_id": suggestion.id},
            )

        stored = await deps.store_message(
            conversation_id,
            Role.ASSISTANT,
            f"To use {suggestion.title}, you need to install the plugin first. "
            "Please install it and try again.",
        )
        return SendMessageResponse(
            message=stored,
            install_required=InstallRequired(
                plugin_id=suggestion.plugin_id,
                title=suggestion.title,
                description=f"Install {suggestion.title} to set up your automation",
            ),
        )
