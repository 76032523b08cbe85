"""Route each inbound turn to exactly one ability."""

from __future__ import annotations

import structlog

from concierge.agent.base import AgentDeps
from concierge.agent.build import BuildAbility
from concierge.agent.confirm import ConfirmAbility
from concierge.agent.detect import DetectAbility
from concierge.cache.volatile import CacheError
from concierge.context.window import ContextWindowManager
from concierge.errors import (
    ConversationAccessError,
    MalformedOutputError,
    UpstreamError,
    ValidationError,
)
from concierge.llm.completion import CompletionError
from concierge.llm.tools import ToolOutputError
from concierge.models.agent import SendMessageRequest, SendMessageResponse
from concierge.services.verifier import VerifierError
from concierge.store.database import ConversationNotFoundError, StoreError

logger = structlog.get_logger("concierge.agent")


def validate_request(request: SendMessageRequest) -> None:
    """
    Reject requests that no ability could handle.

    Raises:
        ValidationError: If the owner key is blank or the turn carries
            neither text, a selected suggestion nor an action result.
    """
    if not request.owner_key:
        raise ValidationError("owner_key is required")
    if request.action_result is not None:
        if not request.action_result.action:
            raise ValidationError("action_result.action is required")
        return
    if request.selected_suggestion_id:
        return
    if not request.content.strip():
        raise ValidationError("content, selected_suggestion_id or action_result is required")


class AbilityRouter:
    """
    Entry point of a turn below the transport layer.

    ``process_message()`` validates the request, checks that the
    conversation belongs to the caller, computes the context window once and
    hands it to one ability, picked by priority: an action result goes to
    Confirm, a selected suggestion to Build, anything else to Detect.

    Errors raised by stores and clients are translated here into the
    caller-facing classes of :mod:`concierge.errors`.
    """

    def __init__(self, deps: AgentDeps, window_manager: ContextWindowManager) -> None:
        self._deps = deps
        self._window_manager = window_manager
        self.build = BuildAbility(deps)
        self.detect = DetectAbility(deps)
        self.confirm = ConfirmAbility(deps, self.build)

    async def process_message(
        self, conversation_id: str, request: SendMessageRequest
    ) -> SendMessageResponse:
        validate_request(request)
        log = logger.bind(conversation_id=conversation_id)

        try:
            await self._deps.conversations.get_by_id(conversation_id, request.owner_key)
            window = await self._window_manager.get_window(conversation_id)

            if request.action_result is not None:
                ability = "confirm"
                handler = self.confirm.run
            elif request.selected_suggestion_id:
                ability = "build"
                handler = self.build.run
            else:
                ability = "detect"
                handler = self.detect.run
            log.debug(
                "turn_routed",
                ability=ability,
                window_messages=len(window.messages),
                window_total=window.total,
                has_summary=window.has_summary,
            )
            return await handler(conversation_id, request, window)
        except ConversationNotFoundError as exc:
            raise ConversationAccessError(conversation_id) from exc
        except ToolOutputError as exc:
            raise MalformedOutputError(str(exc)) from exc
        except CompletionError as exc:
            log.error("completion_engine_failed", error=str(exc))
            raise UpstreamError(f"completion engine failed: {exc}") from exc
        except VerifierError as exc:
            log.error("verifier_failed", operation=exc.operation, error=exc.reason)
            raise UpstreamError(f"verifier failed: {exc}") from exc
        except CacheError as exc:
            log.error("cache_failed", error=str(exc))
            raise UpstreamError(f"cache failed: {exc}") from exc
        except StoreError as exc:
            log.error("store_failed", error=str(exc))
            raise UpstreamError(f"store failed: {exc}") from exc
