"""Ability routing and the Detect, Build and Confirm abilities."""

from concierge.agent.amounts import convert_amount_to_base_units, to_base_units
from concierge.agent.base import AgentDeps
from concierge.agent.build import BuildAbility
from concierge.agent.confirm import ConfirmAbility
from concierge.agent.detect import DetectAbility
from concierge.agent.memory import MemoryChannel
from concierge.agent.prompts import truncate_title
from concierge.agent.router import AbilityRouter, validate_request

__all__ = [
    "AbilityRouter",
    "AgentDeps",
    "BuildAbility",
    "ConfirmAbility",
    "DetectAbility",
    "MemoryChannel",
    "convert_amount_to_base_units",
    "to_base_units",
    "truncate_title",
    "validate_request",
]
