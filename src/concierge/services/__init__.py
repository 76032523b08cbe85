"""Clients for services outside the process."""

from concierge.services.plugins import PluginSkill, PluginSkillsProvider
from concierge.services.verifier import (
    AvailablePlugin,
    RecipeSchema,
    VerifierClient,
    VerifierError,
)

__all__ = [
    "AvailablePlugin",
    "PluginSkill",
    "PluginSkillsProvider",
    "RecipeSchema",
    "VerifierClient",
    "VerifierError",
]
