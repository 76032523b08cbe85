"""Plugin skill discovery backed by the verifier and the two-tier catalog cache."""

from __future__ import annotations

from pydantic import BaseModel

from concierge.cache.catalog import CatalogCache
from concierge.cache.volatile import VolatileCache
from concierge.services.verifier import VerifierClient

SKILLS_CACHE_KEY = "agent:plugin:skills"


class PluginSkill(BaseModel):
    """A plugin's capabilities as described by its skills markdown."""

    plugin_id: str
    name: str
    skills: str


class PluginSkillsProvider:
    """
    Serve the available plugin skills, refreshing at most once per TTL.

    When the verifier is unreachable the last known list is served; a
    process that never managed to load any skills gets an empty list.
    """

    def __init__(
        self,
        verifier: VerifierClient,
        *,
        volatile: VolatileCache | None = None,
        ttl: int = 300,
        catalog: CatalogCache[PluginSkill] | None = None,
    ) -> None:
        self._verifier = verifier
        self._catalog = catalog or CatalogCache(
            SKILLS_CACHE_KEY,
            PluginSkill,
            self._fetch,
            ttl=ttl,
            volatile=volatile,
        )

    async def _fetch(self) -> list[PluginSkill]:
        plugins = await self._verifier.list_available_plugins()
        return [PluginSkill(plugin_id=p.id, name=p.name, skills=p.skills_md) for p in plugins]

    async def get_skills(self) -> list[PluginSkill]:
        return await self._catalog.get_or_refresh()

    async def get_skills_for_plugin(self, plugin_id: str) -> PluginSkill | None:
        for skill in await self.get_skills():
            if skill.plugin_id == plugin_id:
                return skill
        return None

    async def invalidate(self) -> None:
        await self._catalog.invalidate()
