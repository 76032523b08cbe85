"""Short-lived storage for suggestions and pending-build markers."""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError

from concierge.cache.volatile import CacheError, VolatileCache
from concierge.models.agent import Suggestion

PENDING_BUILD_PREFIX = "pending_build:"


def pending_build_key(conversation_id: str) -> str:
    return f"{PENDING_BUILD_PREFIX}{conversation_id}"


class SuggestionCache:
    """
    Suggestions keyed by their own ``sug_`` id, plus one pending-build marker
    per conversation pointing at the suggestion whose plugin still has to be
    installed.

    Both kinds of entry expire after ``ttl`` seconds.
    """

    def __init__(self, cache: VolatileCache, *, ttl: int = 3600) -> None:
        self._cache = cache
        self._ttl = ttl

    @property
    def ttl(self) -> int:
        return self._ttl

    async def put(self, suggestion: Suggestion) -> None:
        await self._cache.set(suggestion.id, suggestion.model_dump_json(), self._ttl)

    async def get(self, suggestion_id: str) -> Suggestion | None:
        """
        Return the cached suggestion, or None when unknown or expired.

        Raises:
            CacheError: If the cache is unreachable or the entry is corrupt.
        """
        raw = await self._cache.get(suggestion_id)
        if raw is None:
            return None
        try:
            return Suggestion.model_validate_json(raw)
        except PydanticValidationError as exc:
            raise CacheError(f"corrupt suggestion entry {suggestion_id!r}") from exc

    async def store_pending_build(self, conversation_id: str, suggestion_id: str) -> None:
        await self._cache.set(pending_build_key(conversation_id), suggestion_id, self._ttl)

    async def take_pending_build(self, conversation_id: str) -> str | None:
        """Consume the pending-build marker. Returns None if absent or already taken."""
        return await self._cache.take(pending_build_key(conversation_id))
