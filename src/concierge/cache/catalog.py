"""Two-tier (in-process + Redis) cache for slowly changing catalogs."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

import structlog
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from concierge.cache.volatile import CacheError, VolatileCache

T = TypeVar("T", bound=BaseModel)

_logger = structlog.get_logger("concierge.cache.catalog")


class CatalogCache(Generic[T]):
    """
    Cache a list of records in process memory and in the shared volatile cache.

    Lookup order on ``get_or_refresh()``:

    1. in-process copy, if not expired and non-empty;
    2. shared volatile tier, if reachable and it holds a non-empty list;
    3. the loader, whose result refreshes both tiers;
    4. when the loader fails, the stale in-process copy (possibly empty).

    Loader failures are logged and never raised.

    Args:
        key: Volatile-tier key.
        item_type: Pydantic model of a single record.
        loader: Coroutine function fetching the authoritative list.
        ttl: Lifetime in seconds of both tiers.
        volatile: Shared tier. ``None`` disables it.
        clock: Monotonic seconds source, injectable for tests.
    """

    def __init__(
        self,
        key: str,
        item_type: type[T],
        loader: Callable[[], Awaitable[list[T]]],
        *,
        ttl: int,
        volatile: VolatileCache | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._key = key
        self._adapter: TypeAdapter[list[T]] = TypeAdapter(list[item_type])  # type: ignore[valid-type]
        self._loader = loader
        self._ttl = ttl
        self._volatile = volatile
        self._clock = clock
        self._items: list[T] = []
        self._expires_at = 0.0

    def _fresh(self) -> bool:
        return bool(self._items) and self._clock() < self._expires_at

    def _remember(self, items: list[T]) -> None:
        self._items = items
        self._expires_at = self._clock() + self._ttl

    async def get_or_refresh(self) -> list[T]:
        if self._fresh():
            return self._items

        if self._volatile is not None:
            try:
                raw = await self._volatile.get(self._key)
            except CacheError as exc:
                _logger.warning("catalog_volatile_read_failed", key=self._key, error=str(exc))
                raw = None
            if raw:
                try:
                    items = self._adapter.validate_json(raw)
                except PydanticValidationError:
                    _logger.warning("catalog_volatile_entry_corrupt", key=self._key)
                    items = []
                if items:
                    self._remember(items)
                    return items

        try:
            items = await self._loader()
        except Exception as exc:
            _logger.warning(
                "catalog_refresh_failed",
                key=self._key,
                error=str(exc),
                stale_count=len(self._items),
            )
            return self._items

        self._remember(items)
        if self._volatile is not None:
            try:
                await self._volatile.set(
                    self._key, self._adapter.dump_json(items).decode(), self._ttl
                )
            except CacheError as exc:
                _logger.warning("catalog_volatile_write_failed", key=self._key, error=str(exc))
        _logger.debug("catalog_refreshed", key=self._key, count=len(items))
        return items

    async def invalidate(self) -> None:
        """Expire both tiers so the next read goes to the loader."""
        self._expires_at = 0.0
        if self._volatile is not None:
            try:
                await self._volatile.delete(self._key)
            except CacheError as exc:
                _logger.warning("catalog_invalidate_failed", key=self._key, error=str(exc))
