"""Redis-backed key/value cache with per-key expiry."""

from __future__ import annotations

from redis.asyncio import Redis
from redis.exceptions import RedisError


class CacheError(Exception):
    """Raised when the volatile cache cannot be reached or rejects a command."""


class VolatileCache:
    """
    Thin async wrapper over a Redis client.

    Values are strings; callers serialise their own payloads. Every key is
    namespaced with the configured prefix. Redis failures surface as
    ``CacheError`` with the failing operation and key in the message.
    """

    def __init__(self, redis: Redis, *, key_prefix: str = "") -> None:
        self._redis = redis
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "") -> VolatileCache:
        return cls(Redis.from_url(url, decode_responses=True), key_prefix=key_prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        try:
            value = await self._redis.get(self._key(key))
        except RedisError as exc:
            raise CacheError(f"get {key!r} failed: {exc}") from exc
        return _decode(value)

    async def set(self, key: str, value: str, ttl: int) -> None:
        """Store *value* under *key* for *ttl* seconds."""
        try:
            await self._redis.set(self._key(key), value, ex=ttl)
        except RedisError as exc:
            raise CacheError(f"set {key!r} failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._key(key))
        except RedisError as exc:
            raise CacheError(f"delete {key!r} failed: {exc}") from exc

    async def ttl(self, key: str) -> int | None:
        """Remaining lifetime of *key* in seconds, or None if it does not exist."""
        try:
            remaining = await self._redis.ttl(self._key(key))
        except RedisError as exc:
            raise CacheError(f"ttl {key!r} failed: {exc}") from exc
        # -2: missing key, -1: key without expiry
        if remaining == -2:
            return None
        return int(remaining)

    async def take(self, key: str) -> str | None:
        """Atomically read and delete *key*. A value is handed out at most once."""
        try:
            value = await self._redis.getdel(self._key(key))
        except RedisError as exc:
            raise CacheError(f"take {key!r} failed: {exc}") from exc
        return _decode(value)

    async def close(self) -> None:
        await self._redis.aclose()


def _decode(value: str | bytes | None) -> str | None:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value
