"""Key-value stores backing the query cache."""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from redis.asyncio import Redis

__all__ = ["KeyValueStore", "MemoryStore", "RedisStore"]


@runtime_checkable
class KeyValueStore(Protocol):
    """Async key-value capability with set membership for tag indexes."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, *, ttl: float | None = None) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def add_to_set(
        self, key: str, *members: str, ttl: float | None = None
    ) -> None: ...

    async def set_members(self, key: str) -> set[str]: ...


class MemoryStore:
    """In-process store; every operation holds one ``asyncio.Lock``.

    A set added to with a ``ttl`` expires once the longest of those
    TTLs has passed since its last addition.

    Args:
        clock: Returns the current time in seconds. Defaults to
            :func:`time.time`; tests pass a fake clock.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._values: dict[str, tuple[str, float | None]] = {}
        self._sets: dict[str, tuple[set[str], float | None]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._values.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._values[key]
                return None
            return value

    async def set(self, key: str, value: str, *, ttl: float | None = None) -> None:
        async with self._lock:
            expires_at = self._clock() + ttl if ttl is not None else None
            self._values[key] = (value, expires_at)

    async def delete(self, *keys: str) -> None:
        async with self._lock:
            for key in keys:
                self._values.pop(key, None)
                self._sets.pop(key, None)

    def _live_set(self, key: str) -> tuple[set[str], float | None] | None:
        entry = self._sets.get(key)
        if entry is not None and entry[1] is not None and self._clock() >= entry[1]:
            del self._sets[key]
            return None
        return entry

    async def add_to_set(self, key: str, *members: str, ttl: float | None = None) -> None:
        async with self._lock:
            entry = self._live_set(key)
            if entry is None:
                expires_at = self._clock() + ttl if ttl is not None else None
                self._sets[key] = (set(members), expires_at)
                return
            current, expires_at = entry
            current.update(members)
            if expires_at is not None:
                expires_at = max(expires_at, self._clock() + ttl) if ttl is not None else None
            self._sets[key] = (current, expires_at)

    async def set_members(self, key: str) -> set[str]:
        async with self._lock:
            entry = self._live_set(key)
            return set(entry[0]) if entry is not None else set()

    def __contains__(self, key: object) -> bool:
        return key in self._values or key in self._sets

    def __len__(self) -> int:
        return len(self._values) + len(self._sets)


class RedisStore:
    """Store over ``redis.asyncio``.

    Requires the ``redis`` extra. Values expire server side via ``SETEX``.

    Example::

        from redis.asyncio import Redis

        store = RedisStore(Redis(host="localhost", port=6379))
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisStore:
        from redis.asyncio import Redis

        return cls(Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        value = await self._client.get(key)
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def set(self, key: str, value: str, *, ttl: float | None = None) -> None:
        if ttl is None:
            await self._client.set(key, value)
        else:
            await self._client.setex(key, max(1, int(ttl)), value)

    async def delete(self, *keys: str) -> None:
        if keys:
            await self._client.delete(*keys)

    async def add_to_set(self, key: str, *members: str, ttl: float | None = None) -> None:
        if not members:
            return
        await self._client.sadd(key, *members)
        if ttl is not None:
            seconds = max(1, math.ceil(ttl))
            # -1: no expiry yet, -2: missing
            if await self._client.ttl(key) < seconds:
                await self._client.expire(key, seconds)

    async def set_members(self, key: str) -> set[str]:
        members = await self._client.smembers(key)
        return {m.decode() if isinstance(m, bytes) else m for m in members}
