"""QueryCache — key derivation, TTL envelopes and tag invalidation."""

from __future__ import annotations

import base64
import datetime as dt
import decimal
import json
import logging
import time
import uuid
from collections.abc import Callable, Iterable
from typing import Any

from sqla_rls.cache._store import KeyValueStore
from sqla_rls.config._config import RlsConfig, get_global_config
from sqla_rls.ir._models import QueryIR

__all__ = ["QueryCache", "cache_key"]

logger = logging.getLogger("sqla_rls.cache")


def _json_default(value: Any) -> Any:
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, (decimal.Decimal, uuid.UUID)):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def cache_key(ir: QueryIR, *, prefix: str = "query:", scope: str | None = None) -> str:
    """Return the cache key for *ir*.

    The explicit ``cache.key`` wins; otherwise the key is a deterministic
    serialization of the whole IR (sorted keys), so equal queries share
    an entry. A derived key is prefixed with *scope* (the table name when
    called from the executor) so equal queries on different tables differ.
    """
    if ir.cache is not None and ir.cache.key:
        return prefix + ir.cache.key
    if scope:
        prefix = f"{prefix}{scope}:"
    return prefix + json.dumps(ir.to_dict(), sort_keys=True, default=_json_default)


class QueryCache:
    """Cache of query results over a :class:`KeyValueStore`.

    Entries are JSON envelopes ``{"expires_at": ..., "data": ...}``; a
    read past ``expires_at`` is a miss and evicts the entry. Tags are
    sets of keys stored under ``cache_tag_prefix + tag``; a tag set expires
    with the longest-lived entry added to it, so tags of expired entries
    do not pile up.

    Store failures are logged and treated as a miss (reads) or a skipped
    write; they never fail the query. There is no single-flight
    de-duplication, so concurrent identical misses each populate the
    entry and the last write wins.

    Args:
        store: Backing key-value store.
        config: Key prefixes; defaults to the global config.
        clock: Returns the current time in seconds.

    Example::

        cache = QueryCache(MemoryStore())
        await cache.set("top-users", rows, ttl=60, tags=["users"])
        await cache.get("top-users")
        await cache.invalidate_by_tags(["users"])
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        config: RlsConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._config = config
        self._clock = clock

    @property
    def config(self) -> RlsConfig:
        return self._config if self._config is not None else get_global_config()

    def key_for(self, target: QueryIR | str, *, scope: str | None = None) -> str:
        prefix = self.config.cache_key_prefix
        if isinstance(target, QueryIR):
            return cache_key(target, prefix=prefix, scope=scope)
        return prefix + target

    def _tag_key(self, tag: str) -> str:
        return self.config.cache_tag_prefix + tag

    async def get(self, target: QueryIR | str, *, scope: str | None = None) -> Any | None:
        """Return the cached data for *target*, or ``None`` on a miss."""
        key = self.key_for(target, scope=scope)
        try:
            raw = await self._store.get(key)
            if raw is None:
                return None
            envelope = json.loads(raw)
            if self._clock() >= envelope["expires_at"]:
                await self._store.delete(key)
                logger.debug("Cache entry expired: %s", key)
                return None
            return envelope["data"]
        except Exception:
            logger.warning("Cache read failed for %s", key, exc_info=True)
            return None

    async def set(
        self,
        target: QueryIR | str,
        data: Any,
        *,
        ttl: float | None = None,
        tags: Iterable[str] | None = None,
        scope: str | None = None,
    ) -> bool:
        """Store *data* for *target*.

        For an IR, ``ttl``/``tags`` default to its ``cache`` settings and
        its ``condition`` (if any) must accept the IR.

        Returns:
            True if the entry was written.
        """
        if isinstance(target, QueryIR) and target.cache is not None:
            settings = target.cache
            if settings.condition is not None and not settings.condition(target):
                return False
            ttl = ttl if ttl is not None else settings.ttl
            tags = tags if tags is not None else settings.tags
        if ttl is None or ttl <= 0:
            return False

        key = self.key_for(target, scope=scope)
        try:
            envelope = json.dumps(
                {"expires_at": self._clock() + ttl, "data": data}, default=_json_default
            )
            await self._store.set(key, envelope, ttl=ttl)
            for tag in tags or ():
                await self._store.add_to_set(self._tag_key(tag), key, ttl=ttl)
        except Exception:
            logger.warning("Cache write failed for %s", key, exc_info=True)
            return False
        return True

    async def invalidate_by_tags(self, tags: Iterable[str]) -> None:
        """Delete every key under each tag, then the tag entries themselves."""
        for tag in tags:
            tag_key = self._tag_key(tag)
            try:
                keys = await self._store.set_members(tag_key)
                if keys:
                    await self._store.delete(*sorted(keys))
                await self._store.delete(tag_key)
            except Exception:
                logger.warning("Cache invalidation failed for tag %r", tag, exc_info=True)
