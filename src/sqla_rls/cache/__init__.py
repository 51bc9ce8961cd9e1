"""Query result cache with TTL envelopes and tag-based invalidation."""

from sqla_rls.cache._cache import QueryCache, cache_key
from sqla_rls.cache._store import KeyValueStore, MemoryStore, RedisStore

__all__ = ["KeyValueStore", "MemoryStore", "QueryCache", "RedisStore", "cache_key"]
