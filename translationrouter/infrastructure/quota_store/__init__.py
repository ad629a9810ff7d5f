"""Quota store implementations."""

from translationrouter.infrastructure.quota_store.memory_store import InMemoryQuotaStore
from translationrouter.infrastructure.quota_store.redis_store import RedisQuotaStore

__all__ = ["InMemoryQuotaStore", "RedisQuotaStore"]
