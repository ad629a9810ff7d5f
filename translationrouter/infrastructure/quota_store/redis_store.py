"""Redis-based quota store implementation.

Persists QuotaStates so that several router processes (or one process
across restarts) start from conservative usage figures.

Example:
    ```python
    from translationrouter.infrastructure.quota_store.redis_store import RedisQuotaStore

    store = RedisQuotaStore(redis_url="redis://localhost:6379/0")
    await store.save(QuotaState(key_id="deepl-1", used=120, limit=500000))
    states = await store.load_all()
    await store.close()
    ```
"""

import os

import structlog
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from translationrouter.domain.interfaces.quota_store import QuotaStore, QuotaStoreError
from translationrouter.domain.models.quota_state import QuotaState

logger = structlog.get_logger(__name__)

# Redis key patterns (relative to the configured prefix)
KEY_PATTERN_QUOTA = "quota:{key_id}"
KEY_QUOTA_INDEX = "quota:index"


class RedisQuotaStore(QuotaStore):
    """QuotaStore backed by Redis.

    Each state is stored as one JSON string under ``{prefix}quota:{key_id}``;
    a set at ``{prefix}quota:index`` lists the stored key ids so that
    ``load_all`` does not need ``SCAN``.

    Any Redis failure is raised as QuotaStoreError. The ledger logs such
    failures and carries on with its in-memory state.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        key_prefix: str = "translationrouter:",
        connection_timeout: int = 5,
        redis: Redis | None = None,
    ) -> None:
        """Initialize RedisQuotaStore.

        Args:
            redis_url: Redis connection URL. If None, reads from REDIS_URL.
            key_prefix: Prefix for every key this store writes.
            connection_timeout: Socket timeouts in seconds.
            redis: Pre-built client (takes precedence over ``redis_url``).

        Raises:
            QuotaStoreError: If neither a client nor a URL is available.
        """
        self._prefix = key_prefix
        self._connection_pool: ConnectionPool | None = None

        if redis is not None:
            self._redis = redis
            return

        redis_url = redis_url or os.getenv("REDIS_URL")
        if not redis_url:
            raise QuotaStoreError("Redis URL not provided and REDIS_URL is not set")
        self._connection_pool = ConnectionPool.from_url(
            redis_url,
            max_connections=10,
            socket_connect_timeout=connection_timeout,
            socket_timeout=connection_timeout,
            retry_on_timeout=True,
        )
        self._redis = Redis(connection_pool=self._connection_pool)

    def _quota_key(self, key_id: str) -> str:
        return self._prefix + KEY_PATTERN_QUOTA.format(key_id=key_id)

    @property
    def _index_key(self) -> str:
        return self._prefix + KEY_QUOTA_INDEX

    async def save(self, state: QuotaState) -> None:
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(self._quota_key(state.key_id), state.model_dump_json())
                pipe.sadd(self._index_key, state.key_id)
                await pipe.execute()
        except RedisError as e:
            raise QuotaStoreError(f"Failed to save quota state for {state.key_id}: {e}") from e

    async def load(self, key_id: str) -> QuotaState | None:
        try:
            raw = await self._redis.get(self._quota_key(key_id))
        except RedisError as e:
            raise QuotaStoreError(f"Failed to load quota state for {key_id}: {e}") from e
        if raw is None:
            return None
        return self._decode(key_id, raw)

    async def load_all(self) -> dict[str, QuotaState]:
        try:
            members = await self._redis.smembers(self._index_key)
            key_ids = sorted(m.decode() if isinstance(m, bytes) else m for m in members)
            if not key_ids:
                return {}
            raws = await self._redis.mget([self._quota_key(k) for k in key_ids])
        except RedisError as e:
            raise QuotaStoreError(f"Failed to load quota states: {e}") from e

        states: dict[str, QuotaState] = {}
        for key_id, raw in zip(key_ids, raws, strict=True):
            if raw is None:
                continue
            states[key_id] = self._decode(key_id, raw)
        return states

    async def delete(self, key_id: str) -> None:
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(self._quota_key(key_id))
                pipe.srem(self._index_key, key_id)
                await pipe.execute()
        except RedisError as e:
            raise QuotaStoreError(f"Failed to delete quota state for {key_id}: {e}") from e

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._redis.aclose()
        if self._connection_pool is not None:
            await self._connection_pool.disconnect()

    @staticmethod
    def _decode(key_id: str, raw: bytes | str) -> QuotaState:
        try:
            return QuotaState.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Corrupt quota state in Redis", key_id=key_id, error=str(e))
            raise QuotaStoreError(f"Corrupt quota state for {key_id}") from e
