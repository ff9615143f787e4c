"""Redis client management and Redis-backed collections."""

import json
import logging
import time
from collections.abc import Mapping
from typing import Any, Optional

import redis.asyncio as redis
from redis.asyncio import Redis

from hab_api.config import get_settings
from hab_api.errors.exceptions import StoreUnavailableError
from hab_api.storage.base import SeedFactory, Storage, T

logger = logging.getLogger(__name__)

KEY_PREFIX = "hab"


class RedisManager:
    """Manages Redis connection pool."""

    _instance: Optional["RedisManager"] = None
    _redis: Redis | None = None

    def __init__(self) -> None:
        self._settings = get_settings()
        self._pool: redis.ConnectionPool | None = None

    @classmethod
    def get_instance(cls) -> "RedisManager":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    async def connect(self) -> None:
        """Initialize Redis connection pool."""
        if self._redis is not None:
            return

        try:
            self._pool = redis.ConnectionPool.from_url(
                self._settings.redis_url,
                max_connections=self._settings.redis_max_connections,
                decode_responses=True,
            )
            self._redis = Redis(connection_pool=self._pool)

            await self._redis.ping()  # type: ignore[misc]
            logger.info("Connected to Redis at %s", self._settings.redis_url)
        except Exception as e:
            logger.error("Failed to connect to Redis: %s", e)
            self._redis = None
            raise

    async def disconnect(self) -> None:
        """Close Redis connection pool."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Disconnected from Redis")

        if self._pool:
            await self._pool.disconnect()
            self._pool = None

    @property
    def client(self) -> Redis | None:
        """Get Redis client instance."""
        return self._redis

    async def health_check(self) -> dict[str, Any]:
        """Check Redis health."""
        if self._redis is None:
            return {"status": "disconnected", "latency_ms": None}

        try:
            start = time.perf_counter()
            await self._redis.ping()  # type: ignore[misc]
            latency = (time.perf_counter() - start) * 1000

            return {"status": "up", "latency_ms": round(latency, 2)}
        except redis.RedisError as e:
            return {"status": "error", "error": str(e), "latency_ms": None}

    @classmethod
    async def reset(cls) -> None:
        """Reset the singleton (for testing)."""
        if cls._instance:
            await cls._instance.disconnect()
        cls._instance = None


async def init_redis() -> Redis:
    """Connect at startup; the Redis backend cannot run without a connection."""
    manager = RedisManager.get_instance()
    await manager.connect()
    assert manager.client is not None
    return manager.client


async def close_redis() -> None:
    """Close Redis connection (call at shutdown)."""
    await RedisManager.reset()


class RedisStorage(Storage[T]):
    """
    Collection stored as one Redis hash: field = record key, value = JSON.

    Single-record writes are individual HSET/HDEL commands, so concurrent
    writers to different records do not overwrite each other. A marker key
    records that the seed set was materialized, so an emptied hash is not
    re-seeded.
    """

    def __init__(
        self,
        name: str,
        model: type[T],
        client: Redis,
        id_field: str = "id",
        seed: SeedFactory | None = None,
        prefix: str = KEY_PREFIX,
    ):
        super().__init__(name, model, id_field, seed)
        self._redis = client
        self.key = f"{prefix}:{name}"
        self.seeded_key = f"{self.key}:seeded"

    def _loads(self, value: str) -> T:
        try:
            return self._decode(json.loads(value))
        except json.JSONDecodeError as e:
            raise StoreUnavailableError(self.name, f"malformed JSON: {e}") from e

    def _dumps(self, item: T) -> str:
        return json.dumps(self._encode(item))

    async def _ensure_seeded(self) -> None:
        if await self._redis.exists(self.seeded_key):
            return
        items = await self.seed_items()
        if items:
            await self._redis.hset(  # type: ignore[misc]
                self.key, mapping={key: self._dumps(item) for key, item in items.items()}
            )
        await self._redis.set(self.seeded_key, "1")
        logger.info("Initialized %s with %d seed records", self.key, len(items))

    async def get_all(self) -> dict[str, T]:
        try:
            await self._ensure_seeded()
            raw = await self._redis.hgetall(self.key)  # type: ignore[misc]
        except redis.RedisError as e:
            raise StoreUnavailableError(self.name, str(e)) from e
        return {key: self._loads(value) for key, value in raw.items()}

    async def save_all(self, items: Mapping[str, T]) -> None:
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(self.key)
                if items:
                    pipe.hset(self.key, mapping={k: self._dumps(v) for k, v in items.items()})
                pipe.set(self.seeded_key, "1")
                await pipe.execute()
        except redis.RedisError as e:
            raise StoreUnavailableError(self.name, str(e)) from e

    async def get(self, id: str) -> T | None:
        try:
            await self._ensure_seeded()
            value = await self._redis.hget(self.key, id)  # type: ignore[misc]
        except redis.RedisError as e:
            raise StoreUnavailableError(self.name, str(e)) from e
        return self._loads(value) if value is not None else None

    async def put(self, item: T) -> T:
        try:
            await self._ensure_seeded()
            await self._redis.hset(self.key, self.key_of(item), self._dumps(item))  # type: ignore[misc]
        except redis.RedisError as e:
            raise StoreUnavailableError(self.name, str(e)) from e
        return item

    async def delete(self, id: str) -> bool:
        try:
            await self._ensure_seeded()
            removed = await self._redis.hdel(self.key, id)  # type: ignore[misc]
        except redis.RedisError as e:
            raise StoreUnavailableError(self.name, str(e)) from e
        return bool(removed)
