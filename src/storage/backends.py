# File: src/storage/backends.py
# Persisted key/value storage consumed by the session store.
# Contract: get(key) -> str | None, set(key, value), remove(key). Values are plain strings.

from typing import Dict, Optional

from redis.asyncio import ConnectionPool
from redis.asyncio import Redis as AsyncRedis


class MemoryStorage:
    """Process-local storage. Survives nothing but the process, one instance per console."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class RedisStorage:
    """Redis-backed storage so a restarted console can restore its last session."""

    def __init__(self, redis_client: AsyncRedis, key_prefix: str = "console:", logger=None):
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.logger = logger

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        value = await self.redis.get(self._key(key))
        if isinstance(value, bytes):
            value = value.decode()
        return value

    async def set(self, key: str, value: str) -> None:
        await self.redis.set(self._key(key), value)
        if self.logger:
            self.logger.debug(f"Stored {self._key(key)}")

    async def remove(self, key: str) -> None:
        await self.redis.delete(self._key(key))
        if self.logger:
            self.logger.debug(f"Removed {self._key(key)}")

    async def close(self) -> None:
        await self.redis.aclose()


# Shared pool, created on first use.
_redis_pool: Optional[ConnectionPool] = None


def get_redis_client(redis_url: str, socket_timeout: float = 5) -> AsyncRedis:
    """Get Redis client with shared connection pool."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = ConnectionPool.from_url(
            redis_url,
            decode_responses=True,
            retry_on_timeout=False,
            socket_keepalive=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
    return AsyncRedis(connection_pool=_redis_pool)


def create_storage(storage_config: dict, redis_config: dict, logger_manager=None):
    """Build the backend named by STORAGE_CONFIG['BACKEND']."""
    backend = str(storage_config.get("BACKEND", "memory")).lower()
    logger = None
    if logger_manager is not None:
        logger = logger_manager.create_logger(logger_name="Storage",
                                              logging_level=storage_config.get("LOGGING_LEVEL", "INFO"))
    if backend == "memory":
        return MemoryStorage()
    if backend == "redis":
        client = get_redis_client(redis_config["REDIS_URL"], redis_config.get("SOCKET_TIMEOUT", 5))
        return RedisStorage(client, key_prefix=redis_config.get("KEY_PREFIX", "console:"), logger=logger)
    raise ValueError(f"Unknown storage backend '{backend}' (use memory/redis)")
