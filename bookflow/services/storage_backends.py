"""Key/value backends for session-scoped booking storage.

Booking data is scratch state: it expires on its own and is never the
system of record. Backends only need get/set/delete with a TTL plus a lock
per key so concurrent step submissions do not lose updates.
"""

import asyncio
import logging
import weakref
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime, timedelta

import redis.asyncio as redis

from bookflow.config import Settings, settings

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract async key/value store."""

    def __init__(self) -> None:
        # Entries vanish once no holder or waiter references the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def lock(self, key: str) -> AbstractAsyncContextManager:
        """Lock serializing read-modify-write cycles on one key."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored string or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Store a string, optionally expiring after ``ttl`` seconds."""
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        """Delete keys; missing keys are ignored."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None


class MemoryStorage(StorageBackend):
    """In-process store.

    Suitable for development, tests and single-worker deployments.
    """

    def __init__(self) -> None:
        super().__init__()
        self._entries: dict[str, dict] = {}

    def _cleanup_expired(self) -> None:
        """Remove expired keys."""
        now = datetime.now(UTC)
        expired = [
            k for k, v in self._entries.items()
            if v["expires_at"] is not None and v["expires_at"] <= now
        ]
        for k in expired:
            del self._entries[k]

    async def get(self, key: str) -> str | None:
        self._cleanup_expired()
        entry = self._entries.get(key)
        return entry["value"] if entry else None

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        expires_at = datetime.now(UTC) + timedelta(seconds=ttl) if ttl else None
        self._entries[key] = {"value": value, "expires_at": expires_at}

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)


class RedisStorage(StorageBackend):
    """Redis-backed store shared between workers."""

    def __init__(
        self,
        redis_url: str | None = None,
        lock_timeout: float | None = None,
        lock_wait: float | None = None,
    ) -> None:
        super().__init__()
        self.redis_url = redis_url or settings.redis_url
        self.lock_timeout = (
            lock_timeout if lock_timeout is not None else settings.storage_lock_timeout_seconds
        )
        self.lock_wait = lock_wait if lock_wait is not None else settings.storage_lock_wait_seconds
        self._redis: redis.Redis | None = None

    def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        return self._client()

    def lock(self, key: str) -> AbstractAsyncContextManager:
        """Redis lock, so every worker sharing the server is serialized.

        Acquiring raises ``redis.exceptions.LockError`` after ``lock_wait``
        seconds; the lock expires after ``lock_timeout`` seconds if its holder
        dies.
        """
        return self._client().lock(
            f"{key}:lock",
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_wait,
        )

    async def get(self, key: str) -> str | None:
        try:
            client = await self.get_redis()
            return await client.get(key)
        except redis.RedisError as e:
            # Reads degrade to "nothing stored"
            logger.warning(f"Redis read failed for {key}: {e}")
            return None

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        client = await self.get_redis()
        await client.set(key, value, ex=ttl)

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        client = await self.get_redis()
        await client.delete(*keys)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def create_storage_backend(config: Settings | None = None) -> StorageBackend:
    """Build the backend selected in settings."""
    config = config or settings
    if config.storage_backend == "redis":
        logger.info(f"Using Redis booking storage at {config.redis_host}:{config.redis_port}")
        return RedisStorage(
            config.redis_url,
            lock_timeout=config.storage_lock_timeout_seconds,
            lock_wait=config.storage_lock_wait_seconds,
        )
    logger.info("Using in-memory booking storage")
    return MemoryStorage()
