"""Ephemeral key-value store used for caching, feed queues and mirrors.

The engine only talks to the small command surface defined by
:class:`EphemeralStore`. Production uses Redis through ``redis.asyncio``;
tests substitute an in-memory implementation.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import redis.asyncio as redis

# Configure module logger
logger = logging.getLogger(__name__)


class EphemeralStore(ABC):
    """Async command surface of the ephemeral store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        ...

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        ...

    @abstractmethod
    async def scan_keys(self, pattern: str) -> List[str]:
        ...

    @abstractmethod
    async def llen(self, key: str) -> int:
        ...

    @abstractmethod
    async def lrange(self, key: str, start: int, end: int) -> List[str]:
        ...

    @abstractmethod
    async def ltrim(self, key: str, start: int, end: int) -> None:
        ...

    @abstractmethod
    async def rpush(self, key: str, *values: str) -> int:
        ...

    @abstractmethod
    async def lpush(self, key: str, *values: str) -> int:
        ...

    @abstractmethod
    async def lrem(self, key: str, count: int, value: str) -> int:
        ...

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> None:
        ...

    @abstractmethod
    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        """Release connections. No-op unless the backend holds any."""


class RedisEphemeralStore(EphemeralStore):
    """Redis-backed ephemeral store."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisEphemeralStore":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        logger.info("Redis client created", extra={"redis_url": url.split("@")[-1]})
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        await self.client.set(key, value, ex=ex)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self.client.delete(*keys)

    async def scan_keys(self, pattern: str) -> List[str]:
        return [key async for key in self.client.scan_iter(match=pattern, count=500)]

    async def llen(self, key: str) -> int:
        return await self.client.llen(key)

    async def lrange(self, key: str, start: int, end: int) -> List[str]:
        return await self.client.lrange(key, start, end)

    async def ltrim(self, key: str, start: int, end: int) -> None:
        await self.client.ltrim(key, start, end)

    async def rpush(self, key: str, *values: str) -> int:
        return await self.client.rpush(key, *values)

    async def lpush(self, key: str, *values: str) -> int:
        return await self.client.lpush(key, *values)

    async def lrem(self, key: str, count: int, value: str) -> int:
        return await self.client.lrem(key, count, value)

    async def expire(self, key: str, seconds: int) -> None:
        await self.client.expire(key, seconds)

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.aclose()
