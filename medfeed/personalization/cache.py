"""Read-through cache shared by every personalization component.

The ephemeral store is only ever a cache here, never the source of truth.
Every write wraps the payload in an envelope with a checksum and a
timestamp. Reads and writes never raise: a failing store is logged and
treated as a miss, so callers fall through to the document store.
"""

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Optional

from medfeed.api.metrics import metrics_service
from medfeed.personalization.keys import escape_glob
from medfeed.personalization.stores import EphemeralStore

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_TTL = 3000


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def dumps(payload: Any) -> str:
    """Serialize a payload deterministically."""
    return json.dumps(payload, sort_keys=True, default=_json_default, separators=(",", ":"))


def checksum(payload: Any) -> str:
    return hashlib.sha256(dumps(payload).encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    """Envelope stored under a cache key."""

    key: str
    payload: Any
    checksum: str
    cached_at: int
    ttl: int

    def to_json(self) -> str:
        return dumps(
            {"data": self.payload, "checksum": self.checksum, "cachedAt": self.cached_at}
        )


class CacheLayer:
    """Cache operations over an :class:`EphemeralStore`.

    ``get`` returns None on a miss. Cached payloads are never None, so an
    empty list or dict is a legitimate hit.
    """

    def __init__(self, store: EphemeralStore):
        self.store = store

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.store.get(key)
        except Exception as e:
            metrics_service.record_cache_error()
            logger.warning("Cache read failed", extra={"cache_key": key, "error": str(e)})
            return None

        if raw is None:
            metrics_service.record_cache_miss()
            return None

        try:
            envelope = json.loads(raw)
            payload = envelope["data"]
        except (ValueError, KeyError, TypeError) as e:
            metrics_service.record_cache_error()
            logger.warning("Cache entry unreadable", extra={"cache_key": key, "error": str(e)})
            return None

        if checksum(payload) != envelope.get("checksum"):
            logger.warning("Cache checksum mismatch", extra={"cache_key": key})

        metrics_service.record_cache_hit()
        return payload

    async def set(self, key: str, payload: Any, ttl: int = DEFAULT_TTL) -> None:
        try:
            entry = CacheEntry(
                key=key,
                payload=payload,
                checksum=checksum(payload),
                cached_at=int(time.time() * 1000),
                ttl=ttl,
            )
            await self.store.set(key, entry.to_json(), ex=ttl)
        except Exception as e:
            metrics_service.record_cache_error()
            logger.warning("Cache write failed", extra={"cache_key": key, "error": str(e)})

    async def delete(self, key: str) -> None:
        try:
            await self.store.delete(key)
        except Exception as e:
            metrics_service.record_cache_error()
            logger.warning("Cache delete failed", extra={"cache_key": key, "error": str(e)})

    async def delete_pattern(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``, taken literally.

        Returns:
            Number of keys removed (0 when the store is unavailable).
        """
        try:
            keys = await self.store.scan_keys(f"{escape_glob(prefix)}*")
            if not keys:
                return 0
            return await self.store.delete(*keys)
        except Exception as e:
            metrics_service.record_cache_error()
            logger.warning("Cache pattern delete failed", extra={"cache_prefix": prefix, "error": str(e)})
            return 0

    async def get_or_compute(
        self, key: str, ttl: int, compute: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Return the cached payload, computing and storing it on a miss."""
        cached = await self.get(key)
        if cached is not None:
            return cached

        payload = await compute()
        if payload is not None:
            await self.set(key, payload, ttl)
        return payload
