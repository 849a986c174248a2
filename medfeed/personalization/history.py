"""Bounded per-user engagement histories.

Maintains the four engagement collections of a user:

- wishlist: newest first, unbounded, read in pages
- recently viewed items: oldest first in storage, capped at 15
- viewed categories: newest first, capped at 15
- recent search terms: newest first, capped at 7 in the document store and
  mirrored (capped at 10, 30-day expiry) in the ephemeral store

Every add is remove-then-insert, so repeating a call only moves the entry.
Cache invalidation and the search mirror are secondary effects: their
failures are logged and never surface to the caller.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from medfeed.api.exceptions import InternalError, NotFoundError, ValidationError
from medfeed.personalization import keys
from medfeed.personalization.bounded import (
    RECENT_SEARCHES,
    RECENT_SEARCHES_MIRROR_CAPACITY,
    RECENTLY_VIEWED,
    VIEWED_CATEGORIES,
    WISHLIST,
)
from medfeed.personalization.cache import CacheLayer
from medfeed.personalization.profiles import ProfileRepository
from medfeed.personalization.stores import EphemeralStore

# Configure module logger
logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2
DEFAULT_SEARCH_TTL = 30 * 24 * 60 * 60


def time_ago(timestamp_ms: Optional[int], now_ms: Optional[int] = None) -> str:
    """Human-readable age of a millisecond timestamp."""
    if not timestamp_ms:
        return ""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    seconds = max(0, (now_ms - int(timestamp_ms)) // 1000)

    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return "just now"


def normalize_search_term(term: str) -> Tuple[str, str]:
    """Return the dedup key (trimmed, lowercased) and the display form.

    Raises:
        ValidationError: If the trimmed term is shorter than two characters.
    """
    if not isinstance(term, str) or len(term.strip()) < MIN_SEARCH_LENGTH:
        raise ValidationError(
            f"Valid search query is required (min {MIN_SEARCH_LENGTH} characters)"
        )
    display = term.strip()
    return display.lower(), display


class EngagementHistoryStore:
    """Reads and writes the bounded engagement collections of users."""

    def __init__(
        self,
        profiles: ProfileRepository,
        store: EphemeralStore,
        cache: CacheLayer,
        search_ttl: int = DEFAULT_SEARCH_TTL,
    ):
        self.profiles = profiles
        self.store = store
        self.cache = cache
        self.search_ttl = search_ttl

    # Wishlist

    async def add_wishlist(self, user_id: str, item_id: str) -> bool:
        """Put an item at the head of the wishlist, moving it if present."""
        updated = await self.profiles.apply_bounded(user_id, WISHLIST, item_id)
        await self.cache.delete_pattern(keys.wishlist_prefix(user_id))
        return updated

    async def remove_wishlist(self, user_id: str, item_id: str) -> int:
        """Remove an item from the wishlist.

        Returns:
            Number of items left in the wishlist.

        Raises:
            NotFoundError: If the user record does not exist.
        """
        remaining = await self.profiles.remove_entry(user_id, WISHLIST, item_id)
        if remaining is None:
            raise NotFoundError("User", user_id)
        await self.cache.delete_pattern(keys.wishlist_prefix(user_id))
        return remaining

    async def clear_wishlist(self, user_id: str) -> None:
        if not await self.profiles.clear_field(user_id, WISHLIST):
            raise NotFoundError("User", user_id)
        await self.cache.delete_pattern(keys.wishlist_prefix(user_id))

    async def list_wishlist(self, user_id: str, page: int, size: int) -> Tuple[List[str], int]:
        """Return one page of wishlist IDs (most recent first) and the total."""
        skip = (page - 1) * size
        result = await self.profiles.get_slice(user_id, WISHLIST, skip, size)
        if result is None:
            return [], 0
        ids, total = result
        return [str(i) for i in ids], total

    async def in_wishlist(self, user_id: str, item_id: str) -> bool:
        wishlist = await self.profiles.get_field(user_id, WISHLIST) or []
        return item_id in [str(i) for i in wishlist]

    # Recently viewed items

    async def add_recently_viewed(self, user_id: str, item_id: str) -> bool:
        """Append an item to the recently viewed queue, evicting the oldest past 15."""
        updated = await self.profiles.apply_bounded(user_id, RECENTLY_VIEWED, item_id)
        await self.cache.delete(keys.recently_viewed(user_id))
        return updated

    async def list_recently_viewed(self, user_id: str) -> List[str]:
        """Recently viewed item IDs, most recent first."""
        stored = await self.profiles.get_field(user_id, RECENTLY_VIEWED) or []
        return [str(i) for i in reversed(stored[-RECENTLY_VIEWED.capacity:])]

    # Viewed categories

    async def add_viewed_category(self, user_id: str, category_id: str) -> bool:
        updated = await self.profiles.apply_bounded(user_id, VIEWED_CATEGORIES, category_id)
        await self.cache.delete(keys.recently_viewed_categories(user_id))
        return updated

    async def list_viewed_categories(self, user_id: str) -> List[str]:
        """Viewed category IDs, most recent first."""
        stored = await self.profiles.get_field(user_id, VIEWED_CATEGORIES) or []
        return [str(c) for c in stored[: VIEWED_CATEGORIES.capacity]]

    # Recent searches

    async def _mirror_remove(self, redis_key: str, query: str) -> bool:
        removed = False
        for raw in await self.store.lrange(redis_key, 0, -1):
            try:
                parsed = json.loads(raw)
            except ValueError:
                continue
            if isinstance(parsed, dict) and parsed.get("query") == query:
                await self.store.lrem(redis_key, 0, raw)
                removed = True
        return removed

    async def _mirror_save(self, user_id: str, entry: Dict[str, Any]) -> None:
        redis_key = keys.recent_searches(user_id)
        await self._mirror_remove(redis_key, entry["query"])
        await self.store.lpush(redis_key, json.dumps(entry, sort_keys=True))
        await self.store.ltrim(redis_key, 0, RECENT_SEARCHES_MIRROR_CAPACITY - 1)
        await self.store.expire(redis_key, self.search_ttl)

    async def save_search(
        self, user_id: str, term: str, context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Record a search term in both stores, newest first, without duplicates.

        The two writes are independent: either may fail without blocking
        the other.

        Args:
            user_id: Searching user.
            term: Raw search term as typed.
            context: Optional ``itemId``, ``itemName`` and ``itemImage`` of
                the item the search led to.

        Returns:
            The stored entry plus which stores accepted it.

        Raises:
            ValidationError: If the term is too short.
            InternalError: If neither store accepted the write.
        """
        query, display = normalize_search_term(term)
        context = context or {}
        entry = {
            "query": query,
            "displayQuery": display,
            "itemId": context.get("itemId"),
            "itemName": context.get("itemName"),
            "itemImage": context.get("itemImage"),
            "timestamp": int(time.time() * 1000),
        }

        stored = {"ephemeral": False, "durable": False}
        errors: List[Exception] = []

        try:
            await self._mirror_save(user_id, entry)
            stored["ephemeral"] = True
        except Exception as e:
            errors.append(e)
            logger.warning(
                "Recent search mirror write failed",
                extra={"user_id": user_id, "error": str(e)},
            )

        try:
            stored["durable"] = await self.profiles.apply_bounded(user_id, RECENT_SEARCHES, entry)
        except Exception as e:
            errors.append(e)
            logger.warning(
                "Recent search profile write failed",
                extra={"user_id": user_id, "error": str(e)},
            )

        if len(errors) == 2:
            raise InternalError("save recent search", errors[-1])

        return {"query": query, "displayQuery": display, "saved": True, "stored": stored}

    @staticmethod
    def _format_search(index: int, entry: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": index,
            "query": entry.get("displayQuery") or entry.get("query"),
            "itemId": entry.get("itemId"),
            "itemName": entry.get("itemName"),
            "itemImage": entry.get("itemImage"),
            "timestamp": entry.get("timestamp"),
            "timeAgo": time_ago(entry.get("timestamp")),
        }

    async def list_recent_searches(self, user_id: str, limit: int = 10) -> Tuple[List[Dict[str, Any]], str]:
        """Return recent searches, newest first, and where they came from.

        Reads the ephemeral mirror first. When it is empty the document
        store is used instead and the mirror is repopulated from it.

        Returns:
            Tuple of formatted entries and ``"redis"`` or ``"database"``.
        """
        redis_key = keys.recent_searches(user_id)

        try:
            raw_entries = await self.store.lrange(redis_key, 0, limit - 1)
        except Exception as e:
            logger.warning(
                "Recent search mirror read failed",
                extra={"user_id": user_id, "error": str(e)},
            )
            raw_entries = []

        entries = []
        for raw in raw_entries:
            try:
                parsed = json.loads(raw)
            except ValueError:
                continue
            if isinstance(parsed, dict):
                entries.append(parsed)

        if entries:
            return [self._format_search(i, e) for i, e in enumerate(entries)], "redis"

        durable = await self.profiles.get_field(user_id, RECENT_SEARCHES) or []
        if durable:
            try:
                await self.store.rpush(
                    redis_key, *[json.dumps(e, sort_keys=True, default=str) for e in durable]
                )
                await self.store.ltrim(redis_key, 0, RECENT_SEARCHES_MIRROR_CAPACITY - 1)
                await self.store.expire(redis_key, self.search_ttl)
            except Exception as e:
                logger.warning(
                    "Recent search mirror repopulation failed",
                    extra={"user_id": user_id, "error": str(e)},
                )

        return [self._format_search(i, e) for i, e in enumerate(durable[:limit])], "database"

    async def delete_recent_search(self, user_id: str, term: str) -> bool:
        """Remove one search term from both stores.

        Returns:
            True if either store held the term.
        """
        query = term.strip().lower()
        deleted = False

        try:
            deleted = await self._mirror_remove(keys.recent_searches(user_id), query)
        except Exception as e:
            logger.warning(
                "Recent search mirror delete failed",
                extra={"user_id": user_id, "error": str(e)},
            )

        before = await self.profiles.get_field(user_id, RECENT_SEARCHES) or []
        if any(isinstance(e, dict) and e.get("query") == query for e in before):
            await self.profiles.remove_entry(user_id, RECENT_SEARCHES, query)
            deleted = True

        return deleted

    async def clear_recent_searches(self, user_id: str) -> None:
        try:
            await self.store.delete(keys.recent_searches(user_id))
        except Exception as e:
            logger.warning(
                "Recent search mirror clear failed",
                extra={"user_id": user_id, "error": str(e)},
            )
        await self.profiles.clear_field(user_id, RECENT_SEARCHES)
