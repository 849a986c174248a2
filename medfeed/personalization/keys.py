"""Ephemeral-store key conventions.

Single-entity keys are deleted directly on mutation. Query-shaped keys
share a prefix so they can be invalidated together by pattern.
"""

import hashlib
import json
import re
from typing import Any, Dict

DEALS_OF_THE_DAY = "deals:of-the-day"
GLOBAL_AI_CANDIDATES = "global_ai_candidates_v4"
POPULAR_SEARCH_TERMS = "popular:search:terms:v2"
FILTERED_ITEMS_PREFIX = "items:"

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Escape Redis glob metacharacters so ``value`` matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


def feed_queue(user_id: str) -> str:
    return f"user_feed_queue:{user_id}"


def recent_searches(user_id: str) -> str:
    return f"recent:searches:{user_id}"


def item_details(item_id: str) -> str:
    return f"item_details:{item_id}"


def item_exists(item_id: str) -> str:
    return f"item:exists:{item_id}"


def user_trending(user_id: str) -> str:
    return f"user_trend_cache_v2:{user_id}"


def recently_viewed(user_id: str) -> str:
    return f"recently-viewed:{user_id}"


def recently_viewed_categories(user_id: str) -> str:
    return f"recently_viewed_categories:{user_id}"


def wishlist_prefix(user_id: str) -> str:
    return f"user:wishlist:{user_id}:"


def wishlist_page(user_id: str, page: int, limit: int) -> str:
    return f"{wishlist_prefix(user_id)}p{page}:l{limit}"


def similar_products(item_id: str, page: int, limit: int) -> str:
    return f"similar_products:{item_id}:p{page}:l{limit}"


def suggestions(query: str, limit: int) -> str:
    return f"suggestions:{query.lower()}:{limit}"


def filtered_items(query: Dict[str, Any]) -> str:
    """Build a stable key for a filtered listing query."""
    digest = hashlib.sha1(
        json.dumps(query, sort_keys=True, default=str).encode("utf-8")
    ).hexdigest()
    return f"{FILTERED_ITEMS_PREFIX}filtered:{digest}"
