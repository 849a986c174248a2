"""Cached read paths of the storefront's discovery screens.

Glue between the engine components and the HTTP layer: resolves ID lists
from the engagement histories into item cards, and wraps every read in the
cache with the TTL of its screen.
"""

import logging
import math
from typing import Any, Dict, List, Sequence

from medfeed.api.exceptions import NotFoundError
from medfeed.personalization import keys
from medfeed.personalization.cache import CacheLayer
from medfeed.personalization.catalog import CatalogRepository, summarize_item
from medfeed.personalization.history import EngagementHistoryStore
from medfeed.personalization.similarity import SimilarityEngine

# Configure module logger
logger = logging.getLogger(__name__)

DEALS_LIMIT = 10
POPULAR_TERMS_LIMIT = 10
ALTERNATIVE_SUGGESTIONS_LIMIT = 5


def _suggestion(doc: Dict[str, Any]) -> Dict[str, Any]:
    images = doc.get("itemImages") or []
    return {
        "id": str(doc["_id"]),
        "name": doc.get("itemName"),
        "code": doc.get("code") or None,
        "company": doc.get("itemCompany") or None,
        "image": images[0] if images else None,
        "price": doc.get("itemFinalPrice") or 0,
        "discount": doc.get("itemDiscount") or 0,
        "rating": doc.get("itemRatings") or 0,
    }


class DiscoveryService:
    """Read-through access to item cards, histories and search helpers."""

    def __init__(
        self,
        catalog: CatalogRepository,
        history: EngagementHistoryStore,
        similarity: SimilarityEngine,
        cache: CacheLayer,
        ttls: Dict[str, int],
    ):
        self.catalog = catalog
        self.history = history
        self.similarity = similarity
        self.cache = cache
        self.ttls = ttls

    async def resolve(self, item_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Item cards for ``item_ids`` in the given order, skipping dead IDs."""
        if not item_ids:
            return []
        items = await self.catalog.find_by_ids(list(dict.fromkeys(item_ids)))
        item_map = {str(item["_id"]): item for item in items}
        seen = set()
        cards = []
        for item_id in item_ids:
            if item_id in item_map and item_id not in seen:
                seen.add(item_id)
                cards.append(summarize_item(item_map[item_id]))
        return cards

    async def item_exists(self, item_id: str) -> bool:
        cache_key = keys.item_exists(item_id)
        if await self.cache.get(cache_key):
            return True
        exists = await self.catalog.exists(item_id)
        if exists:
            await self.cache.set(cache_key, True, self.ttls["item_exists"])
        return exists

    async def item_details(self, item_id: str) -> Dict[str, Any]:
        """Full item document; every read counts as a view.

        Raises:
            NotFoundError: If the item does not exist.
        """
        cache_key = keys.item_details(item_id)
        item = await self.cache.get(cache_key)
        if item is None:
            item = await self.catalog.get_item(item_id)
            if item is None:
                raise NotFoundError("Item", item_id)
            await self.cache.set(cache_key, item, self.ttls["item_details"])

        try:
            await self.catalog.increment_views(item_id)
        except Exception as e:
            logger.warning("View increment failed", extra={"item_id": item_id, "error": str(e)})
        return item

    async def recently_viewed(self, user_id: str) -> List[Dict[str, Any]]:
        async def compute():
            return await self.resolve(await self.history.list_recently_viewed(user_id))

        return await self.cache.get_or_compute(
            keys.recently_viewed(user_id), self.ttls["recently_viewed"], compute
        )

    async def viewed_categories(self, user_id: str) -> List[Dict[str, Any]]:
        async def compute():
            category_ids = await self.history.list_viewed_categories(user_id)
            categories = await self.catalog.find_categories(category_ids)
            by_id = {str(c["_id"]): c for c in categories}
            result = []
            for category_id in category_ids:
                category = by_id.get(category_id)
                if category is None:
                    continue
                images = category.get("imageUrl") or []
                if isinstance(images, str):
                    images = [images]
                result.append({
                    "_id": category_id,
                    "name": category.get("name"),
                    "imageUrl": images[0] if images else None,
                })
            return result

        return await self.cache.get_or_compute(
            keys.recently_viewed_categories(user_id),
            self.ttls["recently_viewed"],
            compute,
        )

    async def wishlist_page(self, user_id: str, page: int, limit: int) -> Dict[str, Any]:
        async def compute():
            ids, total = await self.history.list_wishlist(user_id, page, limit)
            return {
                "items": await self.resolve(ids),
                "totalCount": total,
                "totalPages": math.ceil(total / limit) if limit else 0,
                "currentPage": page,
                "hasNextPage": total > page * limit,
            }

        return await self.cache.get_or_compute(
            keys.wishlist_page(user_id, page, limit), self.ttls["wishlist"], compute
        )

    async def similar(self, item_id: str, page: int, limit: int) -> Dict[str, Any]:
        cache_key = keys.similar_products(item_id, page, limit)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        anchor = await self.catalog.get_item(item_id)
        if anchor is None:
            raise NotFoundError("Product", item_id)

        result = await self.similarity.similar(anchor, page, limit)
        await self.cache.set(cache_key, result, self.ttls["similar"])
        return result

    async def deals_of_the_day(self) -> List[Dict[str, Any]]:
        async def compute():
            return [summarize_item(doc) for doc in await self.catalog.top_discounted(DEALS_LIMIT)]

        return await self.cache.get_or_compute(keys.DEALS_OF_THE_DAY, self.ttls["deals"], compute)

    async def filtered_items(self, filters: Dict[str, Any], page: int, limit: int) -> Dict[str, Any]:
        query = {**filters, "page": page, "limit": limit}

        async def compute():
            items, total = await self.catalog.filter_items(filters, (page - 1) * limit, limit)
            return {
                "items": [summarize_item(doc) for doc in items],
                "totalCount": total,
                "totalPages": math.ceil(total / limit) if limit else 0,
                "currentPage": page,
                "hasNextPage": total > page * limit,
            }

        return await self.cache.get_or_compute(
            keys.filtered_items(query), self.ttls["filtered_items"], compute
        )

    async def suggestions(self, query: str, limit: int) -> Dict[str, Any]:
        """Search-as-you-type suggestions with popular fallbacks on no match.

        Returns:
            Suggestion payload; ``cached`` tells whether it was served from
            the cache.
        """
        cache_key = keys.suggestions(query, limit)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return {**cached, "cached": True}

        suggestions = [_suggestion(doc) for doc in await self.catalog.search(query, limit)]
        data: Dict[str, Any] = {
            "suggestions": suggestions,
            "found": bool(suggestions),
            "query": query,
            "count": len(suggestions),
        }

        if not suggestions:
            popular = await self.catalog.popular(ALTERNATIVE_SUGGESTIONS_LIMIT)
            data["message"] = f'No results found for "{query}"'
            data["alternativeSuggestions"] = [_suggestion(doc) for doc in popular]
            data["tip"] = "Try different keywords or check the spelling"

        await self.cache.set(cache_key, data, self.ttls["suggestions"])
        return {**data, "cached": False}

    async def popular_terms(self) -> Dict[str, Any]:
        cached = await self.cache.get(keys.POPULAR_SEARCH_TERMS)
        if cached is not None:
            return {"terms": cached, "cached": True}

        terms = [
            {"id": str(doc["_id"]), "term": doc.get("itemName")}
            for doc in await self.catalog.popular(POPULAR_TERMS_LIMIT)
        ]
        await self.cache.set(keys.POPULAR_SEARCH_TERMS, terms, self.ttls["popular_terms"])
        return {"terms": terms, "cached": False}
