"""AI trending / for-you surface.

Two cache tiers keep this cheap: the global candidate pool is shared by all
users for an hour, and each user's shuffled top-K is kept for ten minutes.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from medfeed.api.metrics import metrics_service
from medfeed.personalization import keys
from medfeed.personalization.cache import CacheLayer
from medfeed.personalization.catalog import CatalogRepository
from medfeed.personalization.profiles import ProfileRepository
from medfeed.personalization.scoring import DEFAULT_TOP_K, CandidateItem, ScoringEngine

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 100
DEFAULT_POOL_TTL = 3600
DEFAULT_USER_TTL = 600


class TrendingService:
    """Serves the personalized trending list through two cache tiers."""

    def __init__(
        self,
        catalog: CatalogRepository,
        profiles: ProfileRepository,
        cache: CacheLayer,
        scoring: ScoringEngine,
        pool_size: int = DEFAULT_POOL_SIZE,
        top_k: int = DEFAULT_TOP_K,
        pool_ttl: int = DEFAULT_POOL_TTL,
        user_ttl: int = DEFAULT_USER_TTL,
    ):
        self.catalog = catalog
        self.profiles = profiles
        self.cache = cache
        self.scoring = scoring
        self.pool_size = pool_size
        self.top_k = top_k
        self.pool_ttl = pool_ttl
        self.user_ttl = user_ttl

    async def global_pool(self) -> List[Dict[str, Any]]:
        """Shared candidate pool, cached for an hour when non-empty."""
        pool = await self.cache.get(keys.GLOBAL_AI_CANDIDATES)
        if pool:
            return pool

        pool = await self.catalog.scoring_pool(self.pool_size)
        if pool:
            await self.cache.set(keys.GLOBAL_AI_CANDIDATES, pool, self.pool_ttl)
        return pool

    async def trending(self, user_id: Optional[str] = None) -> Tuple[List[Dict[str, Any]], bool]:
        """Return the trending list for a user (or anonymous caller).

        Returns:
            Tuple of formatted items and whether they came from the
            per-user cache.
        """
        start_time = time.time()
        user_key = keys.user_trending(user_id) if user_id else None

        if user_key:
            cached = await self.cache.get(user_key)
            if cached is not None:
                return cached, True

        profile = await self.profiles.get_profile(user_id) if user_id else None

        pool = await self.global_pool()
        if not pool:
            return [], False

        docs = {str(doc["_id"]): doc for doc in pool}
        candidates = [CandidateItem.from_document(doc) for doc in pool]
        ranked = self.scoring.rank(candidates, profile, top_k=self.top_k)

        formatted = []
        for candidate, _score in ranked:
            doc = docs[candidate.id]
            images = doc.get("itemImages") or []
            formatted.append({
                "_id": candidate.id,
                "itemName": doc.get("itemName"),
                "itemDescription": doc.get("itemDescription") or "",
                "image": images[0] if images else None,
                "itemRatings": doc.get("itemRatings") or 0,
                "itemFinalPrice": doc.get("itemFinalPrice") or 0,
                "itemDiscount": doc.get("itemDiscount") or 0,
            })

        if user_key:
            await self.cache.set(user_key, formatted, self.user_ttl)

        metrics_service.record_latency("trending.compute", (time.time() - start_time) * 1000)
        return formatted, False
