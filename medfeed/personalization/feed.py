"""Queue-backed dynamic feed.

Each user owns a list in the ephemeral store holding pre-shuffled item IDs.
A page request pops the next ``page_size`` IDs from its head. When fewer
than a page's worth remain, the queue is refilled from a freshly gathered
and shuffled candidate pool before popping.

Regeneration is cooperative: two concurrent requests for the same user may
both refill the queue and push overlapping IDs. Pages are deduplicated by
ID when they are rendered, so the overlap only costs a little efficiency.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import numpy as np

from medfeed.api.metrics import metrics_service
from medfeed.personalization import keys
from medfeed.personalization.candidates import DEFAULT_LIMIT_PER_SOURCE, CandidateAggregator
from medfeed.personalization.catalog import CatalogRepository, summarize_item
from medfeed.personalization.randomization import shuffle
from medfeed.personalization.stores import EphemeralStore

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
DEFAULT_QUEUE_TTL = 3600


class FeedQueueManager:
    """Serves fixed-size feed pages from a self-regenerating per-user queue."""

    def __init__(
        self,
        store: EphemeralStore,
        aggregator: CandidateAggregator,
        catalog: CatalogRepository,
        page_size: int = DEFAULT_PAGE_SIZE,
        queue_ttl: int = DEFAULT_QUEUE_TTL,
        limit_per_source: int = DEFAULT_LIMIT_PER_SOURCE,
        rng: Optional[np.random.Generator] = None,
    ):
        self.store = store
        self.aggregator = aggregator
        self.catalog = catalog
        self.page_size = page_size
        self.queue_ttl = queue_ttl
        self.limit_per_source = limit_per_source
        self.rng = rng

    async def regenerate(self, user_id: str) -> int:
        """Append a freshly shuffled candidate pool to the user's queue.

        Returns:
            Number of IDs pushed (0 when the catalog has nothing to offer).
        """
        queue_key = keys.feed_queue(user_id)
        candidate_ids = await self.aggregator.gather_candidates(user_id, self.limit_per_source)
        shuffle(candidate_ids, self.rng)

        if candidate_ids:
            await self.store.rpush(queue_key, *candidate_ids)
            await self.store.expire(queue_key, self.queue_ttl)

        metrics_service.record_feed_regeneration()
        logger.info(
            "Feed queue regenerated",
            extra={"user_id": user_id, "pushed": len(candidate_ids)},
        )
        return len(candidate_ids)

    async def pop_page(self, user_id: str, page_size: Optional[int] = None) -> List[str]:
        """Pop the next page of IDs, regenerating the queue first if it is short."""
        size = page_size or self.page_size
        queue_key = keys.feed_queue(user_id)

        queue_length = await self.store.llen(queue_key)
        if queue_length < size:
            await self.regenerate(user_id)

        ids = await self.store.lrange(queue_key, 0, size - 1)
        if ids:
            await self.store.ltrim(queue_key, size, -1)
            await self.store.expire(queue_key, self.queue_ttl)
        return ids

    async def next_page(self, user_id: str, page_size: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return the next feed page with item details, in queue order.

        IDs that no longer resolve to a live item are dropped, as are
        repeated IDs left behind by concurrent regenerations. An empty page
        is a valid result (for example when the catalog is empty).
        """
        start_time = time.time()

        ids = await self.pop_page(user_id, page_size)
        if not ids:
            logger.info("Feed empty after regeneration attempt", extra={"user_id": user_id})
            return []

        unique_ids = list(dict.fromkeys(ids))
        items = await self.catalog.find_by_ids(unique_ids)
        item_map = {str(item["_id"]): item for item in items}

        page = [summarize_item(item_map[i]) for i in unique_ids if i in item_map]

        metrics_service.record_latency("feed.next_page", (time.time() - start_time) * 1000)
        logger.info(
            "Feed page served",
            extra={
                "user_id": user_id,
                "popped": len(ids),
                "served": len(page),
                "dropped": len(ids) - len(page),
            },
        )
        return page
