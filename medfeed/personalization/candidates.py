"""Candidate aggregation for the feed.

Pulls raw candidate item IDs from three independent signals and merges them
into one deduplicated pool:

1. Personalized: most viewed items in the categories the user has browsed.
2. Trending: globally most viewed items.
3. Newest: most recently created items.
"""

import asyncio
import logging
from typing import List, Optional

from medfeed.personalization.bounded import VIEWED_CATEGORIES
from medfeed.personalization.catalog import CatalogRepository
from medfeed.personalization.profiles import ProfileRepository

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_LIMIT_PER_SOURCE = 50


class CandidateAggregator:
    """Gathers the candidate pool from the catalog's three signals."""

    def __init__(self, catalog: CatalogRepository, profiles: ProfileRepository):
        self.catalog = catalog
        self.profiles = profiles

    async def _personalized(self, user_id: Optional[str], limit: int) -> List[str]:
        if not user_id:
            return []
        category_ids = await self.profiles.get_field(user_id, VIEWED_CATEGORIES)
        if not category_ids:
            return []
        return await self.catalog.top_viewed_ids(
            limit, category_ids=[str(c) for c in category_ids]
        )

    async def gather_candidates(
        self,
        user_id: Optional[str] = None,
        limit_per_source: int = DEFAULT_LIMIT_PER_SOURCE,
    ) -> List[str]:
        """Return the deduplicated union of all three sources.

        The three fetches run concurrently. Order of first appearance is
        kept (personalized, then trending, then newest) but carries no
        meaning; callers shuffle or score the pool.

        Args:
            user_id: Requesting user, or None for anonymous callers.
            limit_per_source: Cap applied to each source separately.

        Returns:
            Unique item IDs. Empty when the catalog is empty, which callers
            must treat as a normal "no content" state.
        """
        personalized, trending, newest = await asyncio.gather(
            self._personalized(user_id, limit_per_source),
            self.catalog.top_viewed_ids(limit_per_source),
            self.catalog.newest_ids(limit_per_source),
        )

        pool = list(dict.fromkeys([*personalized, *trending, *newest]))

        logger.info(
            "Candidates gathered",
            extra={
                "user_id": user_id,
                "personalized": len(personalized),
                "trending": len(trending),
                "newest": len(newest),
                "unique": len(pool),
            },
        )
        return pool
