"""Assembly of the personalization components.

``build_services`` wires one object graph around a given ephemeral store,
catalog and profile repository. The API builds it from real Redis and
MongoDB connections at startup; tests build it from in-memory stores.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from pymongo import AsyncMongoClient

from medfeed.config import Settings, settings as default_settings
from medfeed.personalization.cache import CacheLayer
from medfeed.personalization.candidates import CandidateAggregator
from medfeed.personalization.catalog import CatalogRepository, MongoCatalogRepository
from medfeed.personalization.discovery import DiscoveryService
from medfeed.personalization.feed import FeedQueueManager
from medfeed.personalization.history import EngagementHistoryStore
from medfeed.personalization.profiles import MongoProfileRepository, ProfileRepository
from medfeed.personalization.scoring import ScoringEngine
from medfeed.personalization.similarity import SimilarityEngine
from medfeed.personalization.stores import EphemeralStore, RedisEphemeralStore
from medfeed.personalization.trending import TrendingService

# Configure module logger
logger = logging.getLogger(__name__)


@dataclass
class PersonalizationServices:
    """Everything the HTTP layer needs, built once per process."""

    store: EphemeralStore
    catalog: CatalogRepository
    profiles: ProfileRepository
    cache: CacheLayer
    history: EngagementHistoryStore
    aggregator: CandidateAggregator
    feed: FeedQueueManager
    trending: TrendingService
    discovery: DiscoveryService
    mongo_client: Optional[AsyncMongoClient] = None

    async def close(self) -> None:
        await self.store.close()
        if self.mongo_client is not None:
            await self.mongo_client.close()
        logger.info("Personalization services closed")


def build_services(
    store: EphemeralStore,
    catalog: CatalogRepository,
    profiles: ProfileRepository,
    config: Optional[Settings] = None,
    rng: Optional[np.random.Generator] = None,
    mongo_client: Optional[AsyncMongoClient] = None,
) -> PersonalizationServices:
    """Wire the component graph around the given stores.

    Args:
        store: Ephemeral key/list store backing caches and feed queues.
        catalog: Item and category reads.
        profiles: Per-user engagement collections.
        config: Settings to read sizes and TTLs from. Defaults to the
            process-wide settings.
        rng: Random generator shared by feed shuffling and trending
            selection. Pass a seeded one for reproducible ordering.
        mongo_client: Client to close on shutdown, if the caller owns one.

    Returns:
        Ready-to-use services.
    """
    config = config or default_settings
    cache = CacheLayer(store)
    history = EngagementHistoryStore(profiles, store, cache, search_ttl=config.TTL_RECENT_SEARCHES)
    aggregator = CandidateAggregator(catalog, profiles)

    feed = FeedQueueManager(
        store,
        aggregator,
        catalog,
        page_size=config.FEED_PAGE_SIZE,
        queue_ttl=config.FEED_QUEUE_TTL_SECONDS,
        limit_per_source=config.CANDIDATES_PER_SOURCE,
        rng=rng,
    )

    trending = TrendingService(
        catalog,
        profiles,
        cache,
        ScoringEngine(rng=rng),
        pool_size=config.TRENDING_POOL_SIZE,
        top_k=config.TRENDING_TOP_K,
        pool_ttl=config.TTL_GLOBAL_CANDIDATES,
        user_ttl=config.TTL_USER_TRENDING,
    )

    discovery = DiscoveryService(
        catalog,
        history,
        SimilarityEngine(catalog),
        cache,
        ttls={
            "item_details": config.TTL_ITEM_DETAILS,
            "item_exists": config.TTL_ITEM_EXISTS,
            "filtered_items": config.TTL_FILTERED_ITEMS,
            "deals": config.TTL_DEALS,
            "recently_viewed": config.TTL_RECENTLY_VIEWED,
            "wishlist": config.TTL_WISHLIST,
            "similar": config.TTL_SIMILAR,
            "suggestions": config.TTL_SUGGESTIONS,
            "popular_terms": config.TTL_POPULAR_TERMS,
        },
    )

    return PersonalizationServices(
        store=store,
        catalog=catalog,
        profiles=profiles,
        cache=cache,
        history=history,
        aggregator=aggregator,
        feed=feed,
        trending=trending,
        discovery=discovery,
        mongo_client=mongo_client,
    )


def connect_services(config: Optional[Settings] = None) -> PersonalizationServices:
    """Build services backed by Redis and MongoDB from settings."""
    config = config or default_settings
    store = RedisEphemeralStore.from_url(config.REDIS_URL)
    client: AsyncMongoClient = AsyncMongoClient(config.MONGO_URI)

    logger.info(
        "Connecting personalization stores",
        extra={"mongo_db": config.MONGO_DB_NAME},
    )
    return build_services(
        store,
        MongoCatalogRepository(client, config.MONGO_DB_NAME),
        MongoProfileRepository(client, config.MONGO_DB_NAME),
        config=config,
        mongo_client=client,
    )
