"""Tests for candidate aggregation."""

import asyncio

from medfeed.personalization.bounded import VIEWED_CATEGORIES
from medfeed.personalization.candidates import CandidateAggregator

from conftest import USER_ID, InMemoryCatalog, InMemoryProfiles, make_item


def test_anonymous_pool_is_union_of_trending_and_newest(catalog, profiles, sample_items):
    aggregator = CandidateAggregator(catalog, profiles)

    pool = asyncio.run(aggregator.gather_candidates(None, limit_per_source=5))

    by_views = sorted(sample_items, key=lambda i: i["views"], reverse=True)[:5]
    by_age = sorted(sample_items, key=lambda i: i["createdAt"], reverse=True)[:5]
    expected = {i["_id"] for i in by_views} | {i["_id"] for i in by_age}
    assert set(pool) == expected
    assert len(pool) == len(set(pool))


def test_personalized_source_uses_viewed_categories(catalog, profiles, sample_items):
    category = "64c000000000000000000002"
    profiles.users[USER_ID][VIEWED_CATEGORIES.field] = [category]
    aggregator = CandidateAggregator(catalog, profiles)

    pool = asyncio.run(aggregator.gather_candidates(USER_ID, limit_per_source=3))

    in_category = sorted(
        (i for i in sample_items if i["itemCategory"] == category),
        key=lambda i: i["views"],
        reverse=True,
    )[:3]
    assert {i["_id"] for i in in_category} <= set(pool)


def test_user_without_history_gets_global_sources_only(catalog, profiles):
    aggregator = CandidateAggregator(catalog, profiles)

    with_user = asyncio.run(aggregator.gather_candidates(USER_ID, limit_per_source=4))
    anonymous = asyncio.run(aggregator.gather_candidates(None, limit_per_source=4))

    assert set(with_user) == set(anonymous)


def test_empty_catalog_yields_empty_pool():
    aggregator = CandidateAggregator(InMemoryCatalog([]), InMemoryProfiles([USER_ID]))
    assert asyncio.run(aggregator.gather_candidates(USER_ID)) == []


def test_deleted_items_are_not_candidates():
    live = make_item(views=1)
    deleted = make_item(views=100, deletedAt="2024-01-01")
    aggregator = CandidateAggregator(InMemoryCatalog([live, deleted]), InMemoryProfiles())

    assert asyncio.run(aggregator.gather_candidates(None)) == [live["_id"]]
