"""Tests for relevance scoring and randomized top-K selection."""

from datetime import datetime, timedelta

import numpy as np
import pytest

from medfeed.personalization.profiles import UserEngagementProfile
from medfeed.personalization.scoring import BASE_SCORE, CandidateItem, ScoringEngine

NOW = datetime(2024, 6, 1, 12, 0, 0)


def candidate(**overrides) -> CandidateItem:
    values = dict(
        id="i1",
        category_id="c1",
        views=0.0,
        rating=0.0,
        discount_pct=0.0,
        created_at=NOW - timedelta(days=30),
    )
    values.update(overrides)
    return CandidateItem(**values)


@pytest.fixture
def engine() -> ScoringEngine:
    return ScoringEngine(rng=np.random.default_rng(7))


def test_item_without_signals_gets_base_score(engine):
    assert engine.score(candidate(), now=NOW) == BASE_SCORE


def test_all_factors_at_cap(engine):
    profile = UserEngagementProfile(user_id="u", viewed_categories=["c1"])
    item = candidate(views=10_000, rating=5, discount_pct=50, created_at=NOW - timedelta(days=1))

    assert engine.score(item, profile, now=NOW) == 100 + 45 + 15 + 10 + 15 + 5


def test_factor_boundaries(engine):
    assert engine.score(candidate(views=50), now=NOW) == 105
    assert engine.score(candidate(discount_pct=20), now=NOW) == 100
    assert engine.score(candidate(discount_pct=21), now=NOW) == 110
    assert engine.score(candidate(rating=2.5), now=NOW) == 107.5
    assert engine.score(candidate(created_at=NOW - timedelta(days=7)), now=NOW) == 100
    assert engine.score(candidate(created_at=None), now=NOW) == 100


def test_affinity_requires_matching_category(engine):
    profile = UserEngagementProfile(user_id="u", viewed_categories=["c2"])
    assert engine.score(candidate(), profile, now=NOW) == BASE_SCORE


def test_score_is_monotonic_in_views_and_rating(engine):
    views_scores = [engine.score(candidate(views=v), now=NOW) for v in range(0, 400, 7)]
    rating_scores = [engine.score(candidate(rating=r / 10), now=NOW) for r in range(0, 60)]

    assert views_scores == sorted(views_scores)
    assert rating_scores == sorted(rating_scores)
    assert max(rating_scores) == BASE_SCORE + 15


def test_negative_signals_never_reduce_below_base(engine):
    assert engine.score(candidate(views=-100, rating=-3), now=NOW) == BASE_SCORE


def test_rank_returns_top_k_members_of_pool(engine):
    pool = [candidate(id=f"i{n}", views=n) for n in range(40)]

    ranked = engine.rank(pool, top_k=15, now=NOW)

    assert len(ranked) == 15
    ids = [c.id for c, _ in ranked]
    assert len(set(ids)) == 15
    assert set(ids) <= {c.id for c in pool}


def test_rank_shuffles_whole_pool_before_truncating():
    """Across seeds, low-scoring items can still make the cut."""
    pool = [candidate(id=f"i{n}", views=n * 10) for n in range(30)]
    bottom = {f"i{n}" for n in range(15)}

    seen_bottom = False
    for seed in range(20):
        ranked = ScoringEngine(np.random.default_rng(seed)).rank(pool, top_k=15, now=NOW)
        if bottom & {c.id for c, _ in ranked}:
            seen_bottom = True
            break

    assert seen_bottom


def test_rank_small_pool_returns_everything(engine):
    pool = [candidate(id="a"), candidate(id="b")]
    assert {c.id for c, _ in engine.rank(pool, top_k=15, now=NOW)} == {"a", "b"}
    assert engine.rank([], now=NOW) == []


def test_candidate_from_document_parses_fields():
    item = CandidateItem.from_document({
        "_id": "abc",
        "itemCategory": "c9",
        "views": 12,
        "itemRatings": None,
        "itemDiscount": 25,
        "createdAt": "2024-05-30T12:00:00Z",
    })

    assert item.category_id == "c9"
    assert item.rating == 0.0
    assert item.created_at == datetime(2024, 5, 30, 12, 0, 0)
