"""Relevance scoring for the trending / for-you surface.

Every candidate starts from a base score of 100 so that fresh items with no
signals still rank, then collects independent, capped, additive factors:

    affinity   +45  category is among the user's viewed categories
    trend      +min(views / 10, 15)
    promotion  +10  discount above 20%
    quality    +min(rating / 5 * 15, 15)
    recency    +5   created less than 7 days ago

After scoring, the whole pool is shuffled and only then truncated to the
top K, so presentation order is randomized and membership is only loosely
tied to score.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from medfeed.personalization.profiles import UserEngagementProfile
from medfeed.personalization.randomization import shuffle

# Configure module logger
logger = logging.getLogger(__name__)

# Scoring weights
BASE_SCORE = 100.0
AFFINITY_BOOST = 45.0
TREND_DIVISOR = 10.0
TREND_CAP = 15.0
PROMOTION_BOOST = 10.0
PROMOTION_MIN_DISCOUNT = 20.0
QUALITY_CAP = 15.0
MAX_RATING = 5.0
RECENCY_BOOST = 5.0
RECENCY_WINDOW = timedelta(days=7)
DEFAULT_TOP_K = 15


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@dataclass(frozen=True)
class CandidateItem:
    """Immutable scoring snapshot of a catalog item. Never persisted."""

    id: str
    category_id: Optional[str]
    views: float = 0.0
    rating: float = 0.0
    discount_pct: float = 0.0
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "CandidateItem":
        category = doc.get("itemCategory")
        return cls(
            id=str(doc["_id"]),
            category_id=str(category) if category is not None else None,
            views=float(doc.get("views") or 0),
            rating=float(doc.get("itemRatings") or 0),
            discount_pct=float(doc.get("itemDiscount") or 0),
            created_at=_parse_datetime(doc.get("createdAt")),
        )


class ScoringEngine:
    """Weighted relevance scoring with randomized top-K selection."""

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng

    def score_pool(
        self,
        candidates: Sequence[CandidateItem],
        profile: Optional[UserEngagementProfile] = None,
        now: Optional[datetime] = None,
    ) -> np.ndarray:
        """Score every candidate at once.

        Returns:
            Array of scores aligned with ``candidates``.
        """
        if not candidates:
            return np.zeros(0)

        now = now or _utcnow()
        viewed = set(profile.viewed_categories) if profile else set()

        views = np.array([c.views for c in candidates], dtype=float)
        ratings = np.array([c.rating for c in candidates], dtype=float)
        discounts = np.array([c.discount_pct for c in candidates], dtype=float)
        affinity = np.array([c.category_id in viewed for c in candidates], dtype=bool)
        recent = np.array(
            [c.created_at is not None and now - c.created_at < RECENCY_WINDOW for c in candidates],
            dtype=bool,
        )

        scores = np.full(len(candidates), BASE_SCORE)
        scores += np.where(affinity, AFFINITY_BOOST, 0.0)
        scores += np.clip(views / TREND_DIVISOR, 0.0, TREND_CAP)
        scores += np.where(discounts > PROMOTION_MIN_DISCOUNT, PROMOTION_BOOST, 0.0)
        scores += np.clip((ratings / MAX_RATING) * QUALITY_CAP, 0.0, QUALITY_CAP)
        scores += np.where(recent, RECENCY_BOOST, 0.0)
        return scores

    def score(
        self,
        candidate: CandidateItem,
        profile: Optional[UserEngagementProfile] = None,
        now: Optional[datetime] = None,
    ) -> float:
        return float(self.score_pool([candidate], profile, now)[0])

    def rank(
        self,
        candidates: Sequence[CandidateItem],
        profile: Optional[UserEngagementProfile] = None,
        top_k: int = DEFAULT_TOP_K,
        now: Optional[datetime] = None,
    ) -> List[Tuple[CandidateItem, float]]:
        """Score the pool, shuffle all of it, then keep the first ``top_k``.

        The shuffle runs over the entire scored pool, not just the best
        scores, so the result is not ordered by score.
        """
        scores = self.score_pool(candidates, profile, now)
        scored = list(zip(candidates, (float(s) for s in scores)))
        shuffle(scored, self.rng)

        logger.debug(
            "Candidates ranked",
            extra={"pool_size": len(scored), "top_k": top_k},
        )
        return scored[:top_k]
