"""Similar-product ranking for a single anchor item.

Candidates share the anchor's category and sit within +/-30% of its final
price. Each one is scored as

    (same company ? 50 : 0) + 30 * (1 - |price delta| / anchor price) + rating * 4

then sorted by score, rating and views, and only then paginated.
"""

import logging
import math
from typing import Any, Dict, List

from medfeed.personalization.catalog import CatalogRepository

# Configure module logger
logger = logging.getLogger(__name__)

PRICE_TOLERANCE = 0.3
COMPANY_MATCH_SCORE = 50.0
PRICE_PROXIMITY_WEIGHT = 30.0
RATING_WEIGHT = 4.0


def price_window(anchor_price: float) -> tuple:
    """Inclusive final-price bounds for candidates of an anchor."""
    return anchor_price * (1 - PRICE_TOLERANCE), anchor_price * (1 + PRICE_TOLERANCE)


def similarity_score(anchor: Dict[str, Any], candidate: Dict[str, Any]) -> float:
    anchor_price = float(anchor.get("itemFinalPrice") or 0)
    price = float(candidate.get("itemFinalPrice") or 0)

    score = 0.0
    if anchor.get("itemCompany") is not None and candidate.get("itemCompany") == anchor.get("itemCompany"):
        score += COMPANY_MATCH_SCORE
    if anchor_price > 0:
        score += PRICE_PROXIMITY_WEIGHT * (1 - abs(price - anchor_price) / anchor_price)
    score += float(candidate.get("itemRatings") or 0) * RATING_WEIGHT
    return score


class SimilarityEngine:
    """Ranks catalog items by similarity to an anchor item."""

    def __init__(self, catalog: CatalogRepository):
        self.catalog = catalog

    async def similar(self, anchor: Dict[str, Any], page: int = 1, size: int = 20) -> Dict[str, Any]:
        """Return one page of items similar to ``anchor``.

        Args:
            anchor: Catalog document of the anchor item.
            page: 1-based page number.
            size: Page size.

        Returns:
            Dictionary with ``sourceProduct``, ``items`` (each carrying its
            rounded ``similarityScore``), ``pagination`` and ``meta``.
        """
        anchor_id = str(anchor["_id"])
        anchor_price = float(anchor.get("itemFinalPrice") or 0)
        min_price, max_price = price_window(anchor_price)

        candidates = await self.catalog.find_in_price_window(
            str(anchor.get("itemCategory")), min_price, max_price, anchor_id
        )

        scored = []
        for candidate in candidates:
            price = float(candidate.get("itemFinalPrice") or 0)
            if str(candidate["_id"]) == anchor_id or not (min_price <= price <= max_price):
                continue
            scored.append((similarity_score(anchor, candidate), candidate))

        scored.sort(
            key=lambda pair: (
                pair[0],
                float(pair[1].get("itemRatings") or 0),
                float(pair[1].get("views") or 0),
            ),
            reverse=True,
        )

        total = len(scored)
        skip = (page - 1) * size
        items: List[Dict[str, Any]] = []
        for score, candidate in scored[skip: skip + size]:
            images = candidate.get("itemImages") or []
            items.append({
                "_id": str(candidate["_id"]),
                "itemName": candidate.get("itemName"),
                "code": candidate.get("code"),
                "image": images[0] if images else None,
                "itemDescription": candidate.get("itemDescription"),
                "itemDiscount": candidate.get("itemDiscount"),
                "itemRatings": candidate.get("itemRatings"),
                "itemFinalPrice": candidate.get("itemFinalPrice"),
                "itemInitialPrice": candidate.get("itemInitialPrice"),
                "itemCompany": candidate.get("itemCompany"),
                "views": candidate.get("views"),
                "similarityScore": round(score),
            })

        total_pages = math.ceil(total / size) if size else 0

        logger.info(
            "Similar products ranked",
            extra={"item_id": anchor_id, "candidates": total, "page": page},
        )

        return {
            "sourceProduct": {
                "_id": anchor_id,
                "itemName": anchor.get("itemName"),
                "itemCategory": anchor.get("itemCategory"),
                "itemFinalPrice": anchor.get("itemFinalPrice"),
            },
            "items": items,
            "pagination": {
                "currentPage": page,
                "totalPages": total_pages,
                "totalItems": total,
                "itemsPerPage": size,
                "hasNextPage": page < total_pages,
                "hasPrevPage": page > 1,
            },
            "meta": {
                "algorithm": "Multi-factor similarity scoring",
                "factors": ["category", "price_range", "company", "ratings"],
                "priceRange": {"min": min_price, "max": max_price},
            },
        }
