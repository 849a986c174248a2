"""Item discovery endpoints.

Feed, trending, similar products, wishlist, recently viewed, search
suggestions and the catalog read paths. Static paths are registered before
``/{item_id}`` so they are never captured as an item ID.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from medfeed.api.dependencies import current_user, get_services, optional_user, require_object_id
from medfeed.api.exceptions import NotFoundError, ValidationError
from medfeed.api.responses import ok
from medfeed.personalization.engine import PersonalizationServices

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/items",
    tags=["items"],
)

WISHLIST_MARKER = "wishlistitem"
MAX_PAGE_SIZE = 50
MAX_SUGGESTIONS = 20


class RecentlyViewedRequest(BaseModel):
    """Body of ``POST /items/recently-viewed``.

    Attributes:
        itemId: Viewed item ID. Prefixed with ``wishlistitem`` it adds the
            item to the wishlist instead.
    """

    itemId: str = Field(..., min_length=1, description="Item ID, optionally wishlist-prefixed")


@router.get("")
async def list_items(
    category: Optional[str] = None,
    q: Optional[str] = None,
    minPrice: Optional[float] = Query(default=None, ge=0),
    maxPrice: Optional[float] = Query(default=None, ge=0),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    """Filtered, paginated catalog listing."""
    if category is not None:
        require_object_id(category, "category ID")
    filters = {"category": category, "q": q, "minPrice": minPrice, "maxPrice": maxPrice}
    filters = {k: v for k, v in filters.items() if v not in (None, "")}

    data = await services.discovery.filtered_items(filters, page, min(limit, MAX_PAGE_SIZE))
    return ok("Items fetched successfully", data)


@router.get("/deals-of-the-day")
async def deals_of_the_day(
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    items = await services.discovery.deals_of_the_day()
    return ok("Deals of the day fetched successfully", items)


@router.post("/recently-viewed")
async def add_recently_viewed(
    body: RecentlyViewedRequest,
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    """Record a view, or a wishlist add when the ID carries the wishlist marker.

    Raises:
        ValidationError: If the (unprefixed) item ID is malformed.
        NotFoundError: On a wishlist add for an item that does not exist.
    """
    item_id = body.itemId

    if item_id.startswith(WISHLIST_MARKER):
        item_id = require_object_id(item_id[len(WISHLIST_MARKER):])
        if not await services.discovery.item_exists(item_id):
            raise NotFoundError("Item", item_id)
        await services.history.add_wishlist(user_id, item_id)
        return ok(
            "Item added to wishlist successfully",
            {"operation": "wishlist", "itemId": item_id, "position": "top"},
        )

    require_object_id(item_id)
    await services.history.add_recently_viewed(user_id, item_id)
    return ok(
        "Item added to recently viewed",
        {"operation": "recently_viewed", "itemId": item_id},
    )


@router.get("/recently-viewed")
async def get_recently_viewed(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=15, ge=1),
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    """Recently viewed items, most recent first."""
    limit = min(limit, MAX_PAGE_SIZE)
    items = await services.discovery.recently_viewed(user_id)
    skip = (page - 1) * limit
    return ok(
        "Recently viewed items fetched successfully",
        {
            "items": items[skip: skip + limit],
            "totalCount": len(items),
            "currentPage": page,
            "hasNextPage": len(items) > page * limit,
        },
    )


@router.get("/feed")
async def get_feed(
    limit: Optional[int] = Query(default=None, ge=1),
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    """Next page of the user's dynamic feed. An empty page is a valid result."""
    page_size = min(limit, MAX_PAGE_SIZE) if limit else None
    items = await services.feed.next_page(user_id, page_size)
    message = "Feed fetched successfully" if items else "No items available"
    return ok(message, {"items": items, "count": len(items)})


@router.get("/trending/ai")
async def get_trending(
    user_id: Optional[str] = Depends(optional_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    items, cached = await services.trending.trending(user_id)
    return ok(
        "Trending items fetched successfully",
        {"items": items, "count": len(items), "personalized": user_id is not None, "cached": cached},
    )


@router.get("/search/suggestions")
async def search_suggestions(
    q: str = Query(default="", description="Partial search term"),
    limit: int = Query(default=10, ge=1),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    """Search-as-you-type suggestions.

    Raises:
        ValidationError: If the query is empty after trimming.
    """
    query = q.strip()
    if not query:
        raise ValidationError("Search query is required")

    data = await services.discovery.suggestions(query, min(limit, MAX_SUGGESTIONS))
    message = "Suggestions fetched successfully" if data["found"] else "No matching items found"
    return ok(message, data)


@router.get("/search/popular")
async def popular_search_terms(
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    data = await services.discovery.popular_terms()
    return ok("Popular search terms fetched successfully", data)


@router.get("/wishlist")
async def get_wishlist(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    data = await services.discovery.wishlist_page(user_id, page, min(limit, MAX_PAGE_SIZE))
    return ok("Wishlist fetched successfully", data)


@router.delete("/wishlist")
async def clear_wishlist(
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    await services.history.clear_wishlist(user_id)
    return ok("Wishlist cleared successfully", {"totalCount": 0})


@router.get("/wishlist/{item_id}/status")
async def wishlist_status(
    item_id: str,
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    require_object_id(item_id)
    in_wishlist = await services.history.in_wishlist(user_id, item_id)
    return ok("Wishlist status fetched successfully", {"itemId": item_id, "inWishlist": in_wishlist})


@router.delete("/wishlist/{item_id}")
async def remove_from_wishlist(
    item_id: str,
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    require_object_id(item_id)
    remaining = await services.history.remove_wishlist(user_id, item_id)
    return ok("Item removed from wishlist", {"itemId": item_id, "totalCount": remaining})


@router.get("/{item_id}/similar")
async def similar_products(
    item_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    """Items similar to ``item_id``: same category, price within 30%."""
    require_object_id(item_id)
    data = await services.discovery.similar(item_id, page, min(limit, MAX_PAGE_SIZE))
    return ok("Similar products fetched successfully", data)


@router.get("/{item_id}")
async def item_details(
    item_id: str,
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    require_object_id(item_id)
    item = await services.discovery.item_details(item_id)
    return ok("Item fetched successfully", item)
