"""Recent search history endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from medfeed.api.dependencies import current_user, get_services
from medfeed.api.responses import created, ok
from medfeed.personalization.engine import PersonalizationServices

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/search",
    tags=["search"],
)

MAX_RECENT_LIMIT = 20


class RecentSearchRequest(BaseModel):
    """Body of ``POST /search/recent``.

    Attributes:
        query: Search term as typed by the user.
        itemId: Item the search led to, if any.
        itemName: Name of that item.
        itemImage: Image of that item.
    """

    query: str = Field(..., description="Search term")
    itemId: Optional[str] = None
    itemName: Optional[str] = None
    itemImage: Optional[str] = None


@router.post("/recent")
async def save_recent_search(
    body: RecentSearchRequest,
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    context = body.model_dump(exclude={"query"})
    data = await services.history.save_search(user_id, body.query, context)
    return created("Search saved successfully", data)


@router.get("/recent")
async def get_recent_searches(
    limit: int = Query(default=10, ge=1),
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    searches, source = await services.history.list_recent_searches(
        user_id, min(limit, MAX_RECENT_LIMIT)
    )
    return ok(
        "Recent searches fetched successfully",
        {"searches": searches, "count": len(searches), "source": source},
    )


@router.delete("/recent/{query}")
async def delete_recent_search(
    query: str,
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    deleted = await services.history.delete_recent_search(user_id, query)
    message = "Search deleted successfully" if deleted else "Search term not found in history"
    return ok(message, {"query": query.strip().lower(), "deleted": deleted})


@router.delete("/recent")
async def clear_recent_searches(
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    await services.history.clear_recent_searches(user_id)
    return ok("Recent searches cleared successfully")
