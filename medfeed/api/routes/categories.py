"""Category engagement endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from medfeed.api.dependencies import current_user, get_services, require_object_id
from medfeed.api.responses import ok
from medfeed.personalization.engine import PersonalizationServices

router = APIRouter(
    prefix="/categories",
    tags=["categories"],
)


@router.post("/{category_id}/view")
async def record_category_view(
    category_id: str,
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    require_object_id(category_id, "category ID")
    await services.history.add_viewed_category(user_id, category_id)
    return ok("Category view recorded", {"categoryId": category_id})


@router.get("/recently-viewed")
async def recently_viewed_categories(
    user_id: str = Depends(current_user),
    services: PersonalizationServices = Depends(get_services),
) -> JSONResponse:
    categories = await services.discovery.viewed_categories(user_id)
    return ok(
        "Recently viewed categories fetched successfully",
        {"categories": categories, "count": len(categories)},
    )
