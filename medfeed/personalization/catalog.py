"""Read access to the item catalog.

The catalog is owned by the CRUD side of the storefront; this module only
reads it (plus the view counter). Item documents are returned as plain
dicts with string IDs so they can be cached and serialized directly.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import DESCENDING, AsyncMongoClient

# Configure module logger
logger = logging.getLogger(__name__)

# Only live items are ever served
LIVE = {"deletedAt": {"$exists": False}}

LIST_PROJECTION = {
    "_id": 1,
    "itemName": 1,
    "code": 1,
    "itemImages": 1,
    "itemDescription": 1,
    "itemDiscount": 1,
    "itemRatings": 1,
    "itemFinalPrice": 1,
    "itemInitialPrice": 1,
    "itemCompany": 1,
    "itemCategory": 1,
    "views": 1,
    "createdAt": 1,
}


def is_valid_id(value: Any) -> bool:
    """Check that ``value`` is a 24-hex ObjectId string."""
    return isinstance(value, str) and ObjectId.is_valid(value)


def _object_ids(ids: Sequence[str]) -> List[ObjectId]:
    return [ObjectId(i) for i in ids if is_valid_id(i)]


def serialize_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Convert ObjectId values of a document to strings."""
    result = {}
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            result[key] = str(value)
        elif isinstance(value, list):
            result[key] = [str(v) if isinstance(v, ObjectId) else v for v in value]
        else:
            result[key] = value
    return result


class CatalogRepository(ABC):
    """Query surface of the catalog used by the personalization engine."""

    @abstractmethod
    async def get_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def exists(self, item_id: str) -> bool:
        ...

    @abstractmethod
    async def find_by_ids(self, item_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Return live items for the given IDs, in no particular order."""

    @abstractmethod
    async def top_viewed_ids(
        self, limit: int, category_ids: Optional[Sequence[str]] = None
    ) -> List[str]:
        ...

    @abstractmethod
    async def newest_ids(self, limit: int) -> List[str]:
        ...

    @abstractmethod
    async def scoring_pool(self, limit: int) -> List[Dict[str, Any]]:
        """Most popular items by views, then rating, then creation date."""

    @abstractmethod
    async def find_in_price_window(
        self, category_id: str, min_price: float, max_price: float, exclude_id: str
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def search(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """Partial case-insensitive match on name, code, company and formula.

        Results are ordered by match score (name prefix 3, code prefix 2,
        anything else 1), then rating, views and name.
        """

    @abstractmethod
    async def popular(self, limit: int) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def top_discounted(self, limit: int) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def filter_items(
        self, filters: Dict[str, Any], skip: int, limit: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        ...

    @abstractmethod
    async def increment_views(self, item_id: str) -> None:
        ...

    @abstractmethod
    async def find_categories(self, category_ids: Sequence[str]) -> List[Dict[str, Any]]:
        ...


class MongoCatalogRepository(CatalogRepository):
    """Catalog backed by the ``items`` and ``categories`` collections."""

    def __init__(self, client: AsyncMongoClient, db_name: str):
        self.client = client
        self.db = client[db_name]
        self.items = self.db["items"]
        self.categories = self.db["categories"]

    async def get_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        if not is_valid_id(item_id):
            return None
        doc = await self.items.find_one({"_id": ObjectId(item_id), **LIVE})
        return serialize_document(doc) if doc else None

    async def exists(self, item_id: str) -> bool:
        if not is_valid_id(item_id):
            return False
        doc = await self.items.find_one({"_id": ObjectId(item_id), **LIVE}, {"_id": 1})
        return doc is not None

    async def find_by_ids(self, item_ids: Sequence[str]) -> List[Dict[str, Any]]:
        object_ids = _object_ids(item_ids)
        if not object_ids:
            return []
        cursor = self.items.find({"_id": {"$in": object_ids}, **LIVE}, LIST_PROJECTION)
        return [serialize_document(doc) for doc in await cursor.to_list()]

    async def top_viewed_ids(
        self, limit: int, category_ids: Optional[Sequence[str]] = None
    ) -> List[str]:
        query: Dict[str, Any] = dict(LIVE)
        if category_ids is not None:
            query["itemCategory"] = {"$in": _object_ids(category_ids)}
        cursor = self.items.find(query, {"_id": 1}).sort("views", DESCENDING).limit(limit)
        return [str(doc["_id"]) for doc in await cursor.to_list()]

    async def newest_ids(self, limit: int) -> List[str]:
        cursor = self.items.find(LIVE, {"_id": 1}).sort("createdAt", DESCENDING).limit(limit)
        return [str(doc["_id"]) for doc in await cursor.to_list()]

    async def scoring_pool(self, limit: int) -> List[Dict[str, Any]]:
        cursor = (
            self.items.find(LIVE, LIST_PROJECTION)
            .sort([("views", DESCENDING), ("itemRatings", DESCENDING), ("createdAt", DESCENDING)])
            .limit(limit)
        )
        return [serialize_document(doc) for doc in await cursor.to_list()]

    async def find_in_price_window(
        self, category_id: str, min_price: float, max_price: float, exclude_id: str
    ) -> List[Dict[str, Any]]:
        if not is_valid_id(category_id):
            return []
        query = {
            "_id": {"$ne": ObjectId(exclude_id)},
            "itemCategory": ObjectId(category_id),
            "itemFinalPrice": {"$gte": min_price, "$lte": max_price},
            **LIVE,
        }
        cursor = self.items.find(query, LIST_PROJECTION)
        return [serialize_document(doc) for doc in await cursor.to_list()]

    async def search(self, query: str, limit: int) -> List[Dict[str, Any]]:
        escaped = re.escape(query)
        prefix = f"^{re.escape(query.lower())}"
        pipeline = [
            {
                "$match": {
                    "$or": [
                        {field: {"$regex": escaped, "$options": "i"}}
                        for field in ("itemName", "code", "itemCompany", "formula")
                    ],
                    **LIVE,
                }
            },
            {
                "$addFields": {
                    "matchScore": {
                        "$cond": {
                            "if": {"$regexMatch": {"input": {"$toLower": "$itemName"}, "regex": prefix}},
                            "then": 3,
                            "else": {
                                "$cond": {
                                    "if": {
                                        "$regexMatch": {
                                            "input": {"$toLower": {"$ifNull": ["$code", ""]}},
                                            "regex": prefix,
                                        }
                                    },
                                    "then": 2,
                                    "else": 1,
                                }
                            },
                        }
                    }
                }
            },
            {"$sort": {"matchScore": -1, "itemRatings": -1, "views": -1, "itemName": 1}},
            {"$limit": limit},
            {"$project": LIST_PROJECTION},
        ]
        cursor = await self.items.aggregate(pipeline)
        return [serialize_document(doc) for doc in await cursor.to_list()]

    async def popular(self, limit: int) -> List[Dict[str, Any]]:
        cursor = (
            self.items.find(LIVE, LIST_PROJECTION)
            .sort([("views", DESCENDING), ("itemRatings", DESCENDING)])
            .limit(limit)
        )
        return [serialize_document(doc) for doc in await cursor.to_list()]

    async def top_discounted(self, limit: int) -> List[Dict[str, Any]]:
        cursor = (
            self.items.find(LIVE, LIST_PROJECTION)
            .sort([("itemDiscount", DESCENDING), ("updatedAt", DESCENDING)])
            .limit(limit)
        )
        return [serialize_document(doc) for doc in await cursor.to_list()]

    async def filter_items(
        self, filters: Dict[str, Any], skip: int, limit: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        query: Dict[str, Any] = dict(LIVE)
        if filters.get("category"):
            query["itemCategory"] = ObjectId(filters["category"])
        if filters.get("q"):
            query["itemName"] = {"$regex": re.escape(filters["q"]), "$options": "i"}
        price: Dict[str, float] = {}
        if filters.get("minPrice") is not None:
            price["$gte"] = filters["minPrice"]
        if filters.get("maxPrice") is not None:
            price["$lte"] = filters["maxPrice"]
        if price:
            query["itemFinalPrice"] = price

        total = await self.items.count_documents(query)
        cursor = (
            self.items.find(query, LIST_PROJECTION)
            .sort("createdAt", DESCENDING)
            .skip(skip)
            .limit(limit)
        )
        return [serialize_document(doc) for doc in await cursor.to_list()], total

    async def increment_views(self, item_id: str) -> None:
        if is_valid_id(item_id):
            await self.items.update_one(
                {"_id": ObjectId(item_id)},
                {"$inc": {"views": 1}},
            )

    async def find_categories(self, category_ids: Sequence[str]) -> List[Dict[str, Any]]:
        object_ids = _object_ids(category_ids)
        if not object_ids:
            return []
        cursor = self.categories.find({"_id": {"$in": object_ids}}, {"_id": 1, "name": 1, "imageUrl": 1})
        return [serialize_document(doc) for doc in await cursor.to_list()]


def summarize_item(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Card-sized view of an item: first image only."""
    images = doc.get("itemImages") or []
    return {
        "_id": str(doc["_id"]),
        "itemName": doc.get("itemName"),
        "code": doc.get("code"),
        "image": images[0] if images else None,
        "itemDescription": doc.get("itemDescription") or "",
        "itemDiscount": doc.get("itemDiscount") or 0,
        "itemRatings": doc.get("itemRatings") or 0,
        "itemFinalPrice": doc.get("itemFinalPrice") or 0,
        "itemInitialPrice": doc.get("itemInitialPrice") or 0,
    }
