"""Per-user engagement profile persistence.

The engagement collections live on the user record in the ``users``
collection. Every mutation is a targeted, field-scoped update; nothing
rewrites the whole document.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import AsyncMongoClient, ReturnDocument

from medfeed.personalization.bounded import (
    RECENT_SEARCHES,
    RECENTLY_VIEWED,
    VIEWED_CATEGORIES,
    WISHLIST,
    BoundedList,
)

# Configure module logger
logger = logging.getLogger(__name__)

# $slice takes a 32-bit signed offset
MAX_SLICE_OFFSET = 2**31 - 1


@dataclass
class UserEngagementProfile:
    """Snapshot of a user's engagement collections, in storage order.

    Attributes:
        user_id: Owner of the profile.
        wishlist: Item IDs, most recently added first.
        viewed_items: Item IDs, oldest first (read paths reverse it).
        viewed_categories: Category IDs, most recent first.
        recent_searches: Search entries, most recent first.
    """

    user_id: str
    wishlist: List[str] = field(default_factory=list)
    viewed_items: List[str] = field(default_factory=list)
    viewed_categories: List[str] = field(default_factory=list)
    recent_searches: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_document(cls, user_id: str, doc: Dict[str, Any]) -> "UserEngagementProfile":
        return cls(
            user_id=user_id,
            wishlist=[str(v) for v in doc.get(WISHLIST.field) or []],
            viewed_items=[str(v) for v in doc.get(RECENTLY_VIEWED.field) or []],
            viewed_categories=[str(v) for v in doc.get(VIEWED_CATEGORIES.field) or []],
            recent_searches=list(doc.get(RECENT_SEARCHES.field) or []),
        )


class ProfileRepository(ABC):
    """Persistence surface for engagement profiles."""

    @abstractmethod
    async def apply_bounded(self, user_id: str, bounded: BoundedList, value: Any) -> bool:
        """Move ``value`` to the most-recent slot of a bounded collection.

        Returns:
            False if the user record does not exist.
        """

    @abstractmethod
    async def remove_entry(self, user_id: str, bounded: BoundedList, value: Any) -> Optional[int]:
        """Remove every entry matching ``value``.

        Returns:
            Remaining collection size, or None if the user does not exist.
        """

    @abstractmethod
    async def clear_field(self, user_id: str, bounded: BoundedList) -> bool:
        ...

    @abstractmethod
    async def get_field(self, user_id: str, bounded: BoundedList) -> Optional[List[Any]]:
        ...

    @abstractmethod
    async def get_slice(
        self, user_id: str, bounded: BoundedList, skip: int, limit: int
    ) -> Optional[Tuple[List[Any], int]]:
        """Return one page of a collection in storage order and its total size."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[UserEngagementProfile]:
        ...


def _user_filter(user_id: str) -> Dict[str, Any]:
    # Gateway-issued user IDs are ObjectIds; anything else is matched verbatim
    if ObjectId.is_valid(user_id):
        return {"_id": ObjectId(user_id)}
    return {"_id": user_id}


class MongoProfileRepository(ProfileRepository):
    """Engagement profiles stored on documents of the ``users`` collection."""

    PROFILE_PROJECTION = {
        WISHLIST.field: 1,
        RECENTLY_VIEWED.field: 1,
        VIEWED_CATEGORIES.field: 1,
        RECENT_SEARCHES.field: 1,
    }

    def __init__(self, client: AsyncMongoClient, db_name: str):
        self.client = client
        self.users = client[db_name]["users"]

    async def apply_bounded(self, user_id: str, bounded: BoundedList, value: Any) -> bool:
        result = await self.users.update_one(
            _user_filter(user_id), bounded.pipeline_update(value)
        )
        if result.matched_count == 0:
            logger.warning(
                "Engagement update skipped, user not found",
                extra={"user_id": user_id, "field": bounded.field},
            )
            return False
        return True

    async def remove_entry(self, user_id: str, bounded: BoundedList, value: Any) -> Optional[int]:
        if bounded.key is not None:
            condition: Any = {bounded.key: value}
        else:
            matches = bounded.match_values(value)
            condition = matches[0] if len(matches) == 1 else {"$in": matches}
        doc = await self.users.find_one_and_update(
            _user_filter(user_id),
            {"$pull": {bounded.field: condition}},
            projection={bounded.field: 1},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return None
        return len(doc.get(bounded.field) or [])

    async def clear_field(self, user_id: str, bounded: BoundedList) -> bool:
        result = await self.users.update_one(
            _user_filter(user_id), {"$set": {bounded.field: []}}
        )
        return result.matched_count > 0

    async def get_field(self, user_id: str, bounded: BoundedList) -> Optional[List[Any]]:
        doc = await self.users.find_one(_user_filter(user_id), {bounded.field: 1})
        if doc is None:
            return None
        return list(doc.get(bounded.field) or [])

    async def get_slice(
        self, user_id: str, bounded: BoundedList, skip: int, limit: int
    ) -> Optional[Tuple[List[Any], int]]:
        values = {"$ifNull": [f"${bounded.field}", []]}
        skip = min(skip, MAX_SLICE_OFFSET)
        pipeline = [
            {"$match": _user_filter(user_id)},
            {
                "$project": {
                    "page": {"$slice": [values, skip, limit]},
                    "totalCount": {"$size": values},
                }
            },
        ]
        cursor = await self.users.aggregate(pipeline)
        docs = await cursor.to_list()
        if not docs:
            return None
        return list(docs[0]["page"]), int(docs[0]["totalCount"])

    async def get_profile(self, user_id: str) -> Optional[UserEngagementProfile]:
        doc = await self.users.find_one(_user_filter(user_id), self.PROFILE_PROJECTION)
        if doc is None:
            return None
        return UserEngagementProfile.from_document(user_id, doc)
