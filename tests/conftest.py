"""Shared fixtures and in-memory stores for the MedFeed test suite.

The in-memory implementations follow the semantics of the Redis commands
and MongoDB queries they replace closely enough for the engine's needs:
inclusive list ranges with negative indices, live-item filtering, and
remove-then-insert-then-cap updates on the engagement collections.
"""

import re
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from medfeed.api.main import create_app
from medfeed.api.metrics import metrics_service
from medfeed.personalization.bounded import BoundedList
from medfeed.personalization.catalog import CatalogRepository
from medfeed.personalization.engine import build_services
from medfeed.personalization.profiles import ProfileRepository, UserEngagementProfile
from medfeed.personalization.stores import EphemeralStore

USER_ID = "64b000000000000000000001"
OTHER_USER_ID = "64b000000000000000000002"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_item(**overrides: Any) -> Dict[str, Any]:
    """Build a catalog item document with sensible defaults."""
    item = {
        "_id": str(ObjectId()),
        "itemName": "Paracetamol 500mg Tablet",
        "code": "MED00001",
        "itemCompany": "Cipla",
        "formula": "Paracetamol",
        "itemCategory": "64c000000000000000000001",
        "itemDescription": "Pain relief",
        "itemImages": ["https://cdn.example.com/a.jpg"],
        "itemInitialPrice": 120.0,
        "itemDiscount": 10,
        "itemFinalPrice": 108.0,
        "itemRatings": 4.0,
        "views": 10,
        "createdAt": utcnow() - timedelta(days=30),
        "updatedAt": utcnow() - timedelta(days=30),
    }
    item.update(overrides)
    return item


def _list_range(values: List[str], start: int, end: int) -> List[str]:
    length = len(values)
    if start < 0:
        start = max(length + start, 0)
    if end < 0:
        end = length + end
    return values[start: end + 1]


def _glob_regex(pattern: str) -> "re.Pattern[str]":
    """Translate a Redis glob (\\ escapes, * and ?) to a regex."""
    parts = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            parts.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
        i += 1
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


class InMemoryEphemeralStore(EphemeralStore):
    """Dict-backed stand-in for the Redis command surface.

    Setting ``fail`` makes every command raise, to exercise fail-open paths.
    """

    def __init__(self):
        self.values: Dict[str, str] = {}
        self.lists: Dict[str, List[str]] = {}
        self.ttls: Dict[str, int] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("ephemeral store unavailable")

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self.values.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        self._check()
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.values.pop(key, None) is not None or self.lists.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def scan_keys(self, pattern: str) -> List[str]:
        self._check()
        regex = _glob_regex(pattern)
        return [k for k in [*self.values, *self.lists] if regex.match(k)]

    async def llen(self, key: str) -> int:
        self._check()
        return len(self.lists.get(key, []))

    async def lrange(self, key: str, start: int, end: int) -> List[str]:
        self._check()
        return list(_list_range(self.lists.get(key, []), start, end))

    async def ltrim(self, key: str, start: int, end: int) -> None:
        self._check()
        trimmed = _list_range(self.lists.get(key, []), start, end)
        if trimmed:
            self.lists[key] = list(trimmed)
        else:
            self.lists.pop(key, None)

    async def rpush(self, key: str, *values: str) -> int:
        self._check()
        self.lists.setdefault(key, []).extend(values)
        return len(self.lists[key])

    async def lpush(self, key: str, *values: str) -> int:
        self._check()
        current = self.lists.setdefault(key, [])
        for value in values:
            current.insert(0, value)
        return len(current)

    async def lrem(self, key: str, count: int, value: str) -> int:
        self._check()
        current = self.lists.get(key, [])
        kept = [v for v in current if v != value]
        self.lists[key] = kept
        return len(current) - len(kept)

    async def expire(self, key: str, seconds: int) -> None:
        self._check()
        self.ttls[key] = seconds

    async def ping(self) -> bool:
        return not self.fail


def _live(item: Dict[str, Any]) -> bool:
    return "deletedAt" not in item


class InMemoryCatalog(CatalogRepository):
    """List-backed catalog with the same ordering rules as the Mongo queries."""

    def __init__(self, items: Optional[List[Dict[str, Any]]] = None, categories: Optional[List[Dict[str, Any]]] = None):
        self.items = list(items or [])
        self.categories = list(categories or [])
        self.view_increments: Dict[str, int] = {}

    def _live_items(self) -> List[Dict[str, Any]]:
        return [dict(i) for i in self.items if _live(i)]

    async def get_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        for item in self._live_items():
            if item["_id"] == item_id:
                return item
        return None

    async def exists(self, item_id: str) -> bool:
        return await self.get_item(item_id) is not None

    async def find_by_ids(self, item_ids: Sequence[str]) -> List[Dict[str, Any]]:
        wanted = set(item_ids)
        return [i for i in self._live_items() if i["_id"] in wanted]

    async def top_viewed_ids(self, limit: int, category_ids: Optional[Sequence[str]] = None) -> List[str]:
        items = self._live_items()
        if category_ids is not None:
            items = [i for i in items if i.get("itemCategory") in set(category_ids)]
        items.sort(key=lambda i: i.get("views") or 0, reverse=True)
        return [i["_id"] for i in items[:limit]]

    async def newest_ids(self, limit: int) -> List[str]:
        items = sorted(self._live_items(), key=lambda i: i["createdAt"], reverse=True)
        return [i["_id"] for i in items[:limit]]

    async def scoring_pool(self, limit: int) -> List[Dict[str, Any]]:
        items = sorted(
            self._live_items(),
            key=lambda i: (i.get("views") or 0, i.get("itemRatings") or 0, i["createdAt"]),
            reverse=True,
        )
        return items[:limit]

    async def find_in_price_window(
        self, category_id: str, min_price: float, max_price: float, exclude_id: str
    ) -> List[Dict[str, Any]]:
        return [
            i for i in self._live_items()
            if i["_id"] != exclude_id
            and i.get("itemCategory") == category_id
            and min_price <= i.get("itemFinalPrice", 0) <= max_price
        ]

    async def search(self, query: str, limit: int) -> List[Dict[str, Any]]:
        needle = query.lower()
        matches = []
        for item in self._live_items():
            fields = [str(item.get(f) or "").lower() for f in ("itemName", "code", "itemCompany", "formula")]
            if not any(needle in f for f in fields):
                continue
            if fields[0].startswith(needle):
                score = 3
            elif fields[1].startswith(needle):
                score = 2
            else:
                score = 1
            matches.append((score, item))
        matches.sort(
            key=lambda pair: (
                -pair[0],
                -(pair[1].get("itemRatings") or 0),
                -(pair[1].get("views") or 0),
                pair[1].get("itemName") or "",
            )
        )
        return [item for _, item in matches[:limit]]

    async def popular(self, limit: int) -> List[Dict[str, Any]]:
        items = sorted(
            self._live_items(),
            key=lambda i: (i.get("views") or 0, i.get("itemRatings") or 0),
            reverse=True,
        )
        return items[:limit]

    async def top_discounted(self, limit: int) -> List[Dict[str, Any]]:
        items = sorted(
            self._live_items(),
            key=lambda i: (i.get("itemDiscount") or 0, i["updatedAt"]),
            reverse=True,
        )
        return items[:limit]

    async def filter_items(
        self, filters: Dict[str, Any], skip: int, limit: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        items = self._live_items()
        if filters.get("category"):
            items = [i for i in items if i.get("itemCategory") == filters["category"]]
        if filters.get("q"):
            items = [i for i in items if filters["q"].lower() in i["itemName"].lower()]
        if filters.get("minPrice") is not None:
            items = [i for i in items if i["itemFinalPrice"] >= filters["minPrice"]]
        if filters.get("maxPrice") is not None:
            items = [i for i in items if i["itemFinalPrice"] <= filters["maxPrice"]]
        items.sort(key=lambda i: i["createdAt"], reverse=True)
        return items[skip: skip + limit], len(items)

    async def increment_views(self, item_id: str) -> None:
        self.view_increments[item_id] = self.view_increments.get(item_id, 0) + 1
        for item in self.items:
            if item["_id"] == item_id:
                item["views"] = (item.get("views") or 0) + 1

    async def find_categories(self, category_ids: Sequence[str]) -> List[Dict[str, Any]]:
        wanted = set(category_ids)
        return [dict(c) for c in self.categories if c["_id"] in wanted]


class InMemoryProfiles(ProfileRepository):
    """User documents held in a dict keyed by user ID."""

    def __init__(self, user_ids: Sequence[str] = ()):
        self.users: Dict[str, Dict[str, Any]] = {uid: {} for uid in user_ids}

    async def apply_bounded(self, user_id: str, bounded: BoundedList, value: Any) -> bool:
        doc = self.users.get(user_id)
        if doc is None:
            return False
        doc[bounded.field] = bounded.apply(doc.get(bounded.field) or [], value)
        return True

    async def remove_entry(self, user_id: str, bounded: BoundedList, value: Any) -> Optional[int]:
        doc = self.users.get(user_id)
        if doc is None:
            return None
        doc[bounded.field] = [
            e for e in doc.get(bounded.field) or [] if bounded.identity(e) != value
        ]
        return len(doc[bounded.field])

    async def clear_field(self, user_id: str, bounded: BoundedList) -> bool:
        doc = self.users.get(user_id)
        if doc is None:
            return False
        doc[bounded.field] = []
        return True

    async def get_field(self, user_id: str, bounded: BoundedList) -> Optional[List[Any]]:
        doc = self.users.get(user_id)
        if doc is None:
            return None
        return list(doc.get(bounded.field) or [])

    async def get_slice(
        self, user_id: str, bounded: BoundedList, skip: int, limit: int
    ) -> Optional[Tuple[List[Any], int]]:
        values = await self.get_field(user_id, bounded)
        if values is None:
            return None
        return values[skip: skip + limit], len(values)

    async def get_profile(self, user_id: str) -> Optional[UserEngagementProfile]:
        doc = self.users.get(user_id)
        if doc is None:
            return None
        return UserEngagementProfile.from_document(user_id, doc)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with zeroed counters."""
    metrics_service.reset()
    yield


@pytest.fixture
def store() -> InMemoryEphemeralStore:
    return InMemoryEphemeralStore()


@pytest.fixture
def sample_items() -> List[Dict[str, Any]]:
    """Thirty items over three categories with varied signals."""
    categories = ["64c000000000000000000001", "64c000000000000000000002", "64c000000000000000000003"]
    now = utcnow()
    return [
        make_item(
            itemName=f"Item {i:02d}",
            code=f"MED{i:05d}",
            itemCategory=categories[i % 3],
            views=i * 7,
            itemRatings=round((i % 6) * 0.9, 1),
            itemDiscount=(i * 3) % 40,
            itemFinalPrice=50.0 + i * 5,
            createdAt=now - timedelta(days=i),
            updatedAt=now - timedelta(days=i),
        )
        for i in range(30)
    ]


@pytest.fixture
def catalog(sample_items) -> InMemoryCatalog:
    return InMemoryCatalog(
        sample_items,
        categories=[
            {"_id": "64c000000000000000000001", "name": "Pain Relief", "imageUrl": ["https://cdn.example.com/c1.png"]},
            {"_id": "64c000000000000000000002", "name": "Cold & Flu", "imageUrl": "https://cdn.example.com/c2.png"},
            {"_id": "64c000000000000000000003", "name": "Vitamins", "imageUrl": []},
        ],
    )


@pytest.fixture
def profiles() -> InMemoryProfiles:
    return InMemoryProfiles([USER_ID, OTHER_USER_ID])


@pytest.fixture
def services(store, catalog, profiles):
    return build_services(store, catalog, profiles, rng=np.random.default_rng(42))


@pytest.fixture
def client(services) -> TestClient:
    return TestClient(create_app(services))


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"x-user-id": USER_ID}
