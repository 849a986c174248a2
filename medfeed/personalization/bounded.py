"""Bounded, deduplicated per-user collections.

Each engagement collection is a small ordered list with a capacity and an
insertion end. Adding a value always removes its previous occurrence first,
so a collection never holds the same entry twice and re-adding an entry
only moves it to the most-recent position.

A :class:`BoundedList` describes one such collection. It can apply the
remove-insert-cap step to a plain Python list (read-modify-write stores),
or render it as a single MongoDB update pipeline so the document store
performs the whole step atomically.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from bson import ObjectId

HEAD = "head"
TAIL = "tail"


@dataclass(frozen=True)
class BoundedList:
    """Descriptor of one bounded collection on the engagement profile.

    Attributes:
        field: Document field holding the collection.
        capacity: Maximum number of entries, or None for unbounded.
        position: ``"head"`` inserts newest first, ``"tail"`` appends and
            evicts from the head once capacity is exceeded.
        key: For collections of sub-documents, the sub-field that defines
            identity for deduplication.
        object_ids: Entries are stored as ObjectIds. Identity is compared
            on the string form, so legacy string entries still match.
    """

    field: str
    capacity: Optional[int] = None
    position: str = HEAD
    key: Optional[str] = None
    object_ids: bool = False

    def __post_init__(self):
        if self.position not in (HEAD, TAIL):
            raise ValueError(f"position must be '{HEAD}' or '{TAIL}', got {self.position!r}")
        if self.capacity is not None and self.capacity <= 0:
            raise ValueError("capacity must be positive")

    def identity(self, entry: Any) -> Any:
        """Return the value used to detect duplicates of ``entry``."""
        if self.key is not None and isinstance(entry, dict):
            return entry.get(self.key)
        if self.object_ids:
            return str(entry)
        return entry

    def to_storage(self, value: Any) -> Any:
        """Return ``value`` in the type the document store holds."""
        if self.object_ids and isinstance(value, str) and ObjectId.is_valid(value):
            return ObjectId(value)
        return value

    def match_values(self, value: Any) -> List[Any]:
        """Every stored form that counts as a duplicate of ``value``."""
        if self.key is None and self.object_ids:
            stored = self.to_storage(value)
            if isinstance(stored, ObjectId):
                return [stored, str(stored)]
        return [self.identity(value)]

    def apply(self, sequence: List[Any], value: Any) -> List[Any]:
        """Return ``sequence`` with ``value`` moved to its most-recent slot.

        The input list is not modified.
        """
        target = self.identity(value)
        remaining = [entry for entry in sequence if self.identity(entry) != target]

        if self.position == HEAD:
            result = [value] + remaining
            if self.capacity is not None:
                result = result[: self.capacity]
        else:
            result = remaining + [value]
            if self.capacity is not None:
                result = result[-self.capacity:]

        return result

    def pipeline_update(self, value: Any) -> List[Dict[str, Any]]:
        """Render the remove-insert-cap step as a MongoDB update pipeline."""
        current = {"$ifNull": [f"${self.field}", []]}
        this = f"$$this.{self.key}" if self.key is not None else "$$this"
        conditions = [{"$ne": [this, {"$literal": v}]} for v in self.match_values(value)]
        cond = conditions[0] if len(conditions) == 1 else {"$and": conditions}
        filtered = {"$filter": {"input": current, "cond": cond}}
        inserted = {"$literal": [self.to_storage(value)]}

        if self.position == HEAD:
            combined: Dict[str, Any] = {"$concatArrays": [inserted, filtered]}
            if self.capacity is not None:
                combined = {"$slice": [combined, self.capacity]}
        else:
            combined = {"$concatArrays": [filtered, inserted]}
            if self.capacity is not None:
                combined = {"$slice": [combined, -self.capacity]}

        return [{"$set": {self.field: combined}}]


# Engagement collections on the user profile
WISHLIST = BoundedList(field="wishlist", capacity=None, position=HEAD)
RECENTLY_VIEWED = BoundedList(field="viewedItems", capacity=15, position=TAIL, object_ids=True)
VIEWED_CATEGORIES = BoundedList(field="viewedCategories", capacity=15, position=HEAD, object_ids=True)
RECENT_SEARCHES = BoundedList(field="recentSearches", capacity=7, position=HEAD, key="query")

# The ephemeral mirror of recent searches keeps a few more entries
RECENT_SEARCHES_MIRROR_CAPACITY = 10
