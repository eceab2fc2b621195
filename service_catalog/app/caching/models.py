"""
Catalog snapshot model for the product cache.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel


SNAPSHOT_FORMAT_VERSION = 1

Item = Mapping[str, Any]


@dataclass(frozen=True)
class CatalogSnapshot:
    """One fully fetched, immutable copy of the product catalog."""

    items: Tuple[Item, ...]
    fetched_at: float
    is_stale: bool = field(default=False, compare=False)

    @classmethod
    def from_items(cls, items: Iterable[Item], fetched_at: Optional[float] = None) -> "CatalogSnapshot":
        """Build a snapshot, rejecting missing, non-scalar and duplicate ids."""
        materialized = tuple(items)
        seen = set()
        for position, item in enumerate(materialized):
            if not isinstance(item, Mapping) or "id" not in item:
                raise ValueError(f"Catalog item at position {position} has no id")
            item_id = item["id"]
            if isinstance(item_id, bool) or not isinstance(item_id, (str, int)):
                raise ValueError(f"Catalog item at position {position} has an invalid id: {item_id!r}")
            if item_id in seen:
                raise ValueError(f"Duplicate catalog item id: {item_id!r}")
            seen.add(item_id)
        return cls(items=materialized, fetched_at=time.time() if fetched_at is None else fetched_at)

    def age(self, now: float) -> float:
        """Seconds elapsed since the snapshot was produced."""
        return max(0.0, now - self.fetched_at)

    def as_stale(self) -> "CatalogSnapshot":
        """Copy flagged as served in place of a failed refresh."""
        return replace(self, is_stale=True)

    def __len__(self) -> int:
        return len(self.items)

    def to_document(self) -> Dict[str, Any]:
        """Serializable form written by snapshot stores."""
        return SnapshotDocument(
            version=SNAPSHOT_FORMAT_VERSION,
            fetched_at=self.fetched_at,
            items=[dict(item) for item in self.items],
        ).model_dump()


class SnapshotDocument(BaseModel):
    """Persisted snapshot layout."""

    version: int
    fetched_at: float
    items: List[Dict[str, Any]]

    def to_snapshot(self) -> CatalogSnapshot:
        if self.version != SNAPSHOT_FORMAT_VERSION:
            raise ValueError(f"Unsupported snapshot version {self.version}")
        return CatalogSnapshot.from_items(self.items, fetched_at=self.fetched_at)
