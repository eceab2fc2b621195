"""
Caching package for the Catalog Service.

Holds the single-key product cache. There is exactly one cached collection
(the full catalog); it is replaced wholesale on refetch and cleared by
explicit invalidation.
"""

from .models import CatalogSnapshot
from .product_cache import ProductCache
from .snapshot_store import FileSnapshotStore, RedisSnapshotStore, build_snapshot_store

__all__ = [
    "CatalogSnapshot",
    "ProductCache",
    "FileSnapshotStore",
    "RedisSnapshotStore",
    "build_snapshot_store",
]
