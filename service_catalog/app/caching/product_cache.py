"""
Read-through cache for the full product catalog.

The cache holds one snapshot of the whole catalog and guarantees that at most
one upstream fetch episode runs at a time. Callers that miss while an episode
is running wait on that same episode and observe the same outcome.

All state transitions happen synchronously on the event loop; the only
suspension points are the durable store and the upstream call, both of which
run inside the episode task.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union, TYPE_CHECKING

from shared.errors import PersistenceError, UpstreamUnavailable
from shared.logging import get_logger
from .models import CatalogSnapshot, Item

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from .snapshot_store import FileSnapshotStore, RedisSnapshotStore


UpstreamFetch = Callable[[], Awaitable[Sequence[Item]]]


class ProductCache:
    """Single-key catalog cache with fetch coalescing and stale fallback.

    ``ttl_seconds=None`` keeps a snapshot until ``invalidate()`` is called.
    ``grace_seconds`` bounds how old a snapshot may be and still be served
    after an upstream failure; ``None`` means no bound.
    """

    def __init__(
        self,
        upstream_fetch: UpstreamFetch,
        store: Optional[Union["FileSnapshotStore", "RedisSnapshotStore"]] = None,
        *,
        ttl_seconds: Optional[float] = 3600.0,
        grace_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        metrics: Optional["MetricsCollector"] = None,
    ):
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive or None")
        if grace_seconds is not None and ttl_seconds is not None and grace_seconds < ttl_seconds:
            raise ValueError("grace_seconds must not be shorter than ttl_seconds")

        self._upstream_fetch = upstream_fetch
        self._store = store
        self.ttl_seconds = ttl_seconds
        self.grace_seconds = grace_seconds
        self._clock = clock
        self.metrics = metrics
        self.logger = get_logger("catalog.product_cache")

        self._snapshot: Optional[CatalogSnapshot] = None
        self._in_flight: Optional["asyncio.Task[CatalogSnapshot]"] = None
        # Bumped by invalidate(); guards adopting a durable copy read before it.
        self._generation = 0
        # Set by invalidate(); the durable copy is not trusted again until a
        # fresh snapshot has been saved over it.
        self._durable_invalid = False
        self._stats: Dict[str, int] = {
            "hits": 0,
            "misses": 0,
            "coalesced": 0,
            "upstream_fetches": 0,
            "upstream_failures": 0,
            "stale_served": 0,
            "store_loads": 0,
        }

    async def get(self) -> CatalogSnapshot:
        """Return the current catalog snapshot, fetching it if needed.

        Raises:
            UpstreamUnavailable: the fetch failed and no usable snapshot exists.
        """
        snapshot = self._snapshot
        if snapshot is not None and self.is_fresh(snapshot):
            self._count("hits", "hit")
            return snapshot

        task = self._in_flight
        if task is None:
            self._count("misses", "miss")
            task = asyncio.get_running_loop().create_task(self._run_episode(), name="catalog-fetch-episode")
            task.add_done_callback(_retrieve_outcome)
            # Published before the first await so concurrent callers join it.
            self._in_flight = task
        else:
            self._count("coalesced", "coalesced")

        return await asyncio.shield(task)

    async def invalidate(self) -> None:
        """Drop the in-memory and durable snapshot.

        An episode already in flight is left running and will populate a new
        snapshot when it completes.
        """
        self._snapshot = None
        self._generation += 1
        self._durable_invalid = True
        self._set_items_gauge(0)
        self.logger.info("Catalog cache invalidated", fetch_in_flight=self._in_flight is not None)

        if self._store is None:
            return
        try:
            await self._store.delete()
        except PersistenceError as exc:
            self.logger.warning("Failed to delete durable catalog snapshot", error=exc.message, details=exc.details)

    async def refresh(self) -> CatalogSnapshot:
        """Invalidate and fetch again."""
        await self.invalidate()
        return await self.get()

    def peek(self) -> Optional[CatalogSnapshot]:
        """Current in-memory snapshot without triggering any I/O."""
        return self._snapshot

    def is_fresh(self, snapshot: CatalogSnapshot, now: Optional[float] = None) -> bool:
        if self.ttl_seconds is None:
            return True
        now = self._clock() if now is None else now
        return snapshot.age(now) < self.ttl_seconds

    def within_grace(self, snapshot: CatalogSnapshot, now: Optional[float] = None) -> bool:
        if self.grace_seconds is None:
            return True
        now = self._clock() if now is None else now
        return snapshot.age(now) < self.grace_seconds

    @property
    def fetch_in_flight(self) -> bool:
        return self._in_flight is not None

    def stats(self) -> Dict[str, Any]:
        """Cache statistics for status endpoints."""
        snapshot = self._snapshot
        now = self._clock()
        return {
            **self._stats,
            "items": len(snapshot) if snapshot is not None else 0,
            "snapshot_age_seconds": snapshot.age(now) if snapshot is not None else None,
            "fresh": snapshot is not None and self.is_fresh(snapshot, now),
            "fetch_in_flight": self.fetch_in_flight,
            "ttl_seconds": self.ttl_seconds,
            "grace_seconds": self.grace_seconds,
        }

    async def close(self) -> None:
        """Cancel a running episode and release the store."""
        task = self._in_flight
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                self.logger.debug("Catalog fetch episode ended during shutdown", error=str(exc))
        # A task cancelled before it started never reaches its finally block.
        self._in_flight = None
        close_store = getattr(self._store, "close", None)
        if close_store is not None:
            await close_store()

    async def _run_episode(self) -> CatalogSnapshot:
        try:
            if self._snapshot is None and self._store is not None and not self._durable_invalid:
                restored = await self._restore_from_store()
                if restored is not None:
                    return restored
            return await self._fetch_from_upstream()
        finally:
            self._in_flight = None

    async def _restore_from_store(self) -> Optional[CatalogSnapshot]:
        """Adopt the durable snapshot; return it only when still fresh."""
        generation = self._generation
        try:
            stored = await self._store.load()
        except PersistenceError as exc:
            self.logger.warning("Failed to read durable catalog snapshot", error=exc.message, details=exc.details)
            return None
        except Exception as exc:
            self.logger.warning(
                "Discarding unusable durable catalog snapshot",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None

        if stored is None or generation != self._generation or self._durable_invalid or self._snapshot is not None:
            return None

        now = self._clock()
        if self.is_fresh(stored, now):
            self._snapshot = stored
            self._stats["store_loads"] += 1
            self._set_items_gauge(len(stored))
            self.logger.info(
                "Loaded catalog snapshot from durable storage",
                items=len(stored),
                age_seconds=round(stored.age(now), 1),
            )
            return stored

        if self.within_grace(stored, now):
            # Kept only as a fallback in case the refetch below fails.
            self._snapshot = stored
            self._set_items_gauge(len(stored))
            self.logger.info(
                "Durable catalog snapshot expired, refreshing from upstream",
                items=len(stored),
                age_seconds=round(stored.age(now), 1),
            )
        return None

    async def _fetch_from_upstream(self) -> CatalogSnapshot:
        self._stats["upstream_fetches"] += 1
        started = time.perf_counter()
        self.logger.info("Fetching catalog from upstream")

        try:
            items = await self._upstream_fetch()
            snapshot = CatalogSnapshot.from_items(items, fetched_at=self._clock())
        except Exception as exc:
            self._record_fetch("failure", started)
            return self._fall_back(exc)

        self._record_fetch("success", started)
        self._snapshot = snapshot
        self._set_items_gauge(len(snapshot))
        self.logger.info(
            "Catalog fetched from upstream",
            items=len(snapshot),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )

        if self._store is not None:
            try:
                await self._store.save(snapshot)
            except PersistenceError as exc:
                self.logger.warning("Failed to persist catalog snapshot", error=exc.message, details=exc.details)
            else:
                self._durable_invalid = False

        return snapshot

    def _fall_back(self, exc: Exception) -> CatalogSnapshot:
        self._stats["upstream_failures"] += 1
        now = self._clock()
        stale = self._snapshot

        if stale is not None and self.within_grace(stale, now):
            self._stats["stale_served"] += 1
            if self.metrics:
                self.metrics.increment_counter("catalog_stale_served_total")
            self.logger.warning(
                "Catalog upstream failed, serving stale snapshot",
                error=str(exc),
                error_type=type(exc).__name__,
                items=len(stale),
                age_seconds=round(stale.age(now), 1),
            )
            return stale.as_stale()

        self.logger.error(
            "Catalog upstream failed and no snapshot is available",
            error=str(exc),
            error_type=type(exc).__name__,
            stale_age_seconds=round(stale.age(now), 1) if stale is not None else None,
        )
        raise UpstreamUnavailable(exc) from exc

    def _count(self, stat: str, result: str) -> None:
        self._stats[stat] += 1
        if self.metrics:
            self.metrics.increment_counter("catalog_cache_requests_total", result=result)

    def _record_fetch(self, outcome: str, started: float) -> None:
        if not self.metrics:
            return
        self.metrics.increment_counter("catalog_upstream_fetch_total", outcome=outcome)
        self.metrics.observe_histogram("catalog_upstream_fetch_duration_seconds", time.perf_counter() - started)

    def _set_items_gauge(self, count: int) -> None:
        if self.metrics:
            self.metrics.set_gauge("catalog_snapshot_items", count)


def _retrieve_outcome(task: "asyncio.Task[CatalogSnapshot]") -> None:
    # Waiters may all have been cancelled; mark the exception as retrieved.
    if not task.cancelled():
        task.exception()
