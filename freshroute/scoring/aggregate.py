"""Recent-activity density map and its cache."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from freshroute.common.models import GridConfig, Route
from freshroute.grid.index import GridIndex
from freshroute.grid.processor import process_routes
from freshroute.ingest.route_filter import partition_routes

logger = logging.getLogger(__name__)

DEFAULT_MAX_SNAPSHOTS = 8


def build_aggregate(routes: Iterable[Route], config: GridConfig) -> GridIndex:
    """Fold recent routes into one frozen density index.

    Build this once per scoring batch; every candidate route is scored
    against the same result.
    """

    scoreable, _ = partition_routes(routes)
    index = GridIndex(config)
    process_routes(scoreable, index)
    logger.info(
        "Built aggregate from %d routes: %d cells, %.0f m",
        len(scoreable),
        index.get_cell_count(),
        index.get_total_distance(),
    )
    return index.freeze()


@dataclass(frozen=True)
class AggregateSnapshot:
    """One immutable build of the aggregate for a grid config."""

    version: int
    index: GridIndex
    built_at: float
    route_count: int
    generation: int = 0


class AggregateCache:
    """Versioned aggregate snapshots, rebuilt after a sync or on expiry.

    ``loader`` returns the recent routes to fold in; it is called with the
    grid config whenever a snapshot must be (re)built. Readers always get a
    complete frozen snapshot: a rebuild swaps the stored reference only once
    the new index is finished.

    At most ``max_snapshots`` grid configs are kept, least recently used
    first out. ``invalidate()`` drops every stored snapshot; callers that
    already hold one keep using it.
    """

    def __init__(
        self,
        loader: Callable[[GridConfig], Iterable[Route]],
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        max_snapshots: int = DEFAULT_MAX_SNAPSHOTS,
    ) -> None:
        if max_snapshots < 1:
            raise ValueError(f"max_snapshots must be at least 1 (got {max_snapshots}).")
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.max_snapshots = max_snapshots
        self._snapshots: "OrderedDict[GridConfig, AggregateSnapshot]" = OrderedDict()
        self._generation = 0
        self._version = 0
        # _state_lock guards the fields above and is never held across a rebuild.
        self._state_lock = threading.Lock()
        self._build_lock = threading.Lock()

    def __len__(self) -> int:
        with self._state_lock:
            return len(self._snapshots)

    def get(self, config: GridConfig) -> AggregateSnapshot:
        snapshot = self._fresh_snapshot(config)
        if snapshot is not None:
            return snapshot

        with self._build_lock:
            # Another caller may have rebuilt while we waited.
            snapshot = self._fresh_snapshot(config)
            if snapshot is not None:
                return snapshot

            with self._state_lock:
                generation = self._generation
            routes = list(self.loader(config))
            index = build_aggregate(routes, config)

            with self._state_lock:
                self._version += 1
                snapshot = AggregateSnapshot(
                    version=self._version,
                    index=index,
                    built_at=self.clock(),
                    route_count=len(routes),
                    generation=generation,
                )
                # A build that raced an invalidate() is served once but not stored.
                if generation == self._generation:
                    self._snapshots[config] = snapshot
                    self._snapshots.move_to_end(config)
                    while len(self._snapshots) > self.max_snapshots:
                        evicted, _ = self._snapshots.popitem(last=False)
                        logger.debug("Evicted aggregate snapshot for %s", evicted)
            logger.debug("Aggregate snapshot v%d ready for %s", snapshot.version, config)
            return snapshot

    def invalidate(self) -> None:
        """Drop every snapshot, e.g. after new activity was synced."""

        with self._state_lock:
            self._generation += 1
            generation = self._generation
            self._snapshots.clear()
        logger.info("Aggregate cache invalidated (generation %d)", generation)

    def clear(self) -> None:
        with self._state_lock:
            self._snapshots.clear()

    def _fresh_snapshot(self, config: GridConfig) -> Optional[AggregateSnapshot]:
        with self._state_lock:
            snapshot = self._snapshots.get(config)
            if snapshot is None:
                return None
            if snapshot.generation != self._generation or self._expired(snapshot):
                del self._snapshots[config]
                return None
            self._snapshots.move_to_end(config)
            return snapshot

    def _expired(self, snapshot: AggregateSnapshot) -> bool:
        return self.ttl_seconds is not None and self.clock() - snapshot.built_at >= self.ttl_seconds
