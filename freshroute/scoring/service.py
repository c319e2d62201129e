"""In-process scoring of a saved-route batch against cached recent activity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from freshroute.common.config import AppConfig
from freshroute.common.models import GridConfig, GridStats, Route, RouteScore
from freshroute.ingest.route_filter import RouteFilters, apply_filters, limit_batch, partition_routes
from freshroute.scoring.aggregate import AggregateCache
from freshroute.scoring.overlap import OverlapScorer
from freshroute.scoring.ranking import rank_routes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchResult:
    """Ranked scores plus the routes that never reached the scorer."""

    scores: List[RouteScore]
    excluded: List[Route]
    aggregate_version: int
    aggregate_stats: GridStats


class RouteScoringService:
    """Wires the aggregate cache, the input boundary and the scorer together."""

    def __init__(
        self,
        config: AppConfig,
        recent_loader: Callable[[GridConfig], Iterable[Route]],
    ) -> None:
        self.config = config
        self.cache = AggregateCache(
            recent_loader,
            ttl_seconds=config.cache.ttl_seconds,
            max_snapshots=config.cache.max_snapshots,
        )

    def score(
        self,
        saved_routes: Iterable[Route],
        filters: Optional[RouteFilters] = None,
        grid_config: Optional[GridConfig] = None,
    ) -> BatchResult:
        grid_config = grid_config or self.config.grid_config()
        routes = apply_filters(saved_routes, filters)
        routes = limit_batch(
            routes,
            max_routes=self.config.batch.max_routes,
            max_points=self.config.batch.max_points,
        )
        scoreable, excluded = partition_routes(routes)

        snapshot = self.cache.get(grid_config)
        scorer = OverlapScorer(snapshot.index, zero_coverage=self.config.scoring.zero_coverage)
        scores = scorer.score_routes(scoreable, max_workers=self.config.batch.max_workers)
        logger.info(
            "Scored %d routes (%d excluded) against aggregate v%d",
            len(scores),
            len(excluded),
            snapshot.version,
        )
        return BatchResult(
            scores=rank_routes(scores),
            excluded=excluded,
            aggregate_version=snapshot.version,
            aggregate_stats=snapshot.index.stats(),
        )

    def on_sync_completed(self) -> None:
        """Call when new recent activity has been stored."""

        self.cache.invalidate()
