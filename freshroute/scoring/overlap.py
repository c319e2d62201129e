"""Score a route against the recent-activity aggregate."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional

from freshroute.common.models import SCORED, UNSCORED, CellBreakdown, Route, RouteScore
from freshroute.grid.index import GridIndex
from freshroute.grid.processor import route_index

logger = logging.getLogger(__name__)

MAX_OVERLAP_SENTINEL = 1.0
ZERO_COVERAGE_UNSCORED = "unscored"
ZERO_COVERAGE_MAX_OVERLAP = "max_overlap"


def overlap_score(route_grid: GridIndex, aggregate_index: GridIndex) -> Optional[float]:
    """Distance-weighted mean of the aggregate's per-cell distance along a route.

    Each route cell weighs in by the share of the route's own distance it
    holds. A route entirely outside the aggregate scores 0. The result is not
    bounded; callers compare scores within a batch. Returns None when the
    route covers no distance.
    """

    total = route_grid.get_total_distance()
    if total == 0:
        return None

    weighted = 0.0
    for cell in route_grid.iter_cells():
        share = cell.distance / total
        weighted += share * aggregate_index.get_distance(cell.cell_x, cell.cell_y)
    return weighted


def breakdown(route_grid: GridIndex, aggregate_index: GridIndex) -> List[CellBreakdown]:
    """Per-cell contributions to :func:`overlap_score`, largest first."""

    total = route_grid.get_total_distance()
    if total == 0:
        return []

    rows = []
    for cell in route_grid.iter_cells():
        share = cell.distance / total
        aggregate_distance = aggregate_index.get_distance(cell.cell_x, cell.cell_y)
        rows.append(
            CellBreakdown(
                cell_x=cell.cell_x,
                cell_y=cell.cell_y,
                route_distance=cell.distance,
                share=share,
                aggregate_distance=aggregate_distance,
                contribution=share * aggregate_distance,
            )
        )
    rows.sort(key=lambda row: row.contribution, reverse=True)
    return rows


class OverlapScorer:
    """Scores candidate routes against one frozen aggregate."""

    def __init__(self, aggregate_index: GridIndex, zero_coverage: str = ZERO_COVERAGE_UNSCORED) -> None:
        if zero_coverage not in (ZERO_COVERAGE_UNSCORED, ZERO_COVERAGE_MAX_OVERLAP):
            raise ValueError(f"Unknown zero_coverage mode: {zero_coverage}")
        self.aggregate_index = aggregate_index
        self.config = aggregate_index.config
        self.zero_coverage = zero_coverage

    def score_index(self, index: GridIndex) -> Optional[float]:
        if index.config != self.config:
            raise ValueError("Route index and aggregate index use different grid configs.")
        score = overlap_score(index, self.aggregate_index)
        if score is None and self.zero_coverage == ZERO_COVERAGE_MAX_OVERLAP:
            return MAX_OVERLAP_SENTINEL
        return score

    def score_route(self, route: Route) -> RouteScore:
        index = route_index(route, self.config)
        score = self.score_index(index)
        return RouteScore(
            route_id=route.id,
            score=score,
            status=SCORED if score is not None else UNSCORED,
            cells=tuple(index.get_all_cells()),
            breakdown=tuple(breakdown(index, self.aggregate_index)),
            stats=index.stats(),
            name=route.name,
        )

    def score_routes(self, routes: Iterable[Route], max_workers: Optional[int] = None) -> List[RouteScore]:
        """Score routes in input order; ``max_workers > 1`` uses a thread pool."""

        routes = list(routes)
        if not max_workers or max_workers <= 1 or len(routes) <= 1:
            results = [self.score_route(route) for route in routes]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                results = list(pool.map(self.score_route, routes))
        unscored = sum(1 for result in results if not result.is_scored)
        logger.info("Scored %d routes (%d unscored)", len(results), unscored)
        return results
