"""Input boundary: decide once which routes reach the grid and scorer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from freshroute.common.geo import haversine_m
from freshroute.common.models import Route

logger = logging.getLogger(__name__)


class BatchLimitError(ValueError):
    """A request carries more routes or points than the service accepts."""


@dataclass(frozen=True)
class RouteFilters:
    """Optional range filters applied to loaded routes.

    Distances are in kilometers, elevations in meters. ``center`` together
    with ``max_distance_km`` keeps routes whose first point lies within that
    radius.
    """

    distance_min_km: Optional[float] = None
    distance_max_km: Optional[float] = None
    elevation_min_m: Optional[float] = None
    elevation_max_m: Optional[float] = None
    center: Optional[Tuple[float, float]] = None
    max_distance_km: Optional[float] = None

    def matches(self, route: Route) -> bool:
        # Error routes are kept so they surface as excluded downstream.
        if route.error is not None:
            return True

        distance_km = route.total_distance / 1000.0
        if self.distance_min_km is not None and distance_km < self.distance_min_km:
            return False
        if self.distance_max_km is not None and distance_km > self.distance_max_km:
            return False

        max_elevation = route.max_elevation
        if self.elevation_min_m is not None and max_elevation < self.elevation_min_m:
            return False
        if self.elevation_max_m is not None and max_elevation > self.elevation_max_m:
            return False

        if self.center is not None and self.max_distance_km is not None and route.points:
            start = route.points[0]
            to_start_km = haversine_m(self.center[0], self.center[1], start.lat, start.lon) / 1000.0
            if to_start_km > self.max_distance_km:
                return False
        return True


def apply_filters(routes: Iterable[Route], filters: Optional[RouteFilters]) -> List[Route]:
    routes = list(routes)
    if filters is None:
        return routes
    return [route for route in routes if filters.matches(route)]


def partition_routes(routes: Iterable[Route]) -> Tuple[List[Route], List[Route]]:
    """Split routes into ``(scoreable, excluded)``.

    Excluded routes are those the loader tagged with an error or that carry
    no points at all.
    """

    scoreable: List[Route] = []
    excluded: List[Route] = []
    for route in routes:
        (scoreable if route.is_scoreable else excluded).append(route)
    if excluded:
        logger.info("Excluding %d of %d routes from scoring", len(excluded), len(scoreable) + len(excluded))
    return scoreable, excluded


def limit_batch(
    routes: Iterable[Route],
    max_routes: Optional[int] = None,
    max_points: Optional[int] = None,
) -> List[Route]:
    """Reject batches that exceed the configured route or point budget."""

    routes = list(routes)
    if max_routes is not None and len(routes) > max_routes:
        raise BatchLimitError(f"Batch has {len(routes)} routes; the limit is {max_routes}.")
    if max_points is not None:
        total_points = sum(len(route.points) for route in routes)
        if total_points > max_points:
            raise BatchLimitError(f"Batch has {total_points} points; the limit is {max_points}.")
    return routes
