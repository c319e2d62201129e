"""Feed route segments into a grid index."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Sequence, Tuple, Union

from freshroute.common.geo import haversine_m, midpoint
from freshroute.common.models import GridConfig, GridStats, Route, RoutePoint
from freshroute.grid.index import GridIndex

logger = logging.getLogger(__name__)

PointLike = Union[RoutePoint, Sequence[float]]
RouteLike = Union[Route, Sequence[PointLike]]


def iter_segments(route: RouteLike) -> Iterator[Tuple[float, float, float]]:
    """Yield ``(mid_lat, mid_lon, meters)`` for each consecutive point pair.

    Cached ``distance_from_prev`` / ``midpoint`` values on a point are reused;
    bare coordinate pairs are computed on the fly.
    """

    points = route.points if isinstance(route, Route) else route
    prev = None
    for point in points:
        if isinstance(point, RoutePoint):
            lat, lon = point.lat, point.lon
            cached_distance, cached_mid = point.distance_from_prev, point.midpoint
        else:
            lat, lon = float(point[0]), float(point[1])
            cached_distance, cached_mid = None, None

        if prev is not None:
            distance = cached_distance
            if distance is None:
                distance = haversine_m(prev[0], prev[1], lat, lon)
            mid = cached_mid if cached_mid is not None else midpoint(prev[0], prev[1], lat, lon)
            yield mid[0], mid[1], distance
        prev = (lat, lon)


def process_route(route: RouteLike, grid_index: GridIndex) -> None:
    """Add each segment's distance to the cell containing its midpoint."""

    # Routes with fewer than two points simply produce no segments.
    for mid_lat, mid_lon, distance in iter_segments(route):
        grid_index.add_distance(mid_lat, mid_lon, distance)


def process_routes(routes: Iterable[RouteLike], grid_index: GridIndex) -> None:
    """Reset ``grid_index`` and accumulate every route into it."""

    grid_index.reset()
    count = 0
    for route in routes:
        process_route(route, grid_index)
        count += 1
    logger.debug("Accumulated %d routes into %d cells", count, grid_index.get_cell_count())


def route_index(route: RouteLike, config: GridConfig) -> GridIndex:
    """Build a fresh index holding a single route."""

    index = GridIndex(config)
    process_route(route, index)
    return index


def grid_stats(grid_index: GridIndex) -> GridStats:
    return grid_index.stats()
