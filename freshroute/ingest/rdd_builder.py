"""Build Spark RDDs of Route objects from ingested rows."""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from pyspark import RDD
from pyspark.sql import DataFrame, Row

from freshroute.common.models import Route


class RouteRDDBuilder:
    """Materialises route RDDs for the batch scorer."""

    @staticmethod
    def build_routes(df: DataFrame, folder: str) -> RDD:
        return df.rdd.map(lambda row: RouteRDDBuilder.route_from_row(row, folder))

    @staticmethod
    def route_from_row(row: Row, folder: str) -> Route:
        route_id = str(row.id)
        name = row.name or route_id
        if row.error:
            return Route.failed(route_id, str(row.error), name=name, folder=folder)

        coordinates = parse_points(row.points)
        if not coordinates:
            return Route.failed(route_id, "No track points found", name=name, folder=folder)
        return Route.from_coordinates(route_id, coordinates, name=name, folder=folder)


def parse_points(raw_points: Optional[Sequence]) -> List[Tuple[float, ...]]:
    """Keep ``[lat, lon, ele?]`` entries with finite, in-range coordinates."""

    if not raw_points:
        return []
    points: List[Tuple[float, ...]] = []
    for raw in raw_points:
        if raw is None or len(raw) < 2 or raw[0] is None or raw[1] is None:
            continue
        lat, lon = float(raw[0]), float(raw[1])
        if not (math.isfinite(lat) and math.isfinite(lon)):
            continue
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
            continue
        elevation = raw[2] if len(raw) > 2 else None
        if elevation is not None and not math.isfinite(elevation):
            elevation = None
        points.append((lat, lon, elevation))
    return points
