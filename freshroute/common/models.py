"""Dataclasses shared between the ingestion, grid and scoring layers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

KM_PER_DEGREE = 111.0  # Approx conversion for small areas

DEFAULT_CELL_SIZE_KM = 5.0
DEFAULT_REFERENCE_POINT: Tuple[float, float] = (52.3676, 4.9041)  # Amsterdam
GRID_SIZE_OPTIONS: Tuple[float, ...] = (1.0, 2.0, 5.0, 10.0, 20.0)

SCORED = "scored"
UNSCORED = "unscored"
EXCLUDED = "excluded"


@dataclass(frozen=True)
class GridConfig:
    """Grid resolution and origin. Immutable per computation."""

    cell_size_km: float = DEFAULT_CELL_SIZE_KM
    reference_point: Tuple[float, float] = DEFAULT_REFERENCE_POINT

    def __post_init__(self) -> None:
        size = self.cell_size_km
        if isinstance(size, bool) or not isinstance(size, (int, float)):
            raise ValueError(f"cell_size_km must be a number (got {size!r}).")
        if not math.isfinite(size) or size <= 0:
            raise ValueError(f"cell_size_km must be positive and finite (got {size}).")

        try:
            ref_lat, ref_lon = self.reference_point
            ref_lat, ref_lon = float(ref_lat), float(ref_lon)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"reference_point must be a (lat, lon) pair (got {self.reference_point!r}).") from exc
        if not (math.isfinite(ref_lat) and math.isfinite(ref_lon)):
            raise ValueError("reference_point must contain finite coordinates.")
        # cos(+-90) collapses the longitude step to zero.
        if not -90.0 < ref_lat < 90.0:
            raise ValueError(f"reference latitude must be strictly between -90 and 90 (got {ref_lat}).")
        if not -180.0 <= ref_lon <= 180.0:
            raise ValueError(f"reference longitude must be within [-180, 180] (got {ref_lon}).")

        object.__setattr__(self, "cell_size_km", float(size))
        object.__setattr__(self, "reference_point", (ref_lat, ref_lon))

    @property
    def lat_step_degrees(self) -> float:
        return self.cell_size_km / KM_PER_DEGREE

    @property
    def lon_step_degrees(self) -> float:
        ref_lat = self.reference_point[0]
        return self.cell_size_km / (KM_PER_DEGREE * math.cos(math.radians(ref_lat)))


class CellCoordinate(NamedTuple):
    cell_x: int
    cell_y: int


@dataclass(frozen=True)
class GridCell:
    """A materialised, non-empty grid cell."""

    cell_x: int
    cell_y: int
    distance: float


@dataclass(frozen=True)
class GridStats:
    total_cells: int
    total_distance: float
    average_distance: float
    max_distance: float


@dataclass(frozen=True)
class RoutePoint:
    """One GPS fix. ``distance_from_prev`` and ``midpoint`` are cached derivations."""

    lat: float
    lon: float
    elevation: Optional[float] = None
    distance_from_prev: Optional[float] = None
    midpoint: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class Route:
    id: str
    points: Tuple[RoutePoint, ...] = field(default_factory=tuple)
    name: str = ""
    folder: str = "saved"  # recent | saved
    total_distance: float = 0.0
    error: Optional[str] = None

    @classmethod
    def from_coordinates(
        cls,
        route_id: str,
        coordinates: Iterable[Sequence[float]],
        name: str | None = None,
        folder: str = "saved",
        error: str | None = None,
    ) -> "Route":
        """Build a route, computing per-segment distance and midpoint once."""

        from .geo import haversine_m, midpoint

        points: List[RoutePoint] = []
        total = 0.0
        prev: Optional[Tuple[float, float]] = None
        for coord in coordinates:
            lat, lon = float(coord[0]), float(coord[1])
            elevation = float(coord[2]) if len(coord) > 2 and coord[2] is not None else None
            if prev is None:
                points.append(RoutePoint(lat, lon, elevation, 0.0, None))
            else:
                segment = haversine_m(prev[0], prev[1], lat, lon)
                total += segment
                points.append(
                    RoutePoint(lat, lon, elevation, segment, midpoint(prev[0], prev[1], lat, lon))
                )
            prev = (lat, lon)

        return cls(
            id=route_id,
            points=tuple(points),
            name=name or route_id,
            folder=folder,
            total_distance=total,
            error=error,
        )

    @classmethod
    def failed(cls, route_id: str, error: str, name: str | None = None, folder: str = "saved") -> "Route":
        """Placeholder for a route the loader could not parse."""

        return cls(id=route_id, name=name or route_id, folder=folder, error=error)

    @property
    def is_scoreable(self) -> bool:
        return self.error is None and len(self.points) > 0

    @property
    def max_elevation(self) -> float:
        if not self.points:
            return 0.0
        return max(p.elevation or 0.0 for p in self.points)


@dataclass(frozen=True)
class CellBreakdown:
    """How one cell of a route contributes to its overlap score."""

    cell_x: int
    cell_y: int
    route_distance: float
    share: float
    aggregate_distance: float
    contribution: float


@dataclass(frozen=True)
class RouteScore:
    route_id: str
    score: Optional[float]
    status: str
    cells: Tuple[GridCell, ...] = ()
    breakdown: Tuple[CellBreakdown, ...] = ()
    stats: Optional[GridStats] = None
    name: Optional[str] = None

    @property
    def is_scored(self) -> bool:
        return self.status == SCORED
