"""Geospatial helpers for grid-based aggregations."""

from __future__ import annotations

import math
from typing import Tuple

from .models import CellCoordinate, GridConfig

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat_a: float, lon_a: float, lat_b: float, lon_b: float) -> float:
    """Great-circle distance in meters on a spherical Earth."""

    phi_a = math.radians(lat_a)
    phi_b = math.radians(lat_b)
    d_phi = math.radians(lat_b - lat_a)
    d_lambda = math.radians(lon_b - lon_a)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi_a) * math.cos(phi_b) * math.sin(d_lambda / 2) ** 2
    a = min(max(a, 0.0), 1.0)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def midpoint(lat_a: float, lon_a: float, lat_b: float, lon_b: float) -> Tuple[float, float]:
    # Arithmetic midpoint, not geodesic.
    return (lat_a + lat_b) / 2, (lon_a + lon_b) / 2


class GridProjector:
    """Maps latitude/longitude pairs into deterministic grid cells.

    Longitude compression uses the reference latitude, not the query latitude,
    so the grid stays rectilinear across the whole region.
    """

    def __init__(self, config: GridConfig) -> None:
        self.config = config
        self.ref_lat, self.ref_lon = config.reference_point
        self.lat_step = config.lat_step_degrees
        self.lon_step = config.lon_step_degrees

    def cell_of(self, latitude: float, longitude: float) -> CellCoordinate:
        cell_x = math.floor((longitude - self.ref_lon) / self.lon_step)
        cell_y = math.floor((latitude - self.ref_lat) / self.lat_step)
        return CellCoordinate(int(cell_x), int(cell_y))

    def bounds(self, cell_x: int, cell_y: int) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Return ``((south, west), (north, east))`` for a cell."""

        south = self.ref_lat + cell_y * self.lat_step
        north = self.ref_lat + (cell_y + 1) * self.lat_step
        west = self.ref_lon + cell_x * self.lon_step
        east = self.ref_lon + (cell_x + 1) * self.lon_step
        return (south, west), (north, east)


def cell_of(latitude: float, longitude: float, config: GridConfig) -> CellCoordinate:
    return GridProjector(config).cell_of(latitude, longitude)


def cell_bounds(cell_x: int, cell_y: int, config: GridConfig) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """Inverse of :func:`cell_of`, for map overlays."""

    return GridProjector(config).bounds(cell_x, cell_y)
