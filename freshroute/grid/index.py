"""Sparse grid of accumulated distance per cell."""

from __future__ import annotations

import copy
import math
import threading
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from freshroute.common.geo import GridProjector
from freshroute.common.models import CellCoordinate, GridCell, GridConfig, GridStats


class FrozenIndexError(RuntimeError):
    """Raised when a frozen (shared, read-only) index is mutated."""


class GridIndex:
    """Maps grid cells to the meters travelled inside them.

    Only cells with a positive total are stored; a missing cell reads as zero.
    Accumulation is commutative, so routes may be fed in any order or from
    several threads.
    """

    def __init__(self, config: GridConfig) -> None:
        self.config = config
        self.projector = GridProjector(config)
        self._cells: Dict[CellCoordinate, float] = {}
        self._lock = threading.Lock()
        self._frozen = False

    @classmethod
    def from_cells(cls, config: GridConfig, cells: Iterable) -> "GridIndex":
        """Rebuild an index from ``GridCell`` objects or ``(x, y, meters)`` triples."""

        index = cls(config)
        for cell in cells:
            if isinstance(cell, GridCell):
                index.add_to_cell(cell.cell_x, cell.cell_y, cell.distance)
            else:
                cell_x, cell_y, meters = cell
                index.add_to_cell(int(cell_x), int(cell_y), float(meters))
        return index

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "GridIndex":
        self._frozen = True
        return self

    def copy(self) -> "GridIndex":
        """Return an unfrozen copy with the same cells."""

        clone = GridIndex(self.config)
        clone._cells = copy.copy(self._cells)
        return clone

    def cell_of(self, lat: float, lon: float) -> CellCoordinate:
        return self.projector.cell_of(lat, lon)

    def add_distance(self, lat: float, lon: float, meters: float) -> None:
        cell = self.projector.cell_of(lat, lon)
        self.add_to_cell(cell.cell_x, cell.cell_y, meters)

    def add_to_cell(self, cell_x: int, cell_y: int, meters: float) -> None:
        self._check_mutable()
        if not math.isfinite(meters) or meters < 0:
            raise ValueError(f"Distance must be finite and non-negative (got {meters}).")
        if meters == 0:
            return
        key = CellCoordinate(cell_x, cell_y)
        with self._lock:
            self._cells[key] = self._cells.get(key, 0.0) + meters

    def merge(self, other: "GridIndex") -> "GridIndex":
        """Add every cell of ``other`` into this index."""

        if other.config != self.config:
            raise ValueError("Cannot merge grid indexes built with different grid configs.")
        for cell in other.iter_cells():
            self.add_to_cell(cell.cell_x, cell.cell_y, cell.distance)
        return self

    def get_distance(self, cell_x: int, cell_y: int) -> float:
        return self._cells.get(CellCoordinate(cell_x, cell_y), 0.0)

    def find_cell(self, cell_x: int, cell_y: int) -> Optional[GridCell]:
        distance = self.get_distance(cell_x, cell_y)
        if distance > 0:
            return GridCell(cell_x, cell_y, distance)
        return None

    def iter_cells(self) -> Iterator[GridCell]:
        # Writers may run concurrently; iterate over a copy.
        for key, distance in list(self._cells.items()):
            if distance > 0:
                yield GridCell(key.cell_x, key.cell_y, distance)

    def for_each_non_empty(self, callback: Callable[[GridCell], None]) -> None:
        for cell in self.iter_cells():
            callback(cell)

    def __iter__(self) -> Iterator[GridCell]:
        return self.iter_cells()

    def __len__(self) -> int:
        return self.get_cell_count()

    def get_all_cells(self) -> List[GridCell]:
        """All non-empty cells, heaviest first."""

        return sorted(self.iter_cells(), key=lambda cell: cell.distance, reverse=True)

    def get_cell_count(self) -> int:
        return sum(1 for _ in self.iter_cells())

    def get_total_distance(self) -> float:
        return sum(cell.distance for cell in self.iter_cells())

    def get_max_distance(self) -> float:
        return max((cell.distance for cell in self.iter_cells()), default=0.0)

    def get_average_distance(self) -> float:
        count = self.get_cell_count()
        if count == 0:
            return 0.0
        return self.get_total_distance() / count

    def stats(self) -> GridStats:
        return GridStats(
            total_cells=self.get_cell_count(),
            total_distance=self.get_total_distance(),
            average_distance=self.get_average_distance(),
            max_distance=self.get_max_distance(),
        )

    def to_dict(self) -> Dict[CellCoordinate, float]:
        return dict(self._cells)

    def reset(self) -> None:
        self._check_mutable()
        with self._lock:
            self._cells.clear()

    def _check_mutable(self) -> None:
        if self._frozen:
            raise FrozenIndexError("Grid index is frozen; copy() it before mutating.")

    def __repr__(self) -> str:
        return (
            f"GridIndex(cell_size_km={self.config.cell_size_km}, "
            f"cells={len(self._cells)}, frozen={self._frozen})"
        )
