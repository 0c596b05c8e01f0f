"""
Lightweight spatial indexing (grid bucket) for lat/lng points.

Used to avoid O(N) scans over spots, and to name the cells a radius search touches
(the resolver locks exactly those cells).

The grid is made of latitude rows of `cell_size_m` height. Each row is split into
equal longitude slices about `cell_size_m` wide at the row's centre latitude, so
rows near the poles have few columns instead of thousands of sliver cells.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, TypeVar

from spotmap.core.geo import Box, Coordinate, bounding_box_around, haversine_m

T = TypeVar("T")

_M_PER_DEG_LAT = 110_540.0
_M_PER_DEG_LNG = 111_320.0

CellKey = tuple[int, int]


class Grid:
    """Cell arithmetic shared by the spatial index and the resolver's cell locks."""

    def __init__(self, cell_size_m: float = 500.0):
        if float(cell_size_m) <= 0:
            raise ValueError("cell_size_m must be > 0")
        self._cell_size_m = float(cell_size_m)

    @property
    def cell_size_m(self) -> float:
        return self._cell_size_m

    def _row(self, lat: float) -> int:
        return int(math.floor(lat * _M_PER_DEG_LAT / self._cell_size_m))

    def _columns(self, row: int) -> int:
        center_lat = (row + 0.5) * self._cell_size_m / _M_PER_DEG_LAT
        center_lat = max(-90.0, min(90.0, center_lat))
        width_m = 360.0 * _M_PER_DEG_LNG * math.cos(math.radians(center_lat))
        return max(1, int(math.ceil(width_m / self._cell_size_m)))

    def _column(self, row: int, lng: float) -> int:
        n = self._columns(row)
        col = int(math.floor((lng + 180.0) / 360.0 * n))
        return min(max(col, 0), n - 1)

    def cell_key(self, c: Coordinate) -> CellKey:
        row = self._row(float(c.lat))
        return row, self._column(row, float(c.lng))

    def estimate_cells(self, box: Box) -> int:
        """Upper bound on `len(cells_covering(box))` without enumerating."""
        rows = self._row(float(box.north)) - self._row(float(box.south)) + 1
        width_deg = float(box.east - box.west) % 360.0 if box.wraps else float(box.east - box.west)
        cols = int(math.ceil(width_deg * _M_PER_DEG_LNG / self._cell_size_m)) + 2
        return rows * cols

    def cells_covering(self, box: Box) -> list[CellKey]:
        """Return every cell overlapping `box`, in sorted order."""
        if box.wraps:
            spans = [(float(box.west), 180.0), (-180.0, float(box.east))]
        else:
            spans = [(float(box.west), float(box.east))]
        keys: set[CellKey] = set()
        for row in range(self._row(float(box.south)), self._row(float(box.north)) + 1):
            for west, east in spans:
                for col in range(self._column(row, west), self._column(row, east) + 1):
                    keys.add((row, col))
        return sorted(keys)

    def cells_within(self, center: Coordinate, radius_m: float) -> list[CellKey]:
        """Return every cell that may hold a point within `radius_m` of `center`."""
        return self.cells_covering(bounding_box_around(center, radius_m))


@dataclass(frozen=True)
class _Entry(Generic[T]):
    item: T
    coordinate: Coordinate


class SpatialGridIndex(Generic[T]):
    """Grid-bucketed items. Not thread-safe; callers guard mutation."""

    def __init__(
        self,
        items: Iterable[T] = (),
        *,
        get_coordinate: Callable[[T], Coordinate],
        cell_size_m: float = 500.0,
    ):
        self._grid = Grid(cell_size_m)
        self._get_coordinate = get_coordinate
        self._cells: dict[CellKey, list[_Entry[T]]] = {}
        self._size = 0
        for it in items:
            self.add(it)

    def __len__(self) -> int:
        return self._size

    def add(self, item: T) -> None:
        c = self._get_coordinate(item)
        self._cells.setdefault(self._grid.cell_key(c), []).append(_Entry(item=item, coordinate=c))
        self._size += 1

    def query_box(self, box: Box) -> list[T]:
        if self._grid.estimate_cells(box) > self._size:
            # Map viewports can span continents; a flat scan is cheaper than walking cells.
            entries: Iterable[_Entry[T]] = (e for cell in self._cells.values() for e in cell)
        else:
            entries = (e for key in self._grid.cells_covering(box) for e in self._cells.get(key, ()))
        return [e.item for e in entries if box.contains(e.coordinate)]

    def query_within(self, center: Coordinate, radius_m: float) -> list[tuple[T, float]]:
        """Return `(item, distance_m)` for every item with distance <= `radius_m`."""
        r = float(radius_m)
        if r < 0:
            return []
        out: list[tuple[T, float]] = []
        for key in self._grid.cells_within(center, r):
            for e in self._cells.get(key, ()):
                d = haversine_m(center, e.coordinate)
                if d <= r:
                    out.append((e.item, d))
        return out
