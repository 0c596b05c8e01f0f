"""
Per-cell locks for spot resolution.

`resolve` reads candidate spots and then maybe inserts one; two overlapping requests
must not interleave those steps. Each call locks every grid cell its search circle
touches. If two coordinates are within the radius of each other, each one's cell lies
inside the other's circle, so the two lock sets intersect and the calls serialize.
Cells are locked in sorted order, so lock sets never deadlock.

Locks are process-local: run a single writer process (or put the resolver behind one).
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from spotmap.core.deadline import Deadline
from spotmap.core.geo import Coordinate
from spotmap.core.spatial_index import CellKey, Grid
from spotmap.errors import DeadlineExceeded


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class CellLocks:
    def __init__(self, grid: Grid):
        self._grid = grid
        self._guard = threading.Lock()
        self._slots: dict[CellKey, _Slot] = {}

    @property
    def grid(self) -> Grid:
        return self._grid

    def active_cells(self) -> int:
        with self._guard:
            return len(self._slots)

    def _checkout(self, keys: list[CellKey]) -> list[_Slot]:
        with self._guard:
            slots = []
            for key in keys:
                slot = self._slots.get(key)
                if slot is None:
                    slot = self._slots[key] = _Slot()
                slot.users += 1
                slots.append(slot)
            return slots

    def _checkin(self, keys: list[CellKey]) -> None:
        with self._guard:
            for key in keys:
                slot = self._slots[key]
                slot.users -= 1
                if slot.users == 0:
                    del self._slots[key]

    @contextmanager
    def hold(self, center: Coordinate, radius_m: float, *, deadline: Deadline | None = None) -> Iterator[list[CellKey]]:
        """Lock every cell within `radius_m` of `center` for the duration of the block."""
        keys = self._grid.cells_within(center, radius_m)
        slots = self._checkout(keys)
        acquired: list[threading.Lock] = []
        try:
            for slot in slots:
                timeout = deadline.remaining() if deadline is not None else -1
                if not slot.lock.acquire(timeout=timeout):
                    raise DeadlineExceeded("deadline exceeded waiting for spot cell lock")
                acquired.append(slot.lock)
            yield keys
        finally:
            for lock in reversed(acquired):
                lock.release()
            self._checkin(keys)
