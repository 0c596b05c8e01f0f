"""
Nearest-spot resolution.

For every submitted photo coordinate we either reuse the closest existing spot within
`radius_m` (inclusive) or create a new spot anchored at that coordinate. Spots are never
re-centred, so a spot's coordinate is always that of the photo that created it.

Tie-break: among equidistant candidates the lowest `spot_id` wins.
"""

from __future__ import annotations

import logging

from spotmap.config.settings import Settings
from spotmap.core.deadline import Deadline
from spotmap.core.geo import Coordinate
from spotmap.core.spatial_index import Grid
from spotmap.domain.models import NewPhoto, Photo, Spot
from spotmap.resolver.locks import CellLocks
from spotmap.store.base import SpotStore

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_M = 200.0


class SpotResolver:
    def __init__(
        self,
        store: SpotStore,
        *,
        radius_m: float = DEFAULT_RADIUS_M,
        lock_cell_size_m: float = 500.0,
        locks: CellLocks | None = None,
    ):
        if float(radius_m) <= 0:
            raise ValueError("radius_m must be > 0")
        self._store = store
        self._radius_m = float(radius_m)
        self._locks = locks or CellLocks(Grid(lock_cell_size_m))

    @classmethod
    def from_settings(cls, store: SpotStore, settings: Settings) -> "SpotResolver":
        return cls(
            store,
            radius_m=settings.clustering.radius_m,
            lock_cell_size_m=settings.clustering.lock_cell_size_m,
        )

    @property
    def radius_m(self) -> float:
        return self._radius_m

    def resolve(self, coordinate: Coordinate, creator_id: int, *, deadline: Deadline | None = None) -> int:
        """Return the id of the spot this coordinate belongs to, creating one if needed."""
        return self.resolve_spot(coordinate, creator_id, deadline=deadline).spot_id

    def _nearest(self, coordinate: Coordinate) -> Spot | None:
        candidates = self._store.find_spots_within(coordinate, self._radius_m)
        if not candidates:
            return None
        spot, distance = min(candidates, key=lambda c: (c[1], c[0].spot_id))
        logger.info(
            "Reusing spot %s for (%s, %s): %.1f m away (%d candidates)",
            spot.spot_id, coordinate.lat, coordinate.lng, distance, len(candidates),
        )
        return spot

    def resolve_spot(self, coordinate: Coordinate, creator_id: int, *, deadline: Deadline | None = None) -> Spot:
        if deadline is not None:
            deadline.check("spot resolution")

        with self._locks.hold(coordinate, self._radius_m, deadline=deadline):
            spot = self._nearest(coordinate)
            if spot is not None:
                return spot

            # Nothing has been written yet; a late caller gets a clean failure instead of a spot.
            if deadline is not None:
                deadline.check("spot creation")
            spot = self._store.insert_spot(coordinate, creator_id)
            logger.info("Created spot %s at (%s, %s) for user %s", spot.spot_id, coordinate.lat, coordinate.lng, creator_id)
            return spot

    def attach_photo(self, photo: NewPhoto, *, deadline: Deadline | None = None) -> Photo:
        """Store `photo` on its nearest spot, or on a new spot anchored at the photo.

        A new spot and its first photo are written in one store transaction, so a
        rejected photo never leaves an empty spot behind.
        """
        coordinate = photo.coordinate
        if deadline is not None:
            deadline.check("spot resolution")

        with self._locks.hold(coordinate, self._radius_m, deadline=deadline):
            spot = self._nearest(coordinate)
            if deadline is not None:
                deadline.check("photo write")
            if spot is not None:
                return self._store.add_photo(spot.spot_id, photo)

            stored = self._store.insert_spot_with_photo(coordinate, photo.user_id, photo)
            logger.info(
                "Created spot %s at (%s, %s) for user %s",
                stored.spot_id, coordinate.lat, coordinate.lng, photo.user_id,
            )
            return stored
