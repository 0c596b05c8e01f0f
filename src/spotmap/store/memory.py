"""
In-process spot store.

Backed by a `SpatialGridIndex` for radius and viewport lookups. A single lock guards
all state, which also makes every insert atomic. Useful for demos, the CLI and tests.
"""

from __future__ import annotations

import itertools
import threading
from collections import defaultdict
from datetime import datetime

from spotmap.core.geo import Box, Coordinate
from spotmap.core.spatial_index import SpatialGridIndex
from spotmap.core.time import local_now, to_local_naive
from spotmap.domain.models import NewPhoto, Photo, Spot, SpotAggregate, SpotFilters
from spotmap.store.base import thumbnail_rank


class MemorySpotStore:
    def __init__(self, *, cell_size_m: float = 500.0, timezone: str = "UTC"):
        self._lock = threading.RLock()
        self._spots: dict[int, Spot] = {}
        self._index: SpatialGridIndex[Spot] = SpatialGridIndex(
            get_coordinate=lambda s: s.coordinate, cell_size_m=cell_size_m
        )
        self._photos: dict[int, list[Photo]] = defaultdict(list)
        self._object_keys: set[str] = set()
        self._spot_ids = itertools.count(1)
        self._photo_ids = itertools.count(1)
        self._timezone = timezone

    def insert_spot(self, coordinate: Coordinate, created_by: int) -> Spot:
        with self._lock:
            spot = Spot(
                spot_id=next(self._spot_ids),
                coordinate=coordinate,
                created_by=created_by,
                created_at=local_now(self._timezone),
            )
            self._spots[spot.spot_id] = spot
            self._index.add(spot)
            return spot

    def get_spot(self, spot_id: int) -> Spot | None:
        with self._lock:
            return self._spots.get(spot_id)

    def find_spots_within(self, center: Coordinate, radius_m: float) -> list[tuple[Spot, float]]:
        with self._lock:
            return self._index.query_within(center, radius_m)

    def aggregate_spots(
        self,
        box: Box,
        filters: SpotFilters,
        *,
        shot_after: datetime | None = None,
    ) -> list[SpotAggregate]:
        with self._lock:
            spots = self._index.query_box(box)
            out: list[SpotAggregate] = []
            for spot in spots:
                matching = [p for p in self._photos.get(spot.spot_id, ()) if filters.matches(p, shot_after=shot_after)]
                if not matching:
                    continue
                thumb = max(matching, key=thumbnail_rank)
                out.append(SpotAggregate(spot=spot, photo_count=len(matching), thumbnail_ref=thumb.object_key))
            return out

    def add_photo(self, spot_id: int, photo: NewPhoto) -> Photo:
        with self._lock:
            if spot_id not in self._spots:
                raise ValueError(f"cannot attach photo to unknown spot {spot_id}")
            if photo.object_key in self._object_keys:
                raise ValueError(f"object_key already used: {photo.object_key}")
            stored = Photo(
                photo_id=next(self._photo_ids),
                spot_id=spot_id,
                user_id=photo.user_id,
                object_key=photo.object_key,
                title=photo.title,
                shot_at=to_local_naive(photo.shot_at, self._timezone) if photo.shot_at else None,
                weather=photo.weather,
                time_of_day=photo.time_of_day,
                category_ids=frozenset(photo.category_ids),
                created_at=local_now(self._timezone),
            )
            self._photos[spot_id].append(stored)
            self._object_keys.add(stored.object_key)
            return stored

    def insert_spot_with_photo(self, coordinate: Coordinate, created_by: int, photo: NewPhoto) -> Photo:
        with self._lock:
            # Validate before the spot exists so a rejected photo leaves no anchor behind.
            if photo.object_key in self._object_keys:
                raise ValueError(f"object_key already used: {photo.object_key}")
            spot = self.insert_spot(coordinate, created_by)
            return self.add_photo(spot.spot_id, photo)

    def list_photo_ids(self, spot_id: int) -> list[int]:
        with self._lock:
            photos = sorted(
                self._photos.get(spot_id, ()),
                key=lambda p: (p.shot_at is None, p.shot_at or datetime.min, p.photo_id),
            )
            return [p.photo_id for p in photos]
