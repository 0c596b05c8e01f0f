"""
Spot persistence contract.

Every store owns its own transaction boundary: `insert_spot`, `add_photo` and
`insert_spot_with_photo` either commit fully or leave nothing behind. Read methods
never return partial results on failure; they raise `StoreUnavailable` instead.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from spotmap.core.geo import Box, Coordinate
from spotmap.domain.models import NewPhoto, Photo, Spot, SpotAggregate, SpotFilters


class SpotStore(Protocol):
    def insert_spot(self, coordinate: Coordinate, created_by: int) -> Spot: ...

    def get_spot(self, spot_id: int) -> Spot | None: ...

    def find_spots_within(self, center: Coordinate, radius_m: float) -> list[tuple[Spot, float]]:
        """Return `(spot, distance_m)` for every spot with Haversine distance <= `radius_m`."""
        ...

    def aggregate_spots(
        self,
        box: Box,
        filters: SpotFilters,
        *,
        shot_after: datetime | None = None,
    ) -> list[SpotAggregate]:
        """Spots inside `box` with at least one matching photo, unordered."""
        ...

    def add_photo(self, spot_id: int, photo: NewPhoto) -> Photo: ...

    def insert_spot_with_photo(self, coordinate: Coordinate, created_by: int, photo: NewPhoto) -> Photo:
        """Create a spot anchored at `coordinate` together with its first photo, atomically."""
        ...

    def list_photo_ids(self, spot_id: int) -> list[int]:
        """Photo ids of a spot ordered by `shot_at` ascending (unknown shot times last)."""
        ...


def thumbnail_rank(photo: Photo) -> tuple[bool, datetime, int]:
    """`max()` key picking the thumbnail: latest `shot_at`, ties to the highest photo id."""
    return (photo.shot_at is not None, photo.shot_at or datetime.min, photo.photo_id)
