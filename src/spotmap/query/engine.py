from __future__ import annotations

# Map query pipeline:
# - validate the viewport (all four bounds required) before any store access
# - let the store aggregate photos that pass every filter dimension, per spot in view
# - classify pins, rank by matching-photo count, cut to a hard prefix of `max_results`
#
# The engine is read-only and keeps no state between calls.

import logging
import time
from datetime import timedelta

from spotmap.config.settings import Settings
from spotmap.core.deadline import Deadline
from spotmap.core.time import local_now
from spotmap.domain.models import BoundingBox, SpotAggregate, SpotFilters, SpotSummary
from spotmap.errors import InputError, SpotNotFound
from spotmap.scoring.pins import classify_pin_tier
from spotmap.store.base import SpotStore

logger = logging.getLogger(__name__)

MAX_SPOTS_LIMIT = 50


def rank_key(aggregate: SpotAggregate) -> tuple[int, int]:
    # Most photos first; equal counts fall back to the older (lower id) spot.
    return (-aggregate.photo_count, aggregate.spot.spot_id)


def to_summary(aggregate: SpotAggregate) -> SpotSummary:
    return SpotSummary(
        spot_id=aggregate.spot.spot_id,
        latitude=aggregate.spot.coordinate.lat,
        longitude=aggregate.spot.coordinate.lng,
        title=None,
        pin_tier=classify_pin_tier(aggregate.photo_count),
        thumbnail_ref=aggregate.thumbnail_ref,
        photo_count=aggregate.photo_count,
    )


class SpotQueryEngine:
    def __init__(
        self,
        store: SpotStore,
        *,
        max_results: int = MAX_SPOTS_LIMIT,
        recency_window_hours: float | None = None,
        timezone: str = "UTC",
    ):
        if int(max_results) < 1:
            raise ValueError("max_results must be >= 1")
        self._store = store
        self._max_results = int(max_results)
        self._recency_window = timedelta(hours=recency_window_hours) if recency_window_hours else None
        self._timezone = timezone

    @classmethod
    def from_settings(cls, store: SpotStore, settings: Settings) -> "SpotQueryEngine":
        return cls(
            store,
            max_results=settings.query.max_results,
            recency_window_hours=settings.query.recency_window_hours,
            timezone=settings.app.timezone,
        )

    def query(
        self,
        bbox: BoundingBox | None,
        filters: SpotFilters | None = None,
        *,
        deadline: Deadline | None = None,
    ) -> list[SpotSummary]:
        """Return ranked spot summaries inside `bbox`, at most `max_results` of them."""
        if bbox is None:
            raise InputError("bounding box is required")
        filters = filters or SpotFilters()
        if deadline is not None:
            deadline.check("spot query")

        t0 = time.monotonic()
        shot_after = local_now(self._timezone) - self._recency_window if self._recency_window else None
        aggregates = self._store.aggregate_spots(bbox.to_box(), filters, shot_after=shot_after)
        if deadline is not None:
            deadline.check("spot query")

        ranked = sorted((a for a in aggregates if a.photo_count > 0), key=rank_key)
        results = [to_summary(a) for a in ranked[: self._max_results]]

        logger.info(
            "Spot query north=%s south=%s east=%s west=%s filtered=%s: %d matched, %d returned in %d ms",
            bbox.north, bbox.south, bbox.east, bbox.west, not filters.is_empty,
            len(ranked), len(results), int((time.monotonic() - t0) * 1000),
        )
        return results

    def spot_photo_ids(self, spot_id: int) -> list[int]:
        """Photo ids attached to a spot, oldest shot first."""
        if self._store.get_spot(spot_id) is None:
            raise SpotNotFound(spot_id)
        photo_ids = self._store.list_photo_ids(spot_id)
        logger.info("Found %d photos for spot %s", len(photo_ids), spot_id)
        return photo_ids
