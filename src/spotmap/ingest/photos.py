"""
Photo ingestion.

A submission is resolved to a spot and written in the same locked step: either the
photo joins an existing spot, or a new spot is created together with it. If anything
fails (duplicate object key, store down, deadline passed) nothing is written.
"""

from __future__ import annotations

import logging

from spotmap.core.deadline import Deadline
from spotmap.domain.models import NewPhoto, Photo
from spotmap.resolver.resolve import SpotResolver

logger = logging.getLogger(__name__)


class PhotoIngestor:
    def __init__(self, resolver: SpotResolver):
        self._resolver = resolver

    def ingest(self, photo: NewPhoto, *, deadline: Deadline | None = None) -> Photo:
        stored = self._resolver.attach_photo(photo, deadline=deadline)
        logger.info("Stored photo %s on spot %s (user %s)", stored.photo_id, stored.spot_id, photo.user_id)
        return stored
