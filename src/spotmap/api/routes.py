"""
API routes.

Endpoints:
- GET  `/api/v1/spots`: spots inside a map viewport, filtered and ranked.
- GET  `/api/v1/spots/{spot_id}/photos`: photo ids of one spot (oldest shot first).
- POST `/api/v1/photos`: attach a new photo to its nearest spot (or a new one).
- GET  `/api/health`: liveness probe.
"""

from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from fastapi import APIRouter, HTTPException, Query

from spotmap.config.settings import get_settings
from spotmap.core.deadline import Deadline, deadline_from_seconds
from spotmap.domain.models import BoundingBox, NewPhoto, PhotoIngested, SpotFilters, SpotSummary
from spotmap.errors import DeadlineExceeded, SpotNotFound, StoreUnavailable
from spotmap.ingest.photos import PhotoIngestor
from spotmap.query.engine import SpotQueryEngine
from spotmap.resolver.resolve import SpotResolver
from spotmap.store.factory import build_store

router = APIRouter()


@lru_cache
def _services() -> tuple[SpotQueryEngine, PhotoIngestor]:
    settings = get_settings()
    store = build_store(settings)
    resolver = SpotResolver.from_settings(store, settings)
    return SpotQueryEngine.from_settings(store, settings), PhotoIngestor(resolver)


def _request_deadline() -> Deadline | None:
    return deadline_from_seconds(get_settings().app.request_timeout_seconds)


def _split_values(values: list[str] | None) -> list[str]:
    # Accept both `months=8&months=12` and `months=8,12`.
    out: list[str] = []
    for value in values or []:
        out.extend(part.strip() for part in value.split(",") if part.strip())
    return out


@contextmanager
def _error_responses() -> Iterator[None]:
    try:
        yield
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)}) from e
    except SpotNotFound as e:
        raise HTTPException(status_code=404, detail={"code": "SPOT_NOT_FOUND", "message": str(e)}) from e
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail={"code": "STORE_UNAVAILABLE", "message": str(e)}) from e
    except DeadlineExceeded as e:
        raise HTTPException(status_code=504, detail={"code": "DEADLINE_EXCEEDED", "message": str(e)}) from e


@router.get("/api/health")
def get_health() -> dict:
    return {"status": "ok"}


@router.get("/api/v1/spots", response_model=list[SpotSummary])
def get_spots(
    north: str | None = None,
    south: str | None = None,
    east: str | None = None,
    west: str | None = None,
    subject_categories: list[str] | None = Query(default=None),
    months: list[str] | None = Query(default=None),
    times_of_day: list[str] | None = Query(default=None),
    weathers: list[str] | None = Query(default=None),
) -> list[SpotSummary]:
    """Return up to 50 spot pins inside the viewport, most photographed first."""
    engine, _ = _services()
    with _error_responses():
        bbox = BoundingBox.from_bounds(north=north, south=south, east=east, west=west)
        filters = SpotFilters.build(
            category_ids=_split_values(subject_categories),
            months=_split_values(months),
            times_of_day=_split_values(times_of_day),
            weathers=_split_values(weathers),
        )
        return engine.query(bbox, filters, deadline=_request_deadline())


@router.get("/api/v1/spots/{spot_id}/photos", response_model=list[int])
def get_spot_photo_ids(spot_id: int) -> list[int]:
    engine, _ = _services()
    with _error_responses():
        return engine.spot_photo_ids(spot_id)


@router.post("/api/v1/photos", response_model=PhotoIngested, status_code=201)
def post_photo(photo: NewPhoto) -> PhotoIngested:
    """Resolve the photo's spot and store it; returns both ids."""
    _, ingestor = _services()
    with _error_responses():
        stored = ingestor.ingest(photo, deadline=_request_deadline())
    return PhotoIngested(photo_id=stored.photo_id, spot_id=stored.spot_id)
