"""
Domain models.

These types represent the stable "contract" between layers:
- stored entities (`Spot`, `Photo`) as frozen dataclasses, shared by every store
- validated inputs (`BoundingBox`, `SpotFilters`, `NewPhoto`) as Pydantic models
- the map query output (`SpotSummary`), serialized with the camelCase keys map clients expect

Keeping these in one place helps:
- validation (reject bad inputs before a store is touched),
- consistent filter semantics between the in-memory and SQL stores,
- consistent JSON output across CLI/API.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
    field_validator,
    model_validator,
)

from spotmap.core.geo import Box, Coordinate
from spotmap.errors import InputError

# Decimals stay exact in Python and become plain JSON numbers on the wire.
JsonDecimal = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

PinTier = Literal["Red", "Orange", "Yellow", "Green"]


@dataclass(frozen=True)
class Spot:
    """A clustering anchor; its coordinate is the first photo's and never moves."""

    spot_id: int
    coordinate: Coordinate
    created_by: int
    created_at: datetime


@dataclass(frozen=True)
class Photo:
    photo_id: int
    spot_id: int
    user_id: int
    object_key: str
    title: str
    shot_at: datetime | None
    weather: str | None
    time_of_day: str | None
    category_ids: frozenset[int]
    created_at: datetime


@dataclass(frozen=True)
class SpotAggregate:
    """One spot with the photos that matched a query's filters folded in."""

    spot: Spot
    photo_count: int
    thumbnail_ref: str | None


class BoundingBox(BaseModel):
    """Map viewport bounds in decimal degrees. All four bounds are required."""

    model_config = ConfigDict(frozen=True)

    north: Decimal = Field(..., ge=-90, le=90)
    south: Decimal = Field(..., ge=-90, le=90)
    east: Decimal = Field(..., ge=-180, le=180)
    west: Decimal = Field(..., ge=-180, le=180)

    @model_validator(mode="after")
    def _validate_order(self) -> "BoundingBox":
        if self.south > self.north:
            raise ValueError("south must not be greater than north")
        return self

    @classmethod
    def from_bounds(cls, *, north: Any, south: Any, east: Any, west: Any) -> "BoundingBox":
        """Build a box from raw bounds, raising `InputError` for missing/malformed values."""
        raw = {"north": north, "south": south, "east": east, "west": west}
        missing = sorted(k for k, v in raw.items() if v is None or (isinstance(v, str) and not v.strip()))
        if missing:
            raise InputError(f"missing bounds: {', '.join(missing)}")
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise InputError(f"invalid bounds: {e.errors(include_url=False)}") from e

    def to_box(self) -> Box:
        # west > east is a viewport crossing the antimeridian.
        return Box(south=self.south, north=self.north, west=self.west, east=self.east)


class SpotFilters(BaseModel):
    """Optional photo filters. Empty dimension = unrestricted; values within one dimension are OR'd."""

    model_config = ConfigDict(frozen=True)

    category_ids: frozenset[int] = frozenset()
    months: frozenset[Annotated[int, Field(ge=1, le=12)]] = frozenset()
    times_of_day: frozenset[str] = frozenset()
    weathers: frozenset[str] = frozenset()

    @field_validator("category_ids", "months", "times_of_day", "weathers", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return () if value is None else value

    @classmethod
    def build(cls, **dimensions: Any) -> "SpotFilters":
        try:
            return cls.model_validate(dimensions)
        except ValidationError as e:
            raise InputError(f"invalid filters: {e.errors(include_url=False)}") from e

    @property
    def is_empty(self) -> bool:
        return not (self.category_ids or self.months or self.times_of_day or self.weathers)

    def matches(self, photo: Photo, *, shot_after: datetime | None = None) -> bool:
        if shot_after is not None and (photo.shot_at is None or photo.shot_at < shot_after):
            return False
        if self.category_ids and not (self.category_ids & photo.category_ids):
            return False
        if self.months and (photo.shot_at is None or photo.shot_at.month not in self.months):
            return False
        if self.times_of_day and photo.time_of_day not in self.times_of_day:
            return False
        if self.weathers and photo.weather not in self.weathers:
            return False
        return True


class NewPhoto(BaseModel):
    """A photo submission as handed over by the ingestion workflow."""

    latitude: Decimal = Field(..., ge=-90, le=90)
    longitude: Decimal = Field(..., ge=-180, le=180)
    user_id: int
    object_key: str = Field(..., min_length=1, max_length=255)
    title: str = Field("", max_length=20)
    shot_at: datetime | None = None
    weather: str | None = Field(default=None, max_length=50)
    time_of_day: str | None = Field(default=None, max_length=20)
    category_ids: frozenset[int] = frozenset()

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.latitude, lng=self.longitude)


class SpotSummary(BaseModel):
    """One map pin. `title` is reserved and currently always null."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    spot_id: int = Field(..., alias="spotId")
    latitude: JsonDecimal
    longitude: JsonDecimal
    title: str | None = None
    pin_tier: PinTier = Field(..., alias="pinTier")
    thumbnail_ref: str | None = Field(default=None, alias="thumbnailRef")
    photo_count: int = Field(..., ge=1, alias="photoCount")


class PhotoIngested(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    photo_id: int = Field(..., alias="photoId")
    spot_id: int = Field(..., alias="spotId")
