from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from math import asin, cos, degrees, radians, sin, sqrt

"""
Geospatial helpers.

Coordinates are kept as `Decimal` so stored values never pick up binary float drift;
floats only appear inside the trigonometry of `haversine_m`. Stores pre-filter with
`bounding_box_around` and then apply the exact formula here.
"""

EARTH_RADIUS_M = 6_371_000


def to_decimal(value: Decimal | float | int | str) -> Decimal:
    """Convert a numeric value to Decimal via its shortest repr (no binary expansion)."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a coordinate value")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"not a decimal number: {value!r}") from e


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""

    lat: Decimal
    lng: Decimal

    def __post_init__(self) -> None:
        lat = to_decimal(self.lat)
        lng = to_decimal(self.lng)
        if not lat.is_finite() or not lng.is_finite():
            raise ValueError("coordinate values must be finite")
        if not (-90 <= lat <= 90):
            raise ValueError(f"latitude out of range: {lat}")
        if not (-180 <= lng <= 180):
            raise ValueError(f"longitude out of range: {lng}")
        object.__setattr__(self, "lat", lat)
        object.__setattr__(self, "lng", lng)


@dataclass(frozen=True)
class Box:
    """A south/north/west/east box in decimal degrees.

    `west > east` means the box crosses the antimeridian.
    """

    south: Decimal
    north: Decimal
    west: Decimal
    east: Decimal

    @property
    def wraps(self) -> bool:
        return self.west > self.east

    def contains(self, c: Coordinate) -> bool:
        if not (self.south <= c.lat <= self.north):
            return False
        if self.wraps:
            return c.lng >= self.west or c.lng <= self.east
        return self.west <= c.lng <= self.east


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Compute great-circle distance in meters between two coordinates."""
    lat1 = radians(float(a.lat))
    lon1 = radians(float(a.lng))
    lat2 = radians(float(b.lat))
    lon2 = radians(float(b.lng))

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push h a hair above 1 for antipodal points.
    return 2 * EARTH_RADIUS_M * asin(sqrt(min(1.0, h)))


def bounding_box_around(center: Coordinate, radius_m: float, *, pad: float = 1.01) -> Box:
    """Return a box that fully contains the `radius_m` circle around `center`.

    The box is padded slightly so points sitting exactly on the circle are never
    dropped by the pre-filter; callers must still apply `haversine_m`.
    """
    angular = (float(radius_m) * pad + 1.0) / EARTH_RADIUS_M
    lat = float(center.lat)
    lng = float(center.lng)
    dlat = degrees(angular)

    south = max(-90.0, lat - dlat)
    north = min(90.0, lat + dlat)
    cos_lat = cos(radians(lat))
    if north >= 90.0 or south <= -90.0 or sin(angular) >= cos_lat:
        # The circle touches a pole: every longitude is in range.
        return Box(south=to_decimal(south), north=to_decimal(north), west=Decimal(-180), east=Decimal(180))

    dlng = degrees(asin(sin(angular) / cos_lat))
    west = lng - dlng
    east = lng + dlng
    if west < -180.0:
        west += 360.0
    if east > 180.0:
        east -= 360.0
    return Box(south=to_decimal(south), north=to_decimal(north), west=to_decimal(west), east=to_decimal(east))
