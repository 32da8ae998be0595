from __future__ import annotations
from dataclasses import dataclass
from math import asin, cos, degrees, radians, sin, sqrt
from typing import Literal

from geocell.core.errors import RangeError

"""
Geospatial value types and distance helpers.

We keep a tiny geometry layer here (points, lat/lon boxes, haversine) so the cell
codec, the planner and the search orchestrator share one vocabulary without
pulling in heavier GIS dependencies.
"""

EARTH_RADIUS_M = 6_371_000.0
METERS_PER_MILE = 1609.344

DistanceUnit = Literal["meters", "kilometers", "miles"]

_METERS_PER_UNIT: dict[str, float] = {
    "meters": 1.0,
    "kilometers": 1000.0,
    "miles": METERS_PER_MILE,
}


def to_meters(value: float, unit: DistanceUnit) -> float:
    """Convert a distance expressed in `unit` to meters."""
    try:
        return float(value) * _METERS_PER_UNIT[unit]
    except KeyError:
        raise RangeError("unit", unit, f"unknown distance unit: {unit!r}") from None


def from_meters(value_m: float, unit: DistanceUnit) -> float:
    """Convert meters to `unit`."""
    try:
        return float(value_m) / _METERS_PER_UNIT[unit]
    except KeyError:
        raise RangeError("unit", unit, f"unknown distance unit: {unit!r}") from None


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise RangeError("latitude", self.lat, f"latitude must be within [-90, 90], got {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise RangeError("longitude", self.lon, f"longitude must be within [-180, 180], got {self.lon}")

    def distance_to(self, other: GeoPoint, unit: DistanceUnit = "kilometers") -> float:
        return from_meters(haversine_m(self, other), unit)


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Compute great-circle distance in meters between two points."""
    lat1 = radians(a.lat)
    lon1 = radians(a.lon)
    lat2 = radians(b.lat)
    lon2 = radians(b.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * asin(min(1.0, sqrt(h)))


def _lon_intervals(min_lon: float, max_lon: float) -> list[tuple[float, float]]:
    if min_lon <= max_lon:
        return [(min_lon, max_lon)]
    return [(min_lon, 180.0), (-180.0, max_lon)]


@dataclass(frozen=True)
class GeoBounds:
    """A latitude/longitude rectangle.

    `min_lon > max_lon` means the box crosses the antimeridian: it covers
    `[min_lon, 180]` plus `[-180, max_lon]`.
    """

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.min_lat <= self.max_lat <= 90.0:
            raise RangeError(
                "latitude", (self.min_lat, self.max_lat), f"invalid latitude range [{self.min_lat}, {self.max_lat}]"
            )
        for name, value in (("min_lon", self.min_lon), ("max_lon", self.max_lon)):
            if not -180.0 <= value <= 180.0:
                raise RangeError(name, value, f"{name} must be within [-180, 180], got {value}")

    @property
    def wraps(self) -> bool:
        return self.min_lon > self.max_lon

    @property
    def full_longitude(self) -> bool:
        return self.min_lon == -180.0 and self.max_lon == 180.0

    @property
    def includes_pole(self) -> bool:
        return self.max_lat >= 90.0 or self.min_lat <= -90.0

    @property
    def lon_span(self) -> float:
        """Longitude extent in degrees (wrap aware)."""
        if self.wraps:
            return 360.0 - (self.min_lon - self.max_lon)
        return self.max_lon - self.min_lon

    @property
    def center(self) -> GeoPoint:
        lat = (self.min_lat + self.max_lat) / 2
        lon = self.min_lon + self.lon_span / 2
        if lon > 180.0:
            lon -= 360.0
        return GeoPoint(lat, lon)

    def contains_longitude(self, lon: float) -> bool:
        # +180 and -180 are the same meridian.
        candidates = (lon, -180.0) if lon == 180.0 else (lon, 180.0) if lon == -180.0 else (lon,)
        for candidate in candidates:
            for lo, hi in _lon_intervals(self.min_lon, self.max_lon):
                if lo <= candidate <= hi:
                    return True
        return False

    def contains(self, point: GeoPoint) -> bool:
        if not self.min_lat <= point.lat <= self.max_lat:
            return False
        # Every longitude meets at a pole.
        if abs(point.lat) == 90.0:
            return True
        return self.contains_longitude(point.lon)

    def intersects(self, other: GeoBounds) -> bool:
        if self.max_lat < other.min_lat or other.max_lat < self.min_lat:
            return False
        for a_lo, a_hi in _lon_intervals(self.min_lon, self.max_lon):
            for b_lo, b_hi in _lon_intervals(other.min_lon, other.max_lon):
                if a_lo <= b_hi and b_lo <= a_hi:
                    return True
        # Boxes touching the same pole overlap regardless of longitude.
        if self.max_lat >= 90.0 and other.max_lat >= 90.0:
            return True
        return self.min_lat <= -90.0 and other.min_lat <= -90.0

    def split_at_dateline(self) -> list[GeoBounds]:
        """Return one box, or the western and eastern halves of a wrapping box."""
        if not self.wraps:
            return [self]
        return [
            GeoBounds(self.min_lat, self.max_lat, self.min_lon, 180.0),
            GeoBounds(self.min_lat, self.max_lat, -180.0, self.max_lon),
        ]

    @classmethod
    def around(cls, center: GeoPoint, distance: float, unit: DistanceUnit = "kilometers") -> GeoBounds:
        """Smallest lat/lon box containing the spherical cap of `distance` around `center`."""
        distance_m = to_meters(distance, unit)
        if distance_m < 0:
            raise RangeError("distance", distance, f"distance must be >= 0, got {distance}")
        angular = distance_m / EARTH_RADIUS_M
        lat_offset = degrees(angular)
        min_lat = center.lat - lat_offset
        max_lat = center.lat + lat_offset
        if max_lat >= 90.0 or min_lat <= -90.0:
            return cls(max(-90.0, min_lat), min(90.0, max_lat), -180.0, 180.0)

        ratio = sin(angular) / cos(radians(center.lat))
        if ratio >= 1.0:
            return cls(min_lat, max_lat, -180.0, 180.0)
        lon_offset = degrees(asin(ratio))
        if lon_offset >= 180.0:
            return cls(min_lat, max_lat, -180.0, 180.0)

        min_lon = center.lon - lon_offset
        max_lon = center.lon + lon_offset
        if min_lon < -180.0:
            min_lon += 360.0
        if max_lon > 180.0:
            max_lon -= 360.0
        return cls(min_lat, max_lat, min_lon, max_lon)
