"""
Geographic points and geodesic distance (WGS-84 ellipsoid).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict

from geopy.distance import geodesic

from src.exceptions import InvalidArgument

_KM_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class GeoPoint:
    """A (latitude, longitude) pair in degrees, SRID 4326."""

    lat: float
    lng: float

    @classmethod
    def parse(cls, lat: Any, lng: Any) -> "GeoPoint":
        """Build a point from raw values, raising InvalidArgument when not a valid coordinate."""
        try:
            flat = float(lat)
            flng = float(lng)
        except (TypeError, ValueError):
            raise InvalidArgument("Coordinates must be numeric", context={"lat": lat, "lng": lng}) from None
        point = cls(flat, flng)
        if not point.is_valid():
            raise InvalidArgument("Coordinates out of range", context={"lat": lat, "lng": lng})
        return point

    def is_valid(self) -> bool:
        return (
            math.isfinite(self.lat)
            and math.isfinite(self.lng)
            and -90.0 <= self.lat <= 90.0
            and -180.0 <= self.lng <= 180.0
        )

    def as_tuple(self) -> tuple[float, float]:
        return (self.lat, self.lng)

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    def to_ewkt(self) -> str:
        # WKT axis order is (x=lng, y=lat)
        return f"SRID=4326;POINT({self.lng!r} {self.lat!r})"


def geodesic_distance_m(a: GeoPoint, b: GeoPoint) -> float:
    """Geodesic distance in meters on the WGS-84 ellipsoid."""
    return geodesic(a.as_tuple(), b.as_tuple()).meters


def round_km(distance_m: float) -> float:
    """Meters to kilometers, rounded half away from zero to 2 decimals (same as Postgres ROUND on numeric)."""
    km = Decimal(repr(distance_m)) / Decimal(1000)
    return float(km.quantize(_KM_QUANTUM, rounding=ROUND_HALF_UP))
