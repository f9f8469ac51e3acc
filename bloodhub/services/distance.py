from __future__ import annotations

import math
from dataclasses import dataclass
from numbers import Real
from typing import Any

from .errors import InvalidCoordinateError

EARTH_RADIUS_KM = 6371.0
KM_TO_MILES = 0.621371

# (upper bound in km, category); the first bound the distance falls under wins.
DISTANCE_CATEGORIES = (
    (5.0, "VERY_CLOSE"),
    (15.0, "CLOSE"),
    (30.0, "MODERATE"),
    (50.0, "FAR"),
)
FARTHEST_CATEGORY = "VERY_FAR"


@dataclass(frozen=True)
class Distance:
    kilometers: float
    miles: float
    meters: float

    def to_dict(self) -> dict[str, float]:
        return {"kilometers": self.kilometers, "miles": self.miles, "meters": self.meters}


def _read(point: Any, key: str) -> Any:
    if isinstance(point, dict):
        return point.get(key)
    return getattr(point, key, None)


def extract_lat_lon(point: Any) -> tuple[Any, Any]:
    """Return ``(lat, lon)`` from a lat/lon pair or a GeoJSON ``[lon, lat]`` point."""
    if point is None:
        raise InvalidCoordinateError("Location coordinates are missing")
    coordinates = _read(point, "coordinates")
    if isinstance(coordinates, (list, tuple)):
        if len(coordinates) < 2:
            raise InvalidCoordinateError("GeoJSON coordinates must be [longitude, latitude]")
        return coordinates[1], coordinates[0]
    return _read(point, "latitude"), _read(point, "longitude")


def is_valid_coordinate(lat: Any, lon: Any) -> bool:
    if isinstance(lat, bool) or isinstance(lon, bool):
        return False
    if not isinstance(lat, Real) or not isinstance(lon, Real):
        return False
    if math.isnan(lat) or math.isnan(lon):
        return False
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return False
    # (0, 0) is the "never set" default, not a real location.
    return not (lat == 0 and lon == 0)


def calculate_distance(point_a: Any, point_b: Any) -> Distance:
    lat1, lon1 = extract_lat_lon(point_a)
    lat2, lon2 = extract_lat_lon(point_b)
    if not is_valid_coordinate(lat1, lon1) or not is_valid_coordinate(lat2, lon2):
        raise InvalidCoordinateError("Invalid coordinates provided")

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push near-antipodal points a hair past 1.
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    km = EARTH_RADIUS_KM * c

    return Distance(
        kilometers=round(km, 2),
        miles=round(km * KM_TO_MILES, 2),
        meters=round(km * 1000, 2),
    )


def format_distance(distance: Distance) -> str:
    if distance.kilometers < 1:
        return f"{distance.meters} meters"
    if distance.kilometers < 10:
        return f"{distance.kilometers} km"
    return f"{distance.kilometers} km ({distance.miles} miles)"


def get_distance_category(kilometers: float) -> str:
    for upper_bound, category in DISTANCE_CATEGORIES:
        if kilometers < upper_bound:
            return category
    return FARTHEST_CATEGORY
