"""Geographic calculations - Pure functions.

This module provides distance and radius calculations between coordinates.
Computation functions are pure with no side effects and never raise; the
parse/validate helpers are for ingestion and raise InvalidInput.
"""

import math
from dataclasses import dataclass
from typing import Any

from src.core.errors import InvalidInput


# Earth's radius in kilometers
EARTH_RADIUS_KM = 6371.0

# Kilometers per degree of latitude (constant on a sphere)
KM_PER_DEGREE_LAT = math.pi * EARTH_RADIUS_KM / 180.0


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""
    latitude: float
    longitude: float

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class BoundingBox:
    """Geographic bounding box.

    Attributes:
        min_latitude: Southern boundary
        max_latitude: Northern boundary
        min_longitude: Western boundary
        max_longitude: Eastern boundary
    """
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float

    def contains(self, coordinate: Coordinate) -> bool:
        """Check if a point is within this bounding box."""
        return (
            self.min_latitude <= coordinate.latitude <= self.max_latitude
            and self.min_longitude <= coordinate.longitude <= self.max_longitude
        )


def calculate_distance(a: Coordinate, b: Coordinate) -> float:
    """Calculate distance between two points using Haversine formula.

    Pure function.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in kilometers
    """
    # Convert to radians
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    delta_lat = math.radians(b.latitude - a.latitude)
    delta_lon = math.radians(b.longitude - a.longitude)

    # Haversine formula
    h = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_KM * c


def is_within_radius(
    center: Coordinate,
    point: Coordinate,
    radius_meters: float,
) -> bool:
    """Check if a point is within a radius of a center point.

    Pure function.

    Args:
        center: Center point
        point: Point to check
        radius_meters: Radius in meters

    Returns:
        True if point is within radius (inclusive)
    """
    return calculate_distance(center, point) * 1000 <= radius_meters


def bounding_box_around(center: Coordinate, radius_meters: float) -> BoundingBox:
    """Build a box that fully contains the circle around center.

    Pure function. Only meant to bound store queries; callers still decide
    membership with is_within_radius. Near the poles the longitude span
    widens to the full range.

    Args:
        center: Center point
        radius_meters: Circle radius in meters

    Returns:
        Bounding box clamped to valid coordinate ranges
    """
    radius_km = radius_meters / 1000
    delta_lat = radius_km / KM_PER_DEGREE_LAT

    min_lat = max(-90.0, center.latitude - delta_lat)
    max_lat = min(90.0, center.latitude + delta_lat)

    cos_lat = math.cos(math.radians(max(abs(min_lat), abs(max_lat))))
    if cos_lat <= 1e-12:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    delta_lon = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
    min_lon = center.longitude - delta_lon
    max_lon = center.longitude + delta_lon

    # Circles crossing the antimeridian get the full longitude range
    if min_lon < -180.0 or max_lon > 180.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    return BoundingBox(
        min_latitude=min_lat,
        max_latitude=max_lat,
        min_longitude=min_lon,
        max_longitude=max_lon,
    )


def validate_coordinate(latitude: Any, longitude: Any) -> Coordinate | None:
    """Validate a latitude/longitude pair at ingestion.

    Both values absent means "no location" and returns None. A partial pair
    never persists.

    Args:
        latitude: Latitude value (may be None)
        longitude: Longitude value (may be None)

    Returns:
        Coordinate, or None if both values are absent

    Raises:
        InvalidInput: If only one value is present or either is out of range
    """
    if latitude is None and longitude is None:
        return None

    if latitude is None or longitude is None:
        raise InvalidInput("Coordinate requires both latitude and longitude")

    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Coordinate values must be numeric: {e}") from e

    if math.isnan(lat) or not -90 <= lat <= 90:
        raise InvalidInput(f"Latitude {latitude} out of range [-90, 90]")

    if math.isnan(lon) or not -180 <= lon <= 180:
        raise InvalidInput(f"Longitude {longitude} out of range [-180, 180]")

    return Coordinate(latitude=lat, longitude=lon)


def parse_coordinate(data: dict[str, Any] | None) -> Coordinate | None:
    """Parse a {"latitude": ..., "longitude": ...} mapping."""
    if not data:
        return None
    return validate_coordinate(data.get("latitude"), data.get("longitude"))
