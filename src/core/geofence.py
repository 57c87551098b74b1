"""Geofence matching - Pure functions.

Finds which located entities (users, alerts) fall within a radius of a
center point, nearest first. All functions are pure with no side effects.
"""

from dataclasses import dataclass
from typing import Any

from src.core.geo import Coordinate, calculate_distance


MIN_RADIUS_METERS = 100.0
MAX_RADIUS_METERS = 50_000.0


@dataclass(frozen=True)
class LocatedEntity:
    """Anything with an ID and a location.

    Attributes:
        id: Entity ID (user ID for people, alert ID for alerts)
        coordinate: Entity location
        payload: The underlying object, returned untouched in matches
    """
    id: str
    coordinate: Coordinate
    payload: Any = None


@dataclass(frozen=True)
class MatchResult:
    """A matched entity and its distance from the center."""
    entity: LocatedEntity
    distance_km: float


@dataclass(frozen=True)
class GeofenceResult:
    """Result of a radius search.

    Attributes:
        matches: Matches ordered nearest first
        requested_radius_meters: Radius the caller asked for
        applied_radius_meters: Radius actually used after clamping
    """
    matches: tuple[MatchResult, ...]
    requested_radius_meters: float
    applied_radius_meters: float

    @property
    def clamped(self) -> bool:
        """Returns True if the requested radius was outside the allowed range."""
        return self.requested_radius_meters != self.applied_radius_meters


def clamp_radius(
    radius_meters: float,
    min_radius: float = MIN_RADIUS_METERS,
    max_radius: float = MAX_RADIUS_METERS,
) -> float:
    """Clamp a radius into the allowed range.

    Pure function.
    """
    return min(max(radius_meters, min_radius), max_radius)


def find_within(
    center: Coordinate,
    radius_meters: float,
    population: list[LocatedEntity],
    limit: int,
    exclude_id: str | None = None,
    min_radius: float = MIN_RADIUS_METERS,
    max_radius: float = MAX_RADIUS_METERS,
) -> GeofenceResult:
    """Find entities within a radius of center, nearest first.

    Pure function.

    Args:
        center: Search center
        radius_meters: Requested radius; clamped to [min_radius, max_radius]
        population: Entities to search
        limit: Maximum number of matches to return
        exclude_id: Entity to drop before filtering (the requester)
        min_radius: Lower radius bound in meters
        max_radius: Upper radius bound in meters

    Returns:
        GeofenceResult with matches and the applied radius
    """
    applied = clamp_radius(radius_meters, min_radius, max_radius)

    matches = []
    for entity in population:
        if exclude_id is not None and entity.id == exclude_id:
            continue
        distance_km = calculate_distance(center, entity.coordinate)
        if distance_km * 1000 <= applied:
            matches.append(MatchResult(entity=entity, distance_km=distance_km))

    matches.sort(key=lambda m: (m.distance_km, m.entity.id))

    return GeofenceResult(
        matches=tuple(matches[:max(0, limit)]),
        requested_radius_meters=radius_meters,
        applied_radius_meters=applied,
    )
