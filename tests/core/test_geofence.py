"""Unit tests for geofence matching.

Pure function tests - no mocks needed, fast execution.
"""

import pytest

from src.core.geo import KM_PER_DEGREE_LAT, Coordinate
from src.core.geofence import (
    MAX_RADIUS_METERS,
    MIN_RADIUS_METERS,
    LocatedEntity,
    clamp_radius,
    find_within,
)


CENTER = Coordinate(37.7749, -122.4194)


def user_at(user_id: str, meters_north: float) -> LocatedEntity:
    lat = CENTER.latitude + (meters_north / 1000) / KM_PER_DEGREE_LAT
    return LocatedEntity(id=user_id, coordinate=Coordinate(lat, CENTER.longitude))


class TestClampRadius:
    """Tests for clamp_radius()."""

    @pytest.mark.parametrize("requested,expected", [
        (50, MIN_RADIUS_METERS),
        (100, 100),
        (1_000, 1_000),
        (50_000, 50_000),
        (50_000_001, MAX_RADIUS_METERS),
    ])
    def test_clamps_into_range(self, requested, expected):
        assert clamp_radius(requested) == expected


class TestFindWithin:
    """Tests for find_within()."""

    def test_returns_matches_nearest_first(self):
        population = [user_at("c", 800), user_at("a", 100), user_at("b", 400)]

        result = find_within(CENTER, 1_000, population, limit=10)

        assert [m.entity.id for m in result.matches] == ["a", "b", "c"]
        assert result.matches[0].distance_km == pytest.approx(0.1, rel=1e-6)

    def test_excludes_outside_radius(self):
        population = [user_at("in", 900), user_at("out", 1_100)]

        result = find_within(CENTER, 1_000, population, limit=10)

        assert [m.entity.id for m in result.matches] == ["in"]

    def test_excludes_requester(self):
        population = [user_at("me", 0), user_at("neighbor", 200)]

        result = find_within(CENTER, 1_000, population, limit=10, exclude_id="me")

        assert [m.entity.id for m in result.matches] == ["neighbor"]

    def test_limit_applies_after_sorting(self):
        population = [user_at(f"u{i}", 50 * (10 - i)) for i in range(10)]

        result = find_within(CENTER, 1_000, population, limit=3)

        assert [m.entity.id for m in result.matches] == ["u9", "u8", "u7"]

    def test_oversized_radius_is_clamped(self):
        result = find_within(CENTER, 50_000_001, [user_at("far", 60_000)], limit=10)

        assert result.applied_radius_meters == 50_000
        assert result.requested_radius_meters == 50_000_001
        assert result.clamped is True
        assert result.matches == ()

    def test_tiny_radius_raised_to_minimum(self):
        result = find_within(CENTER, 10, [user_at("close", 90)], limit=10)

        assert result.applied_radius_meters == MIN_RADIUS_METERS
        assert [m.entity.id for m in result.matches] == ["close"]

    def test_in_range_radius_not_clamped(self):
        result = find_within(CENTER, 1_000, [], limit=10)

        assert result.clamped is False
        assert result.matches == ()

    def test_larger_radius_is_superset(self):
        population = [user_at(f"u{i}", i * 300) for i in range(1, 20)]

        small = {m.entity.id for m in find_within(CENTER, 1_000, population, limit=100).matches}
        large = {m.entity.id for m in find_within(CENTER, 3_000, population, limit=100).matches}

        assert small <= large
        assert len(large) > len(small)

    def test_payload_returned_untouched(self):
        payload = {"name": "Alice"}
        entity = LocatedEntity(id="alice", coordinate=CENTER, payload=payload)

        result = find_within(CENTER, 500, [entity], limit=1)

        assert result.matches[0].entity.payload is payload
