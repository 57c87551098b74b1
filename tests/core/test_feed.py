"""Unit tests for non-ranked feed listings."""

from datetime import datetime, timedelta, timezone

import pytest

from src.core.errors import InvalidInput
from src.core.feed import (
    FEED_MODE_NEARBY,
    FEED_MODE_RANKED,
    chronological_page,
    following_page,
    nearby_page,
    resolve_feed_mode,
)
from src.core.geo import KM_PER_DEGREE_LAT, Coordinate
from src.core.ranking import CandidateItem, ViewerContext


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
HOME = Coordinate(40.0, -74.0)


def make_item(item_id, hours_old=1.0, km_away=None, author_id="author"):
    coordinate = None
    if km_away is not None:
        coordinate = Coordinate(HOME.latitude + km_away / KM_PER_DEGREE_LAT, HOME.longitude)
    return CandidateItem(
        id=item_id,
        author_id=author_id,
        created_at=NOW - timedelta(hours=hours_old),
        coordinate=coordinate,
    )


def ids(page):
    return [s.item.id for s in page.items]


class TestResolveFeedMode:
    """Tests for resolve_feed_mode()."""

    def test_empty_uses_default(self):
        assert resolve_feed_mode(None) == FEED_MODE_RANKED
        assert resolve_feed_mode("", default=FEED_MODE_NEARBY) == FEED_MODE_NEARBY

    def test_normalizes_case(self):
        assert resolve_feed_mode(" Nearby ") == FEED_MODE_NEARBY

    def test_unknown_mode_rejected(self):
        with pytest.raises(InvalidInput):
            resolve_feed_mode("trending")


class TestChronologicalPage:
    """Tests for chronological_page() and following_page()."""

    def test_newest_first(self):
        items = [make_item("old", 10), make_item("new", 1), make_item("mid", 5)]
        page = chronological_page(ViewerContext("v"), items, limit=10, now=NOW)

        assert ids(page) == ["new", "mid", "old"]
        assert all(s.score == 0.0 for s in page.items)

    def test_drops_expired(self):
        items = [make_item("new", 1), make_item("ancient", 24 * 40)]
        page = chronological_page(ViewerContext("v"), items, limit=10, now=NOW)

        assert ids(page) == ["new"]

    def test_fills_distance_when_located(self):
        viewer = ViewerContext("v", coordinate=HOME)
        page = chronological_page(viewer, [make_item("p", km_away=2)], limit=1, now=NOW)

        assert page.items[0].distance_km == pytest.approx(2.0, rel=1e-6)

    def test_following_only_followed_authors(self):
        viewer = ViewerContext("v", following_ids=frozenset({"friend"}))
        items = [
            make_item("mine", author_id="friend"),
            make_item("theirs", author_id="stranger"),
        ]
        page = following_page(viewer, items, limit=10, now=NOW)

        assert ids(page) == ["mine"]


class TestNearbyPage:
    """Tests for nearby_page()."""

    def test_closest_first(self):
        viewer = ViewerContext("v", coordinate=HOME)
        items = [make_item("far", km_away=8), make_item("near", km_away=0.5), make_item("mid", km_away=3)]

        page = nearby_page(viewer, items, limit=10, now=NOW)

        assert ids(page) == ["near", "mid", "far"]

    def test_skips_unlocated_posts(self):
        viewer = ViewerContext("v", coordinate=HOME)
        page = nearby_page(viewer, [make_item("nowhere"), make_item("here", km_away=1)], limit=10, now=NOW)

        assert ids(page) == ["here"]

    def test_requires_viewer_location(self):
        with pytest.raises(InvalidInput):
            nearby_page(ViewerContext("v"), [make_item("p", km_away=1)], limit=10, now=NOW)
