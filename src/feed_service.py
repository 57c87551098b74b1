"""Feed Service - Wires the ranking core to the candidate and settings stores.

A feed request resolves the viewer's preferences, follow set and
location, reads one bounded candidate window and hands everything to a
pure listing function (ranked by default, or the user's chosen mode).

Known limitation: pages are computed per call with no snapshot between
calls. Posts created or engaged with between two page requests can move
items across page boundaries, so a client may see an item twice or miss
one while scrolling.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from src.core.config import FeedConfig
from src.core.errors import InvalidInput, RequestCancelled
from src.core.feed import (
    FEED_MODE_FOLLOWING,
    FEED_MODE_NEARBY,
    FEED_MODE_RANKED,
    FEED_MODE_RECENT,
    chronological_page,
    following_page,
    nearby_page,
    resolve_feed_mode,
)
from src.core.geo import Coordinate
from src.core.ranking import FeedPage, ViewerContext, rank, window_start
from src.shell.candidate_store import FirestoreCandidateStore
from src.shell.settings_store import FirestoreSettingsStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedResult:
    """One feed page and how it was produced.

    Attributes:
        page: Items with scores and distances
        mode: Listing used (ranked, recent, nearby or following)
        viewer: Context the page was computed for
    """
    page: FeedPage
    mode: str
    viewer: ViewerContext


def _check_cancelled(cancel_event: threading.Event | None, stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info("Feed request cancelled before %s", stage)
        raise RequestCancelled(f"Feed request cancelled before {stage}")


class FeedService:
    """Serves feed pages for viewers.

    This class wires together:
    - Settings store (weights, interests, feed mode)
    - Candidate store (posts, follows, user locations)
    - Core listing functions (rank, chronological, following, nearby)
    """

    def __init__(
        self,
        candidate_store: FirestoreCandidateStore,
        settings_store: FirestoreSettingsStore,
        config: FeedConfig | None = None,
    ) -> None:
        self.candidate_store = candidate_store
        self.settings_store = settings_store
        self.config = config or FeedConfig()

    def _resolve_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.config.default_page_size
        if limit < 1:
            raise InvalidInput(f"Page size must be at least 1, got {limit}")
        return min(limit, self.config.max_page_size)

    def get_feed(
        self,
        viewer_id: str,
        limit: int | None = None,
        offset: int = 0,
        coordinate: Coordinate | None = None,
        mode: str | None = None,
        cancel_event: threading.Event | None = None,
        now: datetime | None = None,
    ) -> FeedResult:
        """Compute one page of a viewer's feed.

        Store reads happen in sequence; cancel_event is checked before
        each, and a set event stops the request with RequestCancelled.

        Args:
            viewer_id: Requesting user
            limit: Page size (config default if None, capped at max_page_size)
            offset: Position in the ordered sequence
            coordinate: Viewer location for this request (stored location if None)
            mode: Listing to use (the user's stored preference if None)
            cancel_event: Set by the caller to abandon the request
            now: Reference time (defaults to current UTC time)

        Returns:
            FeedResult with the page

        Raises:
            InvalidInput: Bad limit/offset/mode, or nearby mode without a location
            SourceUnavailable: If a store read fails
            RequestCancelled: If cancel_event was set
        """
        page_size = self._resolve_limit(limit)
        if offset < 0:
            raise InvalidInput(f"Offset must not be negative, got {offset}")
        now = now or datetime.now(timezone.utc)

        _check_cancelled(cancel_event, "reading settings")
        preferences = self.settings_store.get_preferences(viewer_id)
        feed_mode = resolve_feed_mode(mode, default=preferences.feed_mode)

        following_ids: frozenset[str] = frozenset()
        if feed_mode in (FEED_MODE_RANKED, FEED_MODE_FOLLOWING):
            _check_cancelled(cancel_event, "reading follow set")
            following_ids = self.candidate_store.fetch_following_ids(viewer_id)

        if coordinate is None and feed_mode in (FEED_MODE_RANKED, FEED_MODE_NEARBY):
            _check_cancelled(cancel_event, "reading viewer location")
            coordinate = self.candidate_store.get_user_location(viewer_id)

        viewer = ViewerContext(
            viewer_id=viewer_id,
            coordinate=coordinate,
            following_ids=following_ids,
            interest_tags=preferences.interest_tags,
            weights=preferences.weights,
        )

        _check_cancelled(cancel_event, "reading candidates")
        params = self.config.ranking
        candidates = self.candidate_store.fetch_recent_items(
            since=window_start(now, params),
            limit=self.config.candidate_window_size,
        )

        _check_cancelled(cancel_event, "scoring")
        if feed_mode == FEED_MODE_RANKED:
            page = rank(viewer, candidates, page_size, offset, now, params)
        elif feed_mode == FEED_MODE_FOLLOWING:
            page = following_page(viewer, candidates, page_size, offset, now, params)
        elif feed_mode == FEED_MODE_NEARBY:
            page = nearby_page(viewer, candidates, page_size, offset, now, params)
        else:
            page = chronological_page(viewer, candidates, page_size, offset, now, params)

        logger.info(
            "Feed for %s (%s): %d of %d items at offset %d",
            viewer_id, feed_mode, len(page.items), page.total, offset,
        )
        return FeedResult(page=page, mode=feed_mode, viewer=viewer)

    def get_chronological_feed(
        self,
        viewer_id: str,
        limit: int | None = None,
        offset: int = 0,
        cancel_event: threading.Event | None = None,
        now: datetime | None = None,
    ) -> FeedResult:
        """Newest-first listing, for callers that choose it over ranking."""
        return self.get_feed(
            viewer_id,
            limit=limit,
            offset=offset,
            mode=FEED_MODE_RECENT,
            cancel_event=cancel_event,
            now=now,
        )
