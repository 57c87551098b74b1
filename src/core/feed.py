"""Non-ranked feed listings - Pure functions.

Explicit alternatives to the ranked feed. The caller chooses one of these
by feed mode (or as a fallback when ranking fails); the ranker never
switches to them on its own.
"""

from datetime import datetime, timezone

from src.core.errors import InvalidInput
from src.core.ranking import (
    CandidateItem,
    FeedPage,
    RankingParams,
    ScoredItem,
    ViewerContext,
    is_expired,
    paginate,
    viewer_distance,
)


FEED_MODE_RANKED = "ranked"
FEED_MODE_RECENT = "recent"
FEED_MODE_NEARBY = "nearby"
FEED_MODE_FOLLOWING = "following"

FEED_MODES = (
    FEED_MODE_RANKED,
    FEED_MODE_RECENT,
    FEED_MODE_NEARBY,
    FEED_MODE_FOLLOWING,
)


def resolve_feed_mode(mode: str | None, default: str = FEED_MODE_RANKED) -> str:
    """Normalize a feed mode preference.

    Raises:
        InvalidInput: If the mode is not a known feed mode
    """
    if not mode:
        return default
    mode = mode.strip().lower()
    if mode not in FEED_MODES:
        raise InvalidInput(f"Unknown feed mode '{mode}', expected one of {FEED_MODES}")
    return mode


def _newest_first(items: list[CandidateItem]) -> list[CandidateItem]:
    return sorted(items, key=lambda c: (-c.created_at.timestamp(), c.id))


def chronological_page(
    viewer: ViewerContext,
    candidates: list[CandidateItem],
    limit: int,
    offset: int = 0,
    now: datetime | None = None,
    params: RankingParams = RankingParams(),
) -> FeedPage:
    """Newest-first listing with no scoring.

    Pure function. Scores are reported as 0.0; distances are still filled
    in when both sides have a location.
    """
    now = now or datetime.now(timezone.utc)
    live = [c for c in candidates if not is_expired(c, now, params.max_age_days)]
    ordered = [
        ScoredItem(item=c, score=0.0, distance_km=viewer_distance(viewer, c))
        for c in _newest_first(live)
    ]
    return paginate(ordered, limit, offset)


def following_page(
    viewer: ViewerContext,
    candidates: list[CandidateItem],
    limit: int,
    offset: int = 0,
    now: datetime | None = None,
    params: RankingParams = RankingParams(),
) -> FeedPage:
    """Newest-first listing restricted to followed authors."""
    followed = [c for c in candidates if c.author_id in viewer.following_ids]
    return chronological_page(viewer, followed, limit, offset, now, params)


def nearby_page(
    viewer: ViewerContext,
    candidates: list[CandidateItem],
    limit: int,
    offset: int = 0,
    now: datetime | None = None,
    params: RankingParams = RankingParams(),
) -> FeedPage:
    """Closest-first listing of located posts.

    Pure function. Posts without a location are left out.

    Raises:
        InvalidInput: If the viewer has no location
    """
    if viewer.coordinate is None:
        raise InvalidInput("Nearby feed requires the viewer's location")

    now = now or datetime.now(timezone.utc)
    located = []
    for c in candidates:
        if c.coordinate is None or is_expired(c, now, params.max_age_days):
            continue
        located.append(ScoredItem(item=c, score=0.0, distance_km=viewer_distance(viewer, c)))

    located.sort(key=lambda s: (s.distance_km, -s.item.created_at.timestamp(), s.item.id))
    return paginate(located, limit, offset)
