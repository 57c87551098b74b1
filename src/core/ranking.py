"""Feed ranking - Pure functions.

This module scores candidate posts for a viewer and returns them in a
total order. All functions are pure with no side effects; the viewer's
context (location, follows, interests, weights) is always passed in.

Composite score is a weighted sum of five terms, each in [0, 1]:
  freshness  - half-life decay on item age
  proximity  - 1 / (1 + distance_km), neutral when either side has no location
  engagement - log1p(raw) / log1p(window max), raw = likes + 2*comments + 3*shares
  follow     - 1.0 if the viewer follows the author
  interest   - fraction of the item's tags the viewer is interested in

Engagement is normalized against the current candidate window, so scores are
not comparable across requests. Pagination slices the scored sequence of a
single call; separate calls may re-rank when new candidates arrive (no
snapshot isolation), so callers may see minor reordering across pages.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from src.core.errors import InvalidInput
from src.core.geo import Coordinate, calculate_distance


DEFAULT_HALF_LIFE_HOURS = 24.0
DEFAULT_MAX_AGE_DAYS = 30
NEUTRAL_PROXIMITY = 0.5

# Scores are compared on a grid of this step; equal grid cells are ties
SCORE_EPSILON = 1e-9

LIKE_POINTS = 1
COMMENT_POINTS = 2
SHARE_POINTS = 3

WEIGHT_FIELDS = ("freshness", "proximity", "engagement", "follow", "interest")


@dataclass(frozen=True)
class WeightVector:
    """Per-user ranking weights.

    Each weight is an independent dial in [0, 1]; they are not required
    to sum to 1.
    """
    freshness: float = 0.45
    proximity: float = 0.25
    engagement: float = 0.20
    follow: float = 0.06
    interest: float = 0.04

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "WeightVector":
        """Build from a settings mapping, accepting "w_"-prefixed keys.

        Missing keys keep their defaults.

        Raises:
            InvalidInput: If a weight is non-numeric or outside [0, 1]
        """
        if not data:
            return cls()

        values: dict[str, float] = {}
        for name in WEIGHT_FIELDS:
            raw = data.get(name, data.get(f"w_{name}"))
            if raw is None:
                continue
            try:
                values[name] = float(raw)
            except (TypeError, ValueError) as e:
                raise InvalidInput(f"Weight '{name}' must be numeric") from e

        weights = cls(**values)
        validate_weights(weights)
        return weights

    def to_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in WEIGHT_FIELDS}


@dataclass(frozen=True)
class ViewerContext:
    """Everything the ranker knows about the viewer for one request.

    Attributes:
        viewer_id: Requesting user
        coordinate: Viewer's current location, if known
        following_ids: Authors the viewer follows
        interest_tags: Lower-cased interest tags
        weights: Resolved ranking weights
    """
    viewer_id: str
    coordinate: Coordinate | None = None
    following_ids: frozenset[str] = field(default_factory=frozenset)
    interest_tags: frozenset[str] = field(default_factory=frozenset)
    weights: WeightVector = field(default_factory=WeightVector)


@dataclass(frozen=True)
class CandidateItem:
    """Immutable post data model, as read from the candidate store.

    Attributes:
        id: Post ID
        author_id: Author user ID
        created_at: Creation timestamp (UTC)
        coordinate: Post location, if any
        like_count: Number of likes
        comment_count: Number of comments
        share_count: Number of shares
        tags: Topic tags
    """
    id: str
    author_id: str
    created_at: datetime
    coordinate: Coordinate | None = None
    like_count: int = 0
    comment_count: int = 0
    share_count: int = 0
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoredItem:
    """A candidate with its composite score and distance from the viewer."""
    item: CandidateItem
    score: float
    distance_km: float | None = None


@dataclass(frozen=True)
class RankingParams:
    """Tunable constants for scoring.

    Attributes:
        half_life_hours: Age at which the freshness term halves
        max_age_days: Items older than this are dropped before scoring
        neutral_proximity: Proximity term when a location is missing
    """
    half_life_hours: float = DEFAULT_HALF_LIFE_HOURS
    max_age_days: int = DEFAULT_MAX_AGE_DAYS
    neutral_proximity: float = NEUTRAL_PROXIMITY


@dataclass(frozen=True)
class FeedPage:
    """One page of a scored, sorted feed.

    Attributes:
        items: Items on this page
        offset: Offset of the first item
        limit: Requested page size
        total: Size of the full sorted sequence
    """
    items: tuple[ScoredItem, ...]
    offset: int
    limit: int
    total: int

    @property
    def has_more(self) -> bool:
        """Returns True if items remain after this page."""
        return self.offset + len(self.items) < self.total

    @property
    def next_offset(self) -> int | None:
        """Offset for the next page, or None when exhausted."""
        if not self.has_more:
            return None
        return self.offset + len(self.items)


def validate_weights(weights: WeightVector) -> None:
    """Check that every weight lies in [0, 1].

    Raises:
        InvalidInput: On the first out-of-range weight
    """
    for name in WEIGHT_FIELDS:
        value = getattr(weights, name)
        if math.isnan(value) or not 0.0 <= value <= 1.0:
            raise InvalidInput(f"Weight '{name}' must be in [0, 1], got {value}")


def age_hours(created_at: datetime, now: datetime) -> float:
    """Item age in hours, floored at zero for clock skew."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return max(0.0, (now - created_at).total_seconds() / 3600.0)


def freshness_score(hours_old: float, half_life_hours: float = DEFAULT_HALF_LIFE_HOURS) -> float:
    """Half-life decay: 1.0 when new, 0.5 after one half-life.

    Pure function.
    """
    return 0.5 ** (hours_old / half_life_hours)


def proximity_score(distance_km: float | None, neutral: float = NEUTRAL_PROXIMITY) -> float:
    """Inverse distance, or a neutral constant when distance is unknown.

    Pure function. Location-less posts are neither boosted nor buried.
    """
    if distance_km is None:
        return neutral
    return 1.0 / (1.0 + distance_km)


def raw_engagement(item: CandidateItem) -> int:
    """Weighted engagement count; comments and shares count more than likes."""
    return (
        item.like_count * LIKE_POINTS
        + item.comment_count * COMMENT_POINTS
        + item.share_count * SHARE_POINTS
    )


def engagement_score(raw: int, reference_max: int) -> float:
    """Saturating engagement normalized against the window's top item.

    Pure function.

    Args:
        raw: This item's raw engagement
        reference_max: Highest raw engagement in the candidate window

    Returns:
        Score in [0, 1]; 0 when the whole window has no engagement
    """
    if reference_max <= 0:
        return 0.0
    return min(1.0, math.log1p(max(0, raw)) / math.log1p(reference_max))


def follow_score(author_id: str, following_ids: frozenset[str]) -> float:
    """Binary follow signal."""
    return 1.0 if author_id in following_ids else 0.0


def interest_score(tags: tuple[str, ...], interest_tags: frozenset[str]) -> float:
    """Fraction of the item's tags the viewer cares about.

    Pure function. Tags compare case-insensitively.
    """
    if not tags:
        return 0.0
    normalized = [t.lower().strip() for t in tags]
    matched = sum(1 for t in normalized if t in interest_tags)
    return matched / len(normalized)


def is_expired(item: CandidateItem, now: datetime, max_age_days: int) -> bool:
    """Check if an item is past the hard age cutoff."""
    return age_hours(item.created_at, now) > max_age_days * 24


def viewer_distance(viewer: ViewerContext, item: CandidateItem) -> float | None:
    """Distance from viewer to item in km, None if either has no location."""
    if viewer.coordinate is None or item.coordinate is None:
        return None
    return calculate_distance(viewer.coordinate, item.coordinate)


def score_item(
    viewer: ViewerContext,
    item: CandidateItem,
    reference_max: int,
    now: datetime,
    params: RankingParams = RankingParams(),
) -> ScoredItem:
    """Compute the composite score for one item.

    Pure function.

    Args:
        viewer: Viewer context
        item: Candidate to score
        reference_max: Highest raw engagement in the window
        now: Reference time for freshness
        params: Scoring constants

    Returns:
        ScoredItem with score and distance
    """
    w = viewer.weights
    distance_km = viewer_distance(viewer, item)

    score = (
        w.freshness * freshness_score(age_hours(item.created_at, now), params.half_life_hours)
        + w.proximity * proximity_score(distance_km, params.neutral_proximity)
        + w.engagement * engagement_score(raw_engagement(item), reference_max)
        + w.follow * follow_score(item.author_id, viewer.following_ids)
        + w.interest * interest_score(item.tags, viewer.interest_tags)
    )

    return ScoredItem(item=item, score=score, distance_km=distance_km)


def _order_key(scored: ScoredItem) -> tuple[int, float, str]:
    """Score desc, then created_at desc, then id asc.

    Scores are snapped to the SCORE_EPSILON grid so ties form a total
    order that does not depend on input order.
    """
    return (
        -round(scored.score / SCORE_EPSILON),
        -scored.item.created_at.timestamp(),
        scored.item.id,
    )


def sort_scored(scored: list[ScoredItem]) -> list[ScoredItem]:
    """Sort scored items into the deterministic feed order."""
    return sorted(scored, key=_order_key)


def paginate(ordered: list[ScoredItem], limit: int, offset: int) -> FeedPage:
    """Slice an already-ordered sequence into a page.

    Pure function. Negative offsets are treated as zero; a non-positive
    limit yields an empty page.
    """
    offset = max(0, offset)
    items = ordered[offset:offset + limit] if limit > 0 else []
    return FeedPage(
        items=tuple(items),
        offset=offset,
        limit=limit,
        total=len(ordered),
    )


def rank(
    viewer: ViewerContext,
    candidates: list[CandidateItem],
    limit: int,
    offset: int = 0,
    now: datetime | None = None,
    params: RankingParams = RankingParams(),
) -> FeedPage:
    """Score and order candidates for a viewer, returning one page.

    Pure function. Expired items are removed before scoring so they
    neither appear nor influence engagement normalization.

    Args:
        viewer: Viewer context with weights
        candidates: Candidate window from the store
        limit: Page size
        offset: Position in the sorted sequence
        now: Reference time (defaults to current UTC time)
        params: Scoring constants

    Returns:
        FeedPage over the scored, sorted sequence
    """
    if now is None:
        now = datetime.now(timezone.utc)

    live = [c for c in candidates if not is_expired(c, now, params.max_age_days)]
    reference_max = max((raw_engagement(c) for c in live), default=0)

    scored = [score_item(viewer, c, reference_max, now, params) for c in live]
    return paginate(sort_scored(scored), limit, offset)


def window_start(now: datetime, params: RankingParams = RankingParams()) -> datetime:
    """Oldest creation time that can still be ranked."""
    return now - timedelta(days=params.max_age_days)
