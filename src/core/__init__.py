"""Functional Core - Pure functions with no side effects.

This module contains all business logic as pure functions:
- Geo/distance calculations
- Feed ranking and the non-ranked listings
- Geofence matching
- Safety alert and emergency contact rules
- Notification events and formatting

All functions here are deterministic and have no I/O.
"""

from src.core.geo import Coordinate, calculate_distance, is_within_radius
from src.core.ranking import (
    CandidateItem,
    FeedPage,
    ScoredItem,
    ViewerContext,
    WeightVector,
    rank,
)
from src.core.geofence import GeofenceResult, LocatedEntity, MatchResult, find_within
from src.core.alerts import AlertDraft, AlertResponse, SafetyAlert
from src.core.contacts import EmergencyContact
from src.core.notifications import NotificationEvent, new_event
from src.core.errors import (
    AlertNotActive,
    EngineError,
    InvalidInput,
    NotFound,
    RequestCancelled,
    SourceUnavailable,
    Unauthorized,
)

__all__ = [
    # Geo
    "Coordinate",
    "calculate_distance",
    "is_within_radius",
    # Ranking
    "CandidateItem",
    "FeedPage",
    "ScoredItem",
    "ViewerContext",
    "WeightVector",
    "rank",
    # Geofence
    "GeofenceResult",
    "LocatedEntity",
    "MatchResult",
    "find_within",
    # Alerts and contacts
    "AlertDraft",
    "AlertResponse",
    "SafetyAlert",
    "EmergencyContact",
    # Notifications
    "NotificationEvent",
    "new_event",
    # Errors
    "AlertNotActive",
    "EngineError",
    "InvalidInput",
    "NotFound",
    "RequestCancelled",
    "SourceUnavailable",
    "Unauthorized",
]
