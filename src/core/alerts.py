"""Safety alert rules - Pure functions.

This module holds the safety alert data model and the business rules
around it: validation, who may mutate an alert, when responses are
accepted, and query filtering. Persistence lives in the shell.

Alert lifecycle is Active -> Inactive. There is no reactivation; a new
alert is created instead so the history of the old one is preserved.
"""

from dataclasses import dataclass
from datetime import datetime

from src.core.errors import AlertNotActive, InvalidInput, Unauthorized
from src.core.geo import Coordinate
from src.core.geofence import MAX_RADIUS_METERS, MIN_RADIUS_METERS


ALERT_TYPES = ("emergency", "warning", "info")
SEVERITIES = ("high", "medium", "low")
RESPONSE_TYPES = ("confirm", "deny", "help_offered")

DEFAULT_AFFECTED_AREA_METERS = 1000

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000
MAX_COMMENT_LENGTH = 500


@dataclass(frozen=True)
class AlertDraft:
    """A new alert as submitted by a user, before it has an ID."""
    type: str
    severity: str
    coordinate: Coordinate | None
    created_by: str
    title: str = ""
    description: str = ""
    affected_area_meters: int | None = None


@dataclass(frozen=True)
class SafetyAlert:
    """Immutable safety alert data model.

    Attributes:
        id: Alert ID
        type: emergency, warning or info
        severity: high, medium or low
        coordinate: Alert location
        affected_area_meters: Radius of the affected area
        created_by: Creator user ID (the only user who may mutate it)
        is_active: False once deactivated
        created_at: Creation timestamp (UTC)
        title: Short headline
        description: Free text
        updated_at: Last mutation timestamp
    """
    id: str
    type: str
    severity: str
    coordinate: Coordinate
    affected_area_meters: int
    created_by: str
    is_active: bool
    created_at: datetime
    title: str = ""
    description: str = ""
    updated_at: datetime | None = None


@dataclass(frozen=True)
class AlertResponse:
    """A user's response to an alert. One per (alert_id, user_id)."""
    alert_id: str
    user_id: str
    response_type: str
    comment: str | None = None
    responded_at: datetime | None = None


def response_key(alert_id: str, user_id: str) -> str:
    """Document key that makes (alert_id, user_id) unique."""
    return f"{alert_id}_{user_id}"


def validate_draft(draft: AlertDraft) -> AlertDraft:
    """Validate a new alert and fill in defaults.

    Args:
        draft: Submitted alert

    Returns:
        Draft with affected_area_meters resolved

    Raises:
        InvalidInput: On a missing/unknown type or severity, missing
            coordinate, out-of-range area, or overlong text
    """
    if draft.type not in ALERT_TYPES:
        raise InvalidInput(f"Alert type must be one of {ALERT_TYPES}, got '{draft.type}'")

    if draft.severity not in SEVERITIES:
        raise InvalidInput(f"Severity must be one of {SEVERITIES}, got '{draft.severity}'")

    if draft.coordinate is None:
        raise InvalidInput("Alert requires a location")

    if not draft.created_by:
        raise InvalidInput("Alert requires a creator")

    if len(draft.title) > MAX_TITLE_LENGTH:
        raise InvalidInput(f"Title longer than {MAX_TITLE_LENGTH} characters")

    validate_description(draft.description)

    area = draft.affected_area_meters
    if area is None:
        area = DEFAULT_AFFECTED_AREA_METERS
    elif not MIN_RADIUS_METERS <= area <= MAX_RADIUS_METERS:
        raise InvalidInput(
            f"Affected area must be in [{MIN_RADIUS_METERS:.0f}, {MAX_RADIUS_METERS:.0f}] meters, got {area}"
        )

    return AlertDraft(
        type=draft.type,
        severity=draft.severity,
        coordinate=draft.coordinate,
        created_by=draft.created_by,
        title=draft.title,
        description=draft.description,
        affected_area_meters=int(area),
    )


def validate_description(description: str) -> None:
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise InvalidInput(f"Description longer than {MAX_DESCRIPTION_LENGTH} characters")


def validate_response(response_type: str, comment: str | None) -> None:
    """Check response type and comment length.

    Raises:
        InvalidInput: On an unknown response type or overlong comment
    """
    if response_type not in RESPONSE_TYPES:
        raise InvalidInput(
            f"Response type must be one of {RESPONSE_TYPES}, got '{response_type}'"
        )
    if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
        raise InvalidInput(f"Comment longer than {MAX_COMMENT_LENGTH} characters")


def check_can_mutate(alert: SafetyAlert, requester_id: str) -> None:
    """Only the creator may change an alert.

    Raises:
        Unauthorized: If requester is not the creator
    """
    if requester_id != alert.created_by:
        raise Unauthorized(f"User {requester_id} may not modify alert {alert.id}")


def check_accepts_responses(alert: SafetyAlert) -> None:
    """Responses to closed alerts are rejected, never silently recorded.

    Raises:
        AlertNotActive: If the alert has been deactivated
    """
    if not alert.is_active:
        raise AlertNotActive(f"Alert {alert.id} is no longer active")


def filter_alerts(
    alerts: list[SafetyAlert],
    alert_type: str | None = None,
    severity: str | None = None,
    active_only: bool = True,
) -> list[SafetyAlert]:
    """Filter alerts by type and severity, newest first.

    Pure function.

    Args:
        alerts: Alerts to filter
        alert_type: Keep only this type (None for all)
        severity: Keep only this severity (None for all)
        active_only: Drop deactivated alerts

    Returns:
        Matching alerts sorted by created_at descending
    """
    result = alerts

    if active_only:
        result = [a for a in result if a.is_active]

    if alert_type is not None:
        result = [a for a in result if a.type == alert_type]

    if severity is not None:
        result = [a for a in result if a.severity == severity]

    return sorted(result, key=lambda a: a.created_at, reverse=True)


def summarize_responses(responses: list[AlertResponse]) -> dict[str, int]:
    """Count responses per type; every type is present, possibly zero."""
    counts = {t: 0 for t in RESPONSE_TYPES}
    for response in responses:
        if response.response_type in counts:
            counts[response.response_type] += 1
    return counts
