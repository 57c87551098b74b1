"""Notification events and formatting - Pure functions.

This module builds notification events for actions that target another
user and formats their titles and messages. Delivery and persistence are
handled by the shell; nothing here performs I/O.

The unread count is always derived from events (count of is_read=False);
there is no separately maintained counter to drift.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.core.alerts import AlertResponse, SafetyAlert


KIND_LIKE = "like"
KIND_COMMENT = "comment"
KIND_SAFETY_ALERT = "safety_alert"
KIND_ALERT_RESPONSE = "alert_response"
KIND_EMERGENCY = "emergency"
KIND_MESSAGE = "message"
KIND_FRIEND_REQUEST = "friend_request"

SEVERITY_EMOJI = {
    "high": "🚨",
    "medium": "⚠️",
    "low": "🔹",
}

RESPONSE_LABELS = {
    "confirm": "confirmed",
    "deny": "disputed",
    "help_offered": "offered help with",
}

MAX_PREVIEW_LENGTH = 80


@dataclass(frozen=True)
class NotificationEvent:
    """Immutable notification data model.

    Attributes:
        id: Unique event ID; also the dedup key for at-least-once delivery
        recipient_id: User receiving the notification
        kind: Event kind (like, comment, safety_alert, ...)
        title: Short headline
        message: Human-readable body
        metadata: Kind-specific extra data (post_id, alert_id, ...)
        sender_id: User who caused it, if any
        is_read: Read state
        created_at: Creation timestamp (UTC)
        read_at: When it was marked read
    """
    id: str
    recipient_id: str
    kind: str
    title: str
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)
    sender_id: str | None = None
    is_read: bool = False
    created_at: datetime | None = None
    read_at: datetime | None = None


@dataclass(frozen=True)
class NotificationStats:
    """Totals for a user's notifications.

    Attributes:
        total: All notifications
        unread: Unread notifications
        by_kind: {kind: {"total": n, "unread": m}}
    """
    total: int
    unread: int
    by_kind: dict[str, dict[str, int]]


def new_event(
    recipient_id: str,
    kind: str,
    title: str,
    message: str,
    sender_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    now: datetime | None = None,
    event_id: str | None = None,
) -> NotificationEvent:
    """Create an unread notification event with a fresh unique ID."""
    return NotificationEvent(
        id=event_id or uuid.uuid4().hex,
        recipient_id=recipient_id,
        kind=kind,
        title=title,
        message=message,
        metadata=dict(metadata or {}),
        sender_id=sender_id,
        is_read=False,
        created_at=now or datetime.now(timezone.utc),
    )


def count_unread(events: list[NotificationEvent], recipient_id: str) -> int:
    """Count unread events for a recipient.

    Pure function.
    """
    return sum(1 for e in events if e.recipient_id == recipient_id and not e.is_read)


def summarize(events: list[NotificationEvent]) -> NotificationStats:
    """Group notification totals by kind.

    Pure function.

    Args:
        events: One user's notifications

    Returns:
        NotificationStats with overall and per-kind counts
    """
    by_kind: dict[str, dict[str, int]] = {}
    unread = 0

    for event in events:
        bucket = by_kind.setdefault(event.kind, {"total": 0, "unread": 0})
        bucket["total"] += 1
        if not event.is_read:
            bucket["unread"] += 1
            unread += 1

    return NotificationStats(total=len(events), unread=unread, by_kind=by_kind)


def to_payload(event: NotificationEvent) -> dict[str, Any]:
    """Convert an event to a JSON-serializable dict for the live channel."""
    return {
        "id": event.id,
        "recipient_id": event.recipient_id,
        "sender_id": event.sender_id,
        "kind": event.kind,
        "title": event.title,
        "message": event.message,
        "metadata": event.metadata,
        "is_read": event.is_read,
        "created_at": event.created_at.isoformat() if event.created_at else None,
        "read_at": event.read_at.isoformat() if event.read_at else None,
    }


def _preview(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= MAX_PREVIEW_LENGTH:
        return text
    return text[:MAX_PREVIEW_LENGTH - 1] + "…"


def _actor(name: str | None) -> str:
    return name or "Someone"


def like_event(
    post_owner_id: str,
    liker_id: str,
    post_id: str,
    liker_name: str | None = None,
) -> NotificationEvent:
    """Notification for the owner of a liked post."""
    return new_event(
        recipient_id=post_owner_id,
        kind=KIND_LIKE,
        title="New Like",
        message=f"{_actor(liker_name)} liked your post",
        sender_id=liker_id,
        metadata={"post_id": post_id},
    )


def comment_event(
    post_owner_id: str,
    commenter_id: str,
    post_id: str,
    comment: str,
    commenter_name: str | None = None,
) -> NotificationEvent:
    """Notification for the owner of a commented post."""
    return new_event(
        recipient_id=post_owner_id,
        kind=KIND_COMMENT,
        title="New Comment",
        message=f'{_actor(commenter_name)} commented: "{_preview(comment)}"',
        sender_id=commenter_id,
        metadata={"post_id": post_id},
    )


def message_event(
    recipient_id: str,
    sender_id: str,
    message_id: str,
    text: str,
    sender_name: str | None = None,
) -> NotificationEvent:
    """Notification for the recipient of a direct message.

    The event ID is derived from the message ID, so re-sending the
    notification for one message stores it once.
    """
    return new_event(
        recipient_id=recipient_id,
        kind=KIND_MESSAGE,
        title="New Message",
        message=f"New message from {_actor(sender_name)}",
        sender_id=sender_id,
        metadata={"message_id": message_id, "preview": _preview(text)},
        event_id=f"message_{message_id}",
    )


def friend_request_event(
    recipient_id: str,
    sender_id: str,
    request_id: str,
    sender_name: str | None = None,
) -> NotificationEvent:
    """Notification for the recipient of a friend request (one per request)."""
    return new_event(
        recipient_id=recipient_id,
        kind=KIND_FRIEND_REQUEST,
        title="Friend Request",
        message=f"{_actor(sender_name)} sent you a friend request",
        sender_id=sender_id,
        metadata={"request_id": request_id},
        event_id=f"friend_request_{request_id}",
    )


def format_distance(distance_km: float) -> str:
    """Format a distance for display (meters below 1 km)."""
    if distance_km < 1:
        return f"{distance_km * 1000:.0f} m"
    return f"{distance_km:.1f} km"


def safety_alert_event(
    recipient_id: str,
    alert: SafetyAlert,
    distance_km: float,
) -> NotificationEvent:
    """Notification for a user inside an alert's affected area."""
    emoji = SEVERITY_EMOJI.get(alert.severity, "")
    kind = KIND_EMERGENCY if alert.type == "emergency" else KIND_SAFETY_ALERT
    headline = alert.title or f"{alert.type.capitalize()} alert"

    return new_event(
        recipient_id=recipient_id,
        kind=kind,
        title=f"{emoji} {headline}".strip(),
        message=(
            f"{alert.severity.capitalize()} severity {alert.type} "
            f"{format_distance(distance_km)} from you"
        ),
        sender_id=alert.created_by,
        metadata={
            "alert_id": alert.id,
            "alert_type": alert.type,
            "severity": alert.severity,
            "distance_km": round(distance_km, 3),
        },
    )


def alert_response_event(
    alert: SafetyAlert,
    response: AlertResponse,
    responder_name: str | None = None,
) -> NotificationEvent:
    """Notification for an alert's creator when someone responds."""
    verb = RESPONSE_LABELS.get(response.response_type, "responded to")
    message = f"{_actor(responder_name)} {verb} your alert"
    if response.comment:
        message += f': "{_preview(response.comment)}"'

    return new_event(
        recipient_id=alert.created_by,
        kind=KIND_ALERT_RESPONSE,
        title="Alert Response",
        message=message,
        sender_id=response.user_id,
        metadata={
            "alert_id": alert.id,
            "response_type": response.response_type,
        },
    )


def format_emergency_sms(
    user_name: str | None,
    alert: SafetyAlert,
    message: str | None = None,
) -> str:
    """Text message sent to a user's emergency contacts."""
    lat = alert.coordinate.latitude
    lon = alert.coordinate.longitude
    lines = [
        f"🚨 EMERGENCY: {_actor(user_name)} has raised an emergency alert.",
    ]
    if message:
        lines.append(f'Message: "{_preview(message)}"')
    lines.append(f"Location: https://maps.google.com/?q={lat:.5f},{lon:.5f}")
    return "\n".join(lines)
