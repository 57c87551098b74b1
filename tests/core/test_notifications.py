"""Unit tests for notification events and formatting."""

from datetime import datetime, timezone

from src.core.alerts import AlertResponse, SafetyAlert
from src.core.geo import Coordinate
from src.core.notifications import (
    KIND_ALERT_RESPONSE,
    KIND_COMMENT,
    KIND_EMERGENCY,
    KIND_FRIEND_REQUEST,
    KIND_LIKE,
    KIND_MESSAGE,
    KIND_SAFETY_ALERT,
    alert_response_event,
    comment_event,
    count_unread,
    format_distance,
    format_emergency_sms,
    friend_request_event,
    like_event,
    message_event,
    new_event,
    safety_alert_event,
    summarize,
    to_payload,
)


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_alert(**overrides) -> SafetyAlert:
    defaults = dict(
        id="a1",
        type="warning",
        severity="high",
        coordinate=Coordinate(37.7749, -122.4194),
        affected_area_meters=1000,
        created_by="alice",
        is_active=True,
        created_at=NOW,
        title="Gas leak",
    )
    defaults.update(overrides)
    return SafetyAlert(**defaults)


class TestNewEvent:
    """Tests for new_event()."""

    def test_unread_with_unique_id(self):
        a = new_event("bob", KIND_LIKE, "t", "m")
        b = new_event("bob", KIND_LIKE, "t", "m")

        assert a.is_read is False
        assert a.id != b.id
        assert a.created_at is not None

    def test_explicit_id_and_time(self):
        event = new_event("bob", KIND_LIKE, "t", "m", now=NOW, event_id="evt-1")
        assert event.id == "evt-1"
        assert event.created_at == NOW


class TestCounting:
    """Tests for count_unread() and summarize()."""

    def test_count_unread_per_recipient(self):
        events = [
            new_event("bob", KIND_LIKE, "t", "m"),
            new_event("bob", KIND_COMMENT, "t", "m"),
            new_event("carol", KIND_LIKE, "t", "m"),
        ]
        assert count_unread(events, "bob") == 2
        assert count_unread(events, "dave") == 0

    def test_summarize_by_kind(self):
        from dataclasses import replace

        like = new_event("bob", KIND_LIKE, "t", "m")
        events = [
            like,
            replace(like, id="read-like", is_read=True),
            new_event("bob", KIND_COMMENT, "t", "m"),
        ]

        stats = summarize(events)

        assert stats.total == 3
        assert stats.unread == 2
        assert stats.by_kind[KIND_LIKE] == {"total": 2, "unread": 1}
        assert stats.by_kind[KIND_COMMENT] == {"total": 1, "unread": 1}


class TestEventBuilders:
    """Tests for the event builders."""

    def test_like_event(self):
        event = like_event("owner", "fan", "p1", liker_name="Fan")
        assert event.recipient_id == "owner"
        assert event.sender_id == "fan"
        assert event.kind == KIND_LIKE
        assert event.message == "Fan liked your post"
        assert event.metadata == {"post_id": "p1"}

    def test_comment_event_preview_truncated(self):
        event = comment_event("owner", "critic", "p1", "word " * 50)
        assert event.kind == KIND_COMMENT
        assert event.message.startswith('Someone commented: "word')
        assert "…" in event.message

    def test_safety_alert_event(self):
        event = safety_alert_event("bob", make_alert(), 0.25)
        assert event.kind == KIND_SAFETY_ALERT
        assert event.title == "🚨 Gas leak"
        assert "250 m from you" in event.message
        assert event.metadata["alert_id"] == "a1"
        assert event.sender_id == "alice"

    def test_emergency_alert_uses_emergency_kind(self):
        event = safety_alert_event("bob", make_alert(type="emergency", title=""), 2.0)
        assert event.kind == KIND_EMERGENCY
        assert "Emergency alert" in event.title
        assert "2.0 km" in event.message

    def test_alert_response_event(self):
        response = AlertResponse("a1", "bob", "help_offered", comment="On my way")
        event = alert_response_event(make_alert(), response, responder_name="Bob")

        assert event.recipient_id == "alice"
        assert event.kind == KIND_ALERT_RESPONSE
        assert event.message == 'Bob offered help with your alert: "On my way"'
        assert event.metadata == {"alert_id": "a1", "response_type": "help_offered"}

    def test_message_event_id_follows_message(self):
        first = message_event("bob", "alice", "m1", "Are   you\nsafe?", sender_name="Alice")
        again = message_event("bob", "alice", "m1", "Are you safe?")

        assert first.kind == KIND_MESSAGE
        assert first.message == "New message from Alice"
        assert first.metadata == {"message_id": "m1", "preview": "Are you safe?"}
        assert first.id == again.id == "message_m1"

    def test_friend_request_event(self):
        event = friend_request_event("bob", "alice", "r1")

        assert event.kind == KIND_FRIEND_REQUEST
        assert event.message == "Someone sent you a friend request"
        assert event.metadata == {"request_id": "r1"}
        assert event.id == "friend_request_r1"


class TestFormatting:
    """Tests for display formatting."""

    def test_format_distance(self):
        assert format_distance(0.5) == "500 m"
        assert format_distance(12.34) == "12.3 km"

    def test_emergency_sms(self):
        sms = format_emergency_sms("Alice", make_alert(type="emergency"), "Help at the park")
        assert "Alice has raised an emergency alert" in sms
        assert 'Message: "Help at the park"' in sms
        assert "https://maps.google.com/?q=37.77490,-122.41940" in sms

    def test_emergency_sms_without_message(self):
        sms = format_emergency_sms(None, make_alert())
        assert "Someone" in sms
        assert "Message" not in sms

    def test_payload_is_json_ready(self):
        payload = to_payload(new_event("bob", KIND_LIKE, "t", "m", now=NOW, event_id="e1"))
        assert payload["id"] == "e1"
        assert payload["created_at"] == NOW.isoformat()
        assert payload["read_at"] is None
