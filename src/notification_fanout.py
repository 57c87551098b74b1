"""Notification Fan-out - Wires notification events to storage and live delivery.

Every event is stored first. Only a stored event is pushed to the
recipient's live connection, and a failed push is not an error: the
event is still there on the recipient's next fetch. Re-emitting an event
with an ID that already exists stores and pushes nothing.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from src.core.errors import SourceUnavailable
from src.core.notifications import NotificationEvent, NotificationStats, summarize, to_payload
from src.shell.live_channel import LiveChannelHub
from src.shell.notification_store import FirestoreNotificationStore


logger = logging.getLogger(__name__)


@dataclass
class EmitResult:
    """Outcome of emitting one event.

    Attributes:
        event: The event emitted
        stored: True if a new row was written
        pushed: True if a live connection accepted the event
        error: Store or push failure description, if any
    """
    event: NotificationEvent
    stored: bool
    pushed: bool = False
    error: str | None = None

    @property
    def duplicate(self) -> bool:
        """True if the event already existed and nothing was written."""
        return not self.stored and self.error is None


@dataclass
class FanoutSummary:
    """Totals for a batch of emitted events.

    Attributes:
        results: One result per event emitted
        error: Set when the recipients could not be determined, so no
            events were emitted at all
    """
    results: list[EmitResult]
    error: str | None = None

    @property
    def stored(self) -> int:
        return sum(1 for r in self.results if r.stored)

    @property
    def pushed(self) -> int:
        return sum(1 for r in self.results if r.pushed)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.stored and r.error is not None)


class NotificationFanout:
    """Stores notification events and delivers them live when possible."""

    def __init__(
        self,
        store: FirestoreNotificationStore,
        hub: LiveChannelHub | None = None,
    ) -> None:
        """Initialize fan-out.

        Args:
            store: Durable notification store
            hub: Live connection registry (None disables live delivery)
        """
        self.store = store
        self.hub = hub

    def emit(self, event: NotificationEvent) -> EmitResult:
        """Store an event, then push it if the recipient is connected.

        Args:
            event: Event to deliver

        Returns:
            EmitResult describing what happened

        Raises:
            SourceUnavailable: If the event could not be stored
        """
        if not self.store.create(event):
            return EmitResult(event=event, stored=False)

        if self.hub is None or not self.hub.is_connected(event.recipient_id):
            return EmitResult(event=event, stored=True)

        try:
            pushed = self.hub.push(event.recipient_id, to_payload(event))
        except Exception as e:
            logger.warning("Live push of %s to %s failed: %s", event.id, event.recipient_id, str(e))
            return EmitResult(event=event, stored=True, error=str(e))

        if not pushed:
            logger.warning("Live push of %s to %s was not accepted", event.id, event.recipient_id)
            return EmitResult(event=event, stored=True, error="live push not accepted")

        return EmitResult(event=event, stored=True, pushed=True)

    def emit_many(self, events: Iterable[NotificationEvent]) -> FanoutSummary:
        """Emit events independently; one failure does not stop the rest.

        Returns:
            FanoutSummary with one result per event
        """
        results = []
        for event in events:
            try:
                results.append(self.emit(event))
            except SourceUnavailable as e:
                logger.error("Failed to store notification for %s: %s", event.recipient_id, str(e))
                results.append(EmitResult(event=event, stored=False, error=str(e)))

        summary = FanoutSummary(results=results)
        logger.info(
            "Fan-out: %d stored, %d pushed live, %d failed",
            summary.stored, summary.pushed, summary.failed,
        )
        return summary

    def mark_read(self, event_id: str, recipient_id: str | None = None) -> bool:
        """Mark one event read. Already-read events are left as they are.

        Returns:
            True if the event changed

        Raises:
            NotFound: If the event does not exist for this recipient
        """
        return self.store.mark_read(event_id, recipient_id)

    def mark_all_read(self, user_id: str) -> int:
        """Mark all of a user's events read.

        Returns:
            Number of events that changed
        """
        return self.store.mark_all_read(user_id)

    def unread_count(self, user_id: str) -> int:
        return self.store.count_unread(user_id)

    def list_notifications(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False,
    ) -> list[NotificationEvent]:
        return self.store.list_for_user(user_id, limit, max(0, offset), unread_only)

    def stats(self, user_id: str) -> NotificationStats:
        """Totals and per-kind counts for a user's notifications."""
        return summarize(self.store.fetch_all(user_id))
