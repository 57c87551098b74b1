"""Notification Store - Imperative Shell.

Durable notification rows in Firestore. The event ID is the document ID,
so creating the same event twice is detected by the store rather than
producing a second row. Unread counts are always counted from the rows.

Document structure:
    notifications/{event_id}:
        {"recipient_id", "sender_id", "kind", "title", "message",
         "metadata", "is_read", "created_at", "read_at"}
"""

import logging
from typing import Any

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from src.core.errors import NotFound
from src.core.notifications import NotificationEvent
from src.shell.firestore_client import (
    MAX_BATCH_SIZE,
    FirestoreClient,
    as_utc,
    translate_errors,
    utcnow,
)


logger = logging.getLogger(__name__)


def event_to_doc(event: NotificationEvent) -> dict[str, Any]:
    return {
        "recipient_id": event.recipient_id,
        "sender_id": event.sender_id,
        "kind": event.kind,
        "title": event.title,
        "message": event.message,
        "metadata": dict(event.metadata),
        "is_read": event.is_read,
        "created_at": event.created_at or utcnow(),
        "read_at": event.read_at,
    }


def event_from_doc(doc_id: str, data: dict[str, Any]) -> NotificationEvent:
    return NotificationEvent(
        id=doc_id,
        recipient_id=data["recipient_id"],
        kind=data.get("kind", ""),
        title=data.get("title", ""),
        message=data.get("message", ""),
        metadata=dict(data.get("metadata") or {}),
        sender_id=data.get("sender_id"),
        is_read=bool(data.get("is_read", False)),
        created_at=as_utc(data.get("created_at")),
        read_at=as_utc(data.get("read_at")),
    )


class FirestoreNotificationStore:
    """Notification persistence and read-state tracking."""

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client

    def _notifications(self) -> Any:
        return self.firestore.collection(self.firestore.settings.notifications_collection)

    def _unread_query(self, user_id: str) -> Any:
        return (
            self._notifications()
            .where(filter=FieldFilter("recipient_id", "==", user_id))
            .where(filter=FieldFilter("is_read", "==", False))
        )

    def create(self, event: NotificationEvent) -> bool:
        """Store a new event.

        Returns:
            True if stored, False if an event with this ID already exists

        Raises:
            SourceUnavailable: If the write fails
        """
        doc_ref = self._notifications().document(event.id)

        with translate_errors("create notification"):
            try:
                doc_ref.create(event_to_doc(event))
            except google_exceptions.AlreadyExists:
                logger.info("Notification %s already stored, skipping", event.id)
                return False

        logger.info("Stored %s notification %s for %s", event.kind, event.id, event.recipient_id)
        return True

    def mark_read(self, event_id: str, recipient_id: str | None = None) -> bool:
        """Mark one event read.

        Args:
            event_id: Event to mark
            recipient_id: If given, the event must belong to this user

        Returns:
            True if the event changed, False if it was already read

        Raises:
            NotFound: If the event does not exist or belongs to someone else
            SourceUnavailable: If the update fails
        """
        doc_ref = self._notifications().document(event_id)

        def _mark(transaction: Any) -> bool:
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound(f"Notification {event_id} not found")

            data = snapshot.to_dict() or {}
            if recipient_id is not None and data.get("recipient_id") != recipient_id:
                raise NotFound(f"Notification {event_id} not found")
            if data.get("is_read"):
                return False

            transaction.update(doc_ref, {"is_read": True, "read_at": utcnow()})
            return True

        with translate_errors("mark notification read"):
            return self.firestore.run_transaction(_mark)

    def mark_all_read(self, user_id: str) -> int:
        """Mark every unread event for a user read.

        Writes are committed in batches of at most MAX_BATCH_SIZE.

        Returns:
            Number of events that changed

        Raises:
            SourceUnavailable: If the read or a batch commit fails
        """
        now = utcnow()
        updated = 0

        with translate_errors("mark all notifications read"):
            refs = [doc.reference for doc in self._unread_query(user_id).stream()]

            for start in range(0, len(refs), MAX_BATCH_SIZE):
                batch = self.firestore.batch()
                chunk = refs[start:start + MAX_BATCH_SIZE]
                for ref in chunk:
                    batch.update(ref, {"is_read": True, "read_at": now})
                batch.commit()
                updated += len(chunk)

        logger.info("Marked %d notifications read for %s", updated, user_id)
        return updated

    def count_unread(self, user_id: str) -> int:
        """Count unread events with an aggregation query.

        Raises:
            SourceUnavailable: If the query fails
        """
        with translate_errors("count unread notifications"):
            results = self._unread_query(user_id).count(alias="unread").get()

        return int(results[0][0].value) if results and results[0] else 0

    def list_for_user(
        self,
        user_id: str,
        limit: int,
        offset: int = 0,
        unread_only: bool = False,
    ) -> list[NotificationEvent]:
        """Fetch a page of a user's notifications, newest first.

        Raises:
            SourceUnavailable: If the read fails
        """
        query = self._unread_query(user_id) if unread_only else (
            self._notifications().where(filter=FieldFilter("recipient_id", "==", user_id))
        )
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING)
        if offset > 0:
            query = query.offset(offset)
        query = query.limit(limit)

        with translate_errors("list notifications"):
            return [event_from_doc(doc.id, doc.to_dict()) for doc in query.stream()]

    def fetch_all(self, user_id: str) -> list[NotificationEvent]:
        """Fetch every notification for a user (used for stats).

        Raises:
            SourceUnavailable: If the read fails
        """
        query = self._notifications().where(filter=FieldFilter("recipient_id", "==", user_id))

        with translate_errors("fetch notifications"):
            return [event_from_doc(doc.id, doc.to_dict()) for doc in query.stream()]
