"""Alert Store - Imperative Shell.

Persists safety alerts and responses in Firestore. Mutations that depend
on current alert state (deactivate, description edits, responses) read
and write inside one transaction, so a response can never be recorded
against an alert that was deactivated concurrently.

Document structure:
    safety_alerts/{alert_id}:
        {"type", "severity", "location": {"latitude", "longitude"},
         "affected_area_meters", "created_by", "is_active",
         "title", "description", "created_at", "updated_at"}
    alert_responses/{alert_id}_{user_id}:
        {"alert_id", "user_id", "response_type", "comment", "responded_at"}
"""

import logging
from dataclasses import replace
from typing import Any

from google.cloud.firestore_v1.base_query import FieldFilter

from src.core.alerts import (
    AlertDraft,
    AlertResponse,
    SafetyAlert,
    check_accepts_responses,
    check_can_mutate,
    filter_alerts,
    response_key,
)
from src.core.errors import NotFound
from src.shell.firestore_client import (
    FirestoreClient,
    as_utc,
    coordinate_from_doc,
    coordinate_to_doc,
    translate_errors,
    utcnow,
)


logger = logging.getLogger(__name__)


def alert_from_doc(doc_id: str, data: dict[str, Any]) -> SafetyAlert | None:
    """Parse an alert document, or None if it has no location."""
    coordinate = coordinate_from_doc(data.get("location"))
    if coordinate is None:
        return None

    return SafetyAlert(
        id=doc_id,
        type=data.get("type", "info"),
        severity=data.get("severity", "low"),
        coordinate=coordinate,
        affected_area_meters=int(data.get("affected_area_meters") or 0),
        created_by=data.get("created_by", ""),
        is_active=bool(data.get("is_active", False)),
        created_at=as_utc(data.get("created_at")) or utcnow(),
        title=data.get("title") or "",
        description=data.get("description") or "",
        updated_at=as_utc(data.get("updated_at")),
    )


def response_from_doc(data: dict[str, Any]) -> AlertResponse:
    return AlertResponse(
        alert_id=data["alert_id"],
        user_id=data["user_id"],
        response_type=data["response_type"],
        comment=data.get("comment"),
        responded_at=as_utc(data.get("responded_at")),
    )


def _require_alert(snapshot: Any, alert_id: str) -> SafetyAlert:
    if not snapshot.exists:
        raise NotFound(f"Alert {alert_id} not found")
    alert = alert_from_doc(snapshot.id, snapshot.to_dict() or {})
    if alert is None:
        raise NotFound(f"Alert {alert_id} has no location")
    return alert


class FirestoreAlertStore:
    """Safety alert and response persistence."""

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client
        self.settings = firestore_client.settings

    def _alerts(self) -> Any:
        return self.firestore.collection(self.settings.alerts_collection)

    def _responses(self) -> Any:
        return self.firestore.collection(self.settings.responses_collection)

    def create(self, draft: AlertDraft) -> SafetyAlert:
        """Store a validated alert draft as a new active alert.

        Args:
            draft: Draft already passed through validate_draft

        Returns:
            The stored alert with its generated ID

        Raises:
            SourceUnavailable: If the write fails
        """
        now = utcnow()
        doc_ref = self._alerts().document()

        with translate_errors("create alert"):
            doc_ref.set({
                "type": draft.type,
                "severity": draft.severity,
                "location": coordinate_to_doc(draft.coordinate),
                "affected_area_meters": draft.affected_area_meters,
                "created_by": draft.created_by,
                "is_active": True,
                "title": draft.title,
                "description": draft.description,
                "created_at": now,
                "updated_at": now,
            })

        logger.info(
            "Created %s/%s alert %s by %s",
            draft.type, draft.severity, doc_ref.id, draft.created_by,
        )

        return SafetyAlert(
            id=doc_ref.id,
            type=draft.type,
            severity=draft.severity,
            coordinate=draft.coordinate,
            affected_area_meters=draft.affected_area_meters,
            created_by=draft.created_by,
            is_active=True,
            created_at=now,
            title=draft.title,
            description=draft.description,
            updated_at=now,
        )

    def get(self, alert_id: str) -> SafetyAlert:
        """Fetch one alert.

        Raises:
            NotFound: If the alert does not exist
            SourceUnavailable: If the read fails
        """
        with translate_errors("fetch alert"):
            snapshot = self._alerts().document(alert_id).get()
        return _require_alert(snapshot, alert_id)

    def deactivate(self, alert_id: str, requester_id: str) -> SafetyAlert:
        """Mark an alert inactive. Inactive alerts are left unchanged.

        Raises:
            NotFound: If the alert does not exist
            Unauthorized: If requester is not the creator
            SourceUnavailable: If the transaction fails
        """
        doc_ref = self._alerts().document(alert_id)

        def _deactivate(transaction: Any) -> SafetyAlert:
            alert = _require_alert(doc_ref.get(transaction=transaction), alert_id)
            check_can_mutate(alert, requester_id)
            if not alert.is_active:
                return alert

            now = utcnow()
            transaction.update(doc_ref, {"is_active": False, "updated_at": now})
            return replace(alert, is_active=False, updated_at=now)

        with translate_errors("deactivate alert"):
            alert = self.firestore.run_transaction(_deactivate)

        logger.info("Alert %s inactive (requested by %s)", alert_id, requester_id)
        return alert

    def update_description(self, alert_id: str, requester_id: str, description: str) -> SafetyAlert:
        """Replace an alert's description. Allowed whether active or not.

        Raises:
            NotFound: If the alert does not exist
            Unauthorized: If requester is not the creator
            SourceUnavailable: If the transaction fails
        """
        doc_ref = self._alerts().document(alert_id)

        def _update(transaction: Any) -> SafetyAlert:
            alert = _require_alert(doc_ref.get(transaction=transaction), alert_id)
            check_can_mutate(alert, requester_id)

            now = utcnow()
            transaction.update(doc_ref, {"description": description, "updated_at": now})
            return replace(alert, description=description, updated_at=now)

        with translate_errors("update alert description"):
            return self.firestore.run_transaction(_update)

    def list_active(
        self,
        alert_type: str | None = None,
        severity: str | None = None,
    ) -> list[SafetyAlert]:
        """Fetch active alerts, optionally by type and severity, newest first.

        Raises:
            SourceUnavailable: If the read fails
        """
        query = self._alerts().where(filter=FieldFilter("is_active", "==", True))
        if alert_type is not None:
            query = query.where(filter=FieldFilter("type", "==", alert_type))
        if severity is not None:
            query = query.where(filter=FieldFilter("severity", "==", severity))

        with translate_errors("list alerts"):
            alerts = [
                alert
                for alert in (alert_from_doc(doc.id, doc.to_dict() or {}) for doc in query.stream())
                if alert is not None
            ]

        logger.info("Fetched %d active alerts", len(alerts))
        return filter_alerts(alerts, alert_type, severity)

    def record_response_if_active(
        self,
        alert_id: str,
        user_id: str,
        response_type: str,
        comment: str | None = None,
    ) -> tuple[SafetyAlert, AlertResponse]:
        """Upsert a user's response, only while the alert is active.

        The alert's state is read in the same transaction as the write.

        Returns:
            (alert, stored response)

        Raises:
            NotFound: If the alert does not exist
            AlertNotActive: If the alert has been deactivated
            SourceUnavailable: If the transaction fails
        """
        alert_ref = self._alerts().document(alert_id)
        response_ref = self._responses().document(response_key(alert_id, user_id))

        def _record(transaction: Any) -> tuple[SafetyAlert, AlertResponse]:
            alert = _require_alert(alert_ref.get(transaction=transaction), alert_id)
            check_accepts_responses(alert)

            response = AlertResponse(
                alert_id=alert_id,
                user_id=user_id,
                response_type=response_type,
                comment=comment,
                responded_at=utcnow(),
            )
            transaction.set(response_ref, {
                "alert_id": alert_id,
                "user_id": user_id,
                "response_type": response_type,
                "comment": comment,
                "responded_at": response.responded_at,
            })
            return alert, response

        with translate_errors("record alert response"):
            alert, response = self.firestore.run_transaction(_record)

        logger.info("User %s responded %s to alert %s", user_id, response_type, alert_id)
        return alert, response

    def list_responses(self, alert_id: str) -> list[AlertResponse]:
        """Fetch all responses to an alert.

        Raises:
            SourceUnavailable: If the read fails
        """
        query = self._responses().where(filter=FieldFilter("alert_id", "==", alert_id))

        with translate_errors("list alert responses"):
            return [response_from_doc(doc.to_dict()) for doc in query.stream()]
