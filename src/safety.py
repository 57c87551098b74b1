"""Safety Alert Coordinator - Wires alert rules, geofencing and notifications.

This module coordinates the safety features: creating and closing
alerts, recording responses, emergency calls, and finding users near a
point. Alert state checks run inside the alert store's transactions;
everything here is validation, geofencing and notification fan-out.
"""

import logging
from dataclasses import dataclass, field

from src.core.alerts import (
    AlertDraft,
    AlertResponse,
    SafetyAlert,
    summarize_responses,
    validate_description,
    validate_draft,
    validate_response,
)
from src.core.config import GeofenceConfig
from src.core.geo import Coordinate, bounding_box_around, validate_coordinate
from src.core.geofence import GeofenceResult, LocatedEntity, find_within
from src.core.errors import InvalidInput, SourceUnavailable
from src.core.notifications import (
    alert_response_event,
    format_emergency_sms,
    safety_alert_event,
)
from src.notification_fanout import FanoutSummary, NotificationFanout
from src.shell.alert_store import FirestoreAlertStore
from src.shell.candidate_store import FirestoreCandidateStore
from src.shell.contact_store import FirestoreContactStore
from src.shell.sms_client import SmsClient, SmsResponse


logger = logging.getLogger(__name__)


EMERGENCY_TITLE = "Emergency"


@dataclass
class AlertCreation:
    """A newly created alert and who was told about it.

    Attributes:
        alert: The stored alert
        notifications: Fan-out results for users in the affected area
    """
    alert: SafetyAlert
    notifications: FanoutSummary

    @property
    def notified(self) -> int:
        return self.notifications.stored


@dataclass
class EmergencyResult:
    """Outcome of an emergency call.

    Attributes:
        creation: The emergency alert and its nearby-user notifications
        sms_responses: One response per emergency contact texted
        contacts_error: Set when the user's contacts could not be read
    """
    creation: AlertCreation
    sms_responses: list[SmsResponse] = field(default_factory=list)
    contacts_error: str | None = None

    @property
    def sms_sent(self) -> int:
        return sum(1 for r in self.sms_responses if r.success)

    @property
    def sms_failed(self) -> int:
        return sum(1 for r in self.sms_responses if not r.success)

    @property
    def summary(self) -> str:
        """Human-readable summary of the emergency call."""
        return (
            f"Alert {self.creation.alert.id}: "
            f"{self.creation.notified} nearby users notified, "
            f"{self.sms_sent} contacts texted, "
            f"{self.sms_failed} texts failed"
        )


@dataclass
class AlertListing:
    """Alerts matching a query.

    Attributes:
        alerts: (alert, distance_km) pairs; distance is None without a center
        geofence: Radius search details when a center was given
    """
    alerts: list[tuple[SafetyAlert, float | None]]
    geofence: GeofenceResult | None = None


class SafetyAlertCoordinator:
    """Coordinates safety alerts, emergency calls and nearby-user search.

    This class wires together:
    - Alert store (alerts and responses)
    - Candidate store (user locations)
    - Contact store and SMS client (emergency escalation)
    - Notification fan-out (in-app notifications)
    - Core rules and geofence matching
    """

    def __init__(
        self,
        alert_store: FirestoreAlertStore,
        candidate_store: FirestoreCandidateStore,
        fanout: NotificationFanout,
        contact_store: FirestoreContactStore | None = None,
        sms_client: SmsClient | None = None,
        config: GeofenceConfig | None = None,
    ) -> None:
        """Initialize coordinator.

        Args:
            alert_store: Alert persistence
            candidate_store: User location reads and writes
            fanout: Notification delivery
            contact_store: Emergency contacts (needed for SMS escalation)
            sms_client: Twilio SMS client (None disables texting)
            config: Radius bounds and nearby-search defaults
        """
        self.alert_store = alert_store
        self.candidate_store = candidate_store
        self.fanout = fanout
        self.contact_store = contact_store
        self.sms_client = sms_client
        self.config = config or GeofenceConfig()

    def _search(
        self,
        center: Coordinate,
        radius_meters: float,
        population: list[LocatedEntity],
        limit: int,
        exclude_id: str | None = None,
    ) -> GeofenceResult:
        return find_within(
            center,
            radius_meters,
            population,
            limit,
            exclude_id=exclude_id,
            min_radius=self.config.min_radius_meters,
            max_radius=self.config.max_radius_meters,
        )

    def _users_near(
        self,
        center: Coordinate,
        radius_meters: float,
        limit: int | None,
        exclude_id: str | None,
    ) -> GeofenceResult:
        # The store query is bounded by the largest radius we could apply
        search_radius = min(max(radius_meters, self.config.min_radius_meters), self.config.max_radius_meters)
        population = self.candidate_store.fetch_located_users(bounding_box_around(center, search_radius))
        return self._search(
            center,
            radius_meters,
            population,
            limit if limit is not None else len(population),
            exclude_id=exclude_id,
        )

    def _notify_area(self, alert: SafetyAlert) -> FanoutSummary:
        """Notify every user inside an alert's affected area except its creator.

        The alert is already stored, so a failed location read is
        reported in the summary rather than raised.
        """
        try:
            result = self._users_near(
                alert.coordinate,
                alert.affected_area_meters,
                limit=None,
                exclude_id=alert.created_by,
            )
        except SourceUnavailable as e:
            logger.error("Alert %s stored but nearby users could not be read: %s", alert.id, str(e))
            return FanoutSummary(results=[], error=str(e))

        logger.info("Alert %s: %d users in affected area", alert.id, len(result.matches))

        return self.fanout.emit_many(
            safety_alert_event(match.entity.id, alert, match.distance_km)
            for match in result.matches
        )

    def create(self, draft: AlertDraft) -> AlertCreation:
        """Create an alert and notify users in its affected area.

        Failures after the alert is stored (reading nearby users or
        storing their notifications) are reported in the result.

        Raises:
            InvalidInput: If the draft is invalid
            SourceUnavailable: If the alert could not be stored
        """
        alert = self.alert_store.create(validate_draft(draft))
        return AlertCreation(alert=alert, notifications=self._notify_area(alert))

    def deactivate(self, alert_id: str, requester_id: str) -> SafetyAlert:
        """Close an alert. Closing a closed alert changes nothing.

        Raises:
            NotFound: If the alert does not exist
            Unauthorized: If requester is not the creator
        """
        return self.alert_store.deactivate(alert_id, requester_id)

    def update_description(self, alert_id: str, requester_id: str, description: str) -> SafetyAlert:
        """Edit an alert's description (creator only, active or not).

        Raises:
            InvalidInput: If the description is too long
            NotFound: If the alert does not exist
            Unauthorized: If requester is not the creator
        """
        validate_description(description)
        return self.alert_store.update_description(alert_id, requester_id, description)

    def record_response(
        self,
        alert_id: str,
        user_id: str,
        response_type: str,
        comment: str | None = None,
        responder_name: str | None = None,
    ) -> AlertResponse:
        """Record or replace a user's response to an active alert.

        The alert's creator is notified unless they responded themselves.

        Raises:
            InvalidInput: On an unknown response type or long comment
            NotFound: If the alert does not exist
            AlertNotActive: If the alert has been deactivated
        """
        validate_response(response_type, comment)
        alert, response = self.alert_store.record_response_if_active(
            alert_id, user_id, response_type, comment,
        )

        if alert.created_by != user_id:
            self.fanout.emit_many([alert_response_event(alert, response, responder_name)])

        return response

    def list_alerts(
        self,
        alert_type: str | None = None,
        severity: str | None = None,
        center: Coordinate | None = None,
        radius_meters: float | None = None,
        limit: int = 50,
    ) -> AlertListing:
        """Active alerts by type and severity, optionally within a radius.

        With a center, alerts are ordered nearest first; otherwise
        newest first.
        """
        alerts = self.alert_store.list_active(alert_type, severity)

        if center is None:
            return AlertListing(alerts=[(a, None) for a in alerts[:max(0, limit)]])

        radius = radius_meters if radius_meters is not None else self.config.nearby_default_radius_meters
        result = self._search(
            center,
            radius,
            [LocatedEntity(id=a.id, coordinate=a.coordinate, payload=a) for a in alerts],
            limit,
        )
        return AlertListing(
            alerts=[(m.entity.payload, m.distance_km) for m in result.matches],
            geofence=result,
        )

    def response_summary(self, alert_id: str) -> dict[str, int]:
        """Response counts per type for an alert.

        Raises:
            NotFound: If the alert does not exist
        """
        self.alert_store.get(alert_id)
        return summarize_responses(self.alert_store.list_responses(alert_id))

    def raise_emergency(
        self,
        user_id: str,
        coordinate: Coordinate,
        message: str | None = None,
        user_name: str | None = None,
    ) -> EmergencyResult:
        """Raise an emergency: alert nearby users and text emergency contacts.

        Contacts are texted whether or not the nearby-user notifications
        went out. Contact and text failures are reported in the result,
        never raised.

        Raises:
            InvalidInput: If the message is too long
            SourceUnavailable: If the alert could not be stored
        """
        creation = self.create(AlertDraft(
            type="emergency",
            severity="high",
            coordinate=coordinate,
            created_by=user_id,
            title=EMERGENCY_TITLE,
            description=message or "",
        ))

        result = EmergencyResult(creation=creation)

        if self.sms_client is None or self.contact_store is None:
            logger.info("SMS escalation disabled; no contacts texted for %s", user_id)
            return result

        try:
            contacts = self.contact_store.list_for_user(user_id)
        except SourceUnavailable as e:
            logger.error("Emergency for %s: contacts could not be read: %s", user_id, str(e))
            result.contacts_error = str(e)
            return result

        if not contacts:
            logger.warning("User %s raised an emergency with no emergency contacts", user_id)
            return result

        text = format_emergency_sms(user_name, creation.alert, message)
        result.sms_responses = self.sms_client.send_to_contacts(text, contacts)

        logger.info("Emergency for %s: %s", user_id, result.summary)
        return result

    def nearby_users(
        self,
        user_id: str,
        coordinate: Coordinate | None = None,
        radius_meters: float | None = None,
        limit: int | None = None,
    ) -> GeofenceResult:
        """Users near a point (the user's stored location by default).

        The requesting user is never in their own results.

        Raises:
            InvalidInput: If no location is given or stored, or limit < 1
        """
        if limit is None:
            limit = self.config.nearby_default_limit
        if limit < 1:
            raise InvalidInput(f"Limit must be at least 1, got {limit}")
        limit = min(limit, self.config.nearby_max_limit)

        if coordinate is None:
            coordinate = self.candidate_store.get_user_location(user_id)
        if coordinate is None:
            raise InvalidInput("Nearby search requires a location")

        radius = radius_meters if radius_meters is not None else self.config.nearby_default_radius_meters
        result = self._users_near(coordinate, radius, limit, exclude_id=user_id)

        if result.clamped:
            logger.info(
                "Nearby radius for %s clamped from %.0f to %.0f m",
                user_id, result.requested_radius_meters, result.applied_radius_meters,
            )
        return result

    def update_location(
        self,
        user_id: str,
        latitude: float | None,
        longitude: float | None,
        address: str | None = None,
    ) -> Coordinate:
        """Validate and store a user's current location.

        Raises:
            InvalidInput: If the coordinate is missing, partial or out of range
        """
        coordinate = validate_coordinate(latitude, longitude)
        if coordinate is None:
            raise InvalidInput("Location requires latitude and longitude")

        self.candidate_store.upsert_user_location(user_id, coordinate, address)
        return coordinate
