"""Neighborhood API - FastAPI service over the feed, safety and notification services.

Routes are thin: they parse input, call one service method and shape
the response. Engine errors map to HTTP status codes in one handler.
The acting user is passed in the X-User-Id header; authentication is
handled in front of this service.
"""

import asyncio
import logging
import threading
from typing import Any

from fastapi import Depends, FastAPI, Header, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.core.alerts import AlertDraft, SafetyAlert
from src.core.contacts import EmergencyContact
from src.core.errors import (
    AlertNotActive,
    EngineError,
    InvalidInput,
    NotFound,
    RequestCancelled,
    SourceUnavailable,
    Unauthorized,
)
from src.core.geo import validate_coordinate
from src.core.geofence import GeofenceResult
from src.core.notifications import NotificationEvent, to_payload
from src.engagement import LikeOutcome
from src.main import Services, build_services

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Neighborhood API",
    description="Proximity feed, safety alerts and notifications",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:8081"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Client closed the request before a response was sent (nginx convention)
HTTP_CLIENT_CLOSED_REQUEST = 499

# Most specific first
_ERROR_STATUS = (
    (SourceUnavailable, 503),
    (Unauthorized, 403),
    (NotFound, 404),
    (AlertNotActive, 409),
    (InvalidInput, 422),
    (RequestCancelled, HTTP_CLIENT_CLOSED_REQUEST),
)

DISCONNECT_POLL_SECONDS = 0.1


# ===== Request Models =====

class LocationUpdate(BaseModel):
    latitude: float | None = None
    longitude: float | None = None
    address: str | None = None


class AlertCreate(BaseModel):
    type: str
    severity: str
    latitude: float | None = None
    longitude: float | None = None
    title: str = ""
    description: str = ""
    affected_area_meters: int | None = None


class DescriptionUpdate(BaseModel):
    description: str


class ResponseCreate(BaseModel):
    response_type: str
    comment: str | None = None
    responder_name: str | None = None


class EmergencyCreate(BaseModel):
    latitude: float | None = None
    longitude: float | None = None
    message: str | None = None
    user_name: str | None = None


class ContactCreate(BaseModel):
    name: str
    phone: str
    relationship: str | None = None
    is_primary: bool = False


class ContactUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None
    relationship: str | None = None
    is_primary: bool | None = None


class LikeRequest(BaseModel):
    user_name: str | None = None


class CommentNotification(BaseModel):
    text: str
    commenter_name: str | None = None


class MessageNotification(BaseModel):
    recipient_id: str
    text: str
    sender_name: str | None = None


class FriendRequestNotification(BaseModel):
    recipient_id: str
    sender_name: str | None = None


# ===== Service Wiring =====

_services: Services | None = None


def get_services() -> Services:
    """Get or build the process-wide services."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status_code = next((code for cls, code in _ERROR_STATUS if isinstance(exc, cls)), 500)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, str(exc))
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


# ===== Serialization =====

def _alert_to_dict(alert: SafetyAlert, distance_km: float | None = None) -> dict[str, Any]:
    data = {
        "id": alert.id,
        "type": alert.type,
        "severity": alert.severity,
        "latitude": alert.coordinate.latitude,
        "longitude": alert.coordinate.longitude,
        "affected_area_meters": alert.affected_area_meters,
        "created_by": alert.created_by,
        "is_active": alert.is_active,
        "title": alert.title,
        "description": alert.description,
        "created_at": alert.created_at.isoformat(),
        "updated_at": alert.updated_at.isoformat() if alert.updated_at else None,
    }
    if distance_km is not None:
        data["distance_km"] = round(distance_km, 3)
    return data


def _contact_to_dict(contact: EmergencyContact) -> dict[str, Any]:
    return {
        "id": contact.id,
        "name": contact.name,
        "phone": contact.phone,
        "relationship": contact.relationship,
        "is_primary": contact.is_primary,
        "created_at": contact.created_at.isoformat() if contact.created_at else None,
    }


def _geofence_to_dict(result: GeofenceResult) -> dict[str, Any]:
    return {
        "requested_radius_meters": result.requested_radius_meters,
        "applied_radius_meters": result.applied_radius_meters,
        "clamped": result.clamped,
    }


def _notifications_to_list(events: list[NotificationEvent]) -> list[dict[str, Any]]:
    return [to_payload(e) for e in events]


async def _watch_disconnect(request: Request, cancel_event: threading.Event) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)
    logger.info("Client disconnected from %s", request.url.path)
    cancel_event.set()


# ===== Feed =====

@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.get("/feed/{viewer_id}")
async def get_feed(
    viewer_id: str,
    request: Request,
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    latitude: float | None = Query(default=None),
    longitude: float | None = Query(default=None),
    mode: str | None = Query(default=None),
    services: Services = Depends(get_services),
):
    """One page of a viewer's feed: (item_id, score, distance_km) plus has_more."""
    coordinate = validate_coordinate(latitude, longitude)
    cancel_event = threading.Event()

    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        result = await run_in_threadpool(
            services.feed.get_feed,
            viewer_id,
            limit,
            offset,
            coordinate,
            mode,
            cancel_event,
        )
    finally:
        watcher.cancel()

    page = result.page
    return {
        "mode": result.mode,
        "items": [
            {
                "item_id": s.item.id,
                "score": s.score,
                "distance_km": round(s.distance_km, 3) if s.distance_km is not None else None,
            }
            for s in page.items
        ],
        "offset": page.offset,
        "limit": page.limit,
        "has_more": page.has_more,
        "next_offset": page.next_offset,
    }


# ===== Locations and Nearby Users =====

@app.put("/users/{user_id}/location")
def update_location(
    user_id: str,
    body: LocationUpdate,
    services: Services = Depends(get_services),
):
    coordinate = services.safety.update_location(user_id, body.latitude, body.longitude, body.address)
    return {"user_id": user_id, "latitude": coordinate.latitude, "longitude": coordinate.longitude}


@app.get("/users/{user_id}/nearby")
def nearby_users(
    user_id: str,
    latitude: float | None = Query(default=None),
    longitude: float | None = Query(default=None),
    radius_meters: float | None = Query(default=None, gt=0),
    limit: int | None = Query(default=None, ge=1),
    services: Services = Depends(get_services),
):
    result = services.safety.nearby_users(
        user_id,
        coordinate=validate_coordinate(latitude, longitude),
        radius_meters=radius_meters,
        limit=limit,
    )
    return {
        "users": [
            {"user_id": m.entity.id, "distance_km": round(m.distance_km, 3)}
            for m in result.matches
        ],
        **_geofence_to_dict(result),
    }


# ===== Safety Alerts =====

@app.post("/alerts", status_code=201)
def create_alert(
    body: AlertCreate,
    x_user_id: str = Header(),
    services: Services = Depends(get_services),
):
    creation = services.safety.create(AlertDraft(
        type=body.type,
        severity=body.severity,
        coordinate=validate_coordinate(body.latitude, body.longitude),
        created_by=x_user_id,
        title=body.title,
        description=body.description,
        affected_area_meters=body.affected_area_meters,
    ))
    return {
        "alert": _alert_to_dict(creation.alert),
        "notified": creation.notified,
        "notification_error": creation.notifications.error,
    }


@app.get("/alerts")
def list_alerts(
    type: str | None = Query(default=None),
    severity: str | None = Query(default=None),
    latitude: float | None = Query(default=None),
    longitude: float | None = Query(default=None),
    radius_meters: float | None = Query(default=None, gt=0),
    limit: int = Query(default=50, ge=1, le=200),
    services: Services = Depends(get_services),
):
    listing = services.safety.list_alerts(
        alert_type=type,
        severity=severity,
        center=validate_coordinate(latitude, longitude),
        radius_meters=radius_meters,
        limit=limit,
    )
    response: dict[str, Any] = {
        "alerts": [_alert_to_dict(alert, distance) for alert, distance in listing.alerts],
    }
    if listing.geofence is not None:
        response.update(_geofence_to_dict(listing.geofence))
    return response


@app.post("/alerts/{alert_id}/deactivate")
def deactivate_alert(
    alert_id: str,
    x_user_id: str = Header(),
    services: Services = Depends(get_services),
):
    return {"alert": _alert_to_dict(services.safety.deactivate(alert_id, x_user_id))}


@app.patch("/alerts/{alert_id}")
def update_alert_description(
    alert_id: str,
    body: DescriptionUpdate,
    x_user_id: str = Header(),
    services: Services = Depends(get_services),
):
    alert = services.safety.update_description(alert_id, x_user_id, body.description)
    return {"alert": _alert_to_dict(alert)}


@app.put("/alerts/{alert_id}/responses")
def record_response(
    alert_id: str,
    body: ResponseCreate,
    x_user_id: str = Header(),
    services: Services = Depends(get_services),
):
    response = services.safety.record_response(
        alert_id,
        x_user_id,
        body.response_type,
        body.comment,
        body.responder_name,
    )
    return {
        "alert_id": response.alert_id,
        "user_id": response.user_id,
        "response_type": response.response_type,
        "comment": response.comment,
        "responded_at": response.responded_at.isoformat() if response.responded_at else None,
    }


@app.get("/alerts/{alert_id}/responses/summary")
def response_summary(alert_id: str, services: Services = Depends(get_services)):
    return {"alert_id": alert_id, "counts": services.safety.response_summary(alert_id)}


@app.post("/emergency", status_code=201)
def raise_emergency(
    body: EmergencyCreate,
    x_user_id: str = Header(),
    services: Services = Depends(get_services),
):
    coordinate = validate_coordinate(body.latitude, body.longitude)
    if coordinate is None:
        raise InvalidInput("Emergency requires a location")

    result = services.safety.raise_emergency(x_user_id, coordinate, body.message, body.user_name)
    return {
        "alert": _alert_to_dict(result.creation.alert),
        "notified": result.creation.notified,
        "notification_error": result.creation.notifications.error,
        "sms_sent": result.sms_sent,
        "sms_failed": result.sms_failed,
        "contacts_error": result.contacts_error,
    }


# ===== Emergency Contacts =====

@app.get("/users/{user_id}/contacts")
def list_contacts(user_id: str, services: Services = Depends(get_services)):
    return {"contacts": [_contact_to_dict(c) for c in services.contacts.list_contacts(user_id)]}


@app.post("/users/{user_id}/contacts", status_code=201)
def add_contact(
    user_id: str,
    body: ContactCreate,
    services: Services = Depends(get_services),
):
    contact = services.contacts.add(user_id, body.name, body.phone, body.relationship, body.is_primary)
    return {"contact": _contact_to_dict(contact)}


@app.patch("/users/{user_id}/contacts/{contact_id}")
def update_contact(
    user_id: str,
    contact_id: str,
    body: ContactUpdate,
    services: Services = Depends(get_services),
):
    """Change some of a contact's fields; omitted fields are left as they are."""
    contact = services.contacts.update(
        user_id, contact_id, body.name, body.phone, body.relationship, body.is_primary,
    )
    return {"contact": _contact_to_dict(contact)}


@app.put("/users/{user_id}/contacts/{contact_id}/primary")
def set_primary_contact(
    user_id: str,
    contact_id: str,
    services: Services = Depends(get_services),
):
    return {"contact": _contact_to_dict(services.contacts.set_primary(user_id, contact_id))}


@app.delete("/users/{user_id}/contacts/{contact_id}")
def remove_contact(
    user_id: str,
    contact_id: str,
    services: Services = Depends(get_services),
):
    removal = services.contacts.remove(user_id, contact_id)
    return {
        "removed": removal.removed.id,
        "remaining": removal.remaining,
        "needs_primary": removal.needs_primary,
    }


# ===== Notifications =====

@app.get("/users/{user_id}/notifications")
def list_notifications(
    user_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    unread_only: bool = Query(default=False),
    services: Services = Depends(get_services),
):
    events = services.notifications.list_notifications(user_id, limit, offset, unread_only)
    return {"notifications": _notifications_to_list(events)}


@app.get("/users/{user_id}/notifications/unread-count")
def unread_count(user_id: str, services: Services = Depends(get_services)):
    return {"user_id": user_id, "unread": services.notifications.unread_count(user_id)}


@app.get("/users/{user_id}/notifications/stats")
def notification_stats(user_id: str, services: Services = Depends(get_services)):
    stats = services.notifications.stats(user_id)
    return {"total": stats.total, "unread": stats.unread, "by_kind": stats.by_kind}


@app.post("/notifications/{event_id}/read")
def mark_read(
    event_id: str,
    x_user_id: str = Header(),
    services: Services = Depends(get_services),
):
    changed = services.notifications.mark_read(event_id, x_user_id)
    return {"id": event_id, "changed": changed}


@app.post("/users/{user_id}/notifications/read-all")
def mark_all_read(user_id: str, services: Services = Depends(get_services)):
    return {"user_id": user_id, "updated": services.notifications.mark_all_read(user_id)}


@app.websocket("/ws/notifications/{user_id}")
async def notifications_socket(
    websocket: WebSocket,
    user_id: str,
    services: Services = Depends(get_services),
):
    """Live notifications for one user.

    On connect the server sends {"type": "unread_count", "count": n},
    then {"type": "notification", "data": {...}} for each new event.
    Sending "ping" gets {"type": "pong"}.
    """
    await websocket.accept()

    async def send(payload: dict[str, Any]) -> None:
        await websocket.send_json({"type": "notification", "data": payload})

    async def wait_closed() -> None:
        try:
            while True:
                text = await websocket.receive_text()
                if text == "ping":
                    await websocket.send_json({"type": "pong"})
        except WebSocketDisconnect:
            return

    count = await run_in_threadpool(services.notifications.unread_count, user_id)
    await websocket.send_json({"type": "unread_count", "count": count})

    await services.hub.relay(user_id, send, wait_closed)


# ===== Engagement =====

def _like_to_dict(outcome: LikeOutcome) -> dict[str, Any]:
    return {
        "post_id": outcome.result.post_id,
        "user_id": outcome.result.user_id,
        "liked": outcome.result.liked,
        "like_count": outcome.result.like_count,
        "changed": outcome.result.changed,
    }


@app.put("/posts/{post_id}/like")
def like_post(
    post_id: str,
    body: LikeRequest | None = None,
    x_user_id: str = Header(),
    services: Services = Depends(get_services),
):
    """Like a post. Repeating the request leaves the like and count as they are."""
    outcome = services.engagement.set_like(post_id, x_user_id, True, body.user_name if body else None)
    return _like_to_dict(outcome)


@app.delete("/posts/{post_id}/like")
def unlike_post(
    post_id: str,
    x_user_id: str = Header(),
    services: Services = Depends(get_services),
):
    return _like_to_dict(services.engagement.set_like(post_id, x_user_id, False))


@app.post("/posts/{post_id}/comment-notifications")
def notify_comment(
    post_id: str,
    body: CommentNotification,
    x_user_id: str = Header(),
    services: Services = Depends(get_services),
):
    result = services.engagement.notify_comment(post_id, x_user_id, body.text, body.commenter_name)
    return {"notified": bool(result and result.stored)}


@app.post("/messages/{message_id}/notifications")
def notify_message(
    message_id: str,
    body: MessageNotification,
    x_user_id: str = Header(),
    services: Services = Depends(get_services),
):
    result = services.engagement.notify_message(
        message_id, x_user_id, body.recipient_id, body.text, body.sender_name,
    )
    return {"notified": result.stored, "duplicate": result.duplicate}


@app.post("/friend-requests/{request_id}/notifications")
def notify_friend_request(
    request_id: str,
    body: FriendRequestNotification,
    x_user_id: str = Header(),
    services: Services = Depends(get_services),
):
    result = services.engagement.notify_friend_request(
        request_id, x_user_id, body.recipient_id, body.sender_name,
    )
    return {"notified": result.stored, "duplicate": result.duplicate}
