"""Imperative Shell - I/O and side effects.

This module contains all code that interacts with external systems:
- Firestore stores (posts, locations, settings, alerts, contacts,
  notifications, likes)
- Live channel hub (in-process WebSocket delivery)
- Twilio SMS client (emergency contacts)
- Configuration loading (environment/files/Secret Manager)

Keep this layer thin and simple. All business logic should be in core.
"""

from src.shell.firestore_client import FirestoreClient
from src.shell.candidate_store import FirestoreCandidateStore
from src.shell.settings_store import FirestoreSettingsStore
from src.shell.alert_store import FirestoreAlertStore
from src.shell.contact_store import FirestoreContactStore
from src.shell.notification_store import FirestoreNotificationStore
from src.shell.engagement_store import FirestoreEngagementStore
from src.shell.live_channel import LiveChannelHub
from src.shell.sms_client import SmsClient
from src.shell.config_loader import load_config

__all__ = [
    "FirestoreClient",
    "FirestoreCandidateStore",
    "FirestoreSettingsStore",
    "FirestoreAlertStore",
    "FirestoreContactStore",
    "FirestoreNotificationStore",
    "FirestoreEngagementStore",
    "LiveChannelHub",
    "SmsClient",
    "load_config",
]
