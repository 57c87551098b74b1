"""Service Entry Point.

Configures logging and wires the shell clients into the services. The
HTTP layer (api/main.py) calls build_services() once at startup.
"""

import logging
import os
from dataclasses import dataclass

from src.contacts import EmergencyContactRegistry
from src.core.config import Config, validate_config
from src.engagement import EngagementService
from src.feed_service import FeedService
from src.notification_fanout import NotificationFanout
from src.safety import SafetyAlertCoordinator
from src.shell.alert_store import FirestoreAlertStore
from src.shell.candidate_store import FirestoreCandidateStore
from src.shell.config_loader import load_config, load_config_from_env
from src.shell.contact_store import FirestoreContactStore
from src.shell.engagement_store import FirestoreEngagementStore
from src.shell.firestore_client import FirestoreClient
from src.shell.live_channel import LiveChannelHub
from src.shell.notification_store import FirestoreNotificationStore
from src.shell.settings_store import FirestoreSettingsStore
from src.shell.sms_client import SmsClient, SmsCredentials


# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration has critical errors."""


@dataclass
class Services:
    """Everything the HTTP layer needs, built once per process."""
    config: Config
    hub: LiveChannelHub
    feed: FeedService
    safety: SafetyAlertCoordinator
    contacts: EmergencyContactRegistry
    notifications: NotificationFanout
    engagement: EngagementService


def _get_config() -> Config:
    """Load configuration from file or environment."""
    config_path = os.environ.get("CONFIG_PATH")

    if config_path:
        return load_config(config_path)
    elif os.environ.get("CONFIG_FROM_ENV"):
        return load_config_from_env()
    else:
        return load_config()


def _check_config(config: Config) -> None:
    """Log warnings and refuse to start on critical errors.

    Raises:
        ConfigurationError: If any critical validation error exists
    """
    result = validate_config(config)

    for warning in result.warnings:
        logger.warning("Config warning [%s]: %s", warning.field, warning.message)

    if not result.valid:
        for error in result.critical_errors:
            logger.error("Config error [%s]: %s", error.field, error.message)
        raise ConfigurationError(
            "; ".join(f"{e.field}: {e.message}" for e in result.critical_errors)
        )


def build_services(
    config: Config | None = None,
    firestore_client: FirestoreClient | None = None,
    hub: LiveChannelHub | None = None,
) -> Services:
    """Build all services from configuration.

    Args:
        config: Application configuration (loaded if not provided)
        firestore_client: Shared Firestore client (created if not provided)
        hub: Live channel registry (created if not provided)

    Returns:
        Wired services

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    config = config or _get_config()
    _check_config(config)

    firestore_client = firestore_client or FirestoreClient(config.firestore)
    hub = hub or LiveChannelHub(queue_size=config.live_queue_size)

    candidate_store = FirestoreCandidateStore(firestore_client)
    contact_store = FirestoreContactStore(firestore_client)
    fanout = NotificationFanout(FirestoreNotificationStore(firestore_client), hub)

    sms_client = None
    if config.sms.enabled:
        sms_client = SmsClient(SmsCredentials.from_settings(config.sms))
    else:
        logger.info("SMS escalation disabled")

    services = Services(
        config=config,
        hub=hub,
        feed=FeedService(candidate_store, FirestoreSettingsStore(firestore_client), config.feed),
        safety=SafetyAlertCoordinator(
            FirestoreAlertStore(firestore_client),
            candidate_store,
            fanout,
            contact_store=contact_store,
            sms_client=sms_client,
            config=config.geofence,
        ),
        contacts=EmergencyContactRegistry(contact_store),
        notifications=fanout,
        engagement=EngagementService(FirestoreEngagementStore(firestore_client), fanout),
    )

    logger.info("Services ready (database=%s)", config.firestore.database or "(default)")
    return services
