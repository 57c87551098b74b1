"""Configuration Loader - Imperative Shell.

This module handles loading configuration from YAML files and
environment variables. All I/O is contained here.

Models (Config, FeedConfig, ...) are defined in src/core/config.py
to avoid information leakage between layers.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from src.core.config import Config, FeedConfig, FirestoreSettings, GeofenceConfig, SmsSettings
from src.core.ranking import RankingParams
from src.shell.secret_manager_client import SecretManagerClient, SecretManagerConfig


logger = logging.getLogger(__name__)


# YAML key under firestore.collections -> FirestoreSettings attribute
_COLLECTION_KEYS = {
    "posts": "posts_collection",
    "follows": "follows_collection",
    "user_locations": "locations_collection",
    "user_settings": "settings_collection",
    "post_likes": "likes_collection",
    "safety_alerts": "alerts_collection",
    "alert_responses": "responses_collection",
    "emergency_contacts": "contacts_collection",
    "notifications": "notifications_collection",
}


def _get_secret_manager_client() -> SecretManagerClient | None:
    """Get a Secret Manager client.

    Returns None if no project is configured (e.g., local development).
    """
    project_id = os.environ.get("GCP_PROJECT") or os.environ.get("GOOGLE_CLOUD_PROJECT")
    if project_id:
        return SecretManagerClient(SecretManagerConfig(project_id=project_id))
    return None


def _resolve_value(value: Any, secret_client: SecretManagerClient | None = None) -> Any:
    """Resolve a value that may be a ${...} placeholder.

    Without a secret client only ${VAR} environment placeholders resolve.
    """
    if not isinstance(value, str):
        return value

    if secret_client:
        return secret_client.resolve(value)

    if value.startswith("${") and value.endswith("}"):
        var_spec = value[2:-1]
        if not var_spec.startswith("secret:"):
            env_value = os.environ.get(var_spec)
            if env_value:
                return env_value
            logger.warning("Environment variable %s not set", var_spec)

    return value


def _parse_ranking(data: dict[str, Any]) -> RankingParams:
    defaults = RankingParams()
    return RankingParams(
        half_life_hours=float(data.get("half_life_hours", defaults.half_life_hours)),
        max_age_days=int(data.get("max_age_days", defaults.max_age_days)),
        neutral_proximity=float(data.get("neutral_proximity", defaults.neutral_proximity)),
    )


def _parse_feed(data: dict[str, Any]) -> FeedConfig:
    defaults = FeedConfig()
    return FeedConfig(
        candidate_window_size=int(data.get("candidate_window_size", defaults.candidate_window_size)),
        default_page_size=int(data.get("default_page_size", defaults.default_page_size)),
        max_page_size=int(data.get("max_page_size", defaults.max_page_size)),
        ranking=_parse_ranking(data.get("ranking") or {}),
    )


def _parse_geofence(data: dict[str, Any]) -> GeofenceConfig:
    defaults = GeofenceConfig()
    return GeofenceConfig(
        min_radius_meters=float(data.get("min_radius_meters", defaults.min_radius_meters)),
        max_radius_meters=float(data.get("max_radius_meters", defaults.max_radius_meters)),
        nearby_default_radius_meters=float(
            data.get("nearby_default_radius_meters", defaults.nearby_default_radius_meters)
        ),
        nearby_default_limit=int(data.get("nearby_default_limit", defaults.nearby_default_limit)),
        nearby_max_limit=int(data.get("nearby_max_limit", defaults.nearby_max_limit)),
    )


def _parse_firestore(data: dict[str, Any]) -> FirestoreSettings:
    collections = data.get("collections") or {}
    unknown = set(collections) - set(_COLLECTION_KEYS)
    if unknown:
        logger.warning("Ignoring unknown collection keys: %s", ", ".join(sorted(unknown)))

    overrides = {
        _COLLECTION_KEYS[key]: str(name)
        for key, name in collections.items()
        if key in _COLLECTION_KEYS
    }
    return FirestoreSettings(
        project_id=data.get("project_id"),
        database=data.get("database"),
        **overrides,
    )


def _parse_sms(
    data: dict[str, Any],
    secret_client: SecretManagerClient | None = None,
) -> SmsSettings:
    """Parse Twilio settings, resolving credential placeholders.

    Credentials of a disabled channel are not resolved.
    """
    if not data.get("enabled", False):
        return SmsSettings(enabled=False)

    return SmsSettings(
        enabled=True,
        account_sid=_resolve_value(data.get("account_sid", ""), secret_client),
        auth_token=_resolve_value(data.get("auth_token", ""), secret_client),
        from_number=_resolve_value(data.get("from_number", ""), secret_client),
    )


def load_config_from_dict(data: dict[str, Any]) -> Config:
    """Load configuration from a dictionary.

    This is a pure-ish function (only placeholder expansion has side effects).

    Args:
        data: Configuration dictionary

    Returns:
        Parsed Config object
    """
    secret_client = _get_secret_manager_client()

    return Config(
        feed=_parse_feed(data.get("feed") or {}),
        geofence=_parse_geofence(data.get("geofence") or {}),
        firestore=_parse_firestore(data.get("firestore") or {}),
        sms=_parse_sms(data.get("sms") or {}, secret_client),
        live_queue_size=int(data.get("live_queue_size", Config().live_queue_size)),
    )


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file.

    This method performs file I/O.

    Args:
        config_path: Path to YAML config file.
                    If None, uses CONFIG_PATH env var or default.

    Returns:
        Parsed Config object (defaults if the file is missing or empty)

    Raises:
        yaml.YAMLError: If config file is invalid YAML
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", "config/config.yaml")

    path = Path(config_path)

    logger.info("Loading configuration from %s", path)

    if not path.exists():
        logger.warning("Config file not found: %s, using defaults", path)
        return Config()

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        logger.warning("Config file is empty, using defaults")
        return Config()

    config = load_config_from_dict(data)

    logger.info(
        "Loaded config: window=%d posts, radius=[%.0f, %.0f] m, sms=%s",
        config.feed.candidate_window_size,
        config.geofence.min_radius_meters,
        config.geofence.max_radius_meters,
        "on" if config.sms.enabled else "off",
    )

    return config


def load_config_from_env() -> Config:
    """Load configuration from environment variables only.

    Used for deployments without a config file. Recognized variables:
        FIRESTORE_PROJECT, FIRESTORE_DATABASE, FEED_WINDOW_SIZE,
        FEED_HALF_LIFE_HOURS, FEED_MAX_AGE_DAYS, LIVE_QUEUE_SIZE,
        SMS_ENABLED, TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN,
        TWILIO_FROM_NUMBER. TWILIO_AUTH_TOKEN_SECRET names a Secret
        Manager secret tried before TWILIO_AUTH_TOKEN.

    Returns:
        Config object from environment
    """
    ranking_defaults = RankingParams()
    ranking = RankingParams(
        half_life_hours=float(os.environ.get("FEED_HALF_LIFE_HOURS", ranking_defaults.half_life_hours)),
        max_age_days=int(os.environ.get("FEED_MAX_AGE_DAYS", ranking_defaults.max_age_days)),
    )
    feed = FeedConfig(
        candidate_window_size=int(os.environ.get("FEED_WINDOW_SIZE", FeedConfig().candidate_window_size)),
        ranking=ranking,
    )

    auth_token = ""
    secret_name = os.environ.get("TWILIO_AUTH_TOKEN_SECRET")
    secret_client = _get_secret_manager_client()
    if secret_name and secret_client:
        auth_token = secret_client.get_secret(secret_name) or ""
    if not auth_token:
        auth_token = os.environ.get("TWILIO_AUTH_TOKEN", "")

    sms = SmsSettings(
        enabled=os.environ.get("SMS_ENABLED", "").lower() in ("1", "true", "yes"),
        account_sid=os.environ.get("TWILIO_ACCOUNT_SID", ""),
        auth_token=auth_token,
        from_number=os.environ.get("TWILIO_FROM_NUMBER", ""),
    )

    return Config(
        feed=feed,
        firestore=FirestoreSettings(
            project_id=os.environ.get("FIRESTORE_PROJECT"),
            database=os.environ.get("FIRESTORE_DATABASE"),
        ),
        sms=sms,
        live_queue_size=int(os.environ.get("LIVE_QUEUE_SIZE", Config().live_queue_size)),
    )
