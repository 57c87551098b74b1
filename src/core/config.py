"""Configuration models - Pure data structures.

These are domain models for configuration. The actual loading
(I/O) is handled by the shell layer.
"""

from dataclasses import dataclass, field

from src.core.geofence import MAX_RADIUS_METERS, MIN_RADIUS_METERS
from src.core.ranking import RankingParams


@dataclass
class FeedConfig:
    """Feed request limits.

    Attributes:
        candidate_window_size: Max posts read from the store per request
        default_page_size: Page size when the caller gives none
        max_page_size: Largest page a caller may request
        ranking: Scoring constants
    """
    candidate_window_size: int = 500
    default_page_size: int = 20
    max_page_size: int = 100
    ranking: RankingParams = field(default_factory=RankingParams)


@dataclass
class GeofenceConfig:
    """Radius bounds and defaults for geofence queries.

    Attributes:
        min_radius_meters: Smallest radius; smaller requests are clamped up
        max_radius_meters: Largest radius; larger requests are clamped down
        nearby_default_radius_meters: Radius for nearby users when unspecified
        nearby_default_limit: Result size for nearby users when unspecified
        nearby_max_limit: Largest result size a caller may request
    """
    min_radius_meters: float = MIN_RADIUS_METERS
    max_radius_meters: float = MAX_RADIUS_METERS
    nearby_default_radius_meters: float = 1000.0
    nearby_default_limit: int = 20
    nearby_max_limit: int = 50


@dataclass
class FirestoreSettings:
    """Firestore database and collection names."""
    project_id: str | None = None
    database: str | None = None
    posts_collection: str = "posts"
    follows_collection: str = "follows"
    locations_collection: str = "user_locations"
    settings_collection: str = "user_settings"
    likes_collection: str = "post_likes"
    alerts_collection: str = "safety_alerts"
    responses_collection: str = "alert_responses"
    contacts_collection: str = "emergency_contacts"
    notifications_collection: str = "notifications"


@dataclass
class SmsSettings:
    """Twilio SMS settings for emergency contact escalation.

    Attributes:
        enabled: Send texts to emergency contacts on emergencies
        account_sid: Twilio Account SID
        auth_token: Twilio Auth Token
        from_number: Sender number in E.164 format
    """
    enabled: bool = False
    account_sid: str = ""
    auth_token: str = ""
    from_number: str = ""


@dataclass
class Config:
    """Application configuration.

    This is a pure data structure - no I/O or side effects.
    """
    feed: FeedConfig = field(default_factory=FeedConfig)
    geofence: GeofenceConfig = field(default_factory=GeofenceConfig)
    firestore: FirestoreSettings = field(default_factory=FirestoreSettings)
    sms: SmsSettings = field(default_factory=SmsSettings)
    live_queue_size: int = 100


@dataclass
class ValidationError:
    """A configuration validation error.

    Attributes:
        field: The field that has an error
        message: Human-readable error description
        severity: 'error' or 'warning'
    """
    field: str
    message: str
    severity: str = "error"


@dataclass
class ValidationResult:
    """Result of validating configuration.

    Attributes:
        valid: True if no errors (warnings are OK)
        errors: List of validation errors/warnings
    """
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def warnings(self) -> list[ValidationError]:
        """Get only warnings."""
        return [e for e in self.errors if e.severity == "warning"]

    @property
    def critical_errors(self) -> list[ValidationError]:
        """Get only critical errors."""
        return [e for e in self.errors if e.severity == "error"]


def _validate_feed(feed: FeedConfig) -> list[ValidationError]:
    errors = []

    if feed.candidate_window_size <= 0:
        errors.append(ValidationError(
            field="feed.candidate_window_size",
            message=f"Must be positive, got {feed.candidate_window_size}",
        ))

    if not 0 < feed.default_page_size <= feed.max_page_size:
        errors.append(ValidationError(
            field="feed.default_page_size",
            message=(
                f"Must be in (0, max_page_size={feed.max_page_size}], "
                f"got {feed.default_page_size}"
            ),
        ))

    if feed.ranking.half_life_hours <= 0:
        errors.append(ValidationError(
            field="feed.ranking.half_life_hours",
            message=f"Must be positive, got {feed.ranking.half_life_hours}",
        ))

    if feed.ranking.max_age_days <= 0:
        errors.append(ValidationError(
            field="feed.ranking.max_age_days",
            message=f"Must be positive, got {feed.ranking.max_age_days}",
        ))

    if not 0.0 <= feed.ranking.neutral_proximity <= 1.0:
        errors.append(ValidationError(
            field="feed.ranking.neutral_proximity",
            message=f"Must be in [0, 1], got {feed.ranking.neutral_proximity}",
        ))

    if feed.candidate_window_size > 5000:
        errors.append(ValidationError(
            field="feed.candidate_window_size",
            message="Large candidate windows make every feed request slow",
            severity="warning",
        ))

    return errors


def _validate_geofence(geofence: GeofenceConfig) -> list[ValidationError]:
    errors = []

    if geofence.min_radius_meters <= 0:
        errors.append(ValidationError(
            field="geofence.min_radius_meters",
            message=f"Must be positive, got {geofence.min_radius_meters}",
        ))

    if geofence.min_radius_meters > geofence.max_radius_meters:
        errors.append(ValidationError(
            field="geofence",
            message=(
                f"min_radius_meters ({geofence.min_radius_meters}) > "
                f"max_radius_meters ({geofence.max_radius_meters})"
            ),
        ))

    if not geofence.min_radius_meters <= geofence.nearby_default_radius_meters <= geofence.max_radius_meters:
        errors.append(ValidationError(
            field="geofence.nearby_default_radius_meters",
            message="Default radius lies outside the allowed range and will be clamped",
            severity="warning",
        ))

    if not 0 < geofence.nearby_default_limit <= geofence.nearby_max_limit:
        errors.append(ValidationError(
            field="geofence.nearby_default_limit",
            message=(
                f"Must be in (0, nearby_max_limit={geofence.nearby_max_limit}], "
                f"got {geofence.nearby_default_limit}"
            ),
        ))

    return errors


def _validate_sms(sms: SmsSettings) -> list[ValidationError]:
    if not sms.enabled:
        return []

    errors = []
    for name in ("account_sid", "auth_token", "from_number"):
        value = getattr(sms, name)
        if not value or value.startswith("${"):
            errors.append(ValidationError(
                field=f"sms.{name}",
                message="Not resolved (missing or still a placeholder); emergency texts will fail",
                severity="warning",
            ))
    return errors


def validate_config(config: Config) -> ValidationResult:
    """Validate configuration for errors and warnings.

    Pure function.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with any errors/warnings found
    """
    errors: list[ValidationError] = []

    errors.extend(_validate_feed(config.feed))
    errors.extend(_validate_geofence(config.geofence))
    errors.extend(_validate_sms(config.sms))

    if config.live_queue_size <= 0:
        errors.append(ValidationError(
            field="live_queue_size",
            message=f"Must be positive, got {config.live_queue_size}",
        ))

    has_critical = any(e.severity == "error" for e in errors)

    return ValidationResult(
        valid=not has_critical,
        errors=errors,
    )
