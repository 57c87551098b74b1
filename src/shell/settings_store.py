"""Settings Store - Imperative Shell.

Reads per-user feed preferences from Firestore. Users edit these
elsewhere; the engine only consumes the resolved values.

Document structure:
    user_settings/{user_id}:
        {"feed_weights": {"w_freshness": 0.45, ...},
         "interests": ["gardening", ...],
         "feed_default": "ranked"}
"""

import logging
from dataclasses import dataclass, field

from src.core.feed import FEED_MODE_RANKED, resolve_feed_mode
from src.core.ranking import WeightVector
from src.shell.firestore_client import FirestoreClient, translate_errors


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewerPreferences:
    """A user's feed preferences.

    Attributes:
        weights: Ranking weights (defaults when unset)
        interest_tags: Lower-cased interest tags
        feed_mode: ranked, recent, nearby or following
    """
    weights: WeightVector = field(default_factory=WeightVector)
    interest_tags: frozenset[str] = field(default_factory=frozenset)
    feed_mode: str = FEED_MODE_RANKED


class FirestoreSettingsStore:
    """Read-only access to user feed settings."""

    def __init__(self, firestore_client: FirestoreClient) -> None:
        self.firestore = firestore_client

    def get_preferences(self, user_id: str) -> ViewerPreferences:
        """Fetch a user's feed preferences, defaults if none are stored.

        Raises:
            SourceUnavailable: If the read fails
            InvalidInput: If stored weights or feed mode are invalid
        """
        collection = self.firestore.settings.settings_collection

        with translate_errors("fetch user settings"):
            doc = self.firestore.collection(collection).document(user_id).get()

        if not doc.exists:
            logger.info("No settings for user %s, using defaults", user_id)
            return ViewerPreferences()

        data = doc.to_dict() or {}
        interests = frozenset(
            str(t).lower().strip() for t in data.get("interests") or () if str(t).strip()
        )

        return ViewerPreferences(
            weights=WeightVector.from_dict(data.get("feed_weights")),
            interest_tags=interests,
            feed_mode=resolve_feed_mode(data.get("feed_default")),
        )
