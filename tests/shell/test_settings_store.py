"""Tests for the Firestore settings store."""

import pytest

from src.core.errors import InvalidInput
from src.core.feed import FEED_MODE_NEARBY, FEED_MODE_RANKED
from src.core.ranking import WeightVector
from src.shell.settings_store import FirestoreSettingsStore


class TestGetPreferences:
    """Tests for FirestoreSettingsStore.get_preferences()."""

    def _store_with(self, firestore_client, snapshot):
        firestore_client.collection("user_settings").document("v").get.return_value = snapshot
        return FirestoreSettingsStore(firestore_client)

    def test_defaults_when_missing(self, firestore_client, make_snapshot):
        store = self._store_with(firestore_client, make_snapshot("v", exists=False))

        prefs = store.get_preferences("v")

        assert prefs.weights == WeightVector()
        assert prefs.interest_tags == frozenset()
        assert prefs.feed_mode == FEED_MODE_RANKED

    def test_reads_stored_preferences(self, firestore_client, make_snapshot):
        store = self._store_with(firestore_client, make_snapshot("v", {
            "feed_weights": {"w_proximity": 0.1, "w_engagement": 0.5},
            "interests": ["Gardening", " Pets ", ""],
            "feed_default": "Nearby",
        }))

        prefs = store.get_preferences("v")

        assert prefs.weights.proximity == 0.1
        assert prefs.weights.engagement == 0.5
        assert prefs.interest_tags == frozenset({"gardening", "pets"})
        assert prefs.feed_mode == FEED_MODE_NEARBY

    def test_invalid_weights_rejected(self, firestore_client, make_snapshot):
        store = self._store_with(firestore_client, make_snapshot("v", {
            "feed_weights": {"w_freshness": 3},
        }))

        with pytest.raises(InvalidInput):
            store.get_preferences("v")
