"""Tests for the Configuration Loader module.

Tests configuration loading from YAML files and environment variables.
"""

import os
import tempfile
from unittest.mock import Mock, patch

from src.core.config import Config
from src.shell.config_loader import (
    _get_secret_manager_client,
    _parse_firestore,
    _parse_sms,
    _resolve_value,
    load_config,
    load_config_from_dict,
    load_config_from_env,
)


NO_SECRETS = "src.shell.config_loader._get_secret_manager_client"


class TestResolveValue:
    """Tests for _resolve_value function."""

    def test_returns_non_string_unchanged(self):
        """Non-string values are returned unchanged."""
        assert _resolve_value(123) == 123
        assert _resolve_value(None) is None

    def test_resolves_env_var_placeholder(self):
        """Resolves ${VAR} placeholders from environment."""
        with patch.dict(os.environ, {"TEST_VAR": "test_value"}):
            assert _resolve_value("${TEST_VAR}") == "test_value"

    def test_returns_placeholder_if_env_var_not_set(self):
        """Returns original placeholder if env var not set."""
        with patch.dict(os.environ, {}, clear=True):
            assert _resolve_value("${UNDEFINED_VAR}") == "${UNDEFINED_VAR}"

    def test_uses_secret_client_when_provided(self):
        """Uses secret client for resolution when provided."""
        mock_client = Mock()
        mock_client.resolve.return_value = "secret_value"

        result = _resolve_value("${secret:my-secret}", mock_client)

        mock_client.resolve.assert_called_once_with("${secret:my-secret}")
        assert result == "secret_value"

    def test_ignores_secret_placeholder_without_client(self):
        """Returns secret placeholder unchanged when no client."""
        assert _resolve_value("${secret:my-secret}", None) == "${secret:my-secret}"


class TestParseSections:
    """Tests for the per-section parsers."""

    def test_firestore_collection_overrides(self):
        result = _parse_firestore({
            "database": "neighborhood",
            "collections": {"posts": "community_posts", "bogus": "x"},
        })

        assert result.database == "neighborhood"
        assert result.posts_collection == "community_posts"
        assert result.follows_collection == "follows"

    def test_disabled_sms_skips_resolution(self):
        mock_client = Mock()

        result = _parse_sms({"enabled": False, "auth_token": "${secret:tok}"}, mock_client)

        assert result.enabled is False
        assert result.auth_token == ""
        mock_client.resolve.assert_not_called()

    def test_enabled_sms_resolves_credentials(self):
        mock_client = Mock()
        mock_client.resolve.side_effect = lambda v: v.replace("${secret:", "").replace("}", "_resolved")

        result = _parse_sms({
            "enabled": True,
            "account_sid": "${secret:sid}",
            "auth_token": "${secret:tok}",
            "from_number": "+15550000",
        }, mock_client)

        assert result.account_sid == "sid_resolved"
        assert result.auth_token == "tok_resolved"
        assert result.from_number == "+15550000"


class TestLoadConfigFromDict:
    """Tests for load_config_from_dict function."""

    def test_loads_minimal_config(self):
        """Loads config with minimal data."""
        with patch(NO_SECRETS, return_value=None):
            result = load_config_from_dict({})

        assert result == Config()

    def test_loads_full_config(self):
        """Loads complete configuration."""
        data = {
            "feed": {
                "candidate_window_size": 250,
                "default_page_size": 10,
                "ranking": {"half_life_hours": 12, "max_age_days": 7},
            },
            "geofence": {"max_radius_meters": 20000, "nearby_default_limit": 5},
            "firestore": {"project_id": "proj"},
            "live_queue_size": 50,
        }

        with patch(NO_SECRETS, return_value=None):
            result = load_config_from_dict(data)

        assert result.feed.candidate_window_size == 250
        assert result.feed.default_page_size == 10
        assert result.feed.max_page_size == 100
        assert result.feed.ranking.half_life_hours == 12.0
        assert result.feed.ranking.max_age_days == 7
        assert result.feed.ranking.neutral_proximity == 0.5
        assert result.geofence.max_radius_meters == 20000.0
        assert result.geofence.nearby_default_limit == 5
        assert result.firestore.project_id == "proj"
        assert result.live_queue_size == 50


class TestLoadConfig:
    """Tests for load_config function."""

    def _write(self, content: str) -> str:
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write(content)
            return f.name

    def test_loads_from_yaml_file(self):
        """Loads configuration from YAML file."""
        temp_path = self._write("""
feed:
  candidate_window_size: 300
geofence:
  min_radius_meters: 200
sms:
  enabled: true
  account_sid: AC123
  auth_token: ${TEST_TWILIO_TOKEN}
  from_number: "+15550000"
""")

        try:
            with patch.dict(os.environ, {"TEST_TWILIO_TOKEN": "tok"}):
                with patch(NO_SECRETS, return_value=None):
                    result = load_config(temp_path)

            assert result.feed.candidate_window_size == 300
            assert result.geofence.min_radius_meters == 200.0
            assert result.sms.enabled is True
            assert result.sms.auth_token == "tok"
        finally:
            os.unlink(temp_path)

    def test_returns_default_config_when_file_not_found(self):
        """Returns default config when file doesn't exist."""
        result = load_config("/nonexistent/path/config.yaml")
        assert result == Config()

    def test_returns_default_config_for_empty_file(self):
        """Returns default config when file is empty."""
        temp_path = self._write("")
        try:
            assert load_config(temp_path) == Config()
        finally:
            os.unlink(temp_path)

    def test_uses_config_path_env_var(self):
        """Uses CONFIG_PATH environment variable when path not specified."""
        temp_path = self._write("live_queue_size: 7\n")
        try:
            with patch.dict(os.environ, {"CONFIG_PATH": temp_path}):
                with patch(NO_SECRETS, return_value=None):
                    result = load_config()

            assert result.live_queue_size == 7
        finally:
            os.unlink(temp_path)


class TestLoadConfigFromEnv:
    """Tests for load_config_from_env function."""

    def test_defaults_without_env(self):
        with patch.dict(os.environ, {}, clear=True):
            with patch(NO_SECRETS, return_value=None):
                result = load_config_from_env()

        assert result.sms.enabled is False
        assert result.feed.candidate_window_size == 500
        assert result.firestore.database is None

    def test_loads_config_from_env_vars(self):
        """Loads configuration from environment variables."""
        env_vars = {
            "FIRESTORE_PROJECT": "proj",
            "FIRESTORE_DATABASE": "custom-database",
            "FEED_WINDOW_SIZE": "200",
            "FEED_HALF_LIFE_HOURS": "6",
            "FEED_MAX_AGE_DAYS": "14",
            "LIVE_QUEUE_SIZE": "25",
            "SMS_ENABLED": "true",
            "TWILIO_ACCOUNT_SID": "AC1",
            "TWILIO_AUTH_TOKEN": "env-token",
            "TWILIO_FROM_NUMBER": "+15550000",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            with patch(NO_SECRETS, return_value=None):
                result = load_config_from_env()

        assert result.firestore.project_id == "proj"
        assert result.firestore.database == "custom-database"
        assert result.feed.candidate_window_size == 200
        assert result.feed.ranking.half_life_hours == 6.0
        assert result.feed.ranking.max_age_days == 14
        assert result.live_queue_size == 25
        assert result.sms.enabled is True
        assert result.sms.auth_token == "env-token"

    def test_uses_secret_manager_when_available(self):
        """Uses Secret Manager for the Twilio token when available."""
        mock_client = Mock()
        mock_client.get_secret.return_value = "secret-token"

        env_vars = {"TWILIO_AUTH_TOKEN_SECRET": "twilio-auth-token", "TWILIO_AUTH_TOKEN": "env-token"}
        with patch.dict(os.environ, env_vars, clear=True):
            with patch(NO_SECRETS, return_value=mock_client):
                result = load_config_from_env()

        mock_client.get_secret.assert_called_once_with("twilio-auth-token")
        assert result.sms.auth_token == "secret-token"

    def test_falls_back_to_env_var_when_secret_not_found(self):
        """Falls back to env var when secret not found."""
        mock_client = Mock()
        mock_client.get_secret.return_value = None

        env_vars = {"TWILIO_AUTH_TOKEN_SECRET": "twilio-auth-token", "TWILIO_AUTH_TOKEN": "env-token"}
        with patch.dict(os.environ, env_vars, clear=True):
            with patch(NO_SECRETS, return_value=mock_client):
                result = load_config_from_env()

        assert result.sms.auth_token == "env-token"


class TestGetSecretManagerClient:
    """Tests for _get_secret_manager_client function."""

    def test_returns_none_without_project(self):
        """Returns None when no project is set."""
        with patch.dict(os.environ, {}, clear=True):
            assert _get_secret_manager_client() is None

    def test_creates_client_with_project(self):
        """Creates client when GCP_PROJECT is set."""
        with patch.dict(os.environ, {"GCP_PROJECT": "test-project"}, clear=True):
            with patch("src.shell.config_loader.SecretManagerClient") as MockClient:
                result = _get_secret_manager_client()

        MockClient.assert_called_once()
        assert MockClient.call_args[0][0].project_id == "test-project"
        assert result is not None

    def test_falls_back_to_google_cloud_project(self):
        with patch.dict(os.environ, {"GOOGLE_CLOUD_PROJECT": "other-project"}, clear=True):
            with patch("src.shell.config_loader.SecretManagerClient") as MockClient:
                _get_secret_manager_client()

        assert MockClient.call_args[0][0].project_id == "other-project"
