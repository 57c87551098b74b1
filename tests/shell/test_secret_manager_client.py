"""Tests for the Secret Manager client."""

from unittest.mock import MagicMock, patch

from src.shell.secret_manager_client import SecretManagerClient, SecretManagerConfig


def client_with_secret(value: bytes | Exception) -> SecretManagerClient:
    client = SecretManagerClient(SecretManagerConfig(project_id="proj"))
    client._client = MagicMock()
    if isinstance(value, Exception):
        client._client.access_secret_version.side_effect = value
    else:
        client._client.access_secret_version.return_value.payload.data = value
    return client


class TestGetSecret:
    """Tests for SecretManagerClient.get_secret()."""

    def test_reads_secret(self):
        client = client_with_secret(b"s3cret")

        assert client.get_secret("twilio-auth-token") == "s3cret"
        request = client._client.access_secret_version.call_args.kwargs["request"]
        assert request["name"] == "projects/proj/secrets/twilio-auth-token/versions/latest"

    def test_failure_returns_none(self):
        client = client_with_secret(RuntimeError("denied"))
        assert client.get_secret("missing") is None

    def test_without_project(self):
        client = SecretManagerClient()
        assert client.get_secret("anything") is None


class TestResolve:
    """Tests for SecretManagerClient.resolve()."""

    def test_plain_value_unchanged(self):
        assert client_with_secret(b"x").resolve("plain") == "plain"

    def test_secret_placeholder(self):
        client = client_with_secret(b"tok")
        assert client.resolve("${secret:twilio-auth-token}") == "tok"

    def test_secret_placeholder_with_version(self):
        client = client_with_secret(b"tok")
        client.resolve("${secret:twilio-auth-token:3}")

        request = client._client.access_secret_version.call_args.kwargs["request"]
        assert request["name"].endswith("/versions/3")

    def test_unresolvable_secret_left_as_placeholder(self):
        client = client_with_secret(RuntimeError("denied"))
        assert client.resolve("${secret:nope}") == "${secret:nope}"

    @patch.dict("os.environ", {"TWILIO_FROM_NUMBER": "+15550000"})
    def test_env_placeholder(self):
        assert client_with_secret(b"x").resolve("${TWILIO_FROM_NUMBER}") == "+15550000"

    @patch.dict("os.environ", {}, clear=True)
    def test_missing_env_left_as_placeholder(self):
        assert client_with_secret(b"x").resolve("${NOT_SET}") == "${NOT_SET}"
