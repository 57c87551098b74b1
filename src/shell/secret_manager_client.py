"""Secret Manager Client - Imperative Shell.

This module reads secrets (Twilio credentials and the like) from Google
Cloud Secret Manager and resolves config placeholders against it.
All I/O is contained here; configuration models are in the core module.
"""

import logging
import os
import re
from dataclasses import dataclass

from google.cloud import secretmanager


logger = logging.getLogger(__name__)


# ${VAR} or ${secret:name} or ${secret:name:version}
_PLACEHOLDER = re.compile(r"^\$\{(?P<ref>[^}]+)\}$")


@dataclass
class SecretManagerConfig:
    """Configuration for Secret Manager client.

    Attributes:
        project_id: GCP project ID secrets live in
    """
    project_id: str | None = None


class SecretManagerClient:
    """Client for reading secrets from Google Cloud Secret Manager.

    This is part of the imperative shell - it handles secret I/O.
    """

    def __init__(self, config: SecretManagerConfig | None = None) -> None:
        self.config = config or SecretManagerConfig()
        self._client: secretmanager.SecretManagerServiceClient | None = None

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy initialization of Secret Manager client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def get_secret(self, secret_name: str, version: str = "latest") -> str | None:
        """Fetch a secret value from Secret Manager.

        This method performs I/O.

        Args:
            secret_name: Name of the secret (not the full resource path)
            version: Version of the secret (default: "latest")

        Returns:
            Secret value as string, or None if it could not be read
        """
        if not self.config.project_id:
            logger.error("No project ID configured for Secret Manager")
            return None

        name = f"projects/{self.config.project_id}/secrets/{secret_name}/versions/{version}"

        try:
            logger.info("Fetching secret: %s", secret_name)
            response = self.client.access_secret_version(request={"name": name})
            return response.payload.data.decode("UTF-8")

        except Exception as e:
            logger.error("Failed to fetch secret %s: %s", secret_name, str(e))
            return None

    def resolve(self, value: str) -> str:
        """Resolve a ${VAR} or ${secret:name[:version]} placeholder.

        Values that are not placeholders, and placeholders that cannot be
        resolved, are returned unchanged so config validation can flag them.
        """
        match = _PLACEHOLDER.match(value)
        if not match:
            return value

        ref = match.group("ref")
        if ref.startswith("secret:"):
            parts = ref.split(":")
            secret_name = parts[1]
            version = parts[2] if len(parts) > 2 else "latest"
            secret = self.get_secret(secret_name, version)
            return secret if secret is not None else value

        env_value = os.environ.get(ref)
        if env_value:
            return env_value
        logger.warning("Environment variable %s not set", ref)
        return value
