"""Firestore Client - Imperative Shell.

This module owns the lazily created Google Cloud Firestore client shared
by the store modules, plus the helpers that turn Firestore documents and
failures into engine types.

All I/O is contained in the shell; business rules are in the core module.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, TypeVar

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore

from src.core.config import FirestoreSettings
from src.core.errors import EngineError, SourceUnavailable
from src.core.geo import Coordinate


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Firestore caps a batched write at 500 operations
MAX_BATCH_SIZE = 500


class FirestoreClient:
    """Lazily initialized Firestore client with collection lookup.

    This is part of the imperative shell - it handles database I/O.
    """

    def __init__(self, settings: FirestoreSettings | None = None) -> None:
        """Initialize Firestore client.

        Args:
            settings: Database and collection names
        """
        self.settings = settings or FirestoreSettings()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs = {}
            if self.settings.project_id:
                kwargs['project'] = self.settings.project_id
            if self.settings.database:
                kwargs['database'] = self.settings.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def collection(self, name: str) -> Any:
        """Get a collection reference by name."""
        return self.client.collection(name)

    def transaction(self) -> Any:
        """Start a new transaction."""
        return self.client.transaction()

    def batch(self) -> Any:
        """Start a new write batch."""
        return self.client.batch()

    def run_transaction(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run fn(transaction, *args, **kwargs) in a retried transaction.

        Reads inside fn must go through the transaction so that a
        concurrent write to the same documents forces a retry.
        """
        transactional = firestore.transactional(fn)
        return transactional(self.transaction(), *args, **kwargs)


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Convert Firestore failures into SourceUnavailable.

    Engine errors raised inside the block (e.g. from a transaction body)
    pass through unchanged.

    Args:
        operation: Short description used in logs and the error message
    """
    try:
        yield
    except EngineError:
        raise
    except google_exceptions.GoogleAPIError as e:
        logger.error("Firestore %s failed: %s", operation, str(e))
        raise SourceUnavailable(f"{operation} failed: {e}") from e


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Any) -> datetime | None:
    """Normalize a Firestore timestamp to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return None


def coordinate_from_doc(data: dict[str, Any] | None) -> Coordinate | None:
    """Read a stored {latitude, longitude} map.

    Stored data was validated at ingestion; a partial pair is treated as
    no location rather than failing the whole read.
    """
    if not data:
        return None
    lat = data.get("latitude")
    lon = data.get("longitude")
    if lat is None or lon is None:
        return None
    return Coordinate(latitude=float(lat), longitude=float(lon))


def coordinate_to_doc(coordinate: Coordinate | None) -> dict[str, float] | None:
    if coordinate is None:
        return None
    return coordinate.to_dict()
