"""Shared Firestore mocks for the store tests.

The fake client keeps one MagicMock per collection and per document ID so
tests can set up reads and assert on writes by name. MemoryFirestore keeps
real rows for tests that check state across several calls.
"""

from collections import defaultdict
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from src.core.config import FirestoreSettings
from src.shell.firestore_client import FirestoreClient


def _fake_collection(name: str) -> MagicMock:
    collection = MagicMock(name=f"collection:{name}")
    documents: dict[str, MagicMock] = {}

    def document(doc_id: str | None = None) -> MagicMock:
        key = doc_id or f"auto-{len(documents) + 1}"
        if key not in documents:
            doc_ref = MagicMock(name=f"doc:{name}/{key}")
            doc_ref.id = key
            documents[key] = doc_ref
        return documents[key]

    collection.document.side_effect = document
    return collection


@pytest.fixture
def transaction():
    return MagicMock(name="transaction")


@pytest.fixture
def firestore_client(transaction):
    """FirestoreClient with a mocked google client and inline transactions."""
    client = FirestoreClient(FirestoreSettings())
    client._client = MagicMock(name="google-client")

    collections: dict[str, MagicMock] = {}

    def collection(name: str) -> MagicMock:
        if name not in collections:
            collections[name] = _fake_collection(name)
        return collections[name]

    client._client.collection.side_effect = collection
    client.run_transaction = MagicMock(
        side_effect=lambda fn, *args, **kwargs: fn(transaction, *args, **kwargs)
    )
    return client


@pytest.fixture
def make_snapshot():
    """Factory for Firestore document snapshots."""
    def _make(doc_id: str, data: dict | None = None, exists: bool = True) -> MagicMock:
        snapshot = MagicMock(name=f"snapshot:{doc_id}")
        snapshot.id = doc_id
        snapshot.exists = exists
        snapshot.to_dict.return_value = data if exists else None
        snapshot.reference = MagicMock(name=f"ref:{doc_id}")
        return snapshot
    return _make


class MemorySnapshot:
    def __init__(self, reference: "MemoryDocument", data: dict | None) -> None:
        self.reference = reference
        self.id = reference.id
        self.exists = data is not None
        self._data = data

    def to_dict(self) -> dict | None:
        return dict(self._data) if self._data is not None else None


class MemoryDocument:
    def __init__(self, db: "MemoryFirestore", collection: str, doc_id: str) -> None:
        self.db = db
        self.collection = collection
        self.id = doc_id

    def get(self, transaction=None) -> MemorySnapshot:
        return MemorySnapshot(self, self.db.rows[self.collection].get(self.id))


class MemoryQuery:
    """Equality filters only."""

    def __init__(self, db: "MemoryFirestore", collection: str, filters: tuple = ()) -> None:
        self.db = db
        self.collection = collection
        self.filters = filters

    def where(self, filter) -> "MemoryQuery":
        assert filter.op_string == "=="
        return MemoryQuery(self.db, self.collection, self.filters + ((filter.field_path, filter.value),))

    def stream(self) -> list[MemorySnapshot]:
        return [
            MemorySnapshot(MemoryDocument(self.db, self.collection, doc_id), data)
            for doc_id, data in sorted(self.db.rows[self.collection].items())
            if all(data.get(field) == value for field, value in self.filters)
        ]


class MemoryCollection(MemoryQuery):
    def document(self, doc_id: str | None = None) -> MemoryDocument:
        if doc_id is None:
            self.db.next_id += 1
            doc_id = f"auto-{self.db.next_id}"
        return MemoryDocument(self.db, self.collection, doc_id)


class MemoryTransaction:
    """Buffers writes and applies them on commit, like a Firestore transaction."""

    def __init__(self, db: "MemoryFirestore") -> None:
        self.db = db
        self.writes: list = []

    def get(self, query: MemoryQuery) -> list[MemorySnapshot]:
        return query.stream()

    def set(self, ref: MemoryDocument, data: dict) -> None:
        self.writes.append(("set", ref, dict(data)))

    def update(self, ref: MemoryDocument, data: dict) -> None:
        self.writes.append(("update", ref, dict(data)))

    def delete(self, ref: MemoryDocument) -> None:
        self.writes.append(("delete", ref, None))

    def commit(self) -> None:
        for op, ref, data in self.writes:
            rows = self.db.rows[ref.collection]
            if op == "set":
                rows[ref.id] = data
            elif op == "update":
                if ref.id not in rows:
                    raise google_exceptions.NotFound(f"{ref.collection}/{ref.id}")
                rows[ref.id] = {**rows[ref.id], **data}
            else:
                rows.pop(ref.id, None)


class MemoryFirestore:
    """Dict-backed stand-in for the google Firestore client.

    Enough of the API for the stores: documents, equality queries and
    transactions whose writes land only if the body returns.
    """

    def __init__(self) -> None:
        self.rows: dict[str, dict[str, dict]] = defaultdict(dict)
        self.next_id = 0

    def collection(self, name: str) -> MemoryCollection:
        return MemoryCollection(self, name)

    def run_transaction(self, fn, *args, **kwargs):
        transaction = MemoryTransaction(self)
        result = fn(transaction, *args, **kwargs)
        transaction.commit()
        return result


@pytest.fixture
def memory_firestore():
    """FirestoreClient backed by MemoryFirestore; rows are in client._client.rows."""
    client = FirestoreClient(FirestoreSettings())
    client._client = MemoryFirestore()
    client.run_transaction = client._client.run_transaction
    return client
