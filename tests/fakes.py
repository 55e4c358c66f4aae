"""In-memory stand-ins for the Firestore client used by the ledger tests."""

from __future__ import annotations

import copy
import datetime
import itertools
import uuid
from typing import Any, Optional

from firebase_admin import firestore
from google.api_core.exceptions import NotFound, ServiceUnavailable

_clock = itertools.count()
_EPOCH = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)


def _now() -> datetime.datetime:
    # Strictly increasing so ordering by createdAt is deterministic.
    return _EPOCH + datetime.timedelta(microseconds=next(_clock))


class FakeSnapshot:
    def __init__(self, reference: FakeDocumentReference, data: Optional[dict]) -> None:
        self.reference = reference
        self.id = reference.id
        self._data = copy.deepcopy(data)

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[dict]:
        return copy.deepcopy(self._data)

    def get(self, field: str) -> Any:
        return (self._data or {}).get(field)


class FakeDocumentReference:
    def __init__(self, db: FakeFirestore, collection: str, doc_id: str) -> None:
        self._db = db
        self.collection_name = collection
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self.collection_name}/{self.id}"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FakeDocumentReference) and self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    def get(self, transaction: Any = None) -> FakeSnapshot:
        return FakeSnapshot(self, self._db.data.get(self.path))

    def set(self, data: dict, merge: bool = False) -> None:
        self._db.apply([(self, "set", data)])

    def update(self, data: dict) -> None:
        self._db.apply([(self, "update", data)])

    def delete(self) -> None:
        self._db.apply([(self, "delete", None)])


class FakeQuery:
    def __init__(
        self,
        db: FakeFirestore,
        collection: str,
        filters: tuple = (),
        orders: tuple = (),
        limit_count: Optional[int] = None,
    ) -> None:
        self._db = db
        self._collection = collection
        self._filters = filters
        self._orders = orders
        self._limit = limit_count

    def where(
        self,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> FakeQuery:
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        return FakeQuery(
            self._db,
            self._collection,
            self._filters + ((field_path, op_string, value),),
            self._orders,
            self._limit,
        )

    def order_by(self, field_path: str, direction: str = "ASCENDING") -> FakeQuery:
        return FakeQuery(
            self._db,
            self._collection,
            self._filters,
            self._orders + ((field_path, direction),),
            self._limit,
        )

    def limit(self, count: int) -> FakeQuery:
        return FakeQuery(self._db, self._collection, self._filters, self._orders, count)

    def _matches(self, data: dict) -> bool:
        for field_path, op_string, value in self._filters:
            if op_string == "==" and data.get(field_path) != value:
                return False
            if op_string == "array_contains" and value not in data.get(field_path, []):
                return False
        return True

    def stream(self, transaction: Any = None) -> list[FakeSnapshot]:
        prefix = f"{self._collection}/"
        snapshots = [
            FakeSnapshot(
                FakeDocumentReference(self._db, self._collection, path[len(prefix):]),
                data,
            )
            for path, data in self._db.data.items()
            if path.startswith(prefix) and self._matches(data)
        ]
        for field_path, direction in reversed(self._orders):
            snapshots.sort(
                key=lambda s, f=field_path: s.get(f),
                reverse=direction == firestore.Query.DESCENDING,
            )
        if self._limit is not None:
            snapshots = snapshots[: self._limit]
        return snapshots

    def get(self, transaction: Any = None) -> list[FakeSnapshot]:
        return self.stream(transaction=transaction)


class FakeCollectionReference(FakeQuery):
    def __init__(self, db: FakeFirestore, name: str) -> None:
        super().__init__(db, name)

    def document(self, doc_id: Optional[str] = None) -> FakeDocumentReference:
        return FakeDocumentReference(self._db, self._collection, doc_id or uuid.uuid4().hex[:20])


class FakeWriteBatch:
    """Queues writes and applies them together on commit."""

    def __init__(self, db: FakeFirestore) -> None:
        self._db = db
        self.writes: list[tuple[FakeDocumentReference, str, Any]] = []

    def _queue(self, ref: FakeDocumentReference, op: str, data: Any) -> None:
        if ref.collection_name in self._db.fail_writes_to:
            raise ServiceUnavailable(f"Injected failure writing to {ref.path}")
        self.writes.append((ref, op, data))

    def set(self, ref: FakeDocumentReference, data: dict, merge: bool = False) -> None:
        self._queue(ref, "set", data)

    def update(self, ref: FakeDocumentReference, data: dict) -> None:
        self._queue(ref, "update", data)

    def delete(self, ref: FakeDocumentReference) -> None:
        self._queue(ref, "delete", None)

    def commit(self) -> None:
        if self._db.fail_commits:
            self._db.fail_commits -= 1
            raise ServiceUnavailable("Injected commit failure")
        self._db.apply(self.writes)
        self._db.commits += 1


class FakeTransaction(FakeWriteBatch):
    """A write batch committed by ``fake_transactional`` once its function returns."""


class FakeFirestore:
    """A dictionary-backed Firestore client supporting the calls the app makes."""

    def __init__(self) -> None:
        self.data: dict[str, dict] = {}
        self.fail_writes_to: set[str] = set()
        self.fail_commits = 0
        self.commits = 0

    def collection(self, name: str) -> FakeCollectionReference:
        return FakeCollectionReference(self, name)

    def transaction(self, **kwargs: Any) -> FakeTransaction:
        return FakeTransaction(self)

    def batch(self) -> FakeWriteBatch:
        return FakeWriteBatch(self)

    def get_all(self, refs: list[FakeDocumentReference]) -> list[FakeSnapshot]:
        return [ref.get() for ref in refs]

    def seed(self, collection: str, doc_id: str, data: dict) -> None:
        self.data[f"{collection}/{doc_id}"] = copy.deepcopy(data)

    def doc(self, collection: str, doc_id: str) -> Optional[dict]:
        return copy.deepcopy(self.data.get(f"{collection}/{doc_id}"))

    def docs(self, collection: str) -> list[dict]:
        prefix = f"{collection}/"
        return [
            {**copy.deepcopy(data), "id": path[len(prefix):]}
            for path, data in self.data.items()
            if path.startswith(prefix)
        ]

    def apply(self, writes: list[tuple[FakeDocumentReference, str, Any]]) -> None:
        """Apply writes all-or-nothing."""
        for ref, op, _ in writes:
            if op == "update" and ref.path not in self.data:
                raise NotFound(f"No document to update: {ref.path}")
        staged = copy.deepcopy(self.data)
        for ref, op, data in writes:
            if op == "delete":
                staged.pop(ref.path, None)
                continue
            current = staged.get(ref.path, {}) if op == "update" else {}
            staged[ref.path] = self._resolve(current, data)
        self.data = staged

    @staticmethod
    def _resolve(current: dict, data: dict) -> dict:
        result = dict(current)
        for key, value in data.items():
            if isinstance(value, firestore.Increment):
                result[key] = result.get(key, 0) + value.value
            elif value is firestore.SERVER_TIMESTAMP:
                result[key] = _now()
            else:
                result[key] = copy.deepcopy(value)
        return result


def fake_transactional(fn):
    """Replacement for ``firestore.transactional`` with commit-or-discard semantics."""

    def run(transaction: FakeTransaction, *args: Any, **kwargs: Any) -> Any:
        result = fn(transaction, *args, **kwargs)
        transaction.commit()
        return result

    return run
