"""Firestore stand-ins built on mockfirestore."""

import datetime
import unittest.mock
from collections.abc import Callable
from typing import Any

from mockfirestore import MockFirestore
from mockfirestore.document import DocumentReference

MOCK_SERVER_TIMESTAMP = datetime.datetime(2024, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)

# Every module that does `from firebase_admin import firestore`
FIRESTORE_PATCH_TARGETS = [
    "shareddiary.firestore",
    "shareddiary.auth.routes.firestore",
    "shareddiary.user.services.firestore",
    "shareddiary.group.routes.firestore",
    "shareddiary.group.services.firestore",
    "shareddiary.diary.routes.firestore",
    "shareddiary.diary.services.firestore",
]


class MockArrayRemove:
    """Sentinel recorded by ``firestore.ArrayRemove``."""

    def __init__(self, values: list[Any]) -> None:
        self.values = list(values)


class MockBatch:
    """Write batch that only supports the deletes the app issues."""

    def __init__(self, db: Any) -> None:
        self.db = db
        self.deletes: list[Any] = []
        self.commit = unittest.mock.MagicMock(side_effect=self._apply)

    def delete(self, ref: Any) -> None:
        self.deletes.append(ref)

    def _apply(self) -> None:
        for ref in self.deletes:
            ref.delete()
        self.deletes = []


class MockTransaction:
    """Buffers writes and applies them on commit, like a Firestore transaction."""

    def __init__(self, **kwargs: Any) -> None:
        self.writes: list[tuple[str, Any, Any, bool]] = []
        self.committed = False

    def set(self, ref: Any, data: dict[str, Any], merge: bool = False) -> None:
        self.writes.append(("set", ref, data, merge))

    def update(self, ref: Any, data: dict[str, Any]) -> None:
        self.writes.append(("update", ref, data, False))

    def delete(self, ref: Any) -> None:
        self.writes.append(("delete", ref, None, False))

    def commit(self) -> None:
        for op, ref, data, merge in self.writes:
            if op == "delete":
                ref.delete()
            elif op == "update" or (merge and ref.get().exists):
                ref.update(data)
            else:
                ref.set(data)
        self.writes = []
        self.committed = True


def mock_transactional(func: Callable[..., Any]) -> Callable[..., Any]:
    """Stand-in for firestore.transactional: run once, commit on success."""

    def wrapper(transaction: MockTransaction, *args: Any, **kwargs: Any) -> Any:
        result = func(transaction, *args, **kwargs)
        transaction.commit()
        return result

    return wrapper


class MockFirestoreBuilder:
    """Patches mockfirestore and builds the fake `firebase_admin.firestore` module."""

    @staticmethod
    def patch_db_read() -> None:
        """Let DocumentReference.get accept a transaction argument."""
        if hasattr(DocumentReference, "_orig_get"):
            return
        DocumentReference._orig_get = DocumentReference.get

        def get_in_transaction(self: Any, transaction: Any = None, **kwargs: Any) -> Any:
            return self._orig_get()

        DocumentReference.get = get_in_transaction

    @staticmethod
    def patch_db_write() -> None:
        """Let DocumentReference.update apply ArrayRemove sentinels."""
        if hasattr(DocumentReference, "_orig_update"):
            return
        DocumentReference._orig_update = DocumentReference.update

        def update_with_sentinels(self: Any, data: dict[str, Any]) -> Any:
            resolved = dict(data)
            removals = {
                k: v for k, v in data.items() if isinstance(v, MockArrayRemove)
            }
            if removals:
                current = self.get().to_dict() or {}
                for field, sentinel in removals.items():
                    existing = current.get(field)
                    if not isinstance(existing, list):
                        existing = []
                    resolved[field] = [v for v in existing if v not in sentinel.values]
            return self._orig_update(resolved)

        DocumentReference.update = update_with_sentinels

    @staticmethod
    def firestore_module(db: Any) -> unittest.mock.MagicMock:
        """Build a stand-in for `firebase_admin.firestore` backed by ``db``."""
        module = unittest.mock.MagicMock()
        module.client.return_value = db
        module.ArrayRemove = MockArrayRemove
        module.SERVER_TIMESTAMP = MOCK_SERVER_TIMESTAMP
        module.transactional = mock_transactional
        module.Query.ASCENDING = "ASCENDING"
        module.Query.DESCENDING = "DESCENDING"
        return module


def patch_mockfirestore() -> None:
    """Apply the mockfirestore monkeypatches the app's Firestore calls need."""
    MockFirestoreBuilder.patch_db_read()
    MockFirestoreBuilder.patch_db_write()


def build_mock_db() -> Any:
    """Return a MockFirestore with transaction and batch support."""
    db = MockFirestore()
    db.transaction = unittest.mock.MagicMock(side_effect=MockTransaction)
    db.batch = unittest.mock.MagicMock(side_effect=lambda: MockBatch(db))
    return db
