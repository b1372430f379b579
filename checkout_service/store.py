"""
store.py — Document Store Access

The checkout flow reads and writes a handful of collections (`coupons`,
`orders`, `users`) in a hosted document database. This module provides:

    • FirestoreStore — Cloud Firestore through firebase-admin (production)
    • InMemoryStore — dict-backed store with the same interface (tests, local runs)

Both expose the same small surface: get by key, find by field equality,
write or merge a keyed document, append with a generated id, and a guarded
counter increment used for coupon usage tracking.
"""

import copy
import logging
import threading
import uuid

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1.base_query import FieldFilter

log = logging.getLogger(__name__)


def init_firebase(cred_path=None):
    """
    Initializes the Firebase app once per process.

    Args:
        cred_path (str | None): Service account JSON. Without it the
            application default credentials are used.

    Raises:
        RuntimeError: If the Firebase SDK cannot be initialized.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()
    try:
        cred = credentials.Certificate(cred_path) if cred_path else credentials.ApplicationDefault()
        app = firebase_admin.initialize_app(cred)
        log.info("Firebase app initialized.")
        return app
    except Exception as e:
        raise RuntimeError(f"Firebase initialization failed: {e}") from e


class FirestoreStore:
    """Document store backed by Cloud Firestore."""

    def __init__(self, client=None):
        self.client = client or firestore.client()

    def get(self, collection: str, key: str):
        snapshot = self.client.collection(collection).document(key).get()
        return snapshot.to_dict() if snapshot.exists else None

    def find(self, collection: str, **equals):
        """Returns `(id, data)` pairs of documents whose fields equal the given values."""
        query = self.client.collection(collection)
        for field, value in equals.items():
            query = query.where(filter=FieldFilter(field, "==", value))
        return [(doc.id, doc.to_dict()) for doc in query.stream()]

    def add(self, collection: str, data: dict) -> str:
        _, ref = self.client.collection(collection).add(data)
        return ref.id

    def put(self, collection: str, key: str, data: dict):
        self.client.collection(collection).document(key).set(data)

    def merge(self, collection: str, key: str, data: dict):
        self.client.collection(collection).document(key).set(data, merge=True)

    def increment_if_below(self, collection: str, key: str, field: str, limit_field: str) -> bool:
        """
        Atomically increments `field` unless `limit_field` is positive and already reached.

        Runs inside a Firestore transaction, so concurrent callers are retried
        by the SDK instead of overrunning the limit.

        Returns:
            bool: True when the counter was incremented.
        """
        ref = self.client.collection(collection).document(key)

        @firestore.transactional
        def _increment(transaction):
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                return False
            data = snapshot.to_dict()
            used, limit = data.get(field, 0), data.get(limit_field, 0)
            if limit > 0 and used >= limit:
                return False
            transaction.update(ref, {field: used + 1})
            return True

        return _increment(self.client.transaction())


def _merge_into(target, changes):
    # Nested maps merge field by field, as Firestore's set(merge=True) does
    for field, value in changes.items():
        if isinstance(value, dict) and isinstance(target.get(field), dict):
            _merge_into(target[field], value)
        else:
            target[field] = value


class InMemoryStore:
    """Dict-backed document store with the FirestoreStore interface."""

    def __init__(self):
        self.collections = {}
        self._lock = threading.Lock()

    def _collection(self, name):
        return self.collections.setdefault(name, {})

    def get(self, collection, key):
        data = self._collection(collection).get(key)
        return copy.deepcopy(data) if data is not None else None

    def find(self, collection, **equals):
        return [
            (key, copy.deepcopy(data))
            for key, data in self._collection(collection).items()
            if all(data.get(field) == value for field, value in equals.items())
        ]

    def add(self, collection, data):
        key = uuid.uuid4().hex[:20]
        self._collection(collection)[key] = copy.deepcopy(data)
        return key

    def put(self, collection, key, data):
        self._collection(collection)[key] = copy.deepcopy(data)

    def merge(self, collection, key, data):
        _merge_into(self._collection(collection).setdefault(key, {}), copy.deepcopy(data))

    def increment_if_below(self, collection, key, field, limit_field):
        with self._lock:
            data = self._collection(collection).get(key)
            if data is None:
                return False
            used, limit = data.get(field, 0), data.get(limit_field, 0)
            if limit > 0 and used >= limit:
                return False
            data[field] = used + 1
            return True
