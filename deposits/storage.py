import copy
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional
from uuid import uuid4

USERS = "users"
ACCOUNTS = "paymentpoint_accounts"
TRANSACTIONS = "transactions"
REFERRAL_EARNINGS = "referralEarnings"
LOYALTY_TRANSACTIONS = "loyaltyTransactions"
LOYALTY_REDEMPTIONS = "loyaltyRedemptions"
PROCESSED_WEBHOOKS = "processed_webhooks"

COLLECTIONS = (
    USERS,
    ACCOUNTS,
    TRANSACTIONS,
    REFERRAL_EARNINGS,
    LOYALTY_TRANSACTIONS,
    LOYALTY_REDEMPTIONS,
    PROCESSED_WEBHOOKS,
)


class DocumentExistsError(Exception):
    pass


class DocumentNotFoundError(Exception):
    pass


class Increment:
    """Field transform applied atomically by ``upsert``/``update``."""

    def __init__(self, amount):
        self.amount = amount

    def __repr__(self) -> str:
        return f"Increment({self.amount!r})"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStorage:
    """Document store keyed by collection and document id.

    Every public method runs under one re-entrant lock, so single-document
    writes are atomic. ``transaction()`` holds the lock for a whole block and
    restores the previous state if the block raises.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._collections: dict[str, dict[str, dict]] = {name: {} for name in COLLECTIONS}
        self.write_count = 0

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStorage"]:
        with self._lock:
            snapshot = copy.deepcopy(self._collections)
            writes = self.write_count
            try:
                yield self
            except BaseException:
                self._collections = snapshot
                self.write_count = writes
                raise

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def exists(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return doc_id in self._collection(collection)

    def find_one(self, collection: str, field: str, value: Any) -> Optional[tuple[str, dict]]:
        with self._lock:
            for doc_id, doc in self._collection(collection).items():
                if doc.get(field) == value:
                    return doc_id, copy.deepcopy(doc)
            return None

    def query(self, collection: str, predicate: Optional[Callable[[dict], bool]] = None) -> list[tuple[str, dict]]:
        with self._lock:
            return [
                (doc_id, copy.deepcopy(doc))
                for doc_id, doc in self._collection(collection).items()
                if predicate is None or predicate(doc)
            ]

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid4().hex
        self.create(collection, doc_id, data)
        return doc_id

    def create(self, collection: str, doc_id: str, data: dict) -> None:
        with self._lock:
            docs = self._collection(collection)
            if doc_id in docs:
                raise DocumentExistsError(f"{collection}/{doc_id} already exists")
            docs[doc_id] = self._apply({}, data)
            self.write_count += 1

    def upsert(self, collection: str, doc_id: str, changes: dict, defaults: Optional[dict] = None) -> None:
        """Apply ``changes``, seeding ``defaults`` only when the document is new."""
        with self._lock:
            docs = self._collection(collection)
            if doc_id in docs:
                base = docs[doc_id]
            else:
                base = dict(defaults or {})
            docs[doc_id] = self._apply(base, changes)
            self.write_count += 1

    def update(self, collection: str, doc_id: str, changes: dict) -> None:
        with self._lock:
            docs = self._collection(collection)
            if doc_id not in docs:
                raise DocumentNotFoundError(f"{collection}/{doc_id} not found")
            docs[doc_id] = self._apply(docs[doc_id], changes)
            self.write_count += 1

    def update_if(self, collection: str, doc_id: str, field: str,
                  condition: Callable[[Any], bool], changes: dict) -> bool:
        """Compare-and-set: apply ``changes`` only if ``condition(doc[field])`` holds."""
        with self._lock:
            docs = self._collection(collection)
            doc = docs.get(doc_id)
            if doc is None or not condition(doc.get(field)):
                return False
            docs[doc_id] = self._apply(doc, changes)
            self.write_count += 1
            return True

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collection(collection))

    def _collection(self, name: str) -> dict[str, dict]:
        if name not in self._collections:
            raise KeyError(f"Unknown collection {name}")
        return self._collections[name]

    @staticmethod
    def _apply(base: dict, changes: dict) -> dict:
        doc = copy.deepcopy(base)
        for key, value in changes.items():
            if isinstance(value, Increment):
                doc[key] = (doc.get(key) or 0) + value.amount
            else:
                doc[key] = copy.deepcopy(value)
        return doc
