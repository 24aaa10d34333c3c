"""
In-process DocumentStore.

Used by the test suite and by local runs without a database. Thread-safe:
every operation holds one re-entrant lock, and transaction() holds it for
the whole block, restoring a snapshot if the block raises.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from clients.document_store import DocumentStore, DuplicateKeyError, to_json_filters

logger = logging.getLogger(__name__)


def _sort_key(value: Any) -> tuple:
    # None sorts last; mixed types compare by their text form
    if value is None:
        return (1, "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, f"{value:030.10f}")
    return (0, str(value))


class InMemoryDocumentStore(DocumentStore):
    """DocumentStore over nested dicts. Returned documents are deep copies."""

    def __init__(self):
        self._collections: dict[str, dict[str, dict]] = {}
        self._sequences: dict[str, int] = {}
        self._lock = threading.RLock()
        self._transaction_depth = 0

    def _collection(self, name: str) -> dict[str, dict]:
        return self._collections.setdefault(name, {})

    @staticmethod
    def _matches(document: dict, filters: dict[str, Any]) -> bool:
        return all(document.get(k) == v for k, v in filters.items())

    def _check_unique(self, collection: str, document: dict) -> None:
        for field in self.unique_fields.get(collection, ()):
            value = document.get(field)
            if value is None:
                continue
            for other in self._collection(collection).values():
                if other["id"] != document["id"] and other.get(field) == value:
                    raise DuplicateKeyError(collection, field, value)

    def find_one(self, collection: str, filters: dict[str, Any]) -> dict | None:
        results = self.find(collection, filters, limit=1)
        return results[0] if results else None

    def find(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        sort: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        json_filters = to_json_filters(filters)
        with self._lock:
            matches = [
                copy.deepcopy(doc)
                for doc in self._collection(collection).values()
                if self._matches(doc, json_filters)
            ]

        if sort:
            matches.sort(key=lambda doc: _sort_key(doc.get(sort)), reverse=descending)
        if limit is not None:
            matches = matches[:limit]
        return matches

    def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        json_filters = to_json_filters(filters)
        with self._lock:
            return sum(
                1 for doc in self._collection(collection).values()
                if self._matches(doc, json_filters)
            )

    def insert(self, collection: str, document: dict) -> dict:
        with self._lock:
            docs = self._collection(collection)
            if document["id"] in docs:
                raise DuplicateKeyError(collection, "id", document["id"])
            self._check_unique(collection, document)
            docs[document["id"]] = copy.deepcopy(document)
        return document

    def replace(self, collection: str, document: dict) -> dict:
        with self._lock:
            docs = self._collection(collection)
            if document["id"] not in docs:
                raise KeyError(f"{collection}/{document['id']}")
            self._check_unique(collection, document)
            docs[document["id"]] = copy.deepcopy(document)
        return document

    def delete(self, collection: str, document_id: str) -> bool:
        with self._lock:
            return self._collection(collection).pop(document_id, None) is not None

    def next_sequence(self, name: str) -> int:
        with self._lock:
            self._sequences[name] = self._sequences.get(name, 0) + 1
            return self._sequences[name]

    def set_sequence(self, name: str, value: int) -> None:
        """Seed a counter (next_sequence then returns value + 1)."""
        with self._lock:
            self._sequences[name] = value

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._transaction_depth:
                self._transaction_depth += 1
                try:
                    yield
                finally:
                    self._transaction_depth -= 1
                return

            snapshot = copy.deepcopy(self._collections)
            sequences = dict(self._sequences)
            self._transaction_depth = 1
            try:
                yield
            except Exception:
                self._collections = snapshot
                self._sequences = sequences
                logger.debug("In-memory transaction rolled back")
                raise
            finally:
                self._transaction_depth = 0
