"""
Document store for field-service records.

Records are JSON documents grouped into named collections. Every document
carries a string "id"; owned documents also carry "created_by". Queries
are equality filters on top-level keys.

DocumentStore is the interface the services depend on. PostgresDocumentStore
keeps all collections in one JSONB table; clients.memory_store holds them
in process for tests and local runs.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

import psycopg2.errors
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient

logger = logging.getLogger(__name__)

# Fields that must be unique within their collection (null values exempt)
UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    "users": ("user_name", "email"),
    "agents": ("employee_id", "email"),
    "customers": ("customer_id",),
    "service_calls": ("call_number",),
    "equipment": ("equipment_id",),
    "quotations": ("quotation_number",),
    "invoices": ("invoice_number", "service_call"),
}


class DuplicateKeyError(Exception):
    """Insert or replace would violate a unique field."""

    def __init__(self, collection: str, field: str, value: Any = None):
        self.collection = collection
        self.field = field
        self.value = value
        super().__init__(f"Duplicate {field} in {collection}: {value!r}")


def to_json_value(value: Any) -> Any:
    """Normalize a filter value to the form it is stored in."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def to_json_filters(filters: dict[str, Any] | None) -> dict[str, Any]:
    return {k: to_json_value(v) for k, v in (filters or {}).items()}


class DocumentStore(ABC):
    """
    Collection-of-documents persistence contract.

    All methods take and return plain JSON-compatible dicts. Callers own
    serialization (pydantic model_dump(mode="json") / model_validate).
    """

    unique_fields: dict[str, tuple[str, ...]] = UNIQUE_FIELDS

    @abstractmethod
    def find_one(self, collection: str, filters: dict[str, Any]) -> dict | None:
        """First document matching every filter, or None."""

    @abstractmethod
    def find(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        sort: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        """All documents matching every filter."""

    @abstractmethod
    def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        """Number of documents matching every filter."""

    @abstractmethod
    def insert(self, collection: str, document: dict) -> dict:
        """
        Insert a new document.

        Raises:
            DuplicateKeyError: If a unique field value is already taken
        """

    @abstractmethod
    def replace(self, collection: str, document: dict) -> dict:
        """
        Replace the stored document with the same id.

        Raises:
            KeyError: If no document has that id
            DuplicateKeyError: If a unique field value is already taken
        """

    @abstractmethod
    def delete(self, collection: str, document_id: str) -> bool:
        """Delete by id. Returns False if nothing was deleted."""

    @abstractmethod
    def next_sequence(self, name: str) -> int:
        """Atomically increment and return the named counter (first call returns 1)."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """All writes in the block are applied together or not at all."""


class PostgresDocumentStore(DocumentStore):
    """
    DocumentStore backed by a single JSONB table.

    Filters use JSONB containment (body @> filters), which is index-friendly
    with a GIN index. Unique fields are partial unique expression indexes,
    one per (collection, field).
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    @staticmethod
    def _index_name(collection: str, field: str) -> str:
        return f"documents_{collection}_{field}_key"

    def ensure_schema(self) -> None:
        """Create tables and unique indexes if they don't exist."""
        with self.postgres.transaction():
            self.postgres.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    body JSONB NOT NULL,
                    PRIMARY KEY (collection, id)
                )
                """
            )
            self.postgres.execute(
                "CREATE INDEX IF NOT EXISTS documents_body_gin ON documents USING GIN (body)"
            )
            self.postgres.execute(
                """
                CREATE TABLE IF NOT EXISTS sequences (
                    name TEXT PRIMARY KEY,
                    value BIGINT NOT NULL
                )
                """
            )
            for collection, fields in self.unique_fields.items():
                for field in fields:
                    # Identifiers come from UNIQUE_FIELDS, never from callers
                    self.postgres.execute(
                        f"""
                        CREATE UNIQUE INDEX IF NOT EXISTS {self._index_name(collection, field)}
                        ON documents ((body->>'{field}'))
                        WHERE collection = '{collection}' AND body->>'{field}' IS NOT NULL
                        """
                    )
        logger.info("Document store schema ensured")

    def _field_for_index(self, collection: str, index_name: str | None) -> str:
        for field in self.unique_fields.get(collection, ()):
            if self._index_name(collection, field) == index_name:
                return field
        return "id"

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
        query = "SELECT body FROM documents WHERE collection = %s AND body @> %s"
        params: list[Any] = [collection, Json(to_json_filters(filters))]

        if sort:
            query += f" ORDER BY body->>%s {'DESC' if descending else 'ASC'}"
            params.append(sort)

        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)

        rows = self.postgres.execute(query, tuple(params))
        return [row["body"] for row in rows]

    def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        return self.postgres.execute_scalar(
            "SELECT COUNT(*) FROM documents WHERE collection = %s AND body @> %s",
            (collection, Json(to_json_filters(filters))),
        )

    def insert(self, collection: str, document: dict) -> dict:
        try:
            with self.postgres.savepoint():
                self.postgres.execute(
                    "INSERT INTO documents (collection, id, body) VALUES (%s, %s, %s)",
                    (collection, document["id"], Json(document)),
                )
        except psycopg2.errors.UniqueViolation as e:
            field = self._field_for_index(collection, e.diag.constraint_name)
            raise DuplicateKeyError(collection, field, document.get(field)) from e
        return document

    def replace(self, collection: str, document: dict) -> dict:
        try:
            with self.postgres.savepoint():
                rows = self.postgres.execute(
                    """
                    UPDATE documents SET body = %s
                    WHERE collection = %s AND id = %s
                    RETURNING id
                    """,
                    (Json(document), collection, document["id"]),
                )
        except psycopg2.errors.UniqueViolation as e:
            field = self._field_for_index(collection, e.diag.constraint_name)
            raise DuplicateKeyError(collection, field, document.get(field)) from e

        if not rows:
            raise KeyError(f"{collection}/{document['id']}")
        return document

    def delete(self, collection: str, document_id: str) -> bool:
        rows = self.postgres.execute(
            "DELETE FROM documents WHERE collection = %s AND id = %s RETURNING id",
            (collection, document_id),
        )
        return bool(rows)

    def next_sequence(self, name: str) -> int:
        return self.postgres.execute_scalar(
            """
            INSERT INTO sequences (name, value) VALUES (%s, 1)
            ON CONFLICT (name) DO UPDATE SET value = sequences.value + 1
            RETURNING value
            """,
            (name,),
        )

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self.postgres.transaction():
            yield
