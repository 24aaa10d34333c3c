"""Tests for PostgresDocumentStore against a mocked PostgresClient."""

from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from uuid import uuid4

import psycopg2.errors
import pytest

from clients.document_store import (
    DuplicateKeyError,
    PostgresDocumentStore,
    to_json_filters,
    to_json_value,
)
from clients.postgres_client import PostgresClient
from core.identifiers import IdentifierGenerator


class _UniqueViolation(psycopg2.errors.UniqueViolation):
    """UniqueViolation carrying a chosen constraint name."""

    def __init__(self, constraint_name):
        super().__init__("duplicate key value violates unique constraint")
        self._constraint_name = constraint_name

    @property
    def diag(self):
        return SimpleNamespace(constraint_name=self._constraint_name)


@pytest.fixture
def postgres():
    client = MagicMock()

    @contextmanager
    def transaction():
        yield

    client.transaction.side_effect = transaction
    client.savepoint.side_effect = transaction
    return client


@pytest.fixture
def store(postgres):
    return PostgresDocumentStore(postgres)


class _Color(Enum):
    RED = "red"


class TestJsonNormalization:
    def test_scalar_conversions(self):
        record_id = uuid4()
        moment = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert to_json_value(record_id) == str(record_id)
        assert to_json_value(_Color.RED) == "red"
        assert to_json_value(moment) == moment.isoformat()
        assert to_json_value(Decimal("12.50")) == "12.50"
        assert to_json_value(3) == 3

    def test_filters_none_is_empty(self):
        assert to_json_filters(None) == {}


class TestSchema:
    def test_creates_unique_index_per_field(self, store, postgres):
        store.ensure_schema()
        statements = " ".join(c.args[0] for c in postgres.execute.call_args_list)

        assert "CREATE TABLE IF NOT EXISTS documents" in statements
        assert "CREATE TABLE IF NOT EXISTS sequences" in statements
        assert "documents_service_calls_call_number_key" in statements
        assert "documents_invoices_service_call_key" in statements


class TestQueries:
    def test_find_uses_containment(self, store, postgres):
        postgres.execute.return_value = [{"body": {"id": "1"}}]
        owner = uuid4()

        results = store.find("agents", {"created_by": owner, "status": "active"})

        query, params = postgres.execute.call_args.args
        assert "body @> %s" in query
        assert params[0] == "agents"
        assert params[1].adapted == {"created_by": str(owner), "status": "active"}
        assert results == [{"id": "1"}]

    def test_find_sort_and_limit(self, store, postgres):
        postgres.execute.return_value = []
        store.find("agents", {}, sort="created_at", descending=True, limit=5)

        query, params = postgres.execute.call_args.args
        assert "ORDER BY body->>%s DESC" in query
        assert "LIMIT %s" in query
        assert params[-2:] == ("created_at", 5)

    def test_find_one_returns_none_when_empty(self, store, postgres):
        postgres.execute.return_value = []
        assert store.find_one("agents", {"id": "x"}) is None

    def test_count(self, store, postgres):
        postgres.execute_scalar.return_value = 7
        assert store.count("agents") == 7


class TestWrites:
    def test_insert_maps_unique_violation(self, store, postgres):
        postgres.execute.side_effect = _UniqueViolation("documents_service_calls_call_number_key")

        with pytest.raises(DuplicateKeyError) as exc_info:
            store.insert("service_calls", {"id": "1", "call_number": "SC-000001"})

        assert exc_info.value.field == "call_number"
        assert exc_info.value.value == "SC-000001"

    def test_unknown_constraint_maps_to_id(self, store, postgres):
        postgres.execute.side_effect = _UniqueViolation("documents_pkey")
        with pytest.raises(DuplicateKeyError) as exc_info:
            store.insert("service_calls", {"id": "1"})
        assert exc_info.value.field == "id"

    def test_replace_missing_raises_keyerror(self, store, postgres):
        postgres.execute.return_value = []
        with pytest.raises(KeyError):
            store.replace("agents", {"id": "missing"})

    def test_delete_reports_outcome(self, store, postgres):
        postgres.execute.return_value = [{"id": "1"}]
        assert store.delete("agents", "1") is True
        postgres.execute.return_value = []
        assert store.delete("agents", "1") is False

    def test_next_sequence_upserts(self, store, postgres):
        postgres.execute_scalar.return_value = 4
        assert store.next_sequence("invoices") == 4
        query = postgres.execute_scalar.call_args.args[0]
        assert "ON CONFLICT (name) DO UPDATE" in query

    def test_transaction_delegates(self, store, postgres):
        with store.transaction():
            pass
        postgres.transaction.assert_called_once()


class _AbortingConnection:
    """
    Connection that behaves like PostgreSQL after an error: once a statement
    fails, everything but ROLLBACK TO SAVEPOINT is refused until rollback.
    """

    def __init__(self):
        self.aborted = False
        self.call_numbers = set()
        self.sequence = 0
        self.committed = False

    def cursor(self, cursor_factory=None):
        return _AbortingCursor(self)

    def run(self, query, params):
        statement = " ".join(query.split())
        if self.aborted and not statement.startswith("ROLLBACK TO SAVEPOINT"):
            raise psycopg2.errors.InFailedSqlTransaction(
                "current transaction is aborted, commands ignored until end of transaction block"
            )
        if statement.startswith("ROLLBACK TO SAVEPOINT"):
            self.aborted = False
        elif statement.startswith("INSERT INTO sequences"):
            self.sequence += 1
            return [{"value": self.sequence}]
        elif statement.startswith("INSERT INTO documents"):
            call_number = params[2].adapted.get("call_number")
            if call_number in self.call_numbers:
                self.aborted = True
                raise _UniqueViolation("documents_service_calls_call_number_key")
            self.call_numbers.add(call_number)
        return None

    def commit(self):
        self.committed = True

    def rollback(self):
        self.aborted = False


class _AbortingCursor:
    def __init__(self, connection):
        self.connection = connection
        self.description = None
        self.rows = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        rows = self.connection.run(query, params)
        self.description = [("value",)] if rows is not None else None
        self.rows = rows or []

    def fetchall(self):
        return self.rows


class TestRetryInsideTransaction:
    """A taken call number is skipped without poisoning the transaction."""

    @pytest.fixture
    def connection(self):
        return _AbortingConnection()

    @pytest.fixture
    def pg_store(self, connection):
        with patch("psycopg2.pool.ThreadedConnectionPool") as pool_cls, \
                patch("psycopg2.extras.register_default_jsonb"):
            pool = MagicMock()
            pool.getconn.return_value = connection
            pool_cls.return_value = pool
            yield PostgresDocumentStore(PostgresClient(f"postgresql://test/{uuid4()}"))
        PostgresClient.close_all_pools()

    def test_generated_number_retried_after_unique_violation(self, pg_store, connection):
        pg_store.insert("service_calls", {"id": "a", "call_number": "SC-000001"})
        generator = IdentifierGenerator(pg_store)
        connection.committed = False

        def insert(call_number):
            return pg_store.insert("service_calls", {"id": "b", "call_number": call_number})

        with pg_store.transaction():
            doc = generator.create_with_identifier(
                "service_calls", "SC", "call_number", None, insert
            )
            pg_store.insert("service_calls", {"id": "c", "call_number": "SC-900000"})

        assert doc["call_number"] == "SC-000002"
        assert connection.committed
        assert not connection.aborted

    def test_duplicate_outside_transaction_still_maps(self, pg_store):
        pg_store.insert("service_calls", {"id": "a", "call_number": "SC-000001"})
        with pytest.raises(DuplicateKeyError) as exc_info:
            pg_store.insert("service_calls", {"id": "b", "call_number": "SC-000001"})
        assert exc_info.value.field == "call_number"
