"""
PostgreSQL client with connection pooling and transaction scoping.

Uses psycopg2 with ThreadedConnectionPool. Each statement runs on its own
pooled connection and commits immediately, unless it is issued inside
transaction(), in which case every statement in the block shares one
connection and commits (or rolls back) together. savepoint() scopes a
statement inside a transaction so its failure can be recovered from.

Ownership is not enforced here: the document store filters every query on
the owning principal.
"""

import itertools
import logging
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

# Global JSONB registration flag
_jsonb_registered = False

# Connection bound to the enclosing transaction() block, if any
_active_connection: ContextVar[Any] = ContextVar("active_connection", default=None)

# Savepoint names only need to be unique within one connection
_savepoint_ids = itertools.count(1)


class PostgresClient:
    """
    PostgreSQL client with optional multi-statement transactions.

    Usage:
        db = PostgresClient(database_url)

        rows = db.execute("SELECT * FROM documents WHERE collection = %s", ("agents",))

        with db.transaction():
            db.execute("UPDATE ...")
            db.execute("INSERT ...")   # both commit together
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=2,
                    maxconn=20,
                    dsn=self._database_url,
                    connect_timeout=30,
                )

                global _jsonb_registered
                if not _jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    _jsonb_registered = True

                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    @contextmanager
    def get_connection(self):
        """
        Yield a connection.

        Inside transaction() this is the transaction's connection; otherwise
        a fresh one is checked out of the pool and returned afterwards.
        """
        active = _active_connection.get()
        if active is not None:
            yield active
            return

        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._database_url]
        conn = None

        try:
            conn = pool.getconn()
            if conn is None:
                raise RuntimeError("Could not get connection from pool")
            yield conn

        finally:
            if conn:
                pool.putconn(conn)

    @contextmanager
    def transaction(self):
        """
        Run the enclosed statements atomically.

        Nested blocks join the outermost transaction. Any exception rolls
        the whole transaction back and propagates.
        """
        if _active_connection.get() is not None:
            yield
            return

        with self.get_connection() as conn:
            token = _active_connection.set(conn)
            try:
                yield
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                _active_connection.reset(token)

    @contextmanager
    def savepoint(self):
        """
        Run the enclosed statements under a savepoint of the active transaction.

        A failing statement aborts the whole PostgreSQL transaction; rolling
        back to the savepoint lets the transaction continue, so callers can
        catch the error and retry. Outside transaction() this does nothing.
        """
        conn = _active_connection.get()
        if conn is None:
            yield
            return

        name = f"sp_{next(_savepoint_ids)}"
        with conn.cursor() as cur:
            cur.execute(f"SAVEPOINT {name}")
        try:
            yield
        except Exception:
            with conn.cursor() as cur:
                cur.execute(f"ROLLBACK TO SAVEPOINT {name}")
            raise
        with conn.cursor() as cur:
            cur.execute(f"RELEASE SAVEPOINT {name}")

    def in_transaction(self) -> bool:
        """Whether the caller is inside transaction()."""
        return _active_connection.get() is not None

    def _commit(self, conn) -> None:
        """Commit unless a surrounding transaction() owns the connection."""
        if _active_connection.get() is None:
            conn.commit()

    def _convert_params(self, params: Tuple | Dict | None) -> Tuple | Dict | None:
        """Convert UUID objects to strings."""
        if params is None:
            return None

        def convert(value: Any) -> Any:
            if isinstance(value, UUID):
                return str(value)
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(params)

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        params = self._convert_params(params)
        with self.get_connection() as conn:
            try:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    cur.execute(query, params)
                    rows = [dict(row) for row in cur.fetchall()] if cur.description else []
                self._commit(conn)
                return rows
            except Exception:
                if not self.in_transaction():
                    conn.rollback()
                raise

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_scalar(self, query: str, params: Tuple | Dict | None = None) -> Any:
        """Execute query, return first value of first row or None."""
        row = self.execute_single(query, params)
        if row is None:
            return None
        return next(iter(row.values()))

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]

    @classmethod
    def close_all_pools(cls) -> None:
        """Close all connection pools."""
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()
