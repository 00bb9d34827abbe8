"""
Connections and the per-request pool used by the store.

DBConnection wraps one driver connection: it translates ``?`` placeholders,
routes statements through the helpers, and returns rows as dicts.

DBPool opens a fresh connection per use, either plain (reads) or inside a
write transaction that commits on success and rolls back on error.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .helpers import to_paramstyle

logger = logging.getLogger(__name__)


class DBConnection:
    """
    One open database connection.

    Reads come back as plain dicts on both backends. Nothing is committed
    implicitly; mutations belong inside ``DBPool.transaction()``.
    """

    def __init__(self, raw_conn: Any, helpers: Any, paramstyle: str = "qmark"):
        self.raw = raw_conn
        self.helpers = helpers
        self.paramstyle = paramstyle

    def _sql(self, query: str) -> str:
        return to_paramstyle(query, self.paramstyle)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def execute(self, query: str, params: Optional[tuple] = None):
        return self.helpers.safe_execute(self.raw, self._sql(query), params)

    def fetch_all(self, query: str, params: Optional[tuple] = None) -> list:
        rows = self.helpers.safe_fetch_all(self.raw, self._sql(query), params)
        return [self.helpers.row_to_dict(r) for r in rows]

    def fetch_one(self, query: str, params: Optional[tuple] = None) -> Optional[dict]:
        """First row as a dict, or None when the query matched nothing."""
        row = self.helpers.safe_fetch_one(self.raw, self._sql(query), params)
        return self.helpers.row_to_dict(row) if row is not None else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def commit(self) -> None:
        try:
            self.raw.commit()
        except Exception as e:
            raise RuntimeError(f"Commit failed: {e}") from e

    def rollback(self) -> None:
        """
        Undo the open transaction.

        A failed rollback is only logged: the connection is closed right
        after, and the error that caused the rollback is the one to report.
        """
        try:
            self.raw.rollback()
        except Exception:
            logger.warning("Rollback failed", exc_info=True)

    def close(self) -> None:
        try:
            self.raw.close()
        except Exception:
            logger.warning("Closing DB connection failed", exc_info=True)


# ----------------------------------------------------------------------
# Pool
# ----------------------------------------------------------------------

class DBPool:
    """
    Hands out a new connection for every request.

    Usage:

        with pool.connection() as conn:     # reads
            conn.fetch_one(...)

        with pool.transaction() as conn:    # writes
            conn.execute(...)
    """

    def __init__(self, backend: Any):
        self.backend = backend

    def get(self) -> DBConnection:
        return DBConnection(self.backend.connect(), self.backend.helpers, self.backend.paramstyle)

    def connection(self) -> "_ConnectionContext":
        return _ConnectionContext(self, transactional=False)

    def transaction(self) -> "_ConnectionContext":
        return _ConnectionContext(self, transactional=True)


class _ConnectionContext:
    def __init__(self, pool: DBPool, *, transactional: bool):
        self.pool = pool
        self.transactional = transactional
        self.conn: Optional[DBConnection] = None

    def __enter__(self) -> DBConnection:
        conn = self.pool.get()
        if self.transactional:
            try:
                self.pool.backend.begin(conn.raw)
            except Exception:
                conn.close()
                raise
        self.conn = conn
        return conn

    def __exit__(self, exc_type, exc, tb):
        conn, self.conn = self.conn, None
        if conn is None:
            return False

        try:
            if exc_type is not None:
                conn.rollback()
            elif self.transactional:
                conn.commit()
        finally:
            conn.close()
        return False


__all__ = [
    "DBConnection",
    "DBPool",
]
