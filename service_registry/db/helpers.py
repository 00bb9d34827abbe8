"""
Statement execution helpers shared by the SQLite and Postgres backends.

Every driver call made by the registry goes through here, so a failing
statement always surfaces as DBExecutionError with the offending query
attached, whichever driver raised it.
"""

from __future__ import annotations
from typing import Any, Optional


class DBExecutionError(RuntimeError):
    """
    A statement failed inside the driver.

    The failing query is kept for diagnostics; the driver exception is
    chained as ``__cause__``.
    """

    def __init__(self, message: str, query: str):
        super().__init__(message)
        self.query = query


# ----------------------------------------------------------------------
# Execution helpers
# ----------------------------------------------------------------------

def safe_execute(conn: Any, query: str, params: Optional[tuple] = None):
    """
    Run one statement on a raw driver connection and hand back its cursor.

    ``query`` must already use the driver's placeholder style.

    Raises
    ------
    DBExecutionError
        Whatever the driver raised, with the query attached.
    """
    cur = conn.cursor()
    try:
        cur.execute(query, params or ())
    except Exception as e:
        raise DBExecutionError(
            f"DB execute failed: {e} | Query: {query!r}", query
        ) from e
    return cur


def safe_fetch_all(conn: Any, query: str, params: Optional[tuple] = None):
    """
    Run a query and return every row in the driver's row type.
    """
    cur = safe_execute(conn, query, params)
    try:
        return cur.fetchall()
    except Exception as e:
        raise DBExecutionError(f"DB fetch failed: {e}", query) from e


def safe_fetch_one(conn: Any, query: str, params: Optional[tuple] = None):
    """
    Run a query and return its first row, or None.
    """
    cur = safe_execute(conn, query, params)
    try:
        return cur.fetchone()
    except Exception as e:
        raise DBExecutionError(f"DB fetch failed: {e}", query) from e


# ----------------------------------------------------------------------
# Placeholder translation
# ----------------------------------------------------------------------

def to_paramstyle(query: str, paramstyle: str) -> str:
    """
    Translate qmark (``?``) placeholders into the backend's paramstyle.

    Queries in this package are written with ``?``. psycopg2 expects
    ``%s``; literal percent signs are escaped on the way.
    """
    if paramstyle == "qmark":
        return query
    if paramstyle == "format":
        return query.replace("%", "%%").replace("?", "%s")
    raise ValueError(f"Unsupported paramstyle: {paramstyle!r}")


# ----------------------------------------------------------------------
# Row mapping
# ----------------------------------------------------------------------

def row_to_dict(row: Any) -> dict:
    """
    Plain dict for a sqlite3.Row or a psycopg2 RealDictRow.

    Rows without keys are indexed by column position.
    """
    if row is None:
        return {}
    if hasattr(row, "keys"):
        return {k: row[k] for k in row.keys()}
    return dict(enumerate(row))


__all__ = [
    "DBExecutionError",
    "safe_execute",
    "safe_fetch_all",
    "safe_fetch_one",
    "to_paramstyle",
    "row_to_dict",
]
