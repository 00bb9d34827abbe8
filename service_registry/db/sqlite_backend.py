"""
SQLite backend for the service registry.

Used for:
    - local development
    - tests
    - single-node deployments

Connections run in autocommit mode; write transactions are opened
explicitly with ``BEGIN IMMEDIATE``, which takes the database write lock up
front. Two concurrent upserts therefore cannot both observe "no existing
record" for the same endpoint.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from . import helpers
from .backend_base import DBBackend


class SQLiteBackend(DBBackend):
    """
    Minimal SQLite backend.

    Parameters
    ----------
    db_path : str
        Path to the SQLite database file.
    timeout_s : float
        How long a statement may wait for the database lock before failing.
    """

    dialect = "sqlite"
    paramstyle = "qmark"

    def __init__(self, db_path: str, timeout_s: float = 5.0):
        self.path = Path(db_path)
        self.timeout_s = float(timeout_s)
        self._helpers = helpers

    @property
    def helpers(self):
        return self._helpers

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def connect(self) -> sqlite3.Connection:
        """
        Open a SQLite3 connection with dict-like row access.
        """
        conn = sqlite3.connect(
            str(self.path),
            timeout=self.timeout_s,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        return conn

    def begin(self, conn: sqlite3.Connection) -> None:
        conn.execute("BEGIN IMMEDIATE")
