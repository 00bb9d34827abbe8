"""
Database schema migration manager.

Migrations are numbered steps registered on a MigrationManager. Applying
them is idempotent: the highest applied version is recorded in the
``schema_version`` table and only newer steps run. All pending steps run
inside one write transaction, so a failed step leaves the schema untouched.

Each step is a callable ``step(execute, dialect)`` where ``execute(sql)``
runs one statement on the migrating connection and ``dialect`` is the
backend dialect ("sqlite" or "postgres").
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from . import helpers

logger = logging.getLogger(__name__)

Step = Callable[[Callable[[str], Any], str], None]


_SCHEMA_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version      INTEGER NOT NULL,
    applied_at   TEXT NOT NULL
)
"""


class MigrationManager:
    """
    Schema migration registry and executor.

    Usage pattern:

        mgr = MigrationManager()
        mgr.register(
            version=1,
            upgrade=lambda execute, dialect: execute("CREATE TABLE ..."),
            downgrade=lambda execute, dialect: execute("DROP TABLE ..."),
        )
        mgr.apply_migrations(conn, backend)
    """

    def __init__(self):
        # Mapping:
        #     version -> {"upgrade": fn, "downgrade": fn}
        self.migrations: Dict[int, Dict[str, Optional[Step]]] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        version: int,
        upgrade: Step,
        downgrade: Optional[Step] = None,
    ) -> None:
        """
        Register a migration step.

        Parameters
        ----------
        version:
            Positive integer schema version identifier.

        upgrade:
            Callable applying the step.

        downgrade:
            Optional callable reversing the step.
        """
        if version <= 0:
            raise ValueError(f"Migration version must be positive, got {version}")
        if version in self.migrations:
            raise ValueError(f"Migration version {version} is already registered")
        self.migrations[version] = {
            "upgrade": upgrade,
            "downgrade": downgrade,
        }

    def get_latest_version(self) -> int:
        """
        Return the highest registered migration number, or 0 if none exist.
        """
        return max(self.migrations.keys(), default=0)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def current_version(self, conn: Any, backend: Any) -> int:
        """
        Return the schema version recorded in the database (0 if none).
        """
        execute = _executor(conn, backend)
        execute(_SCHEMA_VERSION_TABLE)
        row = execute("SELECT MAX(version) AS version FROM schema_version").fetchone()
        value = helpers.row_to_dict(row).get("version") if row is not None else None
        return int(value or 0)

    def apply_migrations(self, conn: Any, backend: Any) -> int:
        """
        Apply pending upgrades and return the resulting schema version.
        """
        execute = _executor(conn, backend)
        backend.begin(conn)
        try:
            current = self.current_version(conn, backend)
            pending = sorted(v for v in self.migrations if v > current)
            for version in pending:
                logger.info("Applying schema migration %d (%s)", version, backend.dialect)
                self.migrations[version]["upgrade"](execute, backend.dialect)
                execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(timezone.utc).isoformat()),
                )
            conn.commit()
        except Exception:
            conn.rollback()
            raise

        return pending[-1] if pending else current

    def downgrade_to(self, conn: Any, backend: Any, target_version: int) -> int:
        """
        Reverse applied steps down to ``target_version``.

        Raises ValueError if a step on the way has no downgrade.
        """
        execute = _executor(conn, backend)
        backend.begin(conn)
        try:
            current = self.current_version(conn, backend)
            for version in sorted((v for v in self.migrations if target_version < v <= current), reverse=True):
                step = self.migrations[version]["downgrade"]
                if step is None:
                    raise ValueError(f"Migration {version} is not reversible")
                logger.info("Reverting schema migration %d (%s)", version, backend.dialect)
                step(execute, backend.dialect)
                execute("DELETE FROM schema_version WHERE version = ?", (version,))
            conn.commit()
        except Exception:
            conn.rollback()
            raise

        return min(current, target_version)


def _executor(conn: Any, backend: Any) -> Callable[..., Any]:
    def execute(query: str, params: Optional[tuple] = None):
        return backend.helpers.safe_execute(
            conn, helpers.to_paramstyle(query, backend.paramstyle), params
        )

    return execute


# ----------------------------------------------------------------------
# Registry schema
# ----------------------------------------------------------------------

def _create_service_table(execute: Callable[[str], Any], dialect: str) -> None:
    if dialect == "postgres":
        seq = "seq BIGSERIAL PRIMARY KEY"
        ts = "TIMESTAMPTZ"
    else:
        seq = "seq INTEGER PRIMARY KEY AUTOINCREMENT"
        ts = "TEXT"

    execute(
        f"""
        CREATE TABLE IF NOT EXISTS service (
            {seq},
            id            TEXT NOT NULL UNIQUE,
            application   TEXT NOT NULL,
            location      TEXT NOT NULL,
            port          INTEGER NOT NULL,
            status        TEXT NOT NULL,
            created_at    {ts} NOT NULL,
            updated_at    {ts} NOT NULL
        )
        """
    )
    execute(
        "CREATE INDEX IF NOT EXISTS idx_service_application ON service(application)"
    )
    execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS ux_service_endpoint ON service(location, port)"
    )


def _drop_service_table(execute: Callable[[str], Any], dialect: str) -> None:
    execute("DROP TABLE IF EXISTS service")


def default_migrations() -> MigrationManager:
    """
    The migration set for the registry schema.
    """
    mgr = MigrationManager()
    mgr.register(
        version=1,
        upgrade=_create_service_table,
        downgrade=_drop_service_table,
    )
    return mgr


__all__ = [
    "MigrationManager",
    "default_migrations",
]
