"""
DB-backed service store.

The sole owner of durable registry state. Every mutation runs inside one
transaction obtained from DBPool.transaction().

Schema (migration 1):
    service(
        seq          insertion sequence (primary key),
        id           TEXT NOT NULL UNIQUE,
        application  TEXT NOT NULL,
        location     TEXT NOT NULL,
        port         INTEGER NOT NULL,
        status       TEXT NOT NULL,
        created_at   timestamp NOT NULL,
        updated_at   timestamp NOT NULL
    )
    UNIQUE (location, port)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, List

from .db.connection import DBPool
from .errors import NoRowsError, StoreError
from .models import Service, format_timestamp, parse_timestamp, utcnow

logger = logging.getLogger(__name__)


_COLUMNS = "id, application, location, port, status, created_at, updated_at"

# One combined lookup; an endpoint match outranks an id match.
_FIND_EXISTING = """
    SELECT id, created_at
    FROM service
    WHERE id = ?
       OR (location = ? AND port = ?)
    ORDER BY CASE WHEN location = ? AND port = ? THEN 0 ELSE 1 END
    LIMIT 1
"""

_INSERT = f"""
    INSERT INTO service ({_COLUMNS})
    VALUES (?, ?, ?, ?, ?, ?, ?)
"""

_UPDATE = """
    UPDATE service SET
        application = ?,
        location = ?,
        port = ?,
        status = ?,
        updated_at = ?
    WHERE id = ?
"""

_FIND = f"""
    SELECT {_COLUMNS}
    FROM service
    WHERE id = ?
"""

_FIND_BY_APPLICATION = f"""
    SELECT {_COLUMNS}
    FROM service
    WHERE application = ?
    ORDER BY seq ASC
"""


class ServiceStore:
    """
    Database-backed store for service records.

    Parameters
    ----------
    pool:
        DBPool handing out connections to the registry database.
    clock:
        Returns the current UTC time; replaceable in tests.
    """

    def __init__(self, pool: DBPool, *, clock: Callable[[], datetime] = utcnow):
        self.pool = pool
        self._clock = clock

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def upsert(self, service: Service) -> Service:
        """
        Insert a service, or update the record it resolves to.

        Identity resolution: a record with the same id OR the same
        (location, port). If both exist the endpoint match is used, and the
        returned record carries that record's id, not the caller's.

        All fields except id and created_at are overwritten; updated_at is
        refreshed. New records get created_at == updated_at == now.
        """
        if not service.id:
            raise ValueError("upsert requires a service id")

        try:
            with self.pool.transaction() as conn:
                # Read under the write lock so timestamps follow commit order.
                now = self._clock()
                existing = conn.fetch_one(
                    _FIND_EXISTING,
                    (service.id, service.location, service.port, service.location, service.port),
                )
                if existing is not None:
                    saved = replace(
                        service,
                        id=existing["id"],
                        created_at=parse_timestamp(existing["created_at"]),
                        updated_at=now,
                    )
                    conn.execute(
                        _UPDATE,
                        (
                            saved.application,
                            saved.location,
                            saved.port,
                            saved.status,
                            format_timestamp(now),
                            saved.id,
                        ),
                    )
                else:
                    saved = replace(service, created_at=now, updated_at=now)
                    conn.execute(
                        _INSERT,
                        (
                            saved.id,
                            saved.application,
                            saved.location,
                            saved.port,
                            saved.status,
                            format_timestamp(now),
                            format_timestamp(now),
                        ),
                    )
        except StoreError:
            raise
        except Exception as exc:
            logger.error("Upsert failed for service(id=%s)", service.id, exc_info=True)
            raise StoreError("upsert", service.id, str(exc)) from exc

        if saved.id != service.id:
            logger.debug(
                "Endpoint %s:%s already registered as %s; ignoring id %s",
                service.location, service.port, saved.id, service.id,
            )
        return saved

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find(self, service_id: str) -> Service:
        """
        Fetch one record by id.

        Raises NoRowsError when no record has that id.
        """
        try:
            with self.pool.connection() as conn:
                row = conn.fetch_one(_FIND, (service_id,))
        except Exception as exc:
            logger.error("Find failed for service(id=%s)", service_id, exc_info=True)
            raise StoreError("find", service_id, str(exc)) from exc

        if row is None:
            raise NoRowsError("find", service_id)
        return self._row_to_rec(row)

    def find_by_application(self, application: str) -> List[Service]:
        """
        All records for an application, in insertion order. Never raises for
        an unknown application; the list is just empty.
        """
        try:
            with self.pool.connection() as conn:
                rows = conn.fetch_all(_FIND_BY_APPLICATION, (application,))
        except Exception as exc:
            logger.error("Listing failed for application=%s", application, exc_info=True)
            raise StoreError("find_by_application", application, str(exc)) from exc

        return [self._row_to_rec(r) for r in rows]

    # ------------------------------------------------------------------
    # Internal helper
    # ------------------------------------------------------------------

    def _row_to_rec(self, row: dict) -> Service:
        """
        Map a raw SQL row dict -> Service dataclass.
        """
        return Service(
            id=row["id"],
            application=row["application"],
            location=row["location"],
            port=int(row["port"]),
            status=row["status"],
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )
