"""
What the store and pool need from a database backend.

No driver is imported here. A backend exposes:

    backend.dialect      -> "sqlite" | "postgres"
    backend.paramstyle   -> "qmark" | "format"
    backend.helpers      -> module with safe_execute, safe_fetch_one, ...
    backend.connect()    -> raw DB-API connection
    backend.begin(conn)  -> open a write transaction on that connection
    backend.init_schema(conn)

DBBackend is the base class the shipped backends derive from; BackendLike
and ensure_backend accept anything shaped the same way (test doubles).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from .migrations import default_migrations


# ---------------------------------------------------------------------------
# Abstract Base Backend
# ---------------------------------------------------------------------------

class DBBackend(ABC):
    """
    Abstract base class for a registry DB backend.

    Subclasses choose their own constructor arguments
    (a file path for SQLite, a DSN for Postgres).
    """

    dialect: str = ""
    paramstyle: str = "qmark"

    @property
    @abstractmethod
    def helpers(self) -> Any:
        """
        Module providing safe_execute and friends for this driver.
        """
        raise NotImplementedError

    @abstractmethod
    def connect(self) -> Any:
        """
        Open a new driver connection.
        """
        raise NotImplementedError

    @abstractmethod
    def begin(self, conn: Any) -> None:
        """
        Start a write transaction on ``conn``.

        Whatever the backend does here must make a read-then-write sequence
        inside the transaction safe against a concurrent writer doing the
        same thing.
        """
        raise NotImplementedError

    def init_schema(self, conn: Any) -> None:
        """
        Bring the schema up to the latest migration. Idempotent.
        """
        default_migrations().apply_migrations(conn, self)


# ---------------------------------------------------------------------------
# Structural Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class BackendLike(Protocol):
    """
    Structural protocol for objects usable as a registry backend.

    This enables DBPool and the store to operate on test doubles without
    caring which backend class they got.
    """

    dialect: str
    paramstyle: str
    helpers: Any

    def connect(self) -> Any:
        ...

    def begin(self, conn: Any) -> None:
        ...

    def init_schema(self, conn: Any) -> None:
        ...


# ---------------------------------------------------------------------------
# Runtime Guard
# ---------------------------------------------------------------------------

def ensure_backend(backend: Any) -> BackendLike:
    """
    Validate that an object behaves like a registry backend.

    Raises:
        TypeError naming the missing attributes.
    """
    if not isinstance(backend, BackendLike):
        missing = [
            name
            for name in ("dialect", "paramstyle", "helpers", "connect", "begin", "init_schema")
            if not hasattr(backend, name)
        ]
        if missing:
            raise TypeError(
                f"Invalid registry backend {backend!r}: missing attributes {missing}"
            )

    return backend  # type: ignore[return-value]


__all__ = [
    "DBBackend",
    "BackendLike",
    "ensure_backend",
]
