"""
service_registry.db

Database backend abstraction layer for the service registry.

This package provides:

- A backend-agnostic connection abstraction:
      * DBConnection
      * DBPool

- Helper functions for SQL execution and row mapping

- Concrete database backend implementations:
      * SQLiteBackend   (default: local development + tests)
      * PostgresBackend (production)

- Migration utilities for schema upgrades:
      * MigrationManager
"""

from .connection import DBConnection, DBPool
from .sqlite_backend import SQLiteBackend
from .postgres_backend import PostgresBackend
from .backend_base import DBBackend, BackendLike, ensure_backend
from .helpers import (
    DBExecutionError,
    safe_execute,
    safe_fetch_all,
    safe_fetch_one,
    row_to_dict,
)
from .migrations import MigrationManager, default_migrations

__all__ = [
    # Connection / Pool
    "DBConnection",
    "DBPool",

    # Backends
    "SQLiteBackend",
    "PostgresBackend",
    "DBBackend",
    "BackendLike",
    "ensure_backend",

    # Helpers
    "DBExecutionError",
    "safe_execute",
    "safe_fetch_all",
    "safe_fetch_one",
    "row_to_dict",

    # Migrations
    "MigrationManager",
    "default_migrations",
]
