from __future__ import annotations

"""
Process environment for the service registry.

RegistryEnv is the single, long-lived object wiring:

    - configuration
    - DB backend + pool
    - schema migrations
    - ServiceStore
    - RegistryService

One instance per process; safe to hand to API handlers.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import RegistryConfig, load_config
from .db import DBPool, PostgresBackend, SQLiteBackend, ensure_backend
from .errors import ServiceUnavailableError
from .registry import RegistryService
from .store import ServiceStore

logger = logging.getLogger(__name__)


@dataclass
class RegistryEnv:
    """
    Attributes
    ----------
    config:
        RegistryConfig used to construct this instance.

    db_pool:
        DBPool that provides DBConnection objects on demand.

    store:
        ServiceStore over db_pool.

    registry:
        RegistryService used by the HTTP layer.
    """

    config: RegistryConfig
    db_pool: DBPool
    store: ServiceStore
    registry: RegistryService

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: Optional[RegistryConfig] = None,
        *,
        migrate: Optional[bool] = None,
    ) -> "RegistryEnv":
        """
        Select the backend, optionally migrate the schema, and wire the
        store and registry on top of it.
        """
        cfg = config or load_config()

        if cfg.enable_logging:
            logging.basicConfig(level=logging.INFO)
            logger.info("Initializing service registry with config: %s", _redacted(cfg))

        backend = ensure_backend(_create_backend_from_config(cfg))
        db_pool = DBPool(backend)

        if cfg.migrate if migrate is None else migrate:
            conn = backend.connect()
            try:
                backend.init_schema(conn)
            finally:
                try:
                    conn.close()
                except Exception:
                    logger.exception("Error closing DB connection during schema init")

        store = ServiceStore(db_pool)
        return cls(
            config=cfg,
            db_pool=db_pool,
            store=store,
            registry=RegistryService(store),
        )

    @classmethod
    def from_env(cls) -> "RegistryEnv":
        """Construct RegistryEnv using environment variables."""
        return cls.from_config(load_config())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def check_health(self) -> None:
        """
        Raise ServiceUnavailableError unless the database answers.
        """
        try:
            with self.db_pool.connection() as conn:
                conn.fetch_one("SELECT 1 AS ok")
        except Exception as exc:
            logger.warning("Health check failed: %s", exc)
            raise ServiceUnavailableError("database unavailable") from exc

    def close(self) -> None:
        # Connections are per request; nothing is held open between them.
        logger.info("Service registry environment closed")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _create_backend_from_config(config: RegistryConfig):
    """
    Instantiate the appropriate DB backend for a given configuration.
    """
    name = (config.db_backend or "").lower()

    if name == "sqlite":
        return SQLiteBackend(config.db_uri, timeout_s=config.db_timeout_s)

    if name in ("postgres", "postgresql", "psql"):
        return PostgresBackend(config.db_uri, timeout_s=config.db_timeout_s)

    raise ValueError(f"Unsupported registry DB backend: {config.db_backend!r}")


def _redacted(config: RegistryConfig) -> str:
    uri = config.db_uri
    if "@" in uri and "://" in uri:
        scheme, rest = uri.split("://", 1)
        uri = f"{scheme}://***@{rest.rsplit('@', 1)[1]}"
    return (
        f"RegistryConfig(db_backend={config.db_backend!r}, db_uri={uri!r}, "
        f"db_timeout_s={config.db_timeout_s}, host={config.host!r}, port={config.port})"
    )


def create_registry_env(
    config: Optional[RegistryConfig] = None,
    *,
    migrate: Optional[bool] = None,
) -> RegistryEnv:
    """
    Convenience constructor used by the server and scripts.
    """
    return RegistryEnv.from_config(config, migrate=migrate)


__all__ = [
    "RegistryEnv",
    "create_registry_env",
]
