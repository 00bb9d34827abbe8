"""
service_registry

A directory of reachable service instances: instances register their
endpoint and report their health, callers discover the healthy instances of
an application.

Submodules include:
    - db/        backends, pool, migrations
    - store      transactional persistence of service records
    - registry   identity, defaults, status lifecycle, discovery
    - api        FastAPI boundary
    - client     HTTP client for other services
"""

from .config import RegistryConfig, load_config
from .errors import (
    RegistryError,
    ValidationError,
    NotFoundError,
    PreconditionFailedError,
    InternalError,
    ServiceUnavailableError,
    StoreError,
    NoRowsError,
)
from .models import Service, ServiceStatus
from .store import ServiceStore
from .registry import RegistryService
from .core import RegistryEnv, create_registry_env
from .client import ServiceRegistryClient

__version__ = "1.0.0"

__all__ = [
    "RegistryConfig",
    "load_config",
    "RegistryError",
    "ValidationError",
    "NotFoundError",
    "PreconditionFailedError",
    "InternalError",
    "ServiceUnavailableError",
    "StoreError",
    "NoRowsError",
    "Service",
    "ServiceStatus",
    "ServiceStore",
    "RegistryService",
    "RegistryEnv",
    "create_registry_env",
    "ServiceRegistryClient",
]
