"""
Registry service: the business rules in front of ServiceStore.

Assigns identity, applies the default status, validates required fields,
and turns store outcomes into request outcomes. Holds no state of its own,
so one instance is shared by all requests.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import List, Union

from .errors import (
    InternalError,
    NoRowsError,
    NotFoundError,
    PreconditionFailedError,
    StoreError,
    ValidationError,
)
from .models import Service, ServiceStatus
from .store import ServiceStore

logger = logging.getLogger(__name__)

MAX_PORT = 65535


def new_service_id() -> str:
    return str(uuid.uuid4())


class RegistryService:
    def __init__(self, store: ServiceStore):
        self.store = store

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, service: Service) -> Service:
        """
        Create or update the record for a service instance.

        Missing id → a fresh UUID. Missing status → HEALTHY. When the
        endpoint is already registered the returned record carries the
        existing id.
        """
        _validate(service)

        service = replace(
            service,
            id=(service.id or "").strip() or new_service_id(),
            status=ServiceStatus.parse(service.status).value if service.status else ServiceStatus.HEALTHY.value,
        )

        try:
            saved = self.store.upsert(service)
        except StoreError as exc:
            logger.error("Failed to register service(id=%s): %s", service.id, exc)
            raise InternalError() from exc

        logger.debug("Registered service %s", saved.to_dict())
        return saved

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find(self, service_id: str) -> Service:
        try:
            return self.store.find(service_id)
        except NoRowsError as exc:
            raise NotFoundError(f"Service {service_id} not found") from exc
        except StoreError as exc:
            logger.error("Failed to find service(id=%s): %s", service_id, exc)
            raise InternalError() from exc

    def find_application_services(self, application: str, only_healthy: bool = True) -> List[Service]:
        """
        All instances of an application, optionally only the HEALTHY ones.
        Store order is preserved.
        """
        if not (application or "").strip():
            raise ValidationError("application is required")

        try:
            services = self.store.find_by_application(application)
        except StoreError as exc:
            logger.error("Failed to list services for application=%s: %s", application, exc)
            raise InternalError() from exc

        if not only_healthy:
            return services

        return [s for s in services if s.status == ServiceStatus.HEALTHY.value]

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def set_status(self, service_id: str, status: Union[str, ServiceStatus]) -> Service:
        """
        Record a new status for an already registered service.

        Raises PreconditionFailedError when nothing was registered under
        ``service_id``.
        """
        parsed = ServiceStatus.parse(status)

        try:
            current = self.store.find(service_id)
        except NoRowsError as exc:
            logger.warning("Status update for unregistered service(id=%s)", service_id)
            raise PreconditionFailedError(
                f"Service {service_id} must be registered before its status can be set"
            ) from exc
        except StoreError as exc:
            logger.error("Failed to look up service(id=%s): %s", service_id, exc)
            raise InternalError() from exc

        try:
            saved = self.store.upsert(replace(current, status=parsed.value))
        except StoreError as exc:
            logger.error("Failed to save status update for service(id=%s): %s", service_id, exc)
            raise InternalError() from exc

        logger.debug("Service %s is now %s", saved.id, saved.status)
        return saved


def _validate(service: Service) -> None:
    if not (service.application or "").strip():
        raise ValidationError("application is required")
    if not (service.location or "").strip():
        raise ValidationError("location is required")
    if isinstance(service.port, bool) or not isinstance(service.port, int):
        raise ValidationError("port must be an integer")
    if not 0 < service.port <= MAX_PORT:
        raise ValidationError(f"port must be between 1 and {MAX_PORT}")
