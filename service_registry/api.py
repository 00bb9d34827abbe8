from __future__ import annotations

"""
HTTP boundary for the service registry.

Routes:

    POST /v1/services                              register (create or update)
    GET  /v1/services?application=&only-healthy=   discover instances
    GET  /v1/services/{id}                         fetch one record
    PUT  /v1/services/{id}/status/{status}         report health
    GET  /health                                   database-backed health check
"""

import json
import logging
import time
from typing import Any, List, Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .core import RegistryEnv
from .errors import RegistryError, ValidationError
from .models import Service

logger = logging.getLogger(__name__)


class ServiceBody(BaseModel):
    """Registration payload. ``id`` and ``status`` are optional."""

    id: Optional[str] = None
    application: str
    location: str
    port: int
    status: Optional[str] = None

    def to_service(self) -> Service:
        return Service(
            id=self.id or "",
            application=self.application,
            location=self.location,
            port=self.port,
            status=self.status or "",
        )


# ============================================================================
# Helpers
# ============================================================================

def _log(msg: str, level: int = logging.INFO, **extra: Any) -> None:
    """
    Structured request logging: one JSON object per message.
    """
    logger.log(level, json.dumps({"msg": msg, **extra}, ensure_ascii=False, default=str))


def parse_query_flag(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("true", "1")


def _env(request: Request) -> RegistryEnv:
    return request.app.state.env


# ============================================================================
# App factory
# ============================================================================

def create_app(env: Optional[RegistryEnv] = None) -> FastAPI:
    """
    Build the FastAPI app around a RegistryEnv.

    Without an explicit env one is built from environment variables.
    """
    app = FastAPI(title="Service Registry API", version="1.0.0")
    app.state.env = env or RegistryEnv.from_env()

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        try:
            resp = await call_next(request)
        except Exception as exc:
            _log("[http] error", logging.ERROR, method=request.method,
                 path=request.url.path, error=str(exc))
            raise
        _log(
            "[http] response",
            method=request.method,
            path=request.url.path,
            status_code=resp.status_code,
            duration_ms=int((time.time() - start) * 1000),
        )
        return resp

    @app.exception_handler(RegistryError)
    async def registry_error(request: Request, exc: RegistryError):
        return JSONResponse({"detail": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        problems = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        ]
        _log("[api] bad request", logging.WARNING, path=request.url.path, problems=problems)
        return JSONResponse({"detail": "; ".join(problems) or "malformed request"}, status_code=400)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    @app.get("/health")
    def health(request: Request):
        _env(request).check_health()
        return {"status": "ok", "time": time.time()}

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    router = APIRouter(prefix="/v1")

    @router.post("/services")
    def register_service(body: ServiceBody, request: Request) -> dict:
        svc = _env(request).registry.register(body.to_service())
        return svc.to_dict()

    @router.get("/services")
    def find_application_services(
        request: Request,
        application: Optional[str] = Query(None),
        only_healthy: Optional[str] = Query(None, alias="only-healthy"),
    ) -> List[dict]:
        if not application:
            raise ValidationError("Missing query parameter: application")
        services = _env(request).registry.find_application_services(
            application,
            only_healthy=parse_query_flag(only_healthy, True),
        )
        return [s.to_dict() for s in services]

    @router.get("/services/{service_id}")
    def find_service(service_id: str, request: Request) -> dict:
        return _env(request).registry.find(service_id).to_dict()

    @router.put("/services/{service_id}/status/{status}")
    def set_service_status(service_id: str, status: str, request: Request) -> Response:
        _env(request).registry.set_status(service_id, status)
        return Response(status_code=200)

    app.include_router(router)
    return app


__all__ = [
    "ServiceBody",
    "create_app",
    "parse_query_flag",
]
