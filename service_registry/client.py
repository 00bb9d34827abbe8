"""
HTTP client for a running service registry.

Used by application instances to register themselves and report health,
and by callers to discover instances of an application.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

import requests
from requests.utils import quote

from .errors import InternalError, error_for_status
from .models import Service, ServiceStatus

DEFAULT_USER_AGENT = "service-registry/client"


class ServiceRegistryClient:
    """
    Thin wrapper over the registry's /v1 routes.

    HTTP failures come back as the registry's own exceptions
    (ValidationError, NotFoundError, PreconditionFailedError, InternalError).

    Parameters
    ----------
    base_url:
        e.g. "http://registry.internal:8080"
    timeout_s:
        Per-request timeout.
    session:
        Optional requests.Session (or compatible object exposing
        ``request(method, url, **kwargs)``).
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8080",
        *,
        timeout_s: float = 10.0,
        session: Optional[Any] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        self.user_agent = user_agent

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register(self, service: Service) -> Service:
        body: Dict[str, Any] = {
            "application": service.application,
            "location": service.location,
            "port": service.port,
        }
        if service.id:
            body["id"] = service.id
        if service.status:
            body["status"] = _status_text(service.status)

        data = self._request("POST", "/v1/services", "register service", json=body)
        return Service.from_dict(data)

    def find(self, service_id: str) -> Service:
        data = self._request(
            "GET", f"/v1/services/{_segment(service_id)}", f"find service(id={service_id})"
        )
        return Service.from_dict(data)

    def find_by_application(self, application: str, only_healthy: bool = True) -> List[Service]:
        data = self._request(
            "GET",
            "/v1/services",
            f"find services for application={application}",
            params={"application": application, "only-healthy": "true" if only_healthy else "false"},
        )
        return [Service.from_dict(d) for d in data or []]

    def set_status(self, service_id: str, status: Union[str, ServiceStatus]) -> None:
        status_text = _status_text(status)
        self._request(
            "PUT",
            f"/v1/services/{_segment(service_id)}/status/{_segment(status_text)}",
            f"set status {status_text} for service(id={service_id})",
            expect_body=False,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        action: str,
        *,
        expect_body: bool = True,
        **kwargs: Any,
    ) -> Any:
        url = f"{self.base_url}{path}"
        headers = {"User-Agent": self.user_agent}
        try:
            resp = self.session.request(method, url, headers=headers, timeout=self.timeout_s, **kwargs)
        except requests.RequestException as exc:
            raise InternalError(f"failed to {action}: {exc}") from exc

        if resp.status_code >= 400:
            raise error_for_status(resp.status_code, f"failed to {action}: {_detail(resp)}")

        if not expect_body:
            return None
        return resp.json()


def _status_text(status: Union[str, ServiceStatus]) -> str:
    return status.value if isinstance(status, ServiceStatus) else str(status)


def _detail(resp: Any) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:400]
    if isinstance(data, dict) and "detail" in data:
        return str(data["detail"])
    return str(data)[:400]


def _segment(value: str) -> str:
    return quote(str(value), safe="")
