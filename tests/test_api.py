from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from service_registry.api import create_app, parse_query_flag
from service_registry.config import RegistryConfig
from service_registry.core import create_registry_env
from service_registry.errors import StoreError


@pytest.fixture
def client(env) -> TestClient:
    return TestClient(create_app(env))


def _register(client: TestClient, **body) -> dict:
    payload = {"application": "billing", "location": "10.0.0.1", "port": 8080}
    payload.update(body)
    res = client.post("/v1/services", json=payload)
    assert res.status_code == 200, res.text
    return res.json()


def test_register_returns_full_record(client) -> None:
    data = _register(client)

    assert data["id"]
    assert data["status"] == "HEALTHY"
    assert data["application"] == "billing"
    assert data["location"] == "10.0.0.1"
    assert data["port"] == 8080
    assert data["created_at"] == data["updated_at"]


def test_register_same_endpoint_returns_original_id(client) -> None:
    first = _register(client)
    second = _register(client, id="someone-else", status="UNHEALTHY")

    assert second["id"] == first["id"]
    assert second["created_at"] == first["created_at"]
    assert second["status"] == "UNHEALTHY"


@pytest.mark.parametrize(
    "payload",
    [
        {"location": "h", "port": 1},
        {"application": "a", "port": 1},
        {"application": "a", "location": "h"},
        {"application": "a", "location": "h", "port": "not-a-port"},
        {"application": "a", "location": "h", "port": 1, "status": "SLEEPY"},
        {"application": "", "location": "h", "port": 1},
    ],
)
def test_register_bad_request(client, payload) -> None:
    res = client.post("/v1/services", json=payload)
    assert res.status_code == 400
    assert "detail" in res.json()


def test_register_malformed_json(client) -> None:
    res = client.post("/v1/services", content=b"{not json", headers={"content-type": "application/json"})
    assert res.status_code == 400


def test_find_service(client) -> None:
    created = _register(client)

    res = client.get(f"/v1/services/{created['id']}")
    assert res.status_code == 200
    assert res.json() == created

    missing = client.get("/v1/services/does-not-exist")
    assert missing.status_code == 404


def test_set_status(client) -> None:
    created = _register(client)

    res = client.put(f"/v1/services/{created['id']}/status/UNHEALTHY")
    assert res.status_code == 200
    assert res.content == b""

    found = client.get(f"/v1/services/{created['id']}").json()
    assert found["status"] == "UNHEALTHY"
    assert found["id"] == created["id"]
    assert found["created_at"] == created["created_at"]


def test_set_status_unknown_service_is_precondition_required(client) -> None:
    res = client.put("/v1/services/ghost/status/HEALTHY")
    assert res.status_code == 428


def test_set_status_unknown_value_is_bad_request(client) -> None:
    created = _register(client)
    res = client.put(f"/v1/services/{created['id']}/status/MAYBE")
    assert res.status_code == 400


def test_find_application_services(client) -> None:
    a = _register(client, port=1)
    b = _register(client, port=2, status="UNHEALTHY")
    c = _register(client, port=3)

    default = client.get("/v1/services", params={"application": "billing"})
    assert default.status_code == 200
    assert [s["id"] for s in default.json()] == [a["id"], c["id"]]

    healthy = client.get("/v1/services", params={"application": "billing", "only-healthy": "TRUE"})
    assert [s["id"] for s in healthy.json()] == [a["id"], c["id"]]

    everything = client.get("/v1/services", params={"application": "billing", "only-healthy": "false"})
    assert [s["id"] for s in everything.json()] == [a["id"], b["id"], c["id"]]

    unknown = client.get("/v1/services", params={"application": "ghost"})
    assert unknown.status_code == 200
    assert unknown.json() == []


def test_find_application_services_requires_application(client) -> None:
    assert client.get("/v1/services").status_code == 400
    assert client.get("/v1/services", params={"application": ""}).status_code == 400


def test_internal_errors_hide_backend_text(env, monkeypatch) -> None:
    def broken_upsert(service):
        raise StoreError("upsert", service.id, "SQLITE_IOERR secret path /var/db")

    monkeypatch.setattr(env.store, "upsert", broken_upsert)
    client = TestClient(create_app(env))

    res = client.post("/v1/services", json={"application": "a", "location": "h", "port": 1})
    assert res.status_code == 500
    assert "secret" not in res.text
    assert "SQLITE" not in res.text


def test_health(client) -> None:
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_health_reports_unavailable_database(tmp_path) -> None:
    cfg = RegistryConfig(db_backend="sqlite", db_uri=str(tmp_path), db_timeout_s=0.1, migrate=False)
    client = TestClient(create_app(create_registry_env(cfg)))

    res = client.get("/health")
    assert res.status_code == 503


@pytest.mark.parametrize(
    "value,expected",
    [(None, True), ("true", True), ("True", True), ("1", True), ("false", False), ("0", False), ("yes", False)],
)
def test_parse_query_flag(value, expected) -> None:
    assert parse_query_flag(value, True) is expected


def test_app_without_env_reads_environment(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("SERVICE_REGISTRY_DB_BACKEND", "sqlite")
    monkeypatch.setenv("SERVICE_REGISTRY_DB_URI", str(tmp_path / "from-env.db"))
    monkeypatch.setenv("SERVICE_REGISTRY_MIGRATE", "true")

    app = create_app()
    assert app.state.env.config.db_uri == str(tmp_path / "from-env.db")

    client = TestClient(app)
    res = client.post("/v1/services", json={"application": "a", "location": "h", "port": 1})
    assert res.status_code == 200
    assert (tmp_path / "from-env.db").exists()


def test_set_status_checks_status_before_existence(client) -> None:
    # An invalid status is reported even when the id is also unknown.
    res = client.put("/v1/services/ghost/status/MAYBE")
    assert res.status_code == 400
