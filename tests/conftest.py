from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from service_registry.config import RegistryConfig
from service_registry.core import RegistryEnv, create_registry_env
from service_registry.registry import RegistryService
from service_registry.store import ServiceStore


class StepClock:
    """Deterministic clock: every call is one second after the previous."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def config(tmp_path) -> RegistryConfig:
    return RegistryConfig(db_backend="sqlite", db_uri=str(tmp_path / "registry.db"), db_timeout_s=10.0)


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def env(config, clock) -> RegistryEnv:
    base = create_registry_env(config)
    store = ServiceStore(base.db_pool, clock=clock)
    return replace(base, store=store, registry=RegistryService(store))


@pytest.fixture
def store(env):
    return env.store


@pytest.fixture
def registry(env):
    return env.registry
