"""Shared test fixtures."""

from __future__ import annotations

import pytest

from healthwatch.database import Database
from healthwatch.health.cache import MemoryStatusCache
from healthwatch.health.engine import HealthCheckEngine
from healthwatch.health.probe import ProbeOutcome
from healthwatch.health.store import ResultStore
from healthwatch.services.registry import ServiceDefinition, ServiceRegistry


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProber:
    """Stands in for run_http_probe; records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, int]] = []
        self.outcome = ProbeOutcome(status_code=200, response_time_ms=12.5)

    def __call__(self, url: str, timeout_ms: int) -> ProbeOutcome:
        self.calls.append((url, timeout_ms))
        return self.outcome


@pytest.fixture
def db(tmp_path):
    """Database backed by a temp SQLite file."""
    database = Database(tmp_path / "test_healthwatch.db")
    yield database
    database.close()


@pytest.fixture
def registry(db) -> ServiceRegistry:
    return ServiceRegistry(db)


@pytest.fixture
def results(db) -> ResultStore:
    return ResultStore(db)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> MemoryStatusCache:
    return MemoryStatusCache(timer=clock)


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber()


@pytest.fixture
def engine(registry, results, cache, prober) -> HealthCheckEngine:
    return HealthCheckEngine(registry, results, cache, prober=prober)


@pytest.fixture
def service(registry) -> ServiceDefinition:
    return registry.create(
        name="Billing API",
        url="https://billing.example.com/health",
        check_interval=60,
        timeout=2000,
    )
