"""Tests for the SQLite service registry and result store."""

from __future__ import annotations

import sqlite3
from unittest.mock import patch

import pytest

from healthwatch.database import Database
from healthwatch.errors import StoreError
from healthwatch.health.store import ProbeResult, ResultStore
from healthwatch.services.registry import UNSET, ServicePatch, ServiceRegistry


def _result(service_id: int, healthy: bool = True, **kw) -> ProbeResult:
    return ProbeResult(
        service_id=service_id,
        status_code=kw.pop("status_code", 200 if healthy else 500),
        response_time=kw.pop("response_time", 10.0),
        is_healthy=healthy,
        error_message=None if healthy else "Unexpected status code: 500",
        **kw,
    )


# ── ServicePatch ─────────────────────────────────────────────────────────────


class TestServicePatch:
    def test_defaults_are_unset(self) -> None:
        patch_ = ServicePatch()
        assert patch_.is_empty()
        assert patch_.assignments() == {}

    def test_only_provided_fields(self) -> None:
        patch_ = ServicePatch(name="renamed", timeout=3000)
        assert patch_.assignments() == {"name": "renamed", "timeout": 3000}

    def test_none_resets_defaulted_column(self) -> None:
        patch_ = ServicePatch(check_interval=None, expected_status=None, timeout=None)
        assert patch_.assignments() == {
            "check_interval": 300,
            "expected_status": 200,
            "timeout": 5000,
        }

    def test_name_cannot_be_cleared(self) -> None:
        with pytest.raises(ValueError):
            ServicePatch(name=None).assignments()

    def test_unset_repr(self) -> None:
        assert repr(UNSET) == "UNSET"


# ── ServiceRegistry ──────────────────────────────────────────────────────────


class TestServiceRegistry:
    def test_create_and_get(self, registry: ServiceRegistry) -> None:
        svc = registry.create("Search", "https://search.example.com/ping")
        fetched = registry.get(svc.id)
        assert fetched is not None
        assert fetched.name == "Search"
        assert fetched.check_interval == 300
        assert fetched.expected_status == 200
        assert fetched.timeout == 5000
        assert fetched.created_at

    def test_get_missing(self, registry: ServiceRegistry) -> None:
        assert registry.get(999) is None
        assert registry.exists(999) is False

    def test_list_all_newest_first(self, registry: ServiceRegistry) -> None:
        a = registry.create("A", "https://a.example.com/")
        b = registry.create("B", "https://b.example.com/")
        assert [s.id for s in registry.list_all()] == [b.id, a.id]
        assert registry.count() == 2

    def test_update(self, registry: ServiceRegistry) -> None:
        svc = registry.create("A", "https://a.example.com/", check_interval=60)
        assert registry.update(svc.id, ServicePatch(check_interval=120, expected_status=204))
        fetched = registry.get(svc.id)
        assert fetched.check_interval == 120
        assert fetched.expected_status == 204
        assert fetched.name == "A"

    def test_update_empty_patch(self, registry: ServiceRegistry) -> None:
        svc = registry.create("A", "https://a.example.com/")
        assert registry.update(svc.id, ServicePatch()) is False

    def test_update_missing(self, registry: ServiceRegistry) -> None:
        assert registry.update(42, ServicePatch(name="x")) is False

    def test_delete(self, registry: ServiceRegistry) -> None:
        svc = registry.create("A", "https://a.example.com/")
        assert registry.delete(svc.id) is True
        assert registry.get(svc.id) is None
        assert registry.delete(svc.id) is False

    def test_delete_cascades_to_results(self, registry: ServiceRegistry, results: ResultStore) -> None:
        svc = registry.create("A", "https://a.example.com/")
        other = registry.create("B", "https://b.example.com/")
        results.append(_result(svc.id))
        results.append(_result(other.id))

        registry.delete(svc.id)
        assert results.latest(svc.id) is None
        assert results.count_all() == 1


# ── ResultStore ──────────────────────────────────────────────────────────────


class TestResultStore:
    def test_append_stamps_checked_at(self, service, results: ResultStore) -> None:
        r = _result(service.id)
        new_id = results.append(r)
        assert new_id == r.id
        assert "T" in r.checked_at

    def test_latest(self, service, results: ResultStore) -> None:
        for i in range(3):
            results.append(_result(service.id, response_time=float(i)))
        latest = results.latest(service.id)
        assert latest is not None
        assert latest.response_time == 2.0

    def test_latest_none(self, service, results: ResultStore) -> None:
        assert results.latest(service.id) is None

    def test_network_failure_roundtrip(self, service, results: ResultStore) -> None:
        results.append(ProbeResult(
            service_id=service.id, status_code=None, response_time=1000.4,
            is_healthy=False, error_message="Request timed out after 1000ms",
        ))
        latest = results.latest(service.id)
        assert latest.status_code is None
        assert latest.is_healthy is False
        assert latest.error_message == "Request timed out after 1000ms"

    def test_history_desc_with_limit(self, service, results: ResultStore) -> None:
        for i in range(10):
            results.append(_result(service.id, response_time=float(i)))
        history = results.history(service.id, limit=5)
        assert len(history) == 5
        assert history[0].response_time == 9.0

    def test_counts(self, service, results: ResultStore) -> None:
        results.append(_result(service.id, healthy=True))
        results.append(_result(service.id, healthy=True))
        results.append(_result(service.id, healthy=False))
        assert results.count_all() == 3
        assert results.count_healthy() == 2
        assert results.count_unhealthy() == 1

    def test_average_response_time_healthy_only(self, service, results: ResultStore) -> None:
        assert results.average_response_time(service.id) == 0.0
        results.append(_result(service.id, response_time=10.0))
        results.append(_result(service.id, response_time=20.0))
        results.append(_result(service.id, healthy=False, response_time=5000.0))
        assert results.average_response_time(service.id) == 15.0

    def test_cleanup_old(self, db: Database, service, results: ResultStore) -> None:
        results.append(_result(service.id))
        with db.session() as conn:
            conn.execute(
                "INSERT INTO probe_results "
                "(service_id, status_code, response_time, is_healthy, error_message, checked_at) "
                "VALUES (?, 200, 10, 1, NULL, '2020-01-01T00:00:00.000000+00:00')",
                (service.id,),
            )

        removed = results.cleanup_old(days=30)
        assert removed == 1
        assert len(results.history(service.id)) == 1

    def test_unknown_service_rejected(self, results: ResultStore) -> None:
        with pytest.raises(StoreError):
            results.append(_result(12345))


# ── Database ─────────────────────────────────────────────────────────────────


class TestDatabase:
    def test_close_and_reopen(self, db: Database, service, results: ResultStore) -> None:
        db.close()
        results.append(_result(service.id))
        assert results.latest(service.id) is not None

    def test_ping(self, db: Database) -> None:
        assert db.ping() is True

    def test_sqlite_errors_become_store_errors(self, db: Database) -> None:
        with pytest.raises(StoreError):
            with db.session() as conn:
                conn.execute("SELECT * FROM no_such_table")

    def test_connection_failure(self, db: Database) -> None:
        db.close()
        with patch("healthwatch.database.sqlite3.connect", side_effect=sqlite3.OperationalError("locked")):
            with pytest.raises(StoreError):
                db.connection()
