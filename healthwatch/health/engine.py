"""Health check engine — decides between cached status and a fresh probe.

Every probe is appended to the result store and written to the status
cache with TTL = the service's check_interval, so staleness is bounded by
TTL expiry plus read-triggered refresh. Nothing runs in the background: a
service nobody asks about is never probed.

Concurrency: the engine keeps no in-process mutable state. Two concurrent
forced checks of the same service may both probe and both append (last
cache write wins). Callers needing at-most-one in-flight probe per service
must serialize on the service id themselves.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from healthwatch.config import Settings, settings as default_settings
from healthwatch.database import Database
from healthwatch.errors import HealthwatchError, ServiceNotFoundError
from healthwatch.health.cache import (
    METRICS_KEY,
    SERVICE_LIST_KEY,
    StatusCache,
    create_cache,
    service_status_key,
)
from healthwatch.health.probe import ProbeOutcome, evaluate, run_http_probe
from healthwatch.health.store import ProbeResult, ResultStore
from healthwatch.services.registry import ServiceDefinition, ServiceRegistry

logger = logging.getLogger(__name__)

Prober = Callable[[str, int], ProbeOutcome]


class HealthCheckEngine:
    """Orchestrates probing, result recording, caching and metrics."""

    def __init__(
        self,
        registry: ServiceRegistry,
        results: ResultStore,
        cache: StatusCache,
        prober: Prober = run_http_probe,
        metrics_ttl: int = 60,
        service_list_ttl: int = 60,
    ) -> None:
        self.registry = registry
        self.results = results
        self.cache = cache
        self._prober = prober
        self._metrics_ttl = metrics_ttl
        self._service_list_ttl = service_list_ttl

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _require_service(self, service_id: int) -> ServiceDefinition:
        service = self.registry.get(service_id)
        if service is None:
            raise ServiceNotFoundError(service_id)
        return service

    @staticmethod
    def _with_identity(payload: dict[str, Any], service: ServiceDefinition, cached: bool) -> dict[str, Any]:
        return {
            **payload,
            "cached": cached,
            "service_name": service.name,
            "service_url": service.url,
        }

    # ── Checks ───────────────────────────────────────────────────────────────

    def check_service(self, service_id: int, force_check: bool = False) -> dict[str, Any]:
        """Return the service's status, probing unless a cached one is live."""
        return self._check(self._require_service(service_id), force_check, refresh_metrics=True)

    def _check(
        self, service: ServiceDefinition, force_check: bool, refresh_metrics: bool,
    ) -> dict[str, Any]:
        key = service_status_key(service.id)

        if not force_check:
            cached = self.cache.get(key)
            if cached is not None:
                return self._with_identity(cached, service, cached=True)

        outcome = self._prober(service.url, service.timeout)
        is_healthy, error_message = evaluate(outcome, service.expected_status)

        result = ProbeResult(
            service_id=service.id,
            status_code=outcome.status_code,
            response_time=outcome.response_time_ms,
            is_healthy=is_healthy,
            error_message=error_message,
        )
        self.results.append(result)

        status = {
            "service_id": service.id,
            "status": "healthy" if is_healthy else "unhealthy",
            "is_healthy": is_healthy,
            "status_code": result.status_code,
            "response_time": result.response_time,
            "error_message": result.error_message,
            "last_checked": result.checked_at,
        }
        self.cache.set(key, status, service.check_interval)

        logger.debug(
            "Check %d (%s): %s status=%s %.1fms",
            service.id, service.name, status["status"],
            result.status_code, result.response_time,
        )

        if refresh_metrics:
            self.update_metrics()

        return self._with_identity(status, service, cached=False)

    def check_all_services(self) -> list[dict[str, Any]]:
        """Check every registered service in order; one failure never aborts the sweep.

        Metrics are recomputed once after the sweep instead of after each probe.
        """
        outcomes: list[dict[str, Any]] = []
        errors = 0

        for service in self.registry.list_all():
            try:
                # Re-read so a service deleted mid-sweep surfaces as not-found.
                current = self._require_service(service.id)
                outcomes.append(self._check(current, force_check=False, refresh_metrics=False))
            except HealthwatchError as e:
                errors += 1
                logger.warning("Error checking service %d: %s", service.id, e)
                outcomes.append({
                    "service_id": service.id,
                    "service_name": service.name,
                    "status": "error",
                    "error_message": str(e),
                })

        self.update_metrics()
        logger.info("Sweep finished: %d services, %d errors", len(outcomes), errors)
        return outcomes

    # ── Read-only views ──────────────────────────────────────────────────────

    def get_service_status(self, service_id: int) -> dict[str, Any]:
        """Cached status, else the latest recorded result, else ``unknown``. Never probes."""
        service = self._require_service(service_id)

        cached = self.cache.get(service_status_key(service_id))
        if cached is not None:
            status = self._with_identity(cached, service, cached=True)
            status["check_interval"] = service.check_interval
            return status

        latest = self.results.latest(service_id)
        if latest is None:
            return {
                "service_id": service_id,
                "service_name": service.name,
                "service_url": service.url,
                "status": "unknown",
                "message": "No health checks performed yet",
                "cached": False,
            }

        return {
            "service_id": service_id,
            "service_name": service.name,
            "service_url": service.url,
            "status": "healthy" if latest.is_healthy else "unhealthy",
            "is_healthy": latest.is_healthy,
            "status_code": latest.status_code,
            "response_time": latest.response_time,
            "error_message": latest.error_message,
            "last_checked": latest.checked_at,
            "cached": False,
            "check_interval": service.check_interval,
        }

    def list_services(self) -> tuple[list[dict[str, Any]], bool]:
        """All services enriched with current status. Returns ``(services, cached)``."""
        cached = self.cache.get(SERVICE_LIST_KEY)
        if cached is not None:
            return cached, True

        enriched = []
        for service in self.registry.list_all():
            row = service.to_dict()
            try:
                status = self.get_service_status(service.id)
                row["current_status"] = status["status"]
                row["last_check"] = status.get("last_checked")
            except ServiceNotFoundError as e:
                logger.warning("Service %d removed while listing: %s", service.id, e)
                row["current_status"] = "unknown"
                row["last_check"] = None
            enriched.append(row)

        self.cache.set(SERVICE_LIST_KEY, enriched, self._service_list_ttl)
        return enriched, False

    def get_history(self, service_id: int, limit: int = 10) -> list[dict[str, Any]]:
        self._require_service(service_id)
        return [r.to_dict() for r in self.results.history(service_id, limit)]

    # ── Metrics ──────────────────────────────────────────────────────────────

    def update_metrics(self) -> dict[str, Any]:
        """Full recount of global metrics; cached for ``metrics_ttl`` seconds."""
        total_checks = self.results.count_all()
        healthy_checks = self.results.count_healthy()
        unhealthy_checks = self.results.count_unhealthy()

        metrics = {
            "total_services": self.registry.count(),
            "total_checks": total_checks,
            "healthy_checks": healthy_checks,
            "unhealthy_checks": unhealthy_checks,
            "success_rate": (
                round(healthy_checks / total_checks * 100, 2) if total_checks > 0 else 0
            ),
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
        self.cache.set(METRICS_KEY, metrics, self._metrics_ttl)
        return metrics

    def get_metrics(self) -> tuple[dict[str, Any], bool]:
        """Cached metrics if present, else a fresh recount. Returns ``(metrics, cached)``."""
        cached = self.cache.get(METRICS_KEY)
        if cached is not None:
            return cached, True
        return self.update_metrics(), False

    # ── Invalidation / maintenance ───────────────────────────────────────────

    def invalidate_service_cache(self, service_id: int) -> None:
        """Drop everything derived from a service's definition.

        Call after any create / update / delete of that service.
        """
        self.cache.delete(service_status_key(service_id))
        self.cache.delete(SERVICE_LIST_KEY)
        self.cache.delete(METRICS_KEY)

    def prune_history(self, days: int) -> int:
        """Delete results older than ``days``. Returns the number removed."""
        removed = self.results.cleanup_old(days)
        self.cache.delete(METRICS_KEY)
        logger.info("Pruned %d probe results older than %d days", removed, days)
        return removed

    def close(self) -> None:
        self.cache.close()


def build_engine(
    config: Settings | None = None,
    db: Database | None = None,
    cache: StatusCache | None = None,
) -> HealthCheckEngine:
    """Wire the engine from settings. The caller owns shutdown (``engine.close()``, ``db.close()``)."""
    config = config or default_settings
    db = db or Database(config.database_path)
    return HealthCheckEngine(
        registry=ServiceRegistry(db),
        results=ResultStore(db),
        cache=cache or create_cache(config),
        metrics_ttl=config.metrics_ttl,
        service_list_ttl=config.service_list_ttl,
    )
