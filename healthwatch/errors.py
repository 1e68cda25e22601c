"""Domain errors raised by the registry, result store and engine."""

from __future__ import annotations


class HealthwatchError(Exception):
    """Base class for errors surfaced to callers of the engine."""


class ServiceNotFoundError(HealthwatchError):
    """Raised when a service id is not in the registry."""

    def __init__(self, service_id: int) -> None:
        self.service_id = service_id
        super().__init__(f"Service not found: {service_id}")


class StoreError(HealthwatchError):
    """Raised when the registry or result store cannot be read or written."""
