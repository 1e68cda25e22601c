"""Request bodies for the service CRUD endpoints.

All bounds on service definitions are enforced here; the engine trusts
whatever reaches the registry.
"""

from __future__ import annotations

from pydantic import AnyHttpUrl, BaseModel, Field

from healthwatch.services.registry import (
    DEFAULT_CHECK_INTERVAL,
    DEFAULT_EXPECTED_STATUS,
    DEFAULT_TIMEOUT_MS,
    UNSET,
    ServicePatch,
)


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    url: AnyHttpUrl
    check_interval: int = Field(default=DEFAULT_CHECK_INTERVAL, ge=30, le=86_400)
    expected_status: int = Field(default=DEFAULT_EXPECTED_STATUS, ge=100, le=599)
    timeout: int = Field(default=DEFAULT_TIMEOUT_MS, ge=1000, le=30_000)


class ServiceUpdate(BaseModel):
    """Partial update. Omitted fields are untouched; ``null`` resets a defaulted field."""

    name: str = Field(default=None, min_length=1, max_length=255)
    url: AnyHttpUrl = None
    check_interval: int | None = Field(default=None, ge=30, le=86_400)
    expected_status: int | None = Field(default=None, ge=100, le=599)
    timeout: int | None = Field(default=None, ge=1000, le=30_000)

    def to_patch(self) -> ServicePatch:
        provided = self.model_fields_set
        values = {}
        for name in ("name", "url", "check_interval", "expected_status", "timeout"):
            if name not in provided:
                values[name] = UNSET
                continue
            value = getattr(self, name)
            values[name] = str(value) if name == "url" and value is not None else value
        return ServicePatch(**values)
