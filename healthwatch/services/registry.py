"""Service registry — SQLite CRUD for monitored service definitions.

Single source of truth for what gets probed. The health engine only reads
from it (get / list_all / count); the API layer owns create/update/delete
and must invalidate the engine's cache after each mutation.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any

from healthwatch.database import Database, utc_now

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 300  # seconds
DEFAULT_EXPECTED_STATUS = 200
DEFAULT_TIMEOUT_MS = 5000

# Columns an explicit None resets to their default. name/url have no default.
_COLUMN_DEFAULTS: dict[str, int] = {
    "check_interval": DEFAULT_CHECK_INTERVAL,
    "expected_status": DEFAULT_EXPECTED_STATUS,
    "timeout": DEFAULT_TIMEOUT_MS,
}

_SELECT = (
    "SELECT id, name, url, check_interval, expected_status, timeout, "
    "created_at, updated_at FROM services"
)


# ── Data models ──────────────────────────────────────────────────────────────


@dataclass
class ServiceDefinition:
    """A registered endpoint. Fields are validated before they get here."""

    id: int
    name: str
    url: str
    check_interval: int = DEFAULT_CHECK_INTERVAL  # also the status cache TTL
    expected_status: int = DEFAULT_EXPECTED_STATUS
    timeout: int = DEFAULT_TIMEOUT_MS  # milliseconds
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row: Any) -> ServiceDefinition:
        return cls(**{f.name: row[f.name] for f in fields(cls)})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class ServicePatch:
    """Partial update of a service.

    Fields left as UNSET are not touched. An explicit None resets a
    defaulted column (check_interval, expected_status, timeout) to its
    default; name and url cannot be cleared.
    """

    name: str | None = UNSET
    url: str | None = UNSET
    check_interval: int | None = UNSET
    expected_status: int | None = UNSET
    timeout: int | None = UNSET

    def assignments(self) -> dict[str, Any]:
        """Column -> value for every field that was provided."""
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is UNSET:
                continue
            if value is None:
                if f.name not in _COLUMN_DEFAULTS:
                    raise ValueError(f"{f.name} cannot be cleared")
                value = _COLUMN_DEFAULTS[f.name]
            out[f.name] = value
        return out

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is UNSET for f in fields(self))


# ── Registry ─────────────────────────────────────────────────────────────────


class ServiceRegistry:
    """CRUD over the services table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def create(
        self,
        name: str,
        url: str,
        check_interval: int = DEFAULT_CHECK_INTERVAL,
        expected_status: int = DEFAULT_EXPECTED_STATUS,
        timeout: int = DEFAULT_TIMEOUT_MS,
    ) -> ServiceDefinition:
        now = utc_now()
        with self._db.session() as conn:
            cursor = conn.execute(
                "INSERT INTO services "
                "(name, url, check_interval, expected_status, timeout, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (name, url, check_interval, expected_status, timeout, now, now),
            )
            service_id = cursor.lastrowid
        logger.info("Registered service %d (%s -> %s)", service_id, name, url)
        return ServiceDefinition(
            id=service_id, name=name, url=url,
            check_interval=check_interval, expected_status=expected_status,
            timeout=timeout, created_at=now, updated_at=now,
        )

    def get(self, service_id: int) -> ServiceDefinition | None:
        with self._db.session() as conn:
            row = conn.execute(f"{_SELECT} WHERE id = ?", (service_id,)).fetchone()
        return ServiceDefinition.from_row(row) if row else None

    def list_all(self) -> list[ServiceDefinition]:
        """All services, newest first."""
        with self._db.session() as conn:
            rows = conn.execute(f"{_SELECT} ORDER BY created_at DESC, id DESC").fetchall()
        return [ServiceDefinition.from_row(r) for r in rows]

    def count(self) -> int:
        with self._db.session() as conn:
            return conn.execute("SELECT COUNT(*) FROM services").fetchone()[0]

    def exists(self, service_id: int) -> bool:
        with self._db.session() as conn:
            row = conn.execute("SELECT 1 FROM services WHERE id = ?", (service_id,)).fetchone()
        return row is not None

    def update(self, service_id: int, patch: ServicePatch) -> bool:
        """Apply a patch. Returns False when nothing was changed."""
        changes = patch.assignments()
        if not changes:
            return False

        # Keys come from ServicePatch's own fields, never from caller input.
        columns = ", ".join(f"{col} = ?" for col in changes)
        with self._db.session() as conn:
            cursor = conn.execute(
                f"UPDATE services SET {columns}, updated_at = ? WHERE id = ?",
                (*changes.values(), utc_now(), service_id),
            )
        updated = cursor.rowcount > 0
        if updated:
            logger.info("Updated service %d: %s", service_id, sorted(changes))
        return updated

    def delete(self, service_id: int) -> bool:
        """Delete a service and, by cascade, its probe history."""
        with self._db.session() as conn:
            cursor = conn.execute("DELETE FROM services WHERE id = ?", (service_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted service %d", service_id)
        return deleted
