"""Result store — append-only SQLite log of probe outcomes.

Rows are never updated. ``checked_at`` is assigned here, at write time.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from healthwatch.database import Database, utc_now

logger = logging.getLogger(__name__)

_SELECT = (
    "SELECT id, service_id, status_code, response_time, is_healthy, "
    "error_message, checked_at FROM probe_results"
)


@dataclass
class ProbeResult:
    """One recorded probe of one service."""

    service_id: int
    status_code: int | None
    response_time: float  # milliseconds
    is_healthy: bool
    error_message: str | None = None
    checked_at: str = ""
    id: int | None = None

    @classmethod
    def from_row(cls, row: Any) -> ProbeResult:
        return cls(
            id=row["id"],
            service_id=row["service_id"],
            status_code=row["status_code"],
            response_time=row["response_time"],
            is_healthy=bool(row["is_healthy"]),
            error_message=row["error_message"],
            checked_at=row["checked_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ResultStore:
    """SQLite-backed storage for probe results."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def append(self, result: ProbeResult) -> int:
        """Insert a result, stamping ``checked_at`` and ``id`` on it. Returns the new id."""
        result.checked_at = utc_now()
        with self._db.session() as conn:
            cursor = conn.execute(
                "INSERT INTO probe_results "
                "(service_id, status_code, response_time, is_healthy, error_message, checked_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    result.service_id, result.status_code, result.response_time,
                    int(result.is_healthy), result.error_message, result.checked_at,
                ),
            )
        result.id = cursor.lastrowid
        return result.id

    def latest(self, service_id: int) -> ProbeResult | None:
        """Most recent result for a service."""
        with self._db.session() as conn:
            row = conn.execute(
                f"{_SELECT} WHERE service_id = ? ORDER BY checked_at DESC, id DESC LIMIT 1",
                (service_id,),
            ).fetchone()
        return ProbeResult.from_row(row) if row else None

    def history(self, service_id: int, limit: int = 10) -> list[ProbeResult]:
        """Results for a service, newest first."""
        with self._db.session() as conn:
            rows = conn.execute(
                f"{_SELECT} WHERE service_id = ? ORDER BY checked_at DESC, id DESC LIMIT ?",
                (service_id, limit),
            ).fetchall()
        return [ProbeResult.from_row(r) for r in rows]

    def count_all(self) -> int:
        with self._db.session() as conn:
            return conn.execute("SELECT COUNT(*) FROM probe_results").fetchone()[0]

    def count_healthy(self) -> int:
        with self._db.session() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM probe_results WHERE is_healthy = 1",
            ).fetchone()[0]

    def count_unhealthy(self) -> int:
        with self._db.session() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM probe_results WHERE is_healthy = 0",
            ).fetchone()[0]

    def average_response_time(self, service_id: int) -> float:
        """Mean response time of a service's healthy probes (0 if none)."""
        with self._db.session() as conn:
            avg = conn.execute(
                "SELECT AVG(response_time) FROM probe_results "
                "WHERE service_id = ? AND is_healthy = 1",
                (service_id,),
            ).fetchone()[0]
        return round(avg, 1) if avg is not None else 0.0

    def cleanup_old(self, days: int = 30) -> int:
        """Remove results older than N days."""
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat(
            timespec="microseconds",
        )
        with self._db.session() as conn:
            cursor = conn.execute("DELETE FROM probe_results WHERE checked_at < ?", (cutoff,))
        return cursor.rowcount
