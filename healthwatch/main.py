"""Entry point for healthwatch."""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from healthwatch.config import settings
from healthwatch.database import Database
from healthwatch.health.engine import build_engine

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

_STATUS_STYLE = {"healthy": "green", "unhealthy": "red", "error": "yellow"}


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting healthwatch API server", style="bold green"))
    uvicorn.run(
        "healthwatch.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def run_check_all() -> int:
    """Sweep every registered service once and print a summary table."""
    db = Database(settings.database_path)
    engine = build_engine(settings, db=db)
    try:
        with console.status("[bold green]Checking services..."):
            results = engine.check_all_services()
            metrics, _ = engine.get_metrics()
    finally:
        engine.close()
        db.close()

    table = Table(title="Service health")
    table.add_column("ID", justify="right")
    table.add_column("Service")
    table.add_column("Status")
    table.add_column("Code", justify="right")
    table.add_column("Time (ms)", justify="right")
    table.add_column("Cached")
    table.add_column("Error")

    for r in results:
        status = r.get("status", "unknown")
        style = _STATUS_STYLE.get(status, "dim")
        table.add_row(
            str(r.get("service_id")),
            r.get("service_name", ""),
            f"[{style}]{status}[/{style}]",
            str(r.get("status_code") or "-"),
            f"{r['response_time']:.1f}" if r.get("response_time") is not None else "-",
            "yes" if r.get("cached") else "no",
            r.get("error_message") or "",
        )

    console.print(table)
    console.print(
        f"[dim]{metrics['total_services']} services | {metrics['total_checks']} checks recorded"
        f" | success rate {metrics['success_rate']}%[/dim]"
    )
    return 1 if any(r.get("status") != "healthy" for r in results) else 0


def run_prune(days: int) -> None:
    """Delete probe results older than the retention window."""
    db = Database(settings.database_path)
    engine = build_engine(settings, db=db)
    try:
        removed = engine.prune_history(days)
    finally:
        engine.close()
        db.close()
    console.print(f"Removed {removed} probe results older than {days} days")


def main() -> None:
    parser = argparse.ArgumentParser(description="healthwatch endpoint monitor")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")
    sub.add_parser("check-all", help="Check every registered service once")

    prune_parser = sub.add_parser("prune", help="Delete old probe results")
    prune_parser.add_argument(
        "--days", type=int, default=settings.retention_days,
        help=f"Retention window in days (default {settings.retention_days})",
    )

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "check-all":
        sys.exit(run_check_all())
    elif args.command == "prune":
        run_prune(args.days)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
