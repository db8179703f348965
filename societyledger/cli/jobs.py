"""Non-interactive batch jobs for cron.

Usage:
    python -m societyledger.cli.jobs interest
    python -m societyledger.cli.jobs interest --date 2025-03-25 --tenant 3
    python -m societyledger.cli.jobs overdue
"""

from __future__ import annotations

import logging
import sys
from datetime import date

from rich.console import Console
from rich.table import Table

from societyledger.cli.services import build_services
from societyledger.db import initialize_db
from societyledger.logging import configure_logging, reconfigure
from societyledger.models.batch import BatchReport, Outcome
from societyledger.money import format_inr

logger = logging.getLogger(__name__)

console = Console()

JOBS = ("interest", "overdue")


def _option(argv: list[str], name: str) -> str | None:
    if name in argv:
        i = argv.index(name)
        if i + 1 < len(argv):
            return argv[i + 1]
    return None


def _print_report(report: BatchReport) -> None:
    table = Table(title=f"{report.job} run")
    table.add_column("Tenant", justify="right")
    table.add_column("Account", justify="right")
    table.add_column("Outcome", justify="center")
    table.add_column("Amount", justify="right")
    table.add_column("Reason")
    for item in report.outcomes:
        if item.outcome == Outcome.SKIPPED:
            continue
        table.add_row(
            str(item.tenant_id),
            str(item.account_id),
            item.outcome.value,
            format_inr(item.amount) if item.amount is not None else "",
            item.reason,
        )
    console.print(table)
    console.print(
        f"succeeded={report.succeeded} skipped={report.skipped} failed={report.failed} "
        f"total={format_inr(report.total_amount)}"
    )


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in JOBS:
        console.print(f"[red]Usage: python -m societyledger.cli.jobs {{{'|'.join(JOBS)}}} [--date YYYY-MM-DD] [--tenant ID][/red]")
        return 2

    job = argv[0]
    raw_date = _option(argv, "--date")
    raw_tenant = _option(argv, "--tenant")
    try:
        today = date.fromisoformat(raw_date) if raw_date else None
        tenant_id = int(raw_tenant) if raw_tenant else None
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        return 2

    configure_logging()
    initialize_db()
    reconfigure()
    services = build_services()

    if job == "interest":
        if tenant_id is not None:
            report = services.interest.accrue_tenant(tenant_id, today)
        else:
            report = services.interest.accrue_all(today)
        _print_report(report)
        return 1 if report.failed else 0

    count = services.overdue.mark_overdue(today, tenant_id)
    console.print(f"{count} bills marked overdue")
    return 0


if __name__ == "__main__":
    sys.exit(main())
