from __future__ import annotations

from datetime import date
from decimal import Decimal

import questionary
from rich.console import Console

from societyledger.constants import parse_period
from societyledger.exceptions import ValidationError
from societyledger.money import parse_inr

console = Console()


def ask_amount(label: str, default: Decimal | None = None, positive: bool = False) -> Decimal | None:
    """Prompt until a valid rupee amount is entered. Blank keeps ``default``."""
    while True:
        val = questionary.text(label, default="" if default is None else f"{default}").ask()
        if val is None:
            return default
        if not val and default is not None and not positive:
            return default
        parsed = parse_inr(val or "")
        if parsed is not None and (parsed > 0 if positive else parsed >= 0):
            return parsed
        console.print("[red]Invalid amount. Try again.[/red]")


def ask_int(label: str, default: int) -> int:
    while True:
        val = questionary.text(label, default=str(default)).ask()
        try:
            return int(val or default)
        except ValueError:
            console.print("[red]Enter a whole number.[/red]")


def ask_period(label: str = "Billing period (YYYY-MM, e.g. 2025-03):") -> str | None:
    while True:
        period = questionary.text(label).ask()
        if not period:
            return None
        try:
            parse_period(period)
            return period
        except ValidationError:
            console.print("[red]Invalid format. Use YYYY-MM (e.g. 2025-03).[/red]")


def ask_date(label: str, default: date | None = None) -> date | None:
    while True:
        val = questionary.text(label, default=default.isoformat() if default else "").ask()
        if not val:
            return default
        try:
            return date.fromisoformat(val)
        except ValueError:
            console.print("[red]Invalid date. Use YYYY-MM-DD.[/red]")
