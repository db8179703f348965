from __future__ import annotations

import questionary
from rich.console import Console
from rich.table import Table

from societyledger.cli.prompts import ask_amount, ask_int, ask_period
from societyledger.constants import format_month
from societyledger.models.bill import Bill, BillPreview, BillStatus, ChargeLine
from societyledger.models.tenant import Tenant
from societyledger.money import format_inr
from societyledger.services.bill_service import BillService

console = Console()

STATUS_STYLES = {
    BillStatus.UNPAID: "yellow",
    BillStatus.PARTIAL: "cyan",
    BillStatus.PAID: "green",
    BillStatus.OVERDUE: "red",
}


def _show_previews(previews: list[BillPreview]) -> None:
    table = Table(title=f"Preview {format_month(previews[0].period)}")
    table.add_column("Bill #")
    table.add_column("Owner")
    table.add_column("Charges", justify="right")
    table.add_column("Tax", justify="right")
    table.add_column("Previous", justify="right")
    table.add_column("Total", justify="right")
    for p in previews:
        table.add_row(
            p.bill_number,
            p.owner_name,
            format_inr(p.subtotal),
            format_inr(p.tax_amount),
            format_inr(p.previous_balance),
            format_inr(p.total),
        )
    console.print(table)


def show_bill_detail(bill: Bill) -> None:
    detail_table = Table()
    detail_table.add_column("Charge")
    detail_table.add_column("Basis")
    detail_table.add_column("Amount", justify="right")
    for line in bill.charges:
        detail_table.add_row(line.name, line.basis, format_inr(line.amount))
    console.print(detail_table)
    console.print(f"  Subtotal: {format_inr(bill.subtotal)}")
    if bill.tax_amount:
        console.print(f"  Tax: {format_inr(bill.tax_amount)}")
    if bill.interest_amount:
        console.print(f"  Interest: {format_inr(bill.interest_amount)}")
    console.print(f"  Previous balance: {format_inr(bill.previous_balance)}")
    console.print(f"  [bold]Total due: {format_inr(bill.grand_total)}[/bold]")
    console.print(f"  Due date: {bill.due_date.isoformat()}")
    style = STATUS_STYLES[bill.status]
    console.print(f"  Status: [{style}]{bill.status.value}[/{style}]  Paid: {format_inr(bill.amount_paid)}")
    if bill.is_locked:
        console.print("  [dim]Locked[/dim]")
    if bill.notes:
        console.print(f"  Notes: {bill.notes}")


def generate_bills_menu(tenant: Tenant, bill_service: BillService) -> list[Bill]:
    console.print()
    console.print("[bold]Generate bills[/bold]", style="cyan")
    period = ask_period()
    if period is None:
        return []

    previews = bill_service.preview(tenant.id, period)
    if not previews:
        console.print("[yellow]No units to bill.[/yellow]")
        return []
    _show_previews(previews)

    if not questionary.confirm(f"Generate {len(previews)} bills for {format_month(period)}?", default=False).ask():
        return []

    bills = bill_service.commit(tenant.id, period, source="cli")
    console.print(f"[green bold]{len(bills)} bills generated.[/green bold]")
    return bills


def list_bills_menu(tenant: Tenant, bill_service: BillService) -> None:
    period = ask_period()
    if period is None:
        return
    bills = bill_service.list_bills(tenant.id, period)
    if not bills:
        console.print(f"[yellow]No bills for {format_month(period)}.[/yellow]")
        return

    table = Table(title=f"Bills {format_month(period)}")
    table.add_column("#", justify="right")
    table.add_column("Account", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Paid", justify="right")
    table.add_column("Balance", justify="right")
    table.add_column("Status", justify="center")
    for i, bill in enumerate(bills, 1):
        style = STATUS_STYLES[bill.status]
        table.add_row(
            str(i),
            str(bill.account_id),
            format_inr(bill.total_amount),
            format_inr(bill.amount_paid),
            format_inr(bill.balance_amount),
            f"[{style}]{bill.status.value}[/{style}]",
        )
    console.print(table)

    choices = [questionary.Choice(title=f"{i}. account {b.account_id}", value=b.id) for i, b in enumerate(bills, 1)]
    choices.append(questionary.Choice(title="Back", value=None))
    bill_id = questionary.select("Open bill", choices=choices).ask()
    if bill_id is None:
        return
    bill = bill_service.get_bill(bill_id)
    show_bill_detail(bill)
    if not bill.is_locked and questionary.confirm("Revise charges?", default=False).ask():
        revise_bill_menu(bill, bill_service)


def revise_bill_menu(bill: Bill, bill_service: BillService) -> Bill:
    lines = []
    for line in bill.charges:
        amount = ask_amount(f"  {line.name}:", line.amount)
        lines.append(ChargeLine(name=line.name, amount=amount, basis=line.basis))
    while questionary.confirm("Add a charge?", default=False).ask():
        name = questionary.text("  Charge name:").ask()
        if not name:
            continue
        amount = ask_amount("  Amount:", positive=True)
        if amount is not None:
            lines.append(ChargeLine(name=name, amount=amount, basis="Manual"))
    notes = questionary.text("Notes (optional):", default=bill.notes).ask()

    revised = bill_service.revise_charges(bill.id, lines, notes=notes, source="cli")
    console.print(f"[green]Bill revised. New total: {format_inr(revised.total_amount)}[/green]")
    return revised


def lock_period_menu(tenant: Tenant, bill_service: BillService) -> None:
    period = ask_period()
    if period is None:
        return
    if not questionary.confirm(f"Lock all bills for {format_month(period)}?", default=False).ask():
        return
    count = bill_service.lock_period(tenant.id, period, source="cli")
    console.print(f"[green]{count} bills locked.[/green]")


def defaulters_menu(tenant: Tenant, bill_service: BillService) -> None:
    months = ask_int("Minimum unpaid bills:", 3)
    defaulters = bill_service.defaulters(tenant.id, months)
    if not defaulters:
        console.print("[green]No defaulters.[/green]")
        return
    table = Table(title="Defaulters")
    table.add_column("Unit")
    table.add_column("Owner")
    table.add_column("Open bills", justify="right")
    table.add_column("Arrears", justify="right")
    table.add_column("Oldest due", justify="center")
    for d in defaulters:
        table.add_row(
            d.account_label,
            d.owner_name,
            str(d.open_bills),
            format_inr(d.total_arrears),
            d.oldest_due_date.isoformat() if d.oldest_due_date else "",
        )
    console.print(table)
