from __future__ import annotations

import questionary
from rich.console import Console
from rich.table import Table

from societyledger.cli.account_menu import select_account
from societyledger.cli.prompts import ask_amount, ask_date
from societyledger.models.ledger import EntryDirection, LedgerEntry, PaymentMode
from societyledger.models.tenant import Tenant
from societyledger.money import format_inr
from societyledger.services.account_service import AccountService
from societyledger.services.interest_service import InterestService
from societyledger.services.ledger_service import LedgerService
from societyledger.services.payment_service import PaymentService

console = Console()


def _entries_table(entries: list[LedgerEntry]) -> Table:
    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Date")
    table.add_column("Category")
    table.add_column("Description")
    table.add_column("Debit", justify="right")
    table.add_column("Credit", justify="right")
    table.add_column("Balance", justify="right")
    for entry in entries:
        debit = format_inr(entry.amount) if entry.direction == EntryDirection.DEBIT else ""
        credit = format_inr(entry.amount) if entry.direction == EntryDirection.CREDIT else ""
        description = entry.description
        if entry.is_reversed:
            description = f"[strike]{description}[/strike]"
        table.add_row(
            str(entry.seq),
            entry.entry_date.isoformat(),
            entry.category.value,
            description,
            debit,
            credit,
            format_inr(entry.balance_after),
        )
    return table


def record_payment_menu(
    tenant: Tenant, account_service: AccountService, ledger: LedgerService, payment_service: PaymentService
) -> LedgerEntry | None:
    account = select_account(tenant, account_service)
    if account is None:
        return None
    balance = ledger.current_balance(account.id)
    console.print(f"  Outstanding: [bold]{format_inr(balance)}[/bold]")

    amount = ask_amount("Amount received:", positive=True)
    if amount is None:
        return None
    mode = questionary.select("Payment mode", choices=[m.value for m in PaymentMode if m != PaymentMode.SYSTEM]).ask()
    if mode is None:
        return None
    reference = questionary.text("Reference (cheque no / UTR, optional):").ask() or ""
    paid_on = ask_date("Payment date (YYYY-MM-DD, blank for today):")

    entry = payment_service.record_payment(
        tenant.id,
        account.id,
        amount,
        paid_on=paid_on,
        mode=PaymentMode(mode),
        details={"reference": reference} if reference else {},
        source="cli",
    )
    console.print(f"[green]Payment recorded. Balance now {format_inr(entry.balance_after)}[/green]")
    return entry


def statement_menu(
    tenant: Tenant, account_service: AccountService, ledger: LedgerService, interest_service: InterestService
) -> None:
    account = select_account(tenant, account_service)
    if account is None:
        return
    start = ask_date("From (YYYY-MM-DD, optional):")
    end = ask_date("To (YYYY-MM-DD, optional):")

    statement = ledger.statement(account.id, start, end)
    console.print(f"[bold]Statement: {account.label} {account.owner_name}[/bold]")
    console.print(f"  Opening balance: {format_inr(statement.opening_balance)}")
    console.print(_entries_table(statement.entries))
    console.print(
        f"  Debits: {format_inr(statement.total_debit)}  Credits: {format_inr(statement.total_credit)}  "
        f"Net: [bold]{format_inr(abs(statement.net_balance))} {statement.balance_type}[/bold]"
    )

    outstanding = interest_service.outstanding(account.id)
    console.print(f"  {outstanding.message}")
    if outstanding.interest:
        console.print(f"  Interest if applied today: {format_inr(outstanding.interest)}")


def reverse_entry_menu(tenant: Tenant, account_service: AccountService, ledger: LedgerService) -> LedgerEntry | None:
    account = select_account(tenant, account_service)
    if account is None:
        return None
    entries = [e for e in ledger.entries_in_range(account.id) if e.is_effective]
    if not entries:
        console.print("[yellow]Nothing to reverse.[/yellow]")
        return None

    choices = [
        questionary.Choice(
            title=f"{e.entry_date.isoformat()} {e.category.value} {e.direction.value} {format_inr(e.amount)}",
            value=e.id,
        )
        for e in reversed(entries)
    ]
    choices.append(questionary.Choice(title="Back", value=None))
    entry_id = questionary.select("Entry to reverse", choices=choices).ask()
    if entry_id is None:
        return None
    reason = questionary.text("Reason:").ask() or ""
    if not questionary.confirm("Post reversal?", default=False).ask():
        return None

    reversal = ledger.reverse(entry_id, reason=reason, source="cli")
    console.print(f"[green]Reversed. Balance now {format_inr(reversal.balance_after)}[/green]")
    return reversal
