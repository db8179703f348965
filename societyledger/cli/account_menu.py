from __future__ import annotations

import questionary
from rich.console import Console
from rich.table import Table

from societyledger.cli.prompts import ask_amount
from societyledger.models.account import Account
from societyledger.models.tenant import Tenant
from societyledger.money import ZERO, format_inr
from societyledger.services.account_service import AccountService
from societyledger.services.ledger_service import LedgerService

console = Console()


def select_account(tenant: Tenant, account_service: AccountService) -> Account | None:
    accounts = account_service.list_accounts(tenant.id)
    if not accounts:
        console.print("[yellow]No units yet.[/yellow]")
        return None
    choices = [questionary.Choice(title=f"{a.label}  {a.owner_name}", value=a.id) for a in accounts]
    choices.append(questionary.Choice(title="Back", value=None))
    choice = questionary.select("Select unit", choices=choices).ask()
    if choice is None:
        return None
    return account_service.get_account(choice)


def list_accounts_menu(tenant: Tenant, account_service: AccountService, ledger: LedgerService) -> None:
    accounts = account_service.list_accounts(tenant.id)
    if not accounts:
        console.print("[yellow]No units yet.[/yellow]")
        return

    table = Table(title="Units")
    table.add_column("#", justify="right")
    table.add_column("Unit")
    table.add_column("Owner")
    table.add_column("Area (sq ft)", justify="right")
    table.add_column("Balance", justify="right")
    for i, account in enumerate(accounts, 1):
        balance = ledger.current_balance(account.id)
        style = "red" if balance > ZERO else ""
        table.add_row(
            str(i),
            account.label,
            account.owner_name,
            f"{account.area}",
            f"[{style}]{format_inr(balance)}[/{style}]" if style else format_inr(balance),
        )
    console.print(table)


def create_account_menu(tenant: Tenant, account_service: AccountService) -> Account | None:
    unit_no = questionary.text("Unit number:").ask()
    if not unit_no:
        return None
    wing = questionary.text("Wing (optional):").ask() or ""
    owner_name = questionary.text("Owner name:").ask() or ""
    contact = questionary.text("Contact (optional):").ask() or ""
    area = ask_amount("Area (sq ft):")
    if area is None:
        return None
    opening_balance = ask_amount("Opening balance (owed):", ZERO)

    account = account_service.create_account(
        tenant.id,
        unit_no,
        area,
        wing=wing,
        owner_name=owner_name,
        contact=contact,
        opening_balance=opening_balance,
        source="cli",
    )
    console.print(f"[green]Unit created: {account.label}[/green]")
    return account
