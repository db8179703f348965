import logging

import questionary
from rich.console import Console

from societyledger.cli.account_menu import create_account_menu, list_accounts_menu
from societyledger.cli.bill_menu import defaulters_menu, generate_bills_menu, list_bills_menu, lock_period_menu
from societyledger.cli.ledger_menu import record_payment_menu, reverse_entry_menu, statement_menu
from societyledger.cli.rule_menu import charge_rules_menu
from societyledger.cli.services import Services, build_services
from societyledger.cli.tenant_menu import edit_config_menu, select_tenant_menu
from societyledger.exceptions import LedgerError
from societyledger.models.tenant import Tenant

logger = logging.getLogger(__name__)

console = Console()

MENU_CHOICES = [
    "Units",
    "Add unit",
    "Charge rules",
    "Billing config",
    "Generate bills",
    "View bills",
    "Record payment",
    "Ledger statement",
    "Reverse entry",
    "Run interest",
    "Mark overdue",
    "Defaulters",
    "Lock period",
    "Switch society",
    "Exit",
]


def _build_services() -> Services:
    return build_services()


def _dispatch(choice: str, tenant: Tenant, services: Services) -> Tenant:
    if choice == "Units":
        list_accounts_menu(tenant, services.accounts, services.ledger)
    elif choice == "Add unit":
        create_account_menu(tenant, services.accounts)
    elif choice == "Charge rules":
        charge_rules_menu(tenant, services.rules)
    elif choice == "Billing config":
        return edit_config_menu(tenant, services.tenants)
    elif choice == "Generate bills":
        generate_bills_menu(tenant, services.bills)
    elif choice == "View bills":
        list_bills_menu(tenant, services.bills)
    elif choice == "Record payment":
        record_payment_menu(tenant, services.accounts, services.ledger, services.payments)
    elif choice == "Ledger statement":
        statement_menu(tenant, services.accounts, services.ledger, services.interest)
    elif choice == "Reverse entry":
        reverse_entry_menu(tenant, services.accounts, services.ledger)
    elif choice == "Run interest":
        report = services.interest.accrue_tenant(tenant.id)
        console.print(
            f"Interest: [green]{report.succeeded} applied[/green], {report.skipped} skipped, "
            f"[red]{report.failed} failed[/red]"
        )
    elif choice == "Mark overdue":
        count = services.overdue.mark_overdue(tenant_id=tenant.id)
        console.print(f"{count} bills marked overdue.")
    elif choice == "Defaulters":
        defaulters_menu(tenant, services.bills)
    elif choice == "Lock period":
        lock_period_menu(tenant, services.bills)
    return tenant


def main_menu() -> None:
    services = _build_services()

    console.print()
    console.print("[bold]Society Ledger[/bold]", style="cyan")
    console.print()

    tenant = select_tenant_menu(services.tenants)
    while tenant is not None:
        choice = questionary.select(f"{tenant.name}", choices=MENU_CHOICES).ask()

        if choice is None or choice == "Exit":
            break
        if choice == "Switch society":
            tenant = select_tenant_menu(services.tenants)
            continue
        try:
            tenant = _dispatch(choice, tenant, services)
        except LedgerError as exc:
            logger.warning("Command failed: %s %s", exc.code, exc.message)
            console.print(f"[red]{exc.message}[/red]")

    console.print("[bold]Goodbye![/bold]")
