from __future__ import annotations

import questionary
from rich.console import Console
from rich.table import Table

from societyledger.cli.prompts import ask_amount, ask_int
from societyledger.models.tenant import CompoundingFrequency, InterestMethod, Tenant
from societyledger.money import format_inr
from societyledger.services.tenant_service import TenantService

console = Console()


def show_config(tenant: Tenant) -> None:
    config = tenant.config
    table = Table(title=f"{tenant.name}: billing config")
    table.add_column("Setting")
    table.add_column("Value", justify="right")
    table.add_row("Maintenance rate (per sq ft)", format_inr(config.maintenance_rate))
    table.add_row("Sinking fund rate (per sq ft)", format_inr(config.sinking_fund_rate))
    table.add_row("Repair fund rate (per sq ft)", format_inr(config.repair_fund_rate))
    table.add_row("Water", format_inr(config.fixed_charges.water))
    table.add_row("Security", format_inr(config.fixed_charges.security))
    table.add_row("Electricity", format_inr(config.fixed_charges.electricity))
    table.add_row("Service tax", f"{config.service_tax_rate}%")
    rate = "not set" if config.interest_rate is None else f"{config.interest_rate}%"
    table.add_row("Interest", f"{rate} {config.interest_method.value} ({config.compounding_frequency.value})")
    table.add_row("Bill due day", str(config.bill_due_day))
    table.add_row("Grace period", f"{config.grace_period_days} days")
    console.print(table)


def select_tenant_menu(tenant_service: TenantService) -> Tenant | None:
    tenants = tenant_service.list_tenants()
    choices = [questionary.Choice(title=t.name, value=t.id) for t in tenants]
    choices.append(questionary.Choice(title="+ New society", value="new"))
    choices.append(questionary.Choice(title="Exit", value=None))

    choice = questionary.select("Select society", choices=choices).ask()
    if choice is None:
        return None
    if choice == "new":
        return create_tenant_menu(tenant_service)
    return tenant_service.get_tenant(choice)


def create_tenant_menu(tenant_service: TenantService) -> Tenant | None:
    name = questionary.text("Society name:").ask()
    if not name:
        return None
    tenant = tenant_service.create_tenant(name, source="cli")
    console.print(f"[green]Society created: {tenant.name}[/green]")
    return tenant


def edit_config_menu(tenant: Tenant, tenant_service: TenantService) -> Tenant:
    show_config(tenant)
    config = tenant.config
    changes = {
        "maintenance_rate": ask_amount("Maintenance rate per sq ft:", config.maintenance_rate),
        "sinking_fund_rate": ask_amount("Sinking fund rate per sq ft:", config.sinking_fund_rate),
        "repair_fund_rate": ask_amount("Repair fund rate per sq ft:", config.repair_fund_rate),
        "fixed_charges": {
            "water": ask_amount("Water (fixed):", config.fixed_charges.water),
            "security": ask_amount("Security (fixed):", config.fixed_charges.security),
            "electricity": ask_amount("Electricity (fixed):", config.fixed_charges.electricity),
        },
        "service_tax_rate": ask_amount("Service tax %:", config.service_tax_rate),
        "interest_rate": ask_amount("Interest rate % per month:", config.interest_rate),
        "interest_method": questionary.select(
            "Interest method", choices=[m.value for m in InterestMethod], default=config.interest_method.value
        ).ask(),
        "compounding_frequency": questionary.select(
            "Compounding", choices=[f.value for f in CompoundingFrequency], default=config.compounding_frequency.value
        ).ask(),
        "bill_due_day": ask_int("Bill due day (1-31):", config.bill_due_day),
        "grace_period_days": ask_int("Grace period (days):", config.grace_period_days),
    }
    updated = tenant_service.update_config(tenant.id, changes, source="cli")
    console.print("[green]Config saved.[/green]")
    return updated
