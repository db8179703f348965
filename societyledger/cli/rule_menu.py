from __future__ import annotations

import questionary
from rich.console import Console
from rich.table import Table

from societyledger.cli.prompts import ask_amount
from societyledger.models.charge_rule import CalculationType, ChargeRule
from societyledger.models.tenant import Tenant
from societyledger.money import format_inr
from societyledger.services.charge_rule_service import ChargeRuleService

console = Console()

TYPE_LABELS = {
    CalculationType.FIXED: "Fixed",
    CalculationType.PER_AREA_UNIT: "Per sq ft",
    CalculationType.PERCENTAGE: "% of subtotal",
}


def _format_rule_amount(rule: ChargeRule) -> str:
    if rule.calculation_type == CalculationType.PERCENTAGE:
        return f"{rule.amount}%"
    return format_inr(rule.amount)


def show_rules(rules: list[ChargeRule]) -> None:
    table = Table(title="Charge rules")
    table.add_column("Order", justify="right")
    table.add_column("Name")
    table.add_column("Type", justify="center")
    table.add_column("Amount", justify="right")
    table.add_column("Active", justify="center")
    for rule in rules:
        table.add_row(
            str(rule.order),
            rule.name,
            TYPE_LABELS[rule.calculation_type],
            _format_rule_amount(rule),
            "yes" if rule.is_active else "no",
        )
    console.print(table)


def charge_rules_menu(tenant: Tenant, rule_service: ChargeRuleService) -> None:
    while True:
        rules = rule_service.list_rules(tenant.id)
        if rules:
            show_rules(rules)
        else:
            console.print("[yellow]No charge rules configured.[/yellow]")

        choice = questionary.select(
            "Charge rules",
            choices=["Add rule", "Toggle active", "Archive rule", "Create default rules", "Back"],
        ).ask()

        if choice is None or choice == "Back":
            return
        if choice == "Add rule":
            _add_rule(tenant, rule_service)
        elif choice == "Create default rules":
            created = rule_service.setup_defaults(tenant.id, source="cli")
            console.print(f"[green]{len(created)} default rules created.[/green]")
        elif rules:
            rule_id = questionary.select(
                "Select rule", choices=[questionary.Choice(title=r.name, value=r.id) for r in rules]
            ).ask()
            if rule_id is None:
                continue
            if choice == "Toggle active":
                rule = rule_service.get_rule(rule_id)
                rule_service.update_rule(rule_id, is_active=not rule.is_active, source="cli")
            elif questionary.confirm("Archive this rule?", default=False).ask():
                rule_service.archive_rule(rule_id, source="cli")
                console.print("[green]Rule archived.[/green]")


def _add_rule(tenant: Tenant, rule_service: ChargeRuleService) -> None:
    name = questionary.text("Rule name:").ask()
    if not name:
        return
    calculation_type = questionary.select(
        "Calculation",
        choices=[questionary.Choice(title=label, value=t.value) for t, label in TYPE_LABELS.items()],
    ).ask()
    if calculation_type is None:
        return
    amount = ask_amount("Amount / rate:")
    if amount is None:
        return
    rule = rule_service.create_rule(tenant.id, name, calculation_type, amount, source="cli")
    console.print(f"[green]Rule created: {rule.name}[/green]")
