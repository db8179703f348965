"""Pure charge calculation.

Each calculation type maps to one function taking ``(rate, area, running_subtotal)``
and returning ``(amount, basis)``. Adding a type means adding an entry to
``CALCULATORS``; nothing else branches on the type.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

from societyledger.models.bill import ChargeLine
from societyledger.models.charge_rule import CalculationType, ChargeRule
from societyledger.models.tenant import TenantConfig
from societyledger.money import ZERO, format_inr, quantize

Calculator = Callable[[Decimal, Decimal, Decimal], tuple[Decimal, str]]


def _fixed(rate: Decimal, area: Decimal, running: Decimal) -> tuple[Decimal, str]:
    return quantize(rate), "Fixed"


def _per_area_unit(rate: Decimal, area: Decimal, running: Decimal) -> tuple[Decimal, str]:
    return quantize(rate * area), f"{format_inr(rate)}/sq ft × {area.normalize():f} sq ft"


def _percentage(rate: Decimal, area: Decimal, running: Decimal) -> tuple[Decimal, str]:
    return quantize(running * rate / 100), f"{rate.normalize():f}% of {format_inr(running)}"


CALCULATORS: dict[CalculationType, Calculator] = {
    CalculationType.FIXED: _fixed,
    CalculationType.PER_AREA_UNIT: _per_area_unit,
    CalculationType.PERCENTAGE: _percentage,
}


def calculate(calculation_type: CalculationType, rate: Decimal, area: Decimal, running: Decimal) -> tuple[Decimal, str]:
    return CALCULATORS[calculation_type](rate, area, running)


def config_rules(config: TenantConfig) -> list[tuple[str, CalculationType, Decimal]]:
    """Charges configured directly on the tenant, in evaluation order. Zero rates are dropped."""
    candidates = [
        ("Maintenance", CalculationType.PER_AREA_UNIT, config.maintenance_rate),
        ("Sinking Fund", CalculationType.PER_AREA_UNIT, config.sinking_fund_rate),
        ("Repair Fund", CalculationType.PER_AREA_UNIT, config.repair_fund_rate),
        ("Water Charges", CalculationType.FIXED, config.fixed_charges.water),
        ("Security Charges", CalculationType.FIXED, config.fixed_charges.security),
        ("Electricity Charges", CalculationType.FIXED, config.fixed_charges.electricity),
    ]
    return [c for c in candidates if c[2] > 0]


def build_charge_lines(
    config: TenantConfig, rules: list[ChargeRule], area: Decimal
) -> tuple[list[ChargeLine], Decimal]:
    """Evaluate tenant charges then active rules (by ``order``) against one account.

    Percentage rules see the subtotal accumulated so far, so rule order changes
    the result.
    """
    lines: list[ChargeLine] = []
    running = ZERO

    for name, calculation_type, rate in config_rules(config):
        amount, basis = calculate(calculation_type, rate, area, running)
        lines.append(ChargeLine(name=name, amount=amount, basis=basis, sort_order=len(lines)))
        running += amount

    for rule in sorted(rules, key=lambda r: (r.order, r.id or 0)):
        if not rule.is_active or rule.is_deleted:
            continue
        amount, basis = calculate(rule.calculation_type, rule.amount, area, running)
        lines.append(ChargeLine(name=rule.name, amount=amount, basis=basis, sort_order=len(lines)))
        running += amount

    return lines, running


def service_tax(subtotal: Decimal, rate: Decimal) -> Decimal:
    if rate <= 0:
        return ZERO
    return quantize(subtotal * rate / 100)
