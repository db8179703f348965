"""Serializers that convert models to dicts suitable for audit log state fields.

Decimal amounts are written as strings and datetimes as ISO 8601 so the state
survives a JSON round-trip without float noise.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from societyledger.models.account import Account
from societyledger.models.bill import Bill
from societyledger.models.charge_rule import ChargeRule
from societyledger.models.ledger import LedgerEntry
from societyledger.models.tenant import Tenant


def _dt(val: datetime | date | None) -> str | None:
    """Convert datetime/date to ISO string, or None."""
    if val is None:
        return None
    return val.isoformat()


def _money(val: Decimal | None) -> str | None:
    if val is None:
        return None
    return str(val)


def serialize_tenant(tenant: Tenant) -> dict:
    """Serialize a Tenant including its config document."""
    return {
        "id": tenant.id,
        "uuid": tenant.uuid,
        "name": tenant.name,
        "config": tenant.config.model_dump(mode="json"),
        "config_version": tenant.config_version,
        "updated_at": _dt(tenant.updated_at),
    }


def serialize_account(account: Account) -> dict:
    return {
        "id": account.id,
        "uuid": account.uuid,
        "tenant_id": account.tenant_id,
        "unit_no": account.unit_no,
        "wing": account.wing,
        "owner_name": account.owner_name,
        "area": str(account.area),
        "opening_balance": _money(account.opening_balance),
    }


def serialize_charge_rule(rule: ChargeRule) -> dict:
    return {
        "id": rule.id,
        "uuid": rule.uuid,
        "name": rule.name,
        "calculation_type": rule.calculation_type.value,
        "amount": str(rule.amount),
        "is_active": rule.is_active,
        "is_deleted": rule.is_deleted,
        "order": rule.order,
    }


def serialize_bill(bill: Bill) -> dict:
    """Serialize a Bill (with charge lines) for audit state."""
    return {
        "id": bill.id,
        "uuid": bill.uuid,
        "account_id": bill.account_id,
        "period": bill.period,
        "charges": [{"name": line.name, "amount": _money(line.amount)} for line in bill.charges],
        "previous_balance": _money(bill.previous_balance),
        "interest_amount": _money(bill.interest_amount),
        "subtotal": _money(bill.subtotal),
        "tax_amount": _money(bill.tax_amount),
        "total_amount": _money(bill.total_amount),
        "amount_paid": _money(bill.amount_paid),
        "due_date": _dt(bill.due_date),
        "status": bill.status.value,
        "is_locked": bill.is_locked,
    }


def serialize_entry(entry: LedgerEntry) -> dict:
    return {
        "id": entry.id,
        "uuid": entry.uuid,
        "account_id": entry.account_id,
        "seq": entry.seq,
        "entry_date": _dt(entry.entry_date),
        "direction": entry.direction.value,
        "category": entry.category.value,
        "amount": _money(entry.amount),
        "balance_after": _money(entry.balance_after),
        "bill_id": entry.bill_id,
        "reversal_of_id": entry.reversal_of_id,
        "is_reversed": entry.is_reversed,
    }
