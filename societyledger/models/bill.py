from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel

from societyledger.money import ZERO


class BillStatus(str, Enum):
    UNPAID = "Unpaid"
    PARTIAL = "Partial"
    PAID = "Paid"
    OVERDUE = "Overdue"


OPEN_STATUSES = (BillStatus.UNPAID, BillStatus.PARTIAL, BillStatus.OVERDUE)


class ChargeLine(BaseModel):
    name: str
    amount: Decimal
    basis: str = ""  # human readable, e.g. '₹2/sq ft × 1000 sq ft'
    sort_order: int = 0


class Bill(BaseModel):
    id: int | None = None
    uuid: str = ""
    tenant_id: int
    account_id: int
    period: str  # 'YYYY-MM'
    charges: list[ChargeLine] = []
    previous_balance: Decimal = ZERO
    interest_amount: Decimal = ZERO
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO  # subtotal + tax + interest; equals the bill's ledger debit
    amount_paid: Decimal = ZERO
    due_date: date
    status: BillStatus = BillStatus.UNPAID
    status_updated_at: datetime | None = None
    is_locked: bool = False
    notes: str = ""
    generated_at: datetime | None = None
    generated_by: int | None = None

    @property
    def balance_amount(self) -> Decimal:
        return max(self.total_amount - self.amount_paid, ZERO)

    @property
    def grand_total(self) -> Decimal:
        """Amount due on the printed bill: current charges plus carried balance."""
        return self.total_amount + self.previous_balance

    @property
    def charge_map(self) -> dict[str, Decimal]:
        result: dict[str, Decimal] = {}
        for line in self.charges:
            result[line.name] = result.get(line.name, ZERO) + line.amount
        return result


class BillPreview(BaseModel):
    account_id: int
    account_label: str = ""
    owner_name: str = ""
    period: str
    bill_number: str = ""
    bill_date: date
    due_date: date
    charges: list[ChargeLine] = []
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    previous_balance: Decimal = ZERO

    @property
    def current_charges(self) -> Decimal:
        return self.subtotal + self.tax_amount

    @property
    def total(self) -> Decimal:
        return self.current_charges + self.previous_balance


class BillInput(BaseModel):
    """What the caller commits for one account; usually taken from a preview."""

    account_id: int
    charges: list[ChargeLine]
    interest_amount: Decimal = ZERO
    notes: str = ""


class PaymentAllocation(BaseModel):
    id: int | None = None
    payment_entry_id: int
    bill_id: int
    amount: Decimal
    created_at: datetime | None = None


class Defaulter(BaseModel):
    account_id: int
    account_label: str = ""
    owner_name: str = ""
    open_bills: int
    total_arrears: Decimal
    oldest_due_date: date | None = None
