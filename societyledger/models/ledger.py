from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel


class EntryDirection(str, Enum):
    DEBIT = "Debit"
    CREDIT = "Credit"

    @property
    def sign(self) -> int:
        return 1 if self is EntryDirection.DEBIT else -1

    def opposite(self) -> EntryDirection:
        return EntryDirection.CREDIT if self is EntryDirection.DEBIT else EntryDirection.DEBIT


class EntryCategory(str, Enum):
    MAINTENANCE = "Maintenance"
    ARREARS = "Arrears"
    INTEREST = "Interest"
    PAYMENT = "Payment"
    ADJUSTMENT = "Adjustment"
    REFUND = "Refund"
    FINE = "Fine"
    OPENING_BALANCE = "OpeningBalance"


class PaymentMode(str, Enum):
    CASH = "Cash"
    CHEQUE = "Cheque"
    ONLINE = "Online"
    UPI = "UPI"
    NEFT = "NEFT"
    RTGS = "RTGS"
    SYSTEM = "System"


class LedgerEntry(BaseModel):
    """One immutable signed monetary event for an account."""

    id: int | None = None
    uuid: str = ""
    tenant_id: int
    account_id: int
    seq: int = 0
    entry_date: date
    direction: EntryDirection
    category: EntryCategory
    amount: Decimal
    balance_after: Decimal = Decimal("0.00")
    description: str = ""
    bill_id: int | None = None
    period: str | None = None
    payment_mode: PaymentMode | None = None
    payment_details: dict = {}
    is_reversed: bool = False
    reversal_of_id: int | None = None
    reversed_by_id: int | None = None
    financial_year: str = ""
    created_by: int | None = None
    created_at: datetime | None = None

    @property
    def signed_amount(self) -> Decimal:
        return self.amount * self.direction.sign

    @property
    def is_effective(self) -> bool:
        """False for a reversed entry and for the reversal that cancels it."""
        return not self.is_reversed and self.reversal_of_id is None


class LedgerStatement(BaseModel):
    account_id: int
    entries: list[LedgerEntry] = []
    opening_balance: Decimal = Decimal("0.00")
    total_debit: Decimal = Decimal("0.00")
    total_credit: Decimal = Decimal("0.00")

    @property
    def net_balance(self) -> Decimal:
        return self.opening_balance + self.total_debit - self.total_credit

    @property
    def balance_type(self) -> str:
        return "DR" if self.net_balance >= 0 else "CR"


class ChainCheck(BaseModel):
    account_id: int
    ok: bool
    entries_checked: int = 0
    broken_entry_id: int | None = None
    expected: Decimal | None = None
    found: Decimal | None = None
