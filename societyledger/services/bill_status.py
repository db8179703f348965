"""Bill lifecycle rules.

Status only changes at two points: when a payment (or its reversal) is applied,
and in the daily overdue sweep. Both go through ``transition``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from societyledger.exceptions import InvalidTransition
from societyledger.models.bill import Bill, BillStatus
from societyledger.money import ZERO

VALID_TRANSITIONS: dict[BillStatus, frozenset[BillStatus]] = {
    BillStatus.UNPAID: frozenset({BillStatus.PARTIAL, BillStatus.PAID, BillStatus.OVERDUE}),
    BillStatus.PARTIAL: frozenset({BillStatus.PAID, BillStatus.OVERDUE, BillStatus.UNPAID}),
    BillStatus.PAID: frozenset({BillStatus.PARTIAL, BillStatus.UNPAID}),
    BillStatus.OVERDUE: frozenset({BillStatus.PARTIAL, BillStatus.PAID, BillStatus.UNPAID}),
}


def derive_status(
    total_amount: Decimal, amount_paid: Decimal, due_date: date | None = None, today: date | None = None
) -> BillStatus:
    if amount_paid >= total_amount:
        return BillStatus.PAID
    if amount_paid > ZERO:
        return BillStatus.PARTIAL
    if due_date is not None and today is not None and today > due_date:
        return BillStatus.OVERDUE
    return BillStatus.UNPAID


def is_valid_transition(current: BillStatus, target: BillStatus) -> bool:
    return target in VALID_TRANSITIONS[current]


def transition(current: BillStatus, target: BillStatus) -> BillStatus:
    """Validate ``current -> target``. Staying in the same state is a no-op."""
    if current == target:
        return current
    if not is_valid_transition(current, target):
        raise InvalidTransition(current.value, target.value)
    return target


def status_after_payment(bill: Bill, amount_paid: Decimal) -> BillStatus:
    """Status a bill moves to once its paid amount becomes ``amount_paid``."""
    return transition(bill.status, derive_status(bill.total_amount, amount_paid))


def should_mark_overdue(bill: Bill, today: date) -> bool:
    if bill.status not in (BillStatus.UNPAID, BillStatus.PARTIAL):
        return False
    if bill.balance_amount <= ZERO:
        return False
    return today > bill.due_date
