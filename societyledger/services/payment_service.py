from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import Connection

from societyledger.constants import today as tenant_today
from societyledger.db import atomic
from societyledger.exceptions import AccountNotFound, BillNotFound, InvalidAmount, ValidationError
from societyledger.models.audit_log import AuditEventType
from societyledger.models.bill import OPEN_STATUSES, Bill, PaymentAllocation
from societyledger.models.ledger import EntryCategory, EntryDirection, LedgerEntry, PaymentMode
from societyledger.money import ZERO, format_inr, quantize, to_decimal
from societyledger.repositories.base import AccountRepository, BillRepository, PaymentAllocationRepository
from societyledger.services.audit_serializers import serialize_entry
from societyledger.services.audit_service import AuditService
from societyledger.services.bill_status import status_after_payment
from societyledger.services.events import PAYMENT_RECORDED, EventBus
from societyledger.services.ledger_service import LedgerService
from societyledger.services.retry import retry_on_conflict

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(
        self,
        conn: Connection,
        account_repo: AccountRepository,
        bill_repo: BillRepository,
        allocation_repo: PaymentAllocationRepository,
        ledger: LedgerService,
        audit: AuditService | None = None,
        events: EventBus | None = None,
    ) -> None:
        self.conn = conn
        self.account_repo = account_repo
        self.bill_repo = bill_repo
        self.allocation_repo = allocation_repo
        self.ledger = ledger
        self.audit = audit
        self.events = events

    def record_payment(
        self,
        tenant_id: int,
        account_id: int,
        amount: Decimal | int | str,
        paid_on: date | None = None,
        mode: PaymentMode = PaymentMode.CASH,
        details: dict | None = None,
        notes: str = "",
        bill_id: int | None = None,
        actor_id: int | None = None,
        source: str = "",
    ) -> LedgerEntry:
        """Credit a payment to the account and settle bills, oldest period first.

        With ``bill_id`` the payment settles only that bill; anything beyond its
        balance stays on the account as an unallocated credit.
        """
        value = quantize(to_decimal(amount))
        if value <= ZERO:
            raise InvalidAmount(amount)

        def _attempt() -> tuple[LedgerEntry, list[PaymentAllocation]]:
            with atomic(self.conn):
                return self._record(tenant_id, account_id, value, paid_on, mode, details or {}, notes, bill_id, actor_id)

        entry, allocations = retry_on_conflict(_attempt, label=f"payment account={account_id}")
        logger.info(
            "Payment recorded: entry=%s account=%s amount=%s mode=%s bills=%s balance=%s",
            entry.id,
            account_id,
            value,
            mode.value,
            [a.bill_id for a in allocations],
            entry.balance_after,
        )
        if self.audit is not None:
            self.audit.safe_log(
                AuditEventType.PAYMENT_RECORD,
                tenant_id=tenant_id,
                actor_id=actor_id,
                source=source,
                entity_type="ledger_entry",
                entity_id=entry.id,
                entity_uuid=entry.uuid,
                new_state=serialize_entry(entry),
                metadata={"allocations": {str(a.bill_id): str(a.amount) for a in allocations}},
            )
        if self.events is not None:
            self.events.publish(
                PAYMENT_RECORDED,
                {
                    "tenant_id": tenant_id,
                    "account_id": account_id,
                    "entry_id": entry.id,
                    "amount": str(value),
                    "mode": mode.value,
                    "balance_after": str(entry.balance_after),
                },
            )
        return entry

    def _record(
        self,
        tenant_id: int,
        account_id: int,
        amount: Decimal,
        paid_on: date | None,
        mode: PaymentMode,
        details: dict,
        notes: str,
        bill_id: int | None,
        actor_id: int | None,
    ) -> tuple[LedgerEntry, list[PaymentAllocation]]:
        account = self.account_repo.get_by_id(account_id)
        if account is None or account.tenant_id != tenant_id:
            raise AccountNotFound(account_id)

        balance = self.ledger.current_balance(account_id)
        if balance <= ZERO:
            raise ValidationError(f"Account {account.label} has no outstanding balance")
        if amount > balance:
            raise ValidationError(
                f"Payment {format_inr(amount)} exceeds outstanding balance {format_inr(balance)}"
            )

        if bill_id is not None:
            bill = self.bill_repo.get_by_id(bill_id)
            if bill is None:
                raise BillNotFound(bill_id)
            if bill.account_id != account_id:
                raise ValidationError(f"Bill {bill_id} does not belong to account {account_id}")
            bills = [bill]
        else:
            bills = self.bill_repo.list_by_account(account_id, OPEN_STATUSES)

        description = f"Payment received via {mode.value}"
        if notes:
            description = f"{description}: {notes}"
        entry = self.ledger.post(
            account_id,
            paid_on or self.ledger.posting_date(account_id, tenant_today()),
            EntryDirection.CREDIT,
            EntryCategory.PAYMENT,
            amount,
            description,
            bill_id=bill_id,
            payment_mode=mode,
            payment_details=details,
            created_by=actor_id,
        )
        return entry, self._allocate(entry, amount, bills)

    def _allocate(self, entry: LedgerEntry, amount: Decimal, bills: list[Bill]) -> list[PaymentAllocation]:
        remaining = amount
        allocations = []
        for bill in sorted(bills, key=lambda b: (b.period, b.id)):
            if remaining <= ZERO:
                break
            take = min(remaining, bill.balance_amount)
            if take <= ZERO:
                continue
            new_paid = bill.amount_paid + take
            status = status_after_payment(bill, new_paid)
            self.bill_repo.update_payment(bill.id, new_paid, status)
            allocations.append(
                self.allocation_repo.create(PaymentAllocation(payment_entry_id=entry.id, bill_id=bill.id, amount=take))
            )
            remaining -= take
            logger.debug("Allocated %s to bill=%s status=%s->%s", take, bill.id, bill.status.value, status.value)
        if remaining > ZERO:
            logger.info("Payment entry %s left %s unallocated", entry.id, remaining)
        return allocations

    def allocations_for(self, payment_entry_id: int) -> list[PaymentAllocation]:
        return self.allocation_repo.list_by_payment(payment_entry_id)
