from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import Connection

from societyledger.constants import financial_year, today as tenant_today
from societyledger.db import atomic
from societyledger.exceptions import (
    AccountNotFound,
    AlreadyReversed,
    BackdatedEntry,
    ConcurrentModification,
    EntryNotFound,
    InvalidAmount,
    ValidationError,
)
from societyledger.models.account import Account
from societyledger.models.audit_log import AuditEventType
from societyledger.models.ledger import (
    ChainCheck,
    EntryCategory,
    EntryDirection,
    LedgerEntry,
    LedgerStatement,
    PaymentMode,
)
from societyledger.money import ZERO, quantize, to_decimal
from societyledger.repositories.base import (
    AccountRepository,
    BillRepository,
    LedgerRepository,
    PaymentAllocationRepository,
)
from societyledger.services.audit_serializers import serialize_entry
from societyledger.services.audit_service import AuditService
from societyledger.services.bill_status import status_after_payment
from societyledger.services.retry import retry_on_conflict

logger = logging.getLogger(__name__)


class LedgerService:
    """Append-only per-account ledger with a running balance.

    ``post`` is the single write path. It runs inside the caller's unit of
    work and claims the account's next sequence number with a compare-and-swap
    on ``accounts.ledger_seq``, so two writers that read the same tail cannot
    both append.
    """

    def __init__(
        self,
        conn: Connection,
        ledger_repo: LedgerRepository,
        account_repo: AccountRepository,
        bill_repo: BillRepository | None = None,
        allocation_repo: PaymentAllocationRepository | None = None,
        audit: AuditService | None = None,
    ) -> None:
        self.conn = conn
        self.ledger_repo = ledger_repo
        self.account_repo = account_repo
        self.bill_repo = bill_repo
        self.allocation_repo = allocation_repo
        self.audit = audit

    def _get_account(self, account_id: int) -> Account:
        account = self.account_repo.get_by_id(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    def post(
        self,
        account_id: int,
        entry_date: date,
        direction: EntryDirection,
        category: EntryCategory,
        amount: Decimal | int | str,
        description: str = "",
        *,
        bill_id: int | None = None,
        period: str | None = None,
        payment_mode: PaymentMode | None = None,
        payment_details: dict | None = None,
        reversal_of_id: int | None = None,
        created_by: int | None = None,
        expected_seq: int | None = None,
    ) -> LedgerEntry:
        """Append one entry inside the caller's transaction. Does not commit.

        With ``expected_seq`` the append only goes ahead if the ledger is still at
        the sequence the caller read when it computed ``amount``.
        """
        value = quantize(to_decimal(amount))
        if value <= ZERO:
            raise InvalidAmount(amount)

        account = self._get_account(account_id)
        latest = self.ledger_repo.latest_entry(account_id)
        latest_seq = latest.seq if latest is not None else 0
        if latest_seq != account.ledger_seq:
            raise ConcurrentModification(
                f"Ledger tail moved for account {account_id}: seq {latest_seq} != {account.ledger_seq}"
            )
        if expected_seq is not None and account.ledger_seq != expected_seq:
            raise ConcurrentModification(
                f"Ledger for account {account_id} changed since it was read: seq {account.ledger_seq} != {expected_seq}"
            )
        if latest is not None and entry_date < latest.entry_date:
            raise BackdatedEntry(account_id, entry_date, latest.entry_date)

        previous = latest.balance_after if latest is not None else account.opening_balance
        balance_after = quantize(previous + value * direction.sign)

        if not self.account_repo.claim_next_seq(account_id, account.ledger_seq):
            raise ConcurrentModification(f"Ledger sequence for account {account_id} claimed by another writer")

        entry = self.ledger_repo.insert(
            LedgerEntry(
                tenant_id=account.tenant_id,
                account_id=account_id,
                seq=account.ledger_seq + 1,
                entry_date=entry_date,
                direction=direction,
                category=category,
                amount=value,
                balance_after=balance_after,
                description=description,
                bill_id=bill_id,
                period=period,
                payment_mode=payment_mode,
                payment_details=payment_details or {},
                reversal_of_id=reversal_of_id,
                financial_year=financial_year(entry_date),
                created_by=created_by,
            )
        )
        self.account_repo.set_tail(account_id, entry.id)
        logger.debug(
            "Ledger entry posted: id=%s account=%s seq=%s %s/%s amount=%s balance=%s",
            entry.id,
            account_id,
            entry.seq,
            direction.value,
            category.value,
            value,
            balance_after,
        )
        return entry

    def append(
        self,
        account_id: int,
        entry_date: date,
        direction: EntryDirection,
        category: EntryCategory,
        amount: Decimal | int | str,
        description: str = "",
        **fields,
    ) -> LedgerEntry:
        """Append one entry as its own unit of work, retrying on tail conflicts."""

        def _attempt() -> LedgerEntry:
            with atomic(self.conn):
                return self.post(account_id, entry_date, direction, category, amount, description, **fields)

        entry = retry_on_conflict(_attempt, label=f"append account={account_id}")
        logger.info(
            "Ledger entry appended: id=%s account=%s category=%s amount=%s balance=%s",
            entry.id,
            account_id,
            category.value,
            entry.amount,
            entry.balance_after,
        )
        return entry

    def posting_date(self, account_id: int, preferred: date) -> date:
        """``preferred`` moved forward to the latest entry's date, if needed."""
        latest = self.ledger_repo.latest_entry(account_id)
        if latest is not None and latest.entry_date > preferred:
            return latest.entry_date
        return preferred

    def latest_entry(self, account_id: int) -> LedgerEntry | None:
        return self.ledger_repo.latest_entry(account_id)

    def current_balance(self, account_id: int) -> Decimal:
        account = self._get_account(account_id)
        latest = self.ledger_repo.latest_entry(account_id)
        if latest is None:
            return account.opening_balance
        return latest.balance_after

    def balance_before(self, account_id: int, day: date) -> Decimal:
        """Balance carried into ``day``: the last entry dated strictly before it."""
        account = self._get_account(account_id)
        entry = self.ledger_repo.latest_before(account_id, day)
        if entry is None:
            return account.opening_balance
        return entry.balance_after

    def entries_in_range(
        self,
        account_id: int,
        start: date | None = None,
        end: date | None = None,
        category: EntryCategory | None = None,
    ) -> list[LedgerEntry]:
        result = self.ledger_repo.entries_in_range(account_id, start, end, category)
        logger.debug("Listed %d ledger entries for account=%s", len(result), account_id)
        return result

    def statement(
        self,
        account_id: int,
        start: date | None = None,
        end: date | None = None,
        category: EntryCategory | None = None,
    ) -> LedgerStatement:
        if start is not None and end is not None and start > end:
            raise ValidationError(f"Statement start {start} is after end {end}")
        account = self._get_account(account_id)
        opening = self.balance_before(account_id, start) if start is not None else account.opening_balance
        entries = self.entries_in_range(account_id, start, end, category)
        total_debit = sum((e.amount for e in entries if e.direction == EntryDirection.DEBIT), ZERO)
        total_credit = sum((e.amount for e in entries if e.direction == EntryDirection.CREDIT), ZERO)
        return LedgerStatement(
            account_id=account_id,
            entries=entries,
            opening_balance=opening,
            total_debit=total_debit,
            total_credit=total_credit,
        )

    def verify_chain(self, account_id: int) -> ChainCheck:
        """Replay the account's entries and compare against the stored running balance."""
        account = self._get_account(account_id)
        entries = sorted(self.ledger_repo.entries_in_range(account_id), key=lambda e: e.seq)

        running = account.opening_balance
        for expected_seq, entry in enumerate(entries, start=1):
            running += entry.signed_amount
            if entry.seq != expected_seq or entry.balance_after != running:
                logger.warning("Ledger chain broken: account=%s entry=%s", account_id, entry.id)
                return ChainCheck(
                    account_id=account_id,
                    ok=False,
                    entries_checked=expected_seq,
                    broken_entry_id=entry.id,
                    expected=running,
                    found=entry.balance_after,
                )

        effective = account.opening_balance + sum((e.signed_amount for e in entries if e.is_effective), ZERO)
        latest = entries[-1].balance_after if entries else account.opening_balance
        if effective != latest:
            logger.warning("Ledger replay mismatch: account=%s expected=%s found=%s", account_id, effective, latest)
            return ChainCheck(
                account_id=account_id, ok=False, entries_checked=len(entries), expected=effective, found=latest
            )
        return ChainCheck(account_id=account_id, ok=True, entries_checked=len(entries))

    def reverse(
        self,
        entry_id: int,
        reason: str = "",
        actor_id: int | None = None,
        entry_date: date | None = None,
        source: str = "",
    ) -> LedgerEntry:
        """Cancel an entry with an opposite one. Payment reversals also un-apply bill allocations."""

        def _attempt() -> LedgerEntry:
            with atomic(self.conn):
                return self._reverse(entry_id, reason, actor_id, entry_date)

        reversal = retry_on_conflict(_attempt, label=f"reverse entry={entry_id}")
        logger.info(
            "Ledger entry reversed: id=%s by=%s account=%s balance=%s",
            entry_id,
            reversal.id,
            reversal.account_id,
            reversal.balance_after,
        )
        if self.audit is not None:
            self.audit.safe_log(
                AuditEventType.ENTRY_REVERSE,
                tenant_id=reversal.tenant_id,
                actor_id=actor_id,
                source=source,
                entity_type="ledger_entry",
                entity_id=entry_id,
                new_state=serialize_entry(reversal),
                metadata={"reason": reason},
            )
        return reversal

    def _reverse(self, entry_id: int, reason: str, actor_id: int | None, entry_date: date | None) -> LedgerEntry:
        original = self.ledger_repo.get_by_id(entry_id)
        if original is None:
            raise EntryNotFound(entry_id)
        if original.is_reversed:
            raise AlreadyReversed(entry_id)
        if original.reversal_of_id is not None:
            raise ValidationError(f"Entry {entry_id} is itself a reversal and cannot be reversed")

        day = self.posting_date(original.account_id, entry_date or tenant_today())
        description = f"Reversal of entry #{original.id}"
        if reason:
            description = f"{description}: {reason}"
        reversal = self.post(
            original.account_id,
            day,
            original.direction.opposite(),
            original.category,
            original.amount,
            description,
            bill_id=original.bill_id,
            period=original.period,
            payment_mode=original.payment_mode,
            reversal_of_id=original.id,
            created_by=actor_id,
        )
        if not self.ledger_repo.mark_reversed(original.id, reversal.id):
            raise AlreadyReversed(entry_id)

        if original.category == EntryCategory.PAYMENT:
            self._unapply_payment(original)
        elif original.bill_id is not None:
            logger.info("Reversed entry %s is linked to bill %s; bill left unchanged", original.id, original.bill_id)
        return reversal

    def _unapply_payment(self, payment: LedgerEntry) -> None:
        if self.allocation_repo is None or self.bill_repo is None:
            return
        for allocation in self.allocation_repo.list_by_payment(payment.id):
            bill = self.bill_repo.get_by_id(allocation.bill_id)
            if bill is None:
                continue
            new_paid = max(bill.amount_paid - allocation.amount, ZERO)
            status = status_after_payment(bill, new_paid)
            self.bill_repo.update_payment(bill.id, new_paid, status)
            logger.info(
                "Payment un-applied: entry=%s bill=%s paid=%s status=%s->%s",
                payment.id,
                bill.id,
                new_paid,
                bill.status.value,
                status.value,
            )
