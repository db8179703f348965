from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy import Connection

from societyledger.constants import (
    day_in_month,
    format_month,
    now as tenant_now,
    parse_period,
    period_start,
    today as tenant_today,
)
from societyledger.db import atomic
from societyledger.exceptions import (
    AccountNotFound,
    BillLocked,
    BillNotFound,
    ConfigIncomplete,
    DuplicatePeriod,
    GenerationInProgress,
    TenantNotFound,
    ValidationError,
)
from societyledger.models.account import Account
from societyledger.models.audit_log import AuditEventType
from societyledger.models.bill import (
    OPEN_STATUSES,
    Bill,
    BillInput,
    BillPreview,
    BillStatus,
    ChargeLine,
    Defaulter,
)
from societyledger.models.billing_run import BillingRun, RunStatus
from societyledger.models.ledger import EntryCategory, EntryDirection
from societyledger.models.tenant import Tenant
from societyledger.money import ZERO, quantize
from societyledger.repositories.base import (
    AccountRepository,
    BillingRunRepository,
    BillRepository,
    ChargeRuleRepository,
    TenantRepository,
)
from societyledger.services.audit_serializers import serialize_bill
from societyledger.services.audit_service import AuditService
from societyledger.services.bill_status import derive_status, transition
from societyledger.services.charges import build_charge_lines, config_rules, service_tax
from societyledger.services.events import BILL_GENERATED, EventBus
from societyledger.services.ledger_service import LedgerService
from societyledger.services.retry import retry_on_conflict
from societyledger.settings import settings

logger = logging.getLogger(__name__)


def bill_number(period: str, account: Account) -> str:
    return f"INV-{period}-{account.label}"


class BillService:
    def __init__(
        self,
        conn: Connection,
        tenant_repo: TenantRepository,
        account_repo: AccountRepository,
        rule_repo: ChargeRuleRepository,
        bill_repo: BillRepository,
        run_repo: BillingRunRepository,
        ledger: LedgerService,
        audit: AuditService | None = None,
        events: EventBus | None = None,
    ) -> None:
        self.conn = conn
        self.tenant_repo = tenant_repo
        self.account_repo = account_repo
        self.rule_repo = rule_repo
        self.bill_repo = bill_repo
        self.run_repo = run_repo
        self.ledger = ledger
        self.audit = audit
        self.events = events

    def _get_tenant(self, tenant_id: int) -> Tenant:
        tenant = self.tenant_repo.get_by_id(tenant_id)
        if tenant is None:
            raise TenantNotFound(tenant_id)
        return tenant

    def _select_accounts(self, tenant_id: int, account_ids: list[int] | None) -> list[Account]:
        accounts = self.account_repo.list_by_tenant(tenant_id)
        if account_ids is None:
            return accounts
        by_id = {a.id: a for a in accounts}
        missing = [a for a in account_ids if a not in by_id]
        if missing:
            raise AccountNotFound(missing[0])
        return [by_id[a] for a in account_ids]

    # -- preview ---------------------------------------------------------

    def preview(self, tenant_id: int, period: str, account_ids: list[int] | None = None) -> list[BillPreview]:
        """Compute bills for a period without writing anything."""
        tenant = self._get_tenant(tenant_id)
        year, month = parse_period(period)
        bill_date = period_start(period)
        due_date = day_in_month(year, month, tenant.config.bill_due_day)
        rules = self.rule_repo.list_active(tenant_id)

        previews = []
        for account in self._select_accounts(tenant_id, account_ids):
            lines, subtotal = build_charge_lines(tenant.config, rules, account.area)
            previews.append(
                BillPreview(
                    account_id=account.id,
                    account_label=account.label,
                    owner_name=account.owner_name,
                    period=period,
                    bill_number=bill_number(period, account),
                    bill_date=bill_date,
                    due_date=due_date,
                    charges=lines,
                    subtotal=subtotal,
                    tax_amount=service_tax(subtotal, tenant.config.service_tax_rate),
                    previous_balance=self.ledger.balance_before(account.id, bill_date),
                )
            )
        logger.debug("Previewed %d bills for tenant=%s period=%s", len(previews), tenant_id, period)
        return previews

    # -- commit ----------------------------------------------------------

    def _ensure_no_active_run(self, tenant_id: int) -> None:
        since = tenant_now() - timedelta(seconds=settings.billing_run_timeout_seconds)
        run = self.run_repo.active_for_tenant(tenant_id, since)
        if run is not None:
            raise GenerationInProgress(tenant_id, run.period)

    def commit(
        self,
        tenant_id: int,
        period: str,
        bill_inputs: list[BillInput] | None = None,
        actor_id: int | None = None,
        source: str = "",
    ) -> list[Bill]:
        """Turn previews (or caller-edited inputs) into bills and their ledger debits.

        All-or-nothing for the tenant-period: one existing bill aborts the batch.
        Without ``bill_inputs`` every account of the tenant is billed from its preview.
        """
        tenant = self._get_tenant(tenant_id)
        parse_period(period)
        if bill_inputs is None:
            if not config_rules(tenant.config) and not self.rule_repo.list_active(tenant_id):
                raise ConfigIncomplete(tenant_id, ["charge rules"])
            bill_inputs = [
                BillInput(account_id=p.account_id, charges=p.charges) for p in self.preview(tenant_id, period)
            ]
        if not bill_inputs:
            raise ValidationError(f"No accounts to bill for tenant {tenant_id}")
        account_ids = [b.account_id for b in bill_inputs]
        if len(set(account_ids)) != len(account_ids):
            raise ValidationError("Each account may appear only once per billing batch")

        bills = retry_on_conflict(
            lambda: self._commit_batch(tenant, period, bill_inputs, actor_id),
            label=f"generate tenant={tenant_id} period={period}",
        )

        logger.info("Bills generated: tenant=%s period=%s count=%d", tenant_id, period, len(bills))
        if self.audit is not None:
            self.audit.safe_log(
                AuditEventType.BILLS_GENERATE,
                tenant_id=tenant_id,
                actor_id=actor_id,
                source=source,
                entity_type="billing_period",
                metadata={
                    "period": period,
                    "count": len(bills),
                    "total": str(sum((b.total_amount for b in bills), ZERO)),
                },
            )
        if self.events is not None:
            for bill in bills:
                self.events.publish(
                    BILL_GENERATED,
                    {
                        "tenant_id": tenant_id,
                        "account_id": bill.account_id,
                        "bill_id": bill.id,
                        "period": period,
                        "total_amount": str(bill.total_amount),
                    },
                )
        return bills

    def _commit_batch(
        self, tenant: Tenant, period: str, bill_inputs: list[BillInput], actor_id: int | None
    ) -> list[Bill]:
        self._ensure_no_active_run(tenant.id)
        run = self.run_repo.start(BillingRun(tenant_id=tenant.id, period=period, started_by=actor_id))
        try:
            with atomic(self.conn):
                bills = self._create_bills(tenant, period, bill_inputs, actor_id)
        except Exception as exc:
            self.run_repo.finish(run.id, RunStatus.FAILED, error=str(exc))
            raise
        self.run_repo.finish(run.id, RunStatus.COMPLETED, bill_count=len(bills))
        return bills

    def _create_bills(
        self, tenant: Tenant, period: str, bill_inputs: list[BillInput], actor_id: int | None
    ) -> list[Bill]:
        account_ids = [b.account_id for b in bill_inputs]
        existing = self.bill_repo.existing_accounts(tenant.id, period, account_ids)
        if existing:
            raise DuplicatePeriod(period, existing)

        accounts = {a.id: a for a in self._select_accounts(tenant.id, account_ids)}
        year, month = parse_period(period)
        bill_date = period_start(period)
        due_date = day_in_month(year, month, tenant.config.bill_due_day)

        bills = []
        for item in bill_inputs:
            account = accounts[item.account_id]
            lines = [
                ChargeLine(name=line.name, amount=quantize(line.amount), basis=line.basis, sort_order=i)
                for i, line in enumerate(item.charges)
            ]
            if any(line.amount < ZERO for line in lines):
                raise ValidationError(f"Negative charge on account {account.id}")
            subtotal = sum((line.amount for line in lines), ZERO)
            tax = service_tax(subtotal, tenant.config.service_tax_rate)
            interest = quantize(item.interest_amount)
            if interest < ZERO:
                raise ValidationError(f"Negative interest on account {account.id}")
            total = subtotal + tax + interest

            bill = self.bill_repo.create(
                Bill(
                    tenant_id=tenant.id,
                    account_id=account.id,
                    period=period,
                    charges=lines,
                    previous_balance=self.ledger.balance_before(account.id, bill_date),
                    interest_amount=interest,
                    subtotal=subtotal,
                    tax_amount=tax,
                    total_amount=total,
                    due_date=due_date,
                    status=derive_status(total, ZERO),
                    notes=item.notes,
                    generated_by=actor_id,
                )
            )
            if bill.total_amount > ZERO:
                self.ledger.post(
                    account.id,
                    self.ledger.posting_date(account.id, bill_date),
                    EntryDirection.DEBIT,
                    EntryCategory.MAINTENANCE,
                    bill.total_amount,
                    f"Maintenance bill for {format_month(period)}",
                    bill_id=bill.id,
                    period=period,
                    created_by=actor_id,
                )
            else:
                logger.warning("Bill %s for account %s has zero total; no ledger debit", bill.id, account.id)
            logger.debug(
                "Bill created: id=%s account=%s period=%s total=%s", bill.id, account.id, period, bill.total_amount
            )
            bills.append(bill)
        return bills

    # -- queries ---------------------------------------------------------

    def get_bill(self, bill_id: int) -> Bill:
        bill = self.bill_repo.get_by_id(bill_id)
        if bill is None:
            raise BillNotFound(bill_id)
        return bill

    def get_bill_by_uuid(self, uuid: str) -> Bill:
        bill = self.bill_repo.get_by_uuid(uuid)
        if bill is None:
            raise BillNotFound(uuid)
        return bill

    def list_bills(self, tenant_id: int, period: str) -> list[Bill]:
        parse_period(period)
        result = self.bill_repo.list_by_period(tenant_id, period)
        logger.debug("Listed %d bills for tenant=%s period=%s", len(result), tenant_id, period)
        return result

    def list_account_bills(self, account_id: int, open_only: bool = False) -> list[Bill]:
        return self.bill_repo.list_by_account(account_id, OPEN_STATUSES if open_only else None)

    def defaulters(self, tenant_id: int, months_threshold: int = 3) -> list[Defaulter]:
        """Accounts with at least ``months_threshold`` unsettled bills, largest arrears first."""
        if months_threshold < 1:
            raise ValidationError("months_threshold must be at least 1")
        self._get_tenant(tenant_id)
        result = []
        for account in self.account_repo.list_by_tenant(tenant_id):
            open_bills = [b for b in self.bill_repo.list_by_account(account.id, OPEN_STATUSES) if b.balance_amount > 0]
            if len(open_bills) < months_threshold:
                continue
            arrears = self.ledger.current_balance(account.id)
            result.append(
                Defaulter(
                    account_id=account.id,
                    account_label=account.label,
                    owner_name=account.owner_name,
                    open_bills=len(open_bills),
                    total_arrears=max(arrears, ZERO),
                    oldest_due_date=min(b.due_date for b in open_bills),
                )
            )
        result.sort(key=lambda d: d.total_arrears, reverse=True)
        logger.debug("Found %d defaulters for tenant=%s", len(result), tenant_id)
        return result

    # -- revisions -------------------------------------------------------

    def revise_charges(
        self,
        bill_id: int,
        charges: list[ChargeLine],
        actor_id: int | None = None,
        notes: str | None = None,
        today: date | None = None,
        source: str = "",
    ) -> Bill:
        """Replace an unlocked bill's charges. The difference is posted as an Adjustment."""
        day = today or tenant_today()

        def _attempt() -> tuple[Bill, Bill]:
            with atomic(self.conn):
                return self._revise(bill_id, charges, actor_id, notes, day)

        before, after = retry_on_conflict(_attempt, label=f"revise bill={bill_id}")
        logger.info(
            "Bill revised: id=%s total=%s->%s status=%s",
            bill_id,
            before.total_amount,
            after.total_amount,
            after.status.value,
        )
        if self.audit is not None:
            self.audit.safe_log(
                AuditEventType.BILL_REVISE,
                tenant_id=after.tenant_id,
                actor_id=actor_id,
                source=source,
                entity_type="bill",
                entity_id=after.id,
                entity_uuid=after.uuid,
                previous_state=serialize_bill(before),
                new_state=serialize_bill(after),
            )
        return after

    def _revise(
        self, bill_id: int, charges: list[ChargeLine], actor_id: int | None, notes: str | None, day: date
    ) -> tuple[Bill, Bill]:
        bill = self.get_bill(bill_id)
        if bill.is_locked:
            raise BillLocked(bill_id)
        tenant = self._get_tenant(bill.tenant_id)

        lines = [
            ChargeLine(name=line.name, amount=quantize(line.amount), basis=line.basis, sort_order=i)
            for i, line in enumerate(charges)
        ]
        if any(line.amount < ZERO for line in lines):
            raise ValidationError("Charge amounts cannot be negative")
        subtotal = sum((line.amount for line in lines), ZERO)
        tax = service_tax(subtotal, tenant.config.service_tax_rate)
        total = subtotal + tax + bill.interest_amount
        delta = total - bill.total_amount

        target = derive_status(total, bill.amount_paid)
        if target == BillStatus.UNPAID and bill.status == BillStatus.OVERDUE:
            target = BillStatus.OVERDUE
        status = transition(bill.status, target)

        revised = self.bill_repo.update_charges(
            bill.model_copy(
                update={
                    "charges": lines,
                    "subtotal": subtotal,
                    "tax_amount": tax,
                    "total_amount": total,
                    "status": status,
                    "notes": bill.notes if notes is None else notes,
                }
            )
        )
        if delta != ZERO:
            self.ledger.post(
                bill.account_id,
                self.ledger.posting_date(bill.account_id, day),
                EntryDirection.DEBIT if delta > ZERO else EntryDirection.CREDIT,
                EntryCategory.ADJUSTMENT,
                abs(delta),
                f"Revision of bill {format_month(bill.period)}",
                bill_id=bill.id,
                period=bill.period,
                created_by=actor_id,
            )
        return bill, revised

    def lock_period(self, tenant_id: int, period: str, actor_id: int | None = None, source: str = "") -> int:
        """Freeze charges on every bill of the period. Payments can still be applied."""
        self._get_tenant(tenant_id)
        parse_period(period)
        with atomic(self.conn):
            count = self.bill_repo.lock_period(tenant_id, period)
        logger.info("Bills locked: tenant=%s period=%s count=%d", tenant_id, period, count)
        if self.audit is not None:
            self.audit.safe_log(
                AuditEventType.BILLS_LOCK,
                tenant_id=tenant_id,
                actor_id=actor_id,
                source=source,
                entity_type="billing_period",
                metadata={"period": period, "count": count},
            )
        return count
