from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import Connection

from societyledger.constants import day_in_month, parse_period, today as tenant_today
from societyledger.db import atomic
from societyledger.exceptions import AccountNotFound, ConfigIncomplete, LedgerError, TenantNotFound
from societyledger.models.account import Account
from societyledger.models.audit_log import AuditEventType
from societyledger.models.batch import BatchReport, Outcome
from societyledger.models.interest import Outstanding
from societyledger.models.ledger import EntryCategory, EntryDirection, LedgerEntry, PaymentMode
from societyledger.models.tenant import CompoundingFrequency, InterestMethod, Tenant, TenantConfig
from societyledger.money import ZERO, quantize
from societyledger.repositories.base import AccountRepository, LedgerRepository, TenantRepository
from societyledger.services.audit_service import AuditService
from societyledger.services.events import INTEREST_APPLIED, EventBus
from societyledger.services.ledger_service import LedgerService
from societyledger.services.retry import retry_on_conflict

logger = logging.getLogger(__name__)


def compute_interest(
    balance: Decimal,
    rate: Decimal,
    method: InterestMethod,
    frequency: CompoundingFrequency,
    days_overdue: int,
) -> Decimal:
    """Interest on ``balance`` for ``days_overdue`` days, months counted as 30 days.

    SIMPLE:   balance * rate/100 * days/30
    COMPOUND: balance * ((1 + rate/100/n) ** (n * days/30) - 1), n = 30 if DAILY else 1
    """
    if balance <= ZERO or rate <= ZERO or days_overdue <= 0:
        return ZERO
    months = Decimal(days_overdue) / 30
    if method == InterestMethod.SIMPLE:
        return quantize(balance * rate / 100 * months)
    n = 30 if frequency == CompoundingFrequency.DAILY else 1
    growth = (1 + rate / 100 / n) ** (n * months)
    return quantize(balance * (growth - 1))


def grace_window(entry: LedgerEntry, config: TenantConfig) -> tuple[date, date]:
    """(due date, grace end) for the month a maintenance debit bills."""
    if entry.period:
        year, month = parse_period(entry.period)
    else:
        year, month = entry.entry_date.year, entry.entry_date.month
    due = day_in_month(year, month, config.bill_due_day)
    return due, due + timedelta(days=config.grace_period_days)


class InterestService:
    """Daily interest accrual on balances that stayed positive past the grace period.

    Re-running on the same day is a no-op per account: an Interest entry dated
    today blocks a second one.
    """

    def __init__(
        self,
        conn: Connection,
        tenant_repo: TenantRepository,
        account_repo: AccountRepository,
        ledger_repo: LedgerRepository,
        ledger: LedgerService,
        audit: AuditService | None = None,
        events: EventBus | None = None,
    ) -> None:
        self.conn = conn
        self.tenant_repo = tenant_repo
        self.account_repo = account_repo
        self.ledger_repo = ledger_repo
        self.ledger = ledger
        self.audit = audit
        self.events = events

    def _get_tenant(self, tenant_id: int) -> Tenant:
        tenant = self.tenant_repo.get_by_id(tenant_id)
        if tenant is None:
            raise TenantNotFound(tenant_id)
        return tenant

    def _assess(self, account: Account, config: TenantConfig, today: date) -> Outstanding:
        balance = self.ledger.current_balance(account.id)
        result = Outstanding(account_id=account.id, principal=balance)
        if balance <= ZERO:
            result.message = "No outstanding balance"
            return result

        oldest = self.ledger_repo.oldest_open_debit(account.id, EntryCategory.MAINTENANCE)
        if oldest is None:
            result.message = "No unpaid maintenance bill"
            return result

        due, grace_end = grace_window(oldest, config)
        result.due_date = due
        result.grace_end = grace_end
        if today <= grace_end:
            result.message = f"Within grace period until {grace_end.isoformat()}"
            return result

        result.days_overdue = max((today - grace_end).days, 0)
        result.interest = compute_interest(
            balance,
            config.interest_rate or ZERO,
            config.interest_method,
            config.compounding_frequency,
            result.days_overdue,
        )
        result.message = f"Overdue by {result.days_overdue} days"
        return result

    def outstanding(self, account_id: int, today: date | None = None) -> Outstanding:
        """What the account owes today plus the interest that would accrue. No writes."""
        account = self.account_repo.get_by_id(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        tenant = self._get_tenant(account.tenant_id)
        result = self._assess(account, tenant.config, today or tenant_today())
        logger.debug("Outstanding account=%s principal=%s interest=%s", account_id, result.principal, result.interest)
        return result

    def _accrue_once(
        self, account: Account, config: TenantConfig, today: date, actor_id: int | None
    ) -> tuple[Outcome, str, LedgerEntry | None]:
        # sequence first; a write landing after this read fails the post below
        current = self.account_repo.get_by_id(account.id)
        if current is None:
            raise AccountNotFound(account.id)
        assessment = self._assess(current, config, today)
        if assessment.interest <= ZERO:
            return Outcome.SKIPPED, assessment.message or "No interest due", None

        with atomic(self.conn):
            if self.ledger_repo.exists_on(account.id, EntryCategory.INTEREST, today):
                return Outcome.SKIPPED, "Interest already applied today", None
            entry = self.ledger.post(
                account.id,
                today,
                EntryDirection.DEBIT,
                EntryCategory.INTEREST,
                assessment.interest,
                f"Interest on arrears ({assessment.days_overdue} days overdue, "
                f"{config.interest_method.value} @ {config.interest_rate}%)",
                created_by=actor_id,
                payment_mode=PaymentMode.SYSTEM,
                expected_seq=current.ledger_seq,
            )
        return Outcome.SUCCEEDED, assessment.message, entry

    def _check_config(self, tenant: Tenant) -> None:
        missing = tenant.config.missing_interest_fields()
        if missing:
            raise ConfigIncomplete(tenant.id, missing)

    def apply_interest(self, account_id: int, today: date | None = None, actor_id: int | None = None) -> LedgerEntry | None:
        """Accrue interest for one account now. Missing interest config is a hard failure."""
        day = today or tenant_today()
        account = self.account_repo.get_by_id(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        tenant = self._get_tenant(account.tenant_id)
        self._check_config(tenant)
        outcome, reason, entry = retry_on_conflict(
            lambda: self._accrue_once(account, tenant.config, day, actor_id),
            label=f"interest account={account_id}",
        )
        if entry is None:
            logger.info("Interest skipped: account=%s reason=%s", account_id, reason)
            return None
        self._after_accrual(entry, actor_id)
        return entry

    def accrue_tenant(
        self,
        tenant_id: int,
        today: date | None = None,
        actor_id: int | None = None,
        report: BatchReport | None = None,
    ) -> BatchReport:
        """Accrue interest for every account of one tenant. Failures are reported, not raised."""
        day = today or tenant_today()
        report = report if report is not None else BatchReport(job="interest")
        tenant = self._get_tenant(tenant_id)
        accounts = self.account_repo.list_by_tenant(tenant_id)

        try:
            self._check_config(tenant)
        except ConfigIncomplete as exc:
            logger.warning("Interest skipped for tenant %s: %s", tenant_id, exc.message)
            for account in accounts:
                report.record(tenant_id, account.id, Outcome.SKIPPED, exc.code)
            return report

        if tenant.config.interest_rate == ZERO:
            logger.info("Interest disabled for tenant %s (rate 0)", tenant_id)
            for account in accounts:
                report.record(tenant_id, account.id, Outcome.SKIPPED, "Interest rate is 0")
            return report

        for account in accounts:
            try:
                outcome, reason, entry = retry_on_conflict(
                    lambda: self._accrue_once(account, tenant.config, day, actor_id),
                    label=f"interest account={account.id}",
                )
            except LedgerError as exc:
                logger.warning("Interest failed: tenant=%s account=%s error=%s", tenant_id, account.id, exc.code)
                report.record(tenant_id, account.id, Outcome.FAILED, f"{exc.code}: {exc.message}")
                continue
            except Exception as exc:
                logger.exception("Interest failed: tenant=%s account=%s", tenant_id, account.id)
                report.record(tenant_id, account.id, Outcome.FAILED, repr(exc))
                continue

            report.record(tenant_id, account.id, outcome, reason, entry.amount if entry else None)
            if entry is not None:
                logger.info(
                    "Interest applied: account=%s amount=%s balance=%s",
                    account.id,
                    entry.amount,
                    entry.balance_after,
                )
                self._after_accrual(entry, actor_id)

        logger.info(
            "Interest run for tenant %s: succeeded=%d skipped=%d failed=%d",
            tenant_id,
            report.succeeded,
            report.skipped,
            report.failed,
        )
        return report

    def accrue_all(self, today: date | None = None, actor_id: int | None = None) -> BatchReport:
        report = BatchReport(job="interest")
        for tenant in self.tenant_repo.list_all():
            self.accrue_tenant(tenant.id, today, actor_id, report)
        logger.info(
            "Interest run complete: succeeded=%d skipped=%d failed=%d total=%s",
            report.succeeded,
            report.skipped,
            report.failed,
            report.total_amount,
        )
        return report

    def _after_accrual(self, entry: LedgerEntry, actor_id: int | None) -> None:
        if self.audit is not None:
            self.audit.safe_log(
                AuditEventType.INTEREST_APPLY,
                tenant_id=entry.tenant_id,
                actor_id=actor_id,
                source="cron" if actor_id is None else "cli",
                entity_type="ledger_entry",
                entity_id=entry.id,
                metadata={"account_id": entry.account_id, "amount": str(entry.amount)},
            )
        if self.events is not None:
            self.events.publish(
                INTEREST_APPLIED,
                {
                    "tenant_id": entry.tenant_id,
                    "account_id": entry.account_id,
                    "entry_id": entry.id,
                    "amount": str(entry.amount),
                    "balance_after": str(entry.balance_after),
                },
            )
