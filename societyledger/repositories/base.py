"""Storage contracts for the billing and ledger engine.

Configuration repositories (tenants, accounts, charge rules, audit logs,
billing runs) commit their own writes. Ledger, bill and allocation writes do
NOT commit: the services run them inside ``db.atomic`` so a command either
applies completely or not at all.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime

from societyledger.models.account import Account
from societyledger.models.audit_log import AuditLog
from societyledger.models.bill import Bill, BillStatus, PaymentAllocation
from societyledger.models.billing_run import BillingRun, RunStatus
from societyledger.models.charge_rule import ChargeRule
from societyledger.models.ledger import EntryCategory, EntryDirection, LedgerEntry
from societyledger.models.tenant import Tenant, TenantConfig


class TenantRepository(ABC):
    @abstractmethod
    def create(self, tenant: Tenant) -> Tenant: ...

    @abstractmethod
    def get_by_id(self, tenant_id: int) -> Tenant | None: ...

    @abstractmethod
    def get_by_uuid(self, uuid: str) -> Tenant | None: ...

    @abstractmethod
    def list_all(self) -> list[Tenant]: ...

    @abstractmethod
    def update_config(self, tenant_id: int, config: TenantConfig) -> Tenant: ...


class AccountRepository(ABC):
    @abstractmethod
    def create(self, account: Account) -> Account: ...

    @abstractmethod
    def get_by_id(self, account_id: int) -> Account | None: ...

    @abstractmethod
    def list_by_tenant(self, tenant_id: int) -> list[Account]: ...

    @abstractmethod
    def update(self, account: Account) -> Account: ...

    @abstractmethod
    def claim_next_seq(self, account_id: int, expected_seq: int) -> bool:
        """Compare-and-swap the ledger tail: bump ``ledger_seq`` only if unchanged."""

    @abstractmethod
    def set_tail(self, account_id: int, entry_id: int) -> None: ...


class ChargeRuleRepository(ABC):
    @abstractmethod
    def create(self, rule: ChargeRule) -> ChargeRule: ...

    @abstractmethod
    def get_by_id(self, rule_id: int) -> ChargeRule | None: ...

    @abstractmethod
    def get_by_name(self, tenant_id: int, name: str) -> ChargeRule | None:
        """Find a non-deleted rule by name."""

    @abstractmethod
    def list_by_tenant(self, tenant_id: int, include_deleted: bool = False) -> list[ChargeRule]: ...

    @abstractmethod
    def list_active(self, tenant_id: int) -> list[ChargeRule]:
        """Active, non-deleted rules in evaluation order."""

    @abstractmethod
    def count_by_tenant(self, tenant_id: int) -> int: ...

    @abstractmethod
    def max_order(self, tenant_id: int) -> int | None: ...

    @abstractmethod
    def update(self, rule: ChargeRule) -> ChargeRule: ...

    @abstractmethod
    def archive(self, rule_id: int) -> None: ...


class LedgerRepository(ABC):
    @abstractmethod
    def insert(self, entry: LedgerEntry) -> LedgerEntry: ...

    @abstractmethod
    def get_by_id(self, entry_id: int) -> LedgerEntry | None: ...

    @abstractmethod
    def latest_entry(self, account_id: int) -> LedgerEntry | None: ...

    @abstractmethod
    def latest_before(self, account_id: int, before: date) -> LedgerEntry | None:
        """Most recent entry dated strictly before ``before``."""

    @abstractmethod
    def entries_in_range(
        self,
        account_id: int,
        start: date | None = None,
        end: date | None = None,
        category: EntryCategory | None = None,
    ) -> list[LedgerEntry]: ...

    @abstractmethod
    def mark_reversed(self, entry_id: int, reversed_by_id: int) -> bool:
        """Flag an entry reversed. Returns False if it already was."""

    @abstractmethod
    def exists_on(self, account_id: int, category: EntryCategory, day: date) -> bool: ...

    @abstractmethod
    def oldest_open_debit(
        self, account_id: int, category: EntryCategory, direction: EntryDirection = EntryDirection.DEBIT
    ) -> LedgerEntry | None:
        """Oldest non-reversed entry whose linked bill (if any) is not fully paid."""


class BillRepository(ABC):
    @abstractmethod
    def create(self, bill: Bill) -> Bill: ...

    @abstractmethod
    def get_by_id(self, bill_id: int) -> Bill | None: ...

    @abstractmethod
    def get_by_uuid(self, uuid: str) -> Bill | None: ...

    @abstractmethod
    def existing_accounts(self, tenant_id: int, period: str, account_ids: list[int]) -> list[int]:
        """Account ids among ``account_ids`` that already have a bill for ``period``."""

    @abstractmethod
    def list_by_account(self, account_id: int, statuses: tuple[BillStatus, ...] | None = None) -> list[Bill]:
        """Bills for an account, oldest period first."""

    @abstractmethod
    def list_by_period(self, tenant_id: int, period: str) -> list[Bill]: ...

    @abstractmethod
    def list_open_past_due(self, before: date, tenant_id: int | None = None) -> list[Bill]: ...

    @abstractmethod
    def update_payment(self, bill_id: int, amount_paid, status: BillStatus) -> None: ...

    @abstractmethod
    def update_status(self, bill_id: int, status: BillStatus, expected: BillStatus) -> bool:
        """Conditional status write. Returns False if the stored status moved."""

    @abstractmethod
    def update_charges(self, bill: Bill) -> Bill: ...

    @abstractmethod
    def lock_period(self, tenant_id: int, period: str) -> int: ...


class PaymentAllocationRepository(ABC):
    @abstractmethod
    def create(self, allocation: PaymentAllocation) -> PaymentAllocation: ...

    @abstractmethod
    def list_by_payment(self, payment_entry_id: int) -> list[PaymentAllocation]: ...

    @abstractmethod
    def list_by_bill(self, bill_id: int) -> list[PaymentAllocation]: ...


class BillingRunRepository(ABC):
    @abstractmethod
    def start(self, run: BillingRun) -> BillingRun: ...

    @abstractmethod
    def finish(self, run_id: int, status: RunStatus, bill_count: int = 0, error: str = "") -> None: ...

    @abstractmethod
    def active_for_tenant(self, tenant_id: int, since: datetime) -> BillingRun | None:
        """The in-progress run started after ``since``, if any."""


class AuditLogRepository(ABC):
    @abstractmethod
    def create(self, audit_log: AuditLog) -> AuditLog: ...

    @abstractmethod
    def list_by_entity(self, entity_type: str, entity_id: int) -> list[AuditLog]: ...

    @abstractmethod
    def list_by_tenant(self, tenant_id: int, limit: int = 50) -> list[AuditLog]: ...
