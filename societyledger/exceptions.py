"""Typed errors raised by the billing and ledger engine.

Every error carries a machine-readable ``code`` so callers (request handlers,
batch reports, the CLI) can branch on the type instead of parsing messages.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all engine errors."""

    code: str = "LEDGER_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(LedgerError):
    """Bad input shape or range. Raised before any write happens."""

    code = "VALIDATION_ERROR"


class InvalidAmount(ValidationError):
    code = "INVALID_AMOUNT"

    def __init__(self, amount: object) -> None:
        super().__init__(f"Amount must be greater than zero, got {amount}")
        self.amount = amount


class BackdatedEntry(ValidationError):
    code = "BACKDATED_ENTRY"

    def __init__(self, account_id: int, entry_date: object, latest_date: object) -> None:
        super().__init__(
            f"Cannot post entry dated {entry_date} to account {account_id}: "
            f"latest entry is dated {latest_date}"
        )
        self.account_id = account_id
        self.entry_date = entry_date
        self.latest_date = latest_date


class NotFound(LedgerError):
    code = "NOT_FOUND"
    entity: str = "entity"

    def __init__(self, key: object) -> None:
        super().__init__(f"{self.entity.capitalize()} not found: {key}")
        self.key = key


class TenantNotFound(NotFound):
    code = "TENANT_NOT_FOUND"
    entity = "tenant"


class AccountNotFound(NotFound):
    code = "ACCOUNT_NOT_FOUND"
    entity = "account"


class BillNotFound(NotFound):
    code = "BILL_NOT_FOUND"
    entity = "bill"


class EntryNotFound(NotFound):
    code = "ENTRY_NOT_FOUND"
    entity = "ledger entry"


class ChargeRuleNotFound(NotFound):
    code = "CHARGE_RULE_NOT_FOUND"
    entity = "charge rule"


class DuplicatePeriod(LedgerError):
    code = "DUPLICATE_PERIOD"

    def __init__(self, period: str, account_ids: list[int]) -> None:
        accounts = ", ".join(str(a) for a in account_ids)
        super().__init__(f"Bills for {period} already generated for account(s) {accounts}")
        self.period = period
        self.account_ids = account_ids


class DuplicateChargeRule(ValidationError):
    code = "DUPLICATE_CHARGE_RULE"

    def __init__(self, name: str) -> None:
        super().__init__(f"Charge rule already exists: {name}")
        self.name = name


class AlreadyReversed(LedgerError):
    code = "ALREADY_REVERSED"

    def __init__(self, entry_id: int) -> None:
        super().__init__(f"Ledger entry {entry_id} has already been reversed")
        self.entry_id = entry_id


class InvalidTransition(LedgerError):
    code = "INVALID_TRANSITION"

    def __init__(self, current: object, target: object, message: str = "") -> None:
        super().__init__(message or f"Cannot move bill from {current} to {target}")
        self.current = current
        self.target = target


class BillLocked(InvalidTransition):
    code = "BILL_LOCKED"

    def __init__(self, bill_id: int) -> None:
        super().__init__("locked", "revised", f"Bill {bill_id} is locked; charges are immutable")
        self.bill_id = bill_id


class ConcurrentModification(LedgerError):
    """Lock or version conflict. The caller should retry."""

    code = "CONCURRENT_MODIFICATION"


class GenerationInProgress(ConcurrentModification):
    code = "GENERATION_IN_PROGRESS"

    def __init__(self, tenant_id: int, period: str) -> None:
        super().__init__(f"Bill generation for tenant {tenant_id} period {period} is in progress")
        self.tenant_id = tenant_id
        self.period = period


class ConfigIncomplete(LedgerError):
    code = "CONFIG_INCOMPLETE"

    def __init__(self, tenant_id: int, missing: list[str]) -> None:
        super().__init__(f"Tenant {tenant_id} config is missing: {', '.join(missing)}")
        self.tenant_id = tenant_id
        self.missing = missing
