from societyledger.repositories.base import (
    AccountRepository,
    AuditLogRepository,
    BillingRunRepository,
    BillRepository,
    ChargeRuleRepository,
    LedgerRepository,
    PaymentAllocationRepository,
    TenantRepository,
)


def get_tenant_repository() -> TenantRepository:
    from societyledger.db import get_connection
    from societyledger.repositories.sqlalchemy import SQLAlchemyTenantRepository

    return SQLAlchemyTenantRepository(get_connection())


def get_account_repository() -> AccountRepository:
    from societyledger.db import get_connection
    from societyledger.repositories.sqlalchemy import SQLAlchemyAccountRepository

    return SQLAlchemyAccountRepository(get_connection())


def get_charge_rule_repository() -> ChargeRuleRepository:
    from societyledger.db import get_connection
    from societyledger.repositories.sqlalchemy import SQLAlchemyChargeRuleRepository

    return SQLAlchemyChargeRuleRepository(get_connection())


def get_ledger_repository() -> LedgerRepository:
    from societyledger.db import get_connection
    from societyledger.repositories.sqlalchemy import SQLAlchemyLedgerRepository

    return SQLAlchemyLedgerRepository(get_connection())


def get_bill_repository() -> BillRepository:
    from societyledger.db import get_connection
    from societyledger.repositories.sqlalchemy import SQLAlchemyBillRepository

    return SQLAlchemyBillRepository(get_connection())


def get_payment_allocation_repository() -> PaymentAllocationRepository:
    from societyledger.db import get_connection
    from societyledger.repositories.sqlalchemy import SQLAlchemyPaymentAllocationRepository

    return SQLAlchemyPaymentAllocationRepository(get_connection())


def get_billing_run_repository() -> BillingRunRepository:
    from societyledger.db import get_connection
    from societyledger.repositories.sqlalchemy import SQLAlchemyBillingRunRepository

    return SQLAlchemyBillingRunRepository(get_connection())


def get_audit_log_repository() -> AuditLogRepository:
    from societyledger.db import get_connection
    from societyledger.repositories.sqlalchemy import SQLAlchemyAuditLogRepository

    return SQLAlchemyAuditLogRepository(get_connection())
