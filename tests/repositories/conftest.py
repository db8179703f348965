import pytest
from sqlalchemy import Connection

from societyledger.repositories.sqlalchemy import (
    SQLAlchemyAccountRepository,
    SQLAlchemyAuditLogRepository,
    SQLAlchemyBillingRunRepository,
    SQLAlchemyBillRepository,
    SQLAlchemyChargeRuleRepository,
    SQLAlchemyLedgerRepository,
    SQLAlchemyPaymentAllocationRepository,
    SQLAlchemyTenantRepository,
)


@pytest.fixture()
def tenant_repo(db_connection: Connection) -> SQLAlchemyTenantRepository:
    return SQLAlchemyTenantRepository(db_connection)


@pytest.fixture()
def account_repo(db_connection: Connection) -> SQLAlchemyAccountRepository:
    return SQLAlchemyAccountRepository(db_connection)


@pytest.fixture()
def rule_repo(db_connection: Connection) -> SQLAlchemyChargeRuleRepository:
    return SQLAlchemyChargeRuleRepository(db_connection)


@pytest.fixture()
def ledger_repo(db_connection: Connection) -> SQLAlchemyLedgerRepository:
    return SQLAlchemyLedgerRepository(db_connection)


@pytest.fixture()
def bill_repo(db_connection: Connection) -> SQLAlchemyBillRepository:
    return SQLAlchemyBillRepository(db_connection)


@pytest.fixture()
def allocation_repo(db_connection: Connection) -> SQLAlchemyPaymentAllocationRepository:
    return SQLAlchemyPaymentAllocationRepository(db_connection)


@pytest.fixture()
def run_repo(db_connection: Connection) -> SQLAlchemyBillingRunRepository:
    return SQLAlchemyBillingRunRepository(db_connection)


@pytest.fixture()
def audit_repo(db_connection: Connection) -> SQLAlchemyAuditLogRepository:
    return SQLAlchemyAuditLogRepository(db_connection)


@pytest.fixture()
def tenant(tenant_repo, sample_tenant):
    return tenant_repo.create(sample_tenant())


@pytest.fixture()
def account(account_repo, tenant, sample_account):
    return account_repo.create(sample_account(tenant_id=tenant.id))
