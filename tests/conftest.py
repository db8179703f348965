"""Root conftest: in-memory SQLite engine and fixtures for the full schema."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import Connection, create_engine, event, text
from sqlalchemy.engine import Engine

from societyledger.models.account import Account
from societyledger.models.bill import Bill, ChargeLine
from societyledger.models.ledger import EntryCategory, EntryDirection, LedgerEntry
from societyledger.models.tenant import FixedCharges, InterestMethod, Tenant, TenantConfig

# Matches Alembic head: 8d2e4b6a1c33 (billing_runs and audit_logs)
SCHEMA_DDL = """
CREATE TABLE tenants (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid VARCHAR(26) NOT NULL UNIQUE,
    name TEXT NOT NULL,
    config TEXT NOT NULL,
    config_version INTEGER NOT NULL DEFAULT 1,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL,
    deleted_at DATETIME
);

CREATE TABLE accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid VARCHAR(26) NOT NULL UNIQUE,
    tenant_id INTEGER NOT NULL REFERENCES tenants(id),
    unit_no VARCHAR(50) NOT NULL,
    wing VARCHAR(50) NOT NULL DEFAULT '',
    owner_name TEXT NOT NULL DEFAULT '',
    contact TEXT NOT NULL DEFAULT '',
    area VARCHAR(32) NOT NULL DEFAULT '0',
    opening_balance_paise INTEGER NOT NULL DEFAULT 0,
    ledger_seq INTEGER NOT NULL DEFAULT 0,
    ledger_tail_id INTEGER,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL,
    UNIQUE(tenant_id, wing, unit_no)
);

CREATE TABLE charge_rules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid VARCHAR(26) NOT NULL UNIQUE,
    tenant_id INTEGER NOT NULL REFERENCES tenants(id),
    name VARCHAR(100) NOT NULL,
    calculation_type VARCHAR(20) NOT NULL,
    amount VARCHAR(32) NOT NULL,
    is_active TINYINT NOT NULL DEFAULT 1,
    is_deleted TINYINT NOT NULL DEFAULT 0,
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL,
    deleted_at DATETIME
);

CREATE TABLE bills (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid VARCHAR(26) NOT NULL UNIQUE,
    tenant_id INTEGER NOT NULL REFERENCES tenants(id),
    account_id INTEGER NOT NULL REFERENCES accounts(id),
    period VARCHAR(7) NOT NULL,
    previous_balance_paise INTEGER NOT NULL DEFAULT 0,
    interest_paise INTEGER NOT NULL DEFAULT 0,
    subtotal_paise INTEGER NOT NULL DEFAULT 0,
    tax_paise INTEGER NOT NULL DEFAULT 0,
    total_paise INTEGER NOT NULL DEFAULT 0,
    amount_paid_paise INTEGER NOT NULL DEFAULT 0,
    balance_paise INTEGER NOT NULL DEFAULT 0,
    due_date TEXT NOT NULL,
    status VARCHAR(10) NOT NULL DEFAULT 'Unpaid',
    status_updated_at DATETIME,
    is_locked TINYINT NOT NULL DEFAULT 0,
    notes TEXT NOT NULL DEFAULT '',
    generated_at DATETIME NOT NULL,
    generated_by INTEGER,
    UNIQUE(account_id, period)
);

CREATE TABLE bill_charges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    bill_id INTEGER NOT NULL REFERENCES bills(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    amount_paise INTEGER NOT NULL,
    basis TEXT NOT NULL DEFAULT '',
    sort_order INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE ledger_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid VARCHAR(26) NOT NULL UNIQUE,
    tenant_id INTEGER NOT NULL REFERENCES tenants(id),
    account_id INTEGER NOT NULL REFERENCES accounts(id),
    seq INTEGER NOT NULL,
    entry_date TEXT NOT NULL,
    direction VARCHAR(6) NOT NULL,
    category VARCHAR(20) NOT NULL,
    amount_paise INTEGER NOT NULL CHECK (amount_paise > 0),
    balance_after_paise INTEGER NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    bill_id INTEGER REFERENCES bills(id),
    period VARCHAR(7),
    payment_mode VARCHAR(10),
    payment_details TEXT NOT NULL DEFAULT '{}',
    is_reversed TINYINT NOT NULL DEFAULT 0,
    reversal_of_id INTEGER REFERENCES ledger_entries(id),
    reversed_by_id INTEGER REFERENCES ledger_entries(id),
    financial_year VARCHAR(10) NOT NULL DEFAULT '',
    created_by INTEGER,
    created_at DATETIME NOT NULL,
    UNIQUE(account_id, seq)
);

CREATE TABLE payment_allocations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    payment_entry_id INTEGER NOT NULL REFERENCES ledger_entries(id),
    bill_id INTEGER NOT NULL REFERENCES bills(id),
    amount_paise INTEGER NOT NULL,
    created_at DATETIME NOT NULL
);

CREATE TABLE billing_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant_id INTEGER NOT NULL REFERENCES tenants(id),
    period VARCHAR(7) NOT NULL,
    status VARCHAR(12) NOT NULL,
    started_by INTEGER,
    bill_count INTEGER NOT NULL DEFAULT 0,
    error TEXT NOT NULL DEFAULT '',
    started_at DATETIME NOT NULL,
    finished_at DATETIME
);

CREATE TABLE audit_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid VARCHAR(26) NOT NULL UNIQUE,
    tenant_id INTEGER,
    event_type VARCHAR(50) NOT NULL,
    actor_id INTEGER,
    source VARCHAR(20) NOT NULL DEFAULT '',
    entity_type VARCHAR(50) NOT NULL DEFAULT '',
    entity_id INTEGER,
    entity_uuid VARCHAR(26) NOT NULL DEFAULT '',
    previous_state TEXT,
    new_state TEXT,
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at DATETIME NOT NULL
);
"""


@pytest.fixture()
def db_engine() -> Engine:
    engine = create_engine("sqlite:///:memory:")

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    return engine


@pytest.fixture()
def db_connection(db_engine: Engine) -> Connection:
    conn = db_engine.connect()
    for statement in SCHEMA_DDL.strip().split(";"):
        stmt = statement.strip()
        if stmt:
            conn.execute(text(stmt))
    conn.commit()
    yield conn
    conn.close()


def _sample_config(**overrides) -> TenantConfig:
    defaults = dict(
        maintenance_rate=Decimal("2"),
        sinking_fund_rate=Decimal("0.5"),
        interest_rate=Decimal("12"),
        interest_method=InterestMethod.SIMPLE,
        grace_period_days=10,
        bill_due_day=10,
    )
    defaults.update(overrides)
    return TenantConfig(**defaults)


def _sample_tenant(**overrides) -> Tenant:
    defaults = dict(name="Green Meadows CHS", config=_sample_config())
    defaults.update(overrides)
    return Tenant(**defaults)


def _sample_account(**overrides) -> Account:
    defaults = dict(
        tenant_id=1,
        unit_no="101",
        wing="A",
        owner_name="R. Sharma",
        area=Decimal("1000"),
        opening_balance=Decimal("0.00"),
    )
    defaults.update(overrides)
    return Account(**defaults)


def _sample_bill(**overrides) -> Bill:
    defaults = dict(
        tenant_id=1,
        account_id=1,
        period="2025-01",
        charges=[
            ChargeLine(name="Maintenance", amount=Decimal("2000.00"), basis="₹2.00/sq ft × 1000 sq ft"),
            ChargeLine(name="Sinking Fund", amount=Decimal("500.00"), basis="₹0.50/sq ft × 1000 sq ft"),
        ],
        subtotal=Decimal("2500.00"),
        total_amount=Decimal("2500.00"),
        due_date=date(2025, 1, 10),
    )
    defaults.update(overrides)
    return Bill(**defaults)


def _sample_entry(**overrides) -> LedgerEntry:
    defaults = dict(
        tenant_id=1,
        account_id=1,
        seq=1,
        entry_date=date(2025, 1, 1),
        direction=EntryDirection.DEBIT,
        category=EntryCategory.MAINTENANCE,
        amount=Decimal("2500.00"),
        balance_after=Decimal("2500.00"),
        description="Maintenance bill for Jan 2025",
        period="2025-01",
        financial_year="FY2024-25",
    )
    defaults.update(overrides)
    return LedgerEntry(**defaults)


@pytest.fixture()
def sample_config():
    return _sample_config


@pytest.fixture()
def sample_tenant():
    return _sample_tenant


@pytest.fixture()
def sample_account():
    return _sample_account


@pytest.fixture()
def sample_bill():
    return _sample_bill


@pytest.fixture()
def sample_entry():
    return _sample_entry
