from __future__ import annotations

from dataclasses import dataclass

from societyledger.repositories.factory import (
    get_account_repository,
    get_audit_log_repository,
    get_bill_repository,
    get_billing_run_repository,
    get_charge_rule_repository,
    get_ledger_repository,
    get_payment_allocation_repository,
    get_tenant_repository,
)
from societyledger.services.account_service import AccountService
from societyledger.services.audit_service import AuditService
from societyledger.services.bill_service import BillService
from societyledger.services.charge_rule_service import ChargeRuleService
from societyledger.services.events import EventBus
from societyledger.services.interest_service import InterestService
from societyledger.services.ledger_service import LedgerService
from societyledger.services.overdue_service import OverdueService
from societyledger.services.payment_service import PaymentService
from societyledger.services.tenant_service import TenantService


@dataclass
class Services:
    tenants: TenantService
    accounts: AccountService
    rules: ChargeRuleService
    ledger: LedgerService
    bills: BillService
    payments: PaymentService
    interest: InterestService
    overdue: OverdueService
    audit: AuditService
    events: EventBus


def build_services(events: EventBus | None = None) -> Services:
    """Wire every service onto the shared CLI/cron connection."""
    from societyledger.db import get_connection

    conn = get_connection()
    tenant_repo = get_tenant_repository()
    account_repo = get_account_repository()
    rule_repo = get_charge_rule_repository()
    ledger_repo = get_ledger_repository()
    bill_repo = get_bill_repository()
    allocation_repo = get_payment_allocation_repository()
    run_repo = get_billing_run_repository()
    audit = AuditService(get_audit_log_repository())
    events = events or EventBus()

    ledger = LedgerService(conn, ledger_repo, account_repo, bill_repo, allocation_repo, audit)
    return Services(
        tenants=TenantService(tenant_repo, audit),
        accounts=AccountService(account_repo, tenant_repo, audit),
        rules=ChargeRuleService(rule_repo, tenant_repo, run_repo, audit),
        ledger=ledger,
        bills=BillService(conn, tenant_repo, account_repo, rule_repo, bill_repo, run_repo, ledger, audit, events),
        payments=PaymentService(conn, account_repo, bill_repo, allocation_repo, ledger, audit, events),
        interest=InterestService(conn, tenant_repo, account_repo, ledger_repo, ledger, audit, events),
        overdue=OverdueService(conn, bill_repo, audit),
        audit=audit,
        events=events,
    )
