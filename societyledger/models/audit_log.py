from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class AuditEventType:
    """String constants for all audit event types."""

    # Tenant events
    TENANT_CREATE = "tenant.create"
    TENANT_UPDATE_CONFIG = "tenant.update_config"

    # Account events
    ACCOUNT_CREATE = "account.create"
    ACCOUNT_CORRECT = "account.correct"

    # Charge rule events
    CHARGE_RULE_CREATE = "charge_rule.create"
    CHARGE_RULE_UPDATE = "charge_rule.update"
    CHARGE_RULE_ARCHIVE = "charge_rule.archive"

    # Bill events
    BILLS_GENERATE = "bill.generate"
    BILL_REVISE = "bill.revise"
    BILLS_LOCK = "bill.lock"
    BILLS_MARK_OVERDUE = "bill.mark_overdue"

    # Ledger events
    PAYMENT_RECORD = "ledger.payment"
    ENTRY_REVERSE = "ledger.reverse"
    INTEREST_APPLY = "ledger.interest"


class AuditLog(BaseModel):
    id: int | None = None
    uuid: str = ""
    tenant_id: int | None = None
    event_type: str
    actor_id: int | None = None
    source: str = ""  # 'cli', 'cron' or the embedding service
    entity_type: str = ""
    entity_id: int | None = None
    entity_uuid: str = ""
    previous_state: dict | None = None  # JSON (None for creates)
    new_state: dict | None = None
    metadata: dict = {}
    created_at: datetime | None = None
