from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import Connection

from societyledger.constants import today as tenant_today
from societyledger.db import atomic
from societyledger.models.audit_log import AuditEventType
from societyledger.models.bill import BillStatus
from societyledger.repositories.base import BillRepository
from societyledger.services.audit_service import AuditService
from societyledger.services.bill_status import should_mark_overdue, transition

logger = logging.getLogger(__name__)


class OverdueService:
    """Daily sweep moving unsettled bills past their due date to Overdue.

    Separate from interest accrual. Running it twice in a day changes nothing
    the second time.
    """

    def __init__(self, conn: Connection, bill_repo: BillRepository, audit: AuditService | None = None) -> None:
        self.conn = conn
        self.bill_repo = bill_repo
        self.audit = audit

    def mark_overdue(self, today: date | None = None, tenant_id: int | None = None) -> int:
        day = today or tenant_today()
        marked: dict[int, list[int]] = {}
        with atomic(self.conn):
            for bill in self.bill_repo.list_open_past_due(day, tenant_id):
                if not should_mark_overdue(bill, day):
                    continue
                transition(bill.status, BillStatus.OVERDUE)
                # A concurrent payment may have moved the bill since it was read
                if self.bill_repo.update_status(bill.id, BillStatus.OVERDUE, expected=bill.status):
                    marked.setdefault(bill.tenant_id, []).append(bill.id)
                else:
                    logger.warning("Bill %s changed during overdue sweep; skipped", bill.id)

        count = sum(len(ids) for ids in marked.values())
        logger.info("Marked %d bills as overdue (as of %s)", count, day.isoformat())
        if self.audit is not None:
            for owner, bill_ids in marked.items():
                self.audit.safe_log(
                    AuditEventType.BILLS_MARK_OVERDUE,
                    tenant_id=owner,
                    source="cron",
                    entity_type="bill",
                    metadata={"bill_ids": bill_ids, "as_of": day.isoformat()},
                )
        return count
