from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class RunStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class BillingRun(BaseModel):
    """Marks a tenant-period generation batch; guards the charge rule set."""

    id: int | None = None
    tenant_id: int
    period: str
    status: RunStatus = RunStatus.IN_PROGRESS
    started_by: int | None = None
    bill_count: int = 0
    error: str = ""
    started_at: datetime | None = None
    finished_at: datetime | None = None
