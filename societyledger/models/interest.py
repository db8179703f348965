from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from societyledger.money import ZERO


class Outstanding(BaseModel):
    """Read-only view of what an account owes today, with projected interest."""

    account_id: int
    principal: Decimal = ZERO
    interest: Decimal = ZERO
    days_overdue: int = 0
    due_date: date | None = None
    grace_end: date | None = None
    message: str = ""

    @property
    def total(self) -> Decimal:
        return self.principal + self.interest
