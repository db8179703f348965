from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class Account(BaseModel):
    """One payable unit (flat/member) within a tenant."""

    id: int | None = None
    uuid: str = ""
    tenant_id: int
    unit_no: str
    wing: str = ""
    owner_name: str = ""
    contact: str = ""
    area: Decimal = Field(default=Decimal("0"), ge=0)  # sq ft
    opening_balance: Decimal = Decimal("0.00")  # positive = owed
    ledger_seq: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def label(self) -> str:
        if self.wing:
            return f"{self.wing}-{self.unit_no}"
        return self.unit_no
