from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class CalculationType(str, Enum):
    FIXED = "Fixed"
    PER_AREA_UNIT = "PerAreaUnit"
    PERCENTAGE = "Percentage"


class ChargeRule(BaseModel):
    id: int | None = None
    uuid: str = ""
    tenant_id: int
    name: str
    calculation_type: CalculationType
    amount: Decimal = Field(ge=0)  # fixed amount, per-unit rate or percent
    is_active: bool = True
    is_deleted: bool = False
    order: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
