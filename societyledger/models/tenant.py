from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class InterestMethod(str, Enum):
    SIMPLE = "SIMPLE"
    COMPOUND = "COMPOUND"


class CompoundingFrequency(str, Enum):
    MONTHLY = "MONTHLY"
    DAILY = "DAILY"


class FixedCharges(BaseModel):
    water: Decimal = Field(default=Decimal("0"), ge=0)
    security: Decimal = Field(default=Decimal("0"), ge=0)
    electricity: Decimal = Field(default=Decimal("0"), ge=0)


class TenantConfig(BaseModel):
    """Per-tenant billing parameters. Read-only input to every calculation."""

    maintenance_rate: Decimal = Field(default=Decimal("0"), ge=0)  # per area unit
    sinking_fund_rate: Decimal = Field(default=Decimal("0"), ge=0)
    repair_fund_rate: Decimal = Field(default=Decimal("0"), ge=0)
    fixed_charges: FixedCharges = Field(default_factory=FixedCharges)

    # None means "not configured", which blocks interest accrual
    interest_rate: Decimal | None = Field(default=None, ge=0, le=100)
    interest_method: InterestMethod = InterestMethod.COMPOUND
    compounding_frequency: CompoundingFrequency = CompoundingFrequency.MONTHLY

    grace_period_days: int = Field(default=10, ge=0)
    bill_due_day: int = Field(default=10, ge=1, le=31)
    service_tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)

    def missing_interest_fields(self) -> list[str]:
        if self.interest_rate is None:
            return ["interest_rate"]
        return []


class Tenant(BaseModel):
    id: int | None = None
    uuid: str = ""
    name: str
    config: TenantConfig = Field(default_factory=TenantConfig)
    config_version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
