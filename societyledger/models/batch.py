from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel

from societyledger.money import ZERO


class Outcome(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


class AccountOutcome(BaseModel):
    tenant_id: int
    account_id: int
    outcome: Outcome
    reason: str = ""
    amount: Decimal | None = None


class BatchReport(BaseModel):
    """Partial-success summary returned by batch jobs."""

    job: str
    outcomes: list[AccountOutcome] = []

    def record(
        self,
        tenant_id: int,
        account_id: int,
        outcome: Outcome,
        reason: str = "",
        amount: Decimal | None = None,
    ) -> AccountOutcome:
        item = AccountOutcome(
            tenant_id=tenant_id, account_id=account_id, outcome=outcome, reason=reason, amount=amount
        )
        self.outcomes.append(item)
        return item

    def _count(self, outcome: Outcome) -> int:
        return sum(1 for o in self.outcomes if o.outcome == outcome)

    @property
    def succeeded(self) -> int:
        return self._count(Outcome.SUCCEEDED)

    @property
    def skipped(self) -> int:
        return self._count(Outcome.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(Outcome.FAILED)

    @property
    def total_amount(self) -> Decimal:
        return sum((o.amount for o in self.outcomes if o.outcome == Outcome.SUCCEEDED and o.amount), ZERO)
