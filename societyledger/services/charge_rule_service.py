from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

from societyledger.constants import now as tenant_now
from societyledger.exceptions import (
    ChargeRuleNotFound,
    DuplicateChargeRule,
    GenerationInProgress,
    TenantNotFound,
    ValidationError,
)
from societyledger.models.audit_log import AuditEventType
from societyledger.models.charge_rule import CalculationType, ChargeRule
from societyledger.money import to_decimal
from societyledger.repositories.base import BillingRunRepository, ChargeRuleRepository, TenantRepository
from societyledger.services.audit_serializers import serialize_charge_rule
from societyledger.services.audit_service import AuditService
from societyledger.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_RULES = [
    ("Maintenance", CalculationType.PER_AREA_UNIT, Decimal("2")),
    ("Sinking Fund", CalculationType.PER_AREA_UNIT, Decimal("0.5")),
    ("Parking Charges", CalculationType.FIXED, Decimal("500")),
]

EDITABLE_FIELDS = {"name", "calculation_type", "amount", "is_active", "order"}


def _calculation_type(value: CalculationType | str) -> CalculationType:
    try:
        return CalculationType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in CalculationType)
        raise ValidationError(f"Unknown calculation type {value!r}; expected one of {allowed}") from None


class ChargeRuleService:
    """Configuration of a tenant's charge rules.

    Edits are refused while a bill generation batch for the tenant is running,
    so a batch never sees the rule set change under it.
    """

    def __init__(
        self,
        repo: ChargeRuleRepository,
        tenant_repo: TenantRepository,
        run_repo: BillingRunRepository,
        audit: AuditService | None = None,
    ) -> None:
        self.repo = repo
        self.tenant_repo = tenant_repo
        self.run_repo = run_repo
        self.audit = audit

    def _ensure_no_active_run(self, tenant_id: int) -> None:
        since = tenant_now() - timedelta(seconds=settings.billing_run_timeout_seconds)
        run = self.run_repo.active_for_tenant(tenant_id, since)
        if run is not None:
            logger.warning("Charge rule edit rejected: tenant=%s generating %s", tenant_id, run.period)
            raise GenerationInProgress(tenant_id, run.period)

    def _validate(self, name: str, amount: Decimal, calculation_type: CalculationType) -> None:
        if not name:
            raise ValidationError("Charge rule name is required")
        if amount < 0:
            raise ValidationError("Charge rule amount cannot be negative")
        if calculation_type == CalculationType.PERCENTAGE and amount > 100:
            raise ValidationError("Percentage cannot exceed 100")

    def _audit(self, event_type: str, rule: ChargeRule, actor_id: int | None, source: str, before=None) -> None:
        if self.audit is None:
            return
        self.audit.safe_log(
            event_type,
            tenant_id=rule.tenant_id,
            actor_id=actor_id,
            source=source,
            entity_type="charge_rule",
            entity_id=rule.id,
            entity_uuid=rule.uuid,
            previous_state=serialize_charge_rule(before) if before is not None else None,
            new_state=serialize_charge_rule(rule),
        )

    def create_rule(
        self,
        tenant_id: int,
        name: str,
        calculation_type: CalculationType | str,
        amount: Decimal | int | str,
        is_active: bool = True,
        order: int | None = None,
        actor_id: int | None = None,
        source: str = "",
    ) -> ChargeRule:
        if self.tenant_repo.get_by_id(tenant_id) is None:
            raise TenantNotFound(tenant_id)
        name = name.strip()
        calculation_type = _calculation_type(calculation_type)
        value = to_decimal(amount)
        self._validate(name, value, calculation_type)
        if self.repo.get_by_name(tenant_id, name) is not None:
            raise DuplicateChargeRule(name)
        self._ensure_no_active_run(tenant_id)

        if order is None:
            highest = self.repo.max_order(tenant_id)
            order = 0 if highest is None else highest + 1
        result = self.repo.create(
            ChargeRule(
                tenant_id=tenant_id,
                name=name,
                calculation_type=calculation_type,
                amount=value,
                is_active=is_active,
                order=order,
            )
        )
        logger.info(
            "Charge rule created: id=%s tenant=%s name=%s type=%s amount=%s",
            result.id,
            tenant_id,
            result.name,
            result.calculation_type.value,
            result.amount,
        )
        self._audit(AuditEventType.CHARGE_RULE_CREATE, result, actor_id, source)
        return result

    def get_rule(self, rule_id: int) -> ChargeRule:
        result = self.repo.get_by_id(rule_id)
        if result is None or result.is_deleted:
            raise ChargeRuleNotFound(rule_id)
        return result

    def list_rules(self, tenant_id: int, include_deleted: bool = False) -> list[ChargeRule]:
        result = self.repo.list_by_tenant(tenant_id, include_deleted)
        logger.debug("Listed %d charge rules for tenant=%s", len(result), tenant_id)
        return result

    def get_charge_rules(self, tenant_id: int) -> list[ChargeRule]:
        """Active rules in evaluation order."""
        return self.repo.list_active(tenant_id)

    def update_rule(self, rule_id: int, actor_id: int | None = None, source: str = "", **changes) -> ChargeRule:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")
        before = self.get_rule(rule_id)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        if "calculation_type" in changes:
            changes["calculation_type"] = _calculation_type(changes["calculation_type"])
        if "amount" in changes:
            changes["amount"] = to_decimal(changes["amount"])
        updated = before.model_copy(update=changes)
        self._validate(updated.name, updated.amount, updated.calculation_type)
        if updated.name != before.name:
            clash = self.repo.get_by_name(before.tenant_id, updated.name)
            if clash is not None and clash.id != rule_id:
                raise DuplicateChargeRule(updated.name)
        self._ensure_no_active_run(before.tenant_id)

        result = self.repo.update(updated)
        logger.info("Charge rule updated: id=%s fields=%s", rule_id, sorted(changes))
        self._audit(AuditEventType.CHARGE_RULE_UPDATE, result, actor_id, source, before)
        return result

    def archive_rule(self, rule_id: int, actor_id: int | None = None, source: str = "") -> ChargeRule:
        """Soft-delete. Archived rules no longer bill and free up their name."""
        before = self.get_rule(rule_id)
        self._ensure_no_active_run(before.tenant_id)
        self.repo.archive(rule_id)
        result = self.repo.get_by_id(rule_id)
        if result is None:  # pragma: no cover
            raise ChargeRuleNotFound(rule_id)
        logger.info("Charge rule %s archived", rule_id)
        self._audit(AuditEventType.CHARGE_RULE_ARCHIVE, result, actor_id, source, before)
        return result

    def setup_defaults(self, tenant_id: int, actor_id: int | None = None, source: str = "") -> list[ChargeRule]:
        """Seed the standard rule set for a tenant that has never had rules."""
        if self.tenant_repo.get_by_id(tenant_id) is None:
            raise TenantNotFound(tenant_id)
        if self.repo.count_by_tenant(tenant_id) > 0:
            raise ValidationError("Charge rules already exist for this tenant")
        created = [
            self.create_rule(tenant_id, name, calculation_type, amount, order=i, actor_id=actor_id, source=source)
            for i, (name, calculation_type, amount) in enumerate(DEFAULT_RULES)
        ]
        logger.info("Default charge rules created for tenant %s: %d", tenant_id, len(created))
        return created
