from __future__ import annotations

import logging
from decimal import Decimal

from societyledger.exceptions import AccountNotFound, TenantNotFound, ValidationError
from societyledger.models.account import Account
from societyledger.models.audit_log import AuditEventType
from societyledger.money import quantize, to_decimal
from societyledger.repositories.base import AccountRepository, TenantRepository
from societyledger.services.audit_serializers import serialize_account
from societyledger.services.audit_service import AuditService

logger = logging.getLogger(__name__)

CORRECTABLE_FIELDS = {"unit_no", "wing", "owner_name", "contact", "area", "opening_balance"}


class AccountService:
    def __init__(
        self, repo: AccountRepository, tenant_repo: TenantRepository, audit: AuditService | None = None
    ) -> None:
        self.repo = repo
        self.tenant_repo = tenant_repo
        self.audit = audit

    def create_account(
        self,
        tenant_id: int,
        unit_no: str,
        area: Decimal | int | str,
        wing: str = "",
        owner_name: str = "",
        contact: str = "",
        opening_balance: Decimal | int | str = 0,
        actor_id: int | None = None,
        source: str = "",
    ) -> Account:
        if self.tenant_repo.get_by_id(tenant_id) is None:
            raise TenantNotFound(tenant_id)
        unit_no = unit_no.strip()
        if not unit_no:
            raise ValidationError("Unit number is required")
        area_value = to_decimal(area)
        if area_value < 0:
            raise ValidationError("Area cannot be negative")
        label = f"{wing}-{unit_no}" if wing else unit_no
        if any(a.label == label for a in self.repo.list_by_tenant(tenant_id)):
            raise ValidationError(f"Unit {label} already exists")

        result = self.repo.create(
            Account(
                tenant_id=tenant_id,
                unit_no=unit_no,
                wing=wing.strip(),
                owner_name=owner_name.strip(),
                contact=contact.strip(),
                area=area_value,
                opening_balance=quantize(to_decimal(opening_balance)),
            )
        )
        logger.info("Account created: id=%s, tenant=%s, unit=%s", result.id, tenant_id, result.label)
        if self.audit is not None:
            self.audit.safe_log(
                AuditEventType.ACCOUNT_CREATE,
                tenant_id=tenant_id,
                actor_id=actor_id,
                source=source,
                entity_type="account",
                entity_id=result.id,
                entity_uuid=result.uuid,
                new_state=serialize_account(result),
            )
        return result

    def get_account(self, account_id: int) -> Account:
        result = self.repo.get_by_id(account_id)
        logger.debug("get_account id=%s found=%s", account_id, result is not None)
        if result is None:
            raise AccountNotFound(account_id)
        return result

    def list_accounts(self, tenant_id: int) -> list[Account]:
        result = self.repo.list_by_tenant(tenant_id)
        logger.debug("Listed %d accounts for tenant=%s", len(result), tenant_id)
        return result

    def correct_account(self, account_id: int, actor_id: int | None = None, source: str = "", **changes) -> Account:
        """Administrative correction of account master data.

        The opening balance seeds the running balance, so it is frozen once the
        account has ledger entries.
        """
        unknown = set(changes) - CORRECTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot correct field(s): {', '.join(sorted(unknown))}")
        before = self.get_account(account_id)
        if "opening_balance" in changes:
            changes["opening_balance"] = quantize(to_decimal(changes["opening_balance"]))
            if before.ledger_seq > 0 and changes["opening_balance"] != before.opening_balance:
                raise ValidationError("Opening balance cannot change after ledger entries exist")
        if "area" in changes:
            changes["area"] = to_decimal(changes["area"])
            if changes["area"] < 0:
                raise ValidationError("Area cannot be negative")

        result = self.repo.update(before.model_copy(update=changes))
        logger.info("Account corrected: id=%s fields=%s", account_id, sorted(changes))
        if self.audit is not None:
            self.audit.safe_log(
                AuditEventType.ACCOUNT_CORRECT,
                tenant_id=result.tenant_id,
                actor_id=actor_id,
                source=source,
                entity_type="account",
                entity_id=result.id,
                entity_uuid=result.uuid,
                previous_state=serialize_account(before),
                new_state=serialize_account(result),
            )
        return result
