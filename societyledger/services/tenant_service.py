from __future__ import annotations

import logging

import pydantic

from societyledger.exceptions import TenantNotFound, ValidationError
from societyledger.models.audit_log import AuditEventType
from societyledger.models.tenant import Tenant, TenantConfig
from societyledger.repositories.base import TenantRepository
from societyledger.services.audit_serializers import serialize_tenant
from societyledger.services.audit_service import AuditService
from societyledger.settings import settings

logger = logging.getLogger(__name__)


def build_config(data: TenantConfig | dict | None) -> TenantConfig:
    """Validate raw config input, filling grace/due-day defaults from settings."""
    if isinstance(data, TenantConfig):
        return data
    values = {
        "grace_period_days": settings.default_grace_period_days,
        "bill_due_day": settings.default_bill_due_day,
        **(data or {}),
    }
    try:
        return TenantConfig.model_validate(values)
    except pydantic.ValidationError as exc:
        errors = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors())
        raise ValidationError(f"Invalid tenant config: {errors}") from exc


class TenantService:
    def __init__(self, repo: TenantRepository, audit: AuditService | None = None) -> None:
        self.repo = repo
        self.audit = audit

    def create_tenant(
        self, name: str, config: TenantConfig | dict | None = None, actor_id: int | None = None, source: str = ""
    ) -> Tenant:
        name = name.strip()
        if not name:
            raise ValidationError("Tenant name is required")
        result = self.repo.create(Tenant(name=name, config=build_config(config)))
        logger.info("Tenant created: id=%s, name=%s", result.id, result.name)
        if self.audit is not None:
            self.audit.safe_log(
                AuditEventType.TENANT_CREATE,
                tenant_id=result.id,
                actor_id=actor_id,
                source=source,
                entity_type="tenant",
                entity_id=result.id,
                entity_uuid=result.uuid,
                new_state=serialize_tenant(result),
            )
        return result

    def get_tenant(self, tenant_id: int) -> Tenant:
        result = self.repo.get_by_id(tenant_id)
        logger.debug("get_tenant id=%s found=%s", tenant_id, result is not None)
        if result is None:
            raise TenantNotFound(tenant_id)
        return result

    def get_tenant_by_uuid(self, uuid: str) -> Tenant:
        result = self.repo.get_by_uuid(uuid)
        if result is None:
            raise TenantNotFound(uuid)
        return result

    def get_config(self, tenant_id: int) -> TenantConfig:
        return self.get_tenant(tenant_id).config

    def list_tenants(self) -> list[Tenant]:
        result = self.repo.list_all()
        logger.debug("Listed %d tenants", len(result))
        return result

    def update_config(
        self,
        tenant_id: int,
        changes: TenantConfig | dict,
        actor_id: int | None = None,
        source: str = "",
    ) -> Tenant:
        """Replace (TenantConfig) or patch (dict) the tenant's billing config."""
        before = self.get_tenant(tenant_id)
        if isinstance(changes, TenantConfig):
            config = changes
        else:
            config = build_config({**before.config.model_dump(), **changes})
        result = self.repo.update_config(tenant_id, config)
        logger.info("Tenant config updated: id=%s version=%s", tenant_id, result.config_version)
        if self.audit is not None:
            self.audit.safe_log(
                AuditEventType.TENANT_UPDATE_CONFIG,
                tenant_id=tenant_id,
                actor_id=actor_id,
                source=source,
                entity_type="tenant",
                entity_id=tenant_id,
                entity_uuid=result.uuid,
                previous_state=serialize_tenant(before),
                new_state=serialize_tenant(result),
            )
        return result
