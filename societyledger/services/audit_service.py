from __future__ import annotations

import logging

from societyledger.models.audit_log import AuditLog
from societyledger.repositories.base import AuditLogRepository

logger = logging.getLogger(__name__)


class AuditService:
    """Append-only trail of engine commands, one row per command."""

    def __init__(self, repo: AuditLogRepository) -> None:
        self.repo = repo

    def log(
        self,
        event_type: str,
        *,
        tenant_id: int | None = None,
        actor_id: int | None = None,
        source: str = "",
        entity_type: str = "",
        entity_id: int | None = None,
        entity_uuid: str = "",
        previous_state: dict | None = None,
        new_state: dict | None = None,
        metadata: dict | None = None,
    ) -> AuditLog:
        """Create an audit log entry. Raises on failure."""
        audit_log = AuditLog(
            tenant_id=tenant_id,
            event_type=event_type,
            actor_id=actor_id,
            source=source,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_uuid=entity_uuid,
            previous_state=previous_state,
            new_state=new_state,
            metadata=metadata or {},
        )
        result = self.repo.create(audit_log)
        logger.info(
            "Audit logged: event=%s tenant=%s actor=%s entity=%s/%s",
            event_type,
            tenant_id,
            actor_id,
            entity_type,
            entity_id,
        )
        return result

    def safe_log(self, event_type: str, **fields) -> AuditLog | None:
        """Like ``log`` but never fails the command that is being audited."""
        try:
            return self.log(event_type, **fields)
        except Exception:
            logger.exception("Failed to write audit log: event=%s tenant=%s", event_type, fields.get("tenant_id"))
            return None

    def list_by_entity(self, entity_type: str, entity_id: int) -> list[AuditLog]:
        return self.repo.list_by_entity(entity_type, entity_id)

    def list_by_tenant(self, tenant_id: int, limit: int = 50) -> list[AuditLog]:
        return self.repo.list_by_tenant(tenant_id, limit)
