from __future__ import annotations

import logging
from typing import Any

from sqlmodel import Session, col, select

from maintenance_hub.domain.models import AuditAction, AuditLog
from maintenance_hub.domain.permissions import Actor
from maintenance_hub.infra.db import get_engine

logger = logging.getLogger(__name__)


def write_audit_log(
    *,
    user_id: str | None,
    action: str,
    entity: str,
    entity_id: str | None,
    details: str | None = None,
    meta: dict[str, Any] | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    log = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=entity_id,
        details=details,
        meta=meta or {},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    with Session(get_engine()) as session:
        session.add(log)
        session.commit()


class AuditSink:
    """Append-only audit trail written after the primary mutation has committed.

    ``record`` never raises: a failed write is logged and reported as ``False``
    so the caller's operation stands.
    """

    def record(
        self,
        actor: Actor | None,
        action: AuditAction | str,
        entity: str,
        entity_id: str | None,
        details: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> bool:
        try:
            write_audit_log(
                user_id=actor.id if actor is not None else None,
                action=str(action),
                entity=entity,
                entity_id=entity_id,
                details=details,
                meta=meta,
                ip_address=actor.ip_address if actor is not None else None,
                user_agent=actor.user_agent if actor is not None else None,
            )
        except Exception:
            logger.warning(
                "audit log write failed",
                exc_info=True,
                extra={"audit_action": str(action), "entity": entity, "entity_id": entity_id},
            )
            return False
        return True

    def list_logs(
        self,
        *,
        entity: str | None = None,
        entity_id: str | None = None,
        user_id: str | None = None,
        limit: int = 100,
    ) -> list[AuditLog]:
        with Session(get_engine(), expire_on_commit=False) as session:
            statement = select(AuditLog)
            if entity is not None:
                statement = statement.where(AuditLog.entity == entity)
            if entity_id is not None:
                statement = statement.where(AuditLog.entity_id == entity_id)
            if user_id is not None:
                statement = statement.where(AuditLog.user_id == user_id)
            statement = statement.order_by(col(AuditLog.created_at).desc()).limit(limit)
            return list(session.exec(statement).all())


audit_sink = AuditSink()
