from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from maintenance_hub.api.deps import require_role
from maintenance_hub.domain.models import AuditLogRead, Role
from maintenance_hub.infra.audit import AuditSink, audit_sink

router = APIRouter(dependencies=[Depends(require_role(Role.ADMIN))])


def get_audit_sink() -> AuditSink:
    return audit_sink


Sink = Annotated[AuditSink, Depends(get_audit_sink)]


@router.get("", response_model=list[AuditLogRead], response_model_by_alias=True)
def list_audit_logs(
    sink: Sink,
    entity: str | None = None,
    entity_id: str | None = None,
    user_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> list[AuditLogRead]:
    rows = sink.list_logs(entity=entity, entity_id=entity_id, user_id=user_id, limit=limit)
    return [AuditLogRead.model_validate(row) for row in rows]
