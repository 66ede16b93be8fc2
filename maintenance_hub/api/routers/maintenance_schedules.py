from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from maintenance_hub.api.deps import CurrentActor, get_current_claims, read_upload, require_role
from maintenance_hub.api.errors import handle_service_error
from maintenance_hub.domain.models import (
    MaintenanceCompleteRequest,
    MaintenanceScheduleCreate,
    MaintenanceScheduleDetailRead,
    MaintenanceScheduleListItemRead,
    MaintenanceScheduleListRead,
    MaintenanceScheduleRead,
    MaintenanceScheduleUpdate,
    MaintenanceStatsRead,
    MaintenanceType,
    Role,
)
from maintenance_hub.domain.permissions import SCHEDULE_WRITE_ROLES
from maintenance_hub.domain.state_machine import ScheduleStatus
from maintenance_hub.services.errors import MaintenanceHubError
from maintenance_hub.services.maintenance_schedule_service import MaintenanceScheduleService

router = APIRouter()


def get_schedule_service() -> MaintenanceScheduleService:
    return MaintenanceScheduleService()


Service = Annotated[MaintenanceScheduleService, Depends(get_schedule_service)]


@router.get("", response_model=MaintenanceScheduleListRead, dependencies=[Depends(get_current_claims)])
def list_schedules(
    service: Service,
    status: ScheduleStatus | None = None,
    machine_id: str | None = None,
    technician_id: str | None = None,
    maintenance_type: MaintenanceType | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    search: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> MaintenanceScheduleListRead:
    return service.list_schedules(
        status=status,
        machine_id=machine_id,
        technician_id=technician_id,
        maintenance_type=maintenance_type,
        start_date=start_date,
        end_date=end_date,
        search=search,
        page=page,
        limit=limit,
    )


@router.get(
    "/overdue",
    response_model=list[MaintenanceScheduleListItemRead],
    dependencies=[Depends(get_current_claims)],
)
def list_overdue(service: Service) -> list[MaintenanceScheduleListItemRead]:
    return service.list_overdue()


@router.get("/stats", response_model=MaintenanceStatsRead, dependencies=[Depends(get_current_claims)])
def stats(
    service: Service,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> MaintenanceStatsRead:
    return service.stats(start_date=start_date, end_date=end_date)


@router.get(
    "/{schedule_id}",
    response_model=MaintenanceScheduleDetailRead,
    dependencies=[Depends(get_current_claims)],
)
def get_schedule(schedule_id: str, service: Service) -> MaintenanceScheduleDetailRead:
    try:
        return service.get_schedule(schedule_id)
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.post(
    "",
    response_model=MaintenanceScheduleRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_role(*SCHEDULE_WRITE_ROLES))],
)
def create_schedule(
    payload: MaintenanceScheduleCreate,
    actor: CurrentActor,
    service: Service,
) -> MaintenanceScheduleRead:
    try:
        return MaintenanceScheduleRead.model_validate(service.create_schedule(actor, payload))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.put(
    "/{schedule_id}",
    response_model=MaintenanceScheduleRead,
    dependencies=[Depends(require_role(*SCHEDULE_WRITE_ROLES))],
)
def update_schedule(
    schedule_id: str,
    payload: MaintenanceScheduleUpdate,
    actor: CurrentActor,
    service: Service,
) -> MaintenanceScheduleRead:
    try:
        return MaintenanceScheduleRead.model_validate(service.update_schedule(actor, schedule_id, payload))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.post(
    "/{schedule_id}/complete",
    response_model=MaintenanceScheduleRead,
    dependencies=[Depends(require_role(*SCHEDULE_WRITE_ROLES))],
)
def complete_schedule(
    schedule_id: str,
    actor: CurrentActor,
    service: Service,
    completion_notes: Annotated[str | None, Form()] = None,
    actual_cost: Annotated[Decimal | None, Form(ge=0)] = None,
    files: Annotated[list[UploadFile] | None, File()] = None,
) -> MaintenanceScheduleRead:
    payload = MaintenanceCompleteRequest(completion_notes=completion_notes, actual_cost=actual_cost)
    uploads = [read_upload(item) for item in files or []]
    try:
        schedule = service.complete_schedule(actor, schedule_id, payload, uploads)
        return MaintenanceScheduleRead.model_validate(schedule)
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.delete(
    "/{schedule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def delete_schedule(schedule_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_schedule(actor, schedule_id)
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)
