from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, UploadFile, status

from maintenance_hub.api.deps import CurrentActor, get_current_claims, read_upload, require_role
from maintenance_hub.api.errors import handle_service_error
from maintenance_hub.domain.models import (
    MachineCreate,
    MachineListRead,
    MachineRead,
    MachineStatus,
    MachineStatusUpdate,
    MachineUpdate,
    Role,
)
from maintenance_hub.domain.permissions import MACHINE_WRITE_ROLES
from maintenance_hub.services.errors import MaintenanceHubError
from maintenance_hub.services.machine_service import MachineService

router = APIRouter()


def get_machine_service() -> MachineService:
    return MachineService()


Service = Annotated[MachineService, Depends(get_machine_service)]


@router.get("", response_model=MachineListRead, dependencies=[Depends(get_current_claims)])
def list_machines(
    service: Service,
    status: MachineStatus | None = None,
    department: str | None = None,
    search: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> MachineListRead:
    return service.list_machines(status=status, department=department, search=search, page=page, limit=limit)


@router.get("/{machine_id}", response_model=MachineRead, dependencies=[Depends(get_current_claims)])
def get_machine(machine_id: str, service: Service) -> MachineRead:
    try:
        return MachineRead.model_validate(service.get_machine(machine_id))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.post(
    "",
    response_model=MachineRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_role(*MACHINE_WRITE_ROLES))],
)
def create_machine(payload: MachineCreate, actor: CurrentActor, service: Service) -> MachineRead:
    try:
        return MachineRead.model_validate(service.create_machine(actor, payload))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.put(
    "/{machine_id}",
    response_model=MachineRead,
    dependencies=[Depends(require_role(*MACHINE_WRITE_ROLES))],
)
def update_machine(machine_id: str, payload: MachineUpdate, actor: CurrentActor, service: Service) -> MachineRead:
    try:
        return MachineRead.model_validate(service.update_machine(actor, machine_id, payload))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.patch(
    "/{machine_id}/status",
    response_model=MachineRead,
    dependencies=[Depends(require_role(*MACHINE_WRITE_ROLES))],
)
def update_machine_status(
    machine_id: str,
    payload: MachineStatusUpdate,
    actor: CurrentActor,
    service: Service,
) -> MachineRead:
    try:
        return MachineRead.model_validate(service.update_machine_status(actor, machine_id, payload))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.post(
    "/{machine_id}/image",
    response_model=MachineRead,
    dependencies=[Depends(require_role(*MACHINE_WRITE_ROLES))],
)
def upload_machine_image(machine_id: str, image: UploadFile, actor: CurrentActor, service: Service) -> MachineRead:
    try:
        return MachineRead.model_validate(service.set_machine_image(actor, machine_id, read_upload(image)))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.delete(
    "/{machine_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def delete_machine(machine_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_machine(actor, machine_id)
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)
