from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status

from maintenance_hub.api.deps import CurrentActor, read_upload, require_role
from maintenance_hub.api.errors import handle_service_error
from maintenance_hub.domain.models import (
    FileAttachmentRead,
    ReportCreate,
    ReportDetailRead,
    ReportListRead,
    ReportUpdate,
    Role,
)
from maintenance_hub.domain.permissions import REPORT_DELETE_ROLES
from maintenance_hub.domain.state_machine import ReportStatus
from maintenance_hub.services.errors import MaintenanceHubError
from maintenance_hub.services.report_service import ReportService

router = APIRouter()


def get_report_service() -> ReportService:
    return ReportService()


Service = Annotated[ReportService, Depends(get_report_service)]


@router.post(
    "",
    response_model=ReportDetailRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_role(Role.TECHNICIAN))],
)
def create_report(payload: ReportCreate, actor: CurrentActor, service: Service) -> ReportDetailRead:
    try:
        return service.create_report(actor, payload)
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.get("", response_model=ReportListRead)
def list_reports(
    actor: CurrentActor,
    service: Service,
    status: ReportStatus | None = None,
    machine_id: str | None = None,
    technician_id: str | None = None,
    work_date: date | None = None,
    search: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> ReportListRead:
    return service.list_reports(
        actor,
        status=status,
        machine_id=machine_id,
        technician_id=technician_id,
        work_date=work_date,
        search=search,
        page=page,
        limit=limit,
    )


@router.get("/{report_id}", response_model=ReportDetailRead)
def get_report(report_id: str, actor: CurrentActor, service: Service) -> ReportDetailRead:
    try:
        return service.get_report(actor, report_id)
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.put("/{report_id}", response_model=ReportDetailRead)
def update_report(report_id: str, payload: ReportUpdate, actor: CurrentActor, service: Service) -> ReportDetailRead:
    try:
        return service.update_report(actor, report_id, payload)
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.patch(
    "/{report_id}/submit",
    response_model=ReportDetailRead,
    dependencies=[Depends(require_role(Role.TECHNICIAN))],
)
def submit_report(report_id: str, actor: CurrentActor, service: Service) -> ReportDetailRead:
    try:
        return service.submit_report(actor, report_id)
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.post(
    "/{report_id}/attachments",
    response_model=list[FileAttachmentRead],
    status_code=status.HTTP_201_CREATED,
)
def add_attachments(
    report_id: str,
    actor: CurrentActor,
    service: Service,
    files: Annotated[list[UploadFile], File()],
) -> list[FileAttachmentRead]:
    uploads = [read_upload(item) for item in files]
    try:
        rows = service.add_attachments(actor, report_id, uploads)
        return [service.attachments.to_read(row) for row in rows]
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.delete(
    "/{report_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_role(*REPORT_DELETE_ROLES))],
)
def delete_report(report_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_report(actor, report_id)
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)
