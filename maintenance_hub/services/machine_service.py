from __future__ import annotations

import math

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from maintenance_hub.domain.models import (
    AttachmentFileType,
    AuditAction,
    Machine,
    MachineCreate,
    MachineListRead,
    MachineRead,
    MachineStatus,
    MachineStatusUpdate,
    MachineUpdate,
    MaintenanceSchedule,
    Pagination,
    Report,
    now_utc,
)
from maintenance_hub.domain.permissions import Actor
from maintenance_hub.infra.audit import AuditSink, audit_sink
from maintenance_hub.infra.db import get_engine
from maintenance_hub.services.attachment_service import AttachmentService, UploadedFile
from maintenance_hub.services.errors import ConflictError, NotFoundError, ValidationError

ENTITY = "Machine"


class MachineService:
    def __init__(
        self,
        attachments: AttachmentService | None = None,
        audit: AuditSink | None = None,
    ) -> None:
        self.attachments = attachments or AttachmentService()
        self.audit = audit or audit_sink

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_machine(self, session: Session, machine_id: str) -> Machine:
        machine = session.get(Machine, machine_id)
        if machine is None:
            raise NotFoundError("machine not found")
        return machine

    def _ensure_unique(self, session: Session, *, reference: str | None, serial_number: str | None, exclude_id: str | None = None) -> None:
        if reference:
            statement = select(Machine).where(Machine.reference == reference)
            if exclude_id is not None:
                statement = statement.where(Machine.id != exclude_id)
            if session.exec(statement).first() is not None:
                raise ConflictError("machine reference already exists")
        if serial_number:
            statement = select(Machine).where(Machine.serial_number == serial_number)
            if exclude_id is not None:
                statement = statement.where(Machine.id != exclude_id)
            if session.exec(statement).first() is not None:
                raise ConflictError("machine serial number already exists")

    def list_machines(
        self,
        *,
        status: MachineStatus | None = None,
        department: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> MachineListRead:
        page = max(page, 1)
        limit = max(limit, 1)
        with self._session() as session:
            statement = select(Machine)
            if status is not None:
                statement = statement.where(Machine.status == status)
            if department is not None:
                statement = statement.where(Machine.department == department)
            if search:
                pattern = f"%{search.strip()}%"
                statement = statement.where(
                    or_(
                        col(Machine.name).ilike(pattern),
                        col(Machine.reference).ilike(pattern),
                        col(Machine.location).ilike(pattern),
                    )
                )
            total = session.exec(select(func.count()).select_from(statement.subquery())).one()
            rows = session.exec(
                statement.order_by(col(Machine.name).asc()).offset((page - 1) * limit).limit(limit)
            ).all()
        return MachineListRead(
            machines=[MachineRead.model_validate(row) for row in rows],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
        )

    def get_machine(self, machine_id: str) -> Machine:
        with self._session() as session:
            return self._get_machine(session, machine_id)

    def create_machine(self, actor: Actor, payload: MachineCreate) -> Machine:
        with self._session() as session:
            serial_number = payload.serial_number or None
            self._ensure_unique(session, reference=payload.reference, serial_number=serial_number)
            machine = Machine(**payload.model_dump(exclude={"serial_number"}), serial_number=serial_number)
            session.add(machine)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("machine reference or serial number already exists") from exc
            session.refresh(machine)

        self.audit.record(
            actor,
            AuditAction.CREATE,
            ENTITY,
            machine.id,
            details=f"machine created: {machine.name} ({machine.reference})",
        )
        return machine

    def update_machine(self, actor: Actor, machine_id: str, payload: MachineUpdate) -> Machine:
        data = payload.model_dump(exclude_unset=True)
        for field in ("name", "reference", "location", "department", "priority"):
            if field in data and data[field] is None:
                raise ValidationError(f"{field} cannot be null")
        with self._session() as session:
            machine = self._get_machine(session, machine_id)
            self._ensure_unique(
                session,
                reference=data.get("reference"),
                serial_number=data.get("serial_number"),
                exclude_id=machine.id,
            )
            for field, value in data.items():
                setattr(machine, field, value)
            machine.updated_at = now_utc()
            session.add(machine)
            session.commit()
            session.refresh(machine)

        self.audit.record(actor, AuditAction.UPDATE, ENTITY, machine.id, details=f"machine updated: {machine.name}")
        return machine

    def update_machine_status(self, actor: Actor, machine_id: str, payload: MachineStatusUpdate) -> Machine:
        with self._session() as session:
            machine = self._get_machine(session, machine_id)
            previous = machine.status
            machine.status = payload.status
            machine.updated_at = now_utc()
            session.add(machine)
            session.commit()
            session.refresh(machine)

        self.audit.record(
            actor,
            AuditAction.UPDATE_STATUS,
            ENTITY,
            machine.id,
            details=f"status changed from {previous} to {machine.status}",
            meta={"from_status": str(previous), "to_status": str(machine.status)},
        )
        return machine

    def set_machine_image(self, actor: Actor, machine_id: str, upload: UploadedFile) -> Machine:
        with self._session() as session:
            machine = self._get_machine(session, machine_id)
            self.attachments.validate_files(AttachmentFileType.MACHINE, [upload])
            self.attachments.delete_for_owner(session, AttachmentFileType.MACHINE, machine.id)
            rows = self.attachments.attach(
                session,
                file_type=AttachmentFileType.MACHINE,
                owner_id=machine.id,
                files=[upload],
                uploaded_by=actor.id,
                description=f"machine image: {machine.name}",
            )
            machine.image = rows[0].path
            machine.updated_at = now_utc()
            session.add(machine)
            self.attachments.commit_with_files(session, rows)
            session.refresh(machine)

        self.audit.record(actor, AuditAction.UPDATE, ENTITY, machine.id, details="machine image updated")
        return machine

    def delete_machine(self, actor: Actor, machine_id: str) -> None:
        with self._session() as session:
            machine = self._get_machine(session, machine_id)
            referenced = session.exec(
                select(MaintenanceSchedule.id).where(MaintenanceSchedule.machine_id == machine.id)
            ).first() or session.exec(select(Report.id).where(Report.machine_id == machine.id)).first()
            if referenced is not None:
                raise ConflictError("machine is referenced by maintenance schedules or reports")
            label = f"{machine.name} ({machine.reference})"
            removed = self.attachments.delete_for_owner(session, AttachmentFileType.MACHINE, machine.id)
            session.delete(machine)
            session.commit()

        self.audit.record(
            actor,
            AuditAction.DELETE,
            ENTITY,
            machine_id,
            details=f"machine deleted: {label}",
            meta={"attachments_removed": removed},
        )
