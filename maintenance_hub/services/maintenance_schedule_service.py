from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from maintenance_hub.domain.models import (
    AttachmentFileType,
    AuditAction,
    Machine,
    MachineStatus,
    MachineSummaryRead,
    MaintenanceCompleteRequest,
    MaintenanceSchedule,
    MaintenanceScheduleCreate,
    MaintenanceScheduleDetailRead,
    MaintenanceScheduleListItemRead,
    MaintenanceScheduleListRead,
    MaintenanceScheduleUpdate,
    MaintenanceStatsRead,
    MaintenanceType,
    Pagination,
    User,
    UserSummaryRead,
    as_utc,
    now_utc,
)
from maintenance_hub.domain.permissions import Actor, can_be_assigned_technician
from maintenance_hub.domain.recurrence import advance, is_recurring
from maintenance_hub.domain.state_machine import ScheduleStatus, is_completion
from maintenance_hub.infra.audit import AuditSink, audit_sink
from maintenance_hub.infra.db import get_engine
from maintenance_hub.services.attachment_service import AttachmentService, UploadedFile
from maintenance_hub.services.errors import ConflictError, NotFoundError, ValidationError

ENTITY = "MaintenanceSchedule"

STATUS_BUCKETS: dict[str, str] = {
    ScheduleStatus.COMPLETED.value: "completed",
    ScheduleStatus.IN_PROGRESS.value: "in_progress",
    ScheduleStatus.SCHEDULED.value: "scheduled",
    ScheduleStatus.OVERDUE.value: "overdue",
    ScheduleStatus.CANCELLED.value: "cancelled",
}

NON_NULLABLE_PATCH_FIELDS = frozenset(
    {
        "title",
        "machine_id",
        "scheduled_date",
        "estimated_duration",
        "maintenance_type",
        "priority",
        "status",
        "frequency",
        "estimated_cost",
        "actual_cost",
    }
)


def summarize_stats(rows: Iterable[tuple[Any, Any, int, Any]]) -> MaintenanceStatsRead:
    """Fold ``(status, maintenance_type, count, cost_sum)`` groups into the stats summary.

    Statuses without a named bucket still count towards ``total``.
    """
    summary = MaintenanceStatsRead()
    for status, maintenance_type, count, cost in rows:
        count = int(count or 0)
        summary.total += count
        summary.total_cost += Decimal(str(cost or 0))
        bucket = STATUS_BUCKETS.get(str(getattr(status, "value", status)))
        if bucket is not None:
            setattr(summary, bucket, getattr(summary, bucket) + count)
        type_key = str(getattr(maintenance_type, "value", maintenance_type))
        summary.by_type[type_key] = summary.by_type.get(type_key, 0) + count
    return summary


class MaintenanceScheduleService:
    def __init__(
        self,
        attachments: AttachmentService | None = None,
        audit: AuditSink | None = None,
    ) -> None:
        self.attachments = attachments or AttachmentService()
        self.audit = audit or audit_sink

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_schedule(self, session: Session, schedule_id: str) -> MaintenanceSchedule:
        schedule = session.get(MaintenanceSchedule, schedule_id)
        if schedule is None:
            raise NotFoundError("maintenance schedule not found")
        return schedule

    def _get_machine(self, session: Session, machine_id: str) -> Machine:
        machine = session.get(Machine, machine_id)
        if machine is None:
            raise NotFoundError("machine not found")
        return machine

    def _validate_technician(self, session: Session, technician_id: str) -> User:
        technician = session.get(User, technician_id)
        if technician is None or not can_be_assigned_technician(technician.role):
            raise ValidationError("invalid technician")
        return technician

    def _users_by_id(self, session: Session, user_ids: Iterable[str | None]) -> dict[str, User]:
        wanted = {item for item in user_ids if item}
        if not wanted:
            return {}
        rows = session.exec(select(User).where(col(User.id).in_(wanted))).all()
        return {row.id: row for row in rows}

    def _list_item(
        self,
        schedule: MaintenanceSchedule,
        machine: Machine | None,
        technician: User | None,
    ) -> MaintenanceScheduleListItemRead:
        item = MaintenanceScheduleListItemRead.model_validate(schedule)
        item.machine = MachineSummaryRead.model_validate(machine) if machine is not None else None
        item.technician = UserSummaryRead.model_validate(technician) if technician is not None else None
        return item

    def create_schedule(self, actor: Actor, payload: MaintenanceScheduleCreate) -> MaintenanceSchedule:
        with self._session() as session:
            machine = self._get_machine(session, payload.machine_id)
            if payload.technician_id is not None:
                self._validate_technician(session, payload.technician_id)

            scheduled_date = as_utc(payload.scheduled_date)
            next_scheduled_date = advance(scheduled_date, payload.frequency)
            schedule = MaintenanceSchedule(
                title=payload.title,
                description=payload.description,
                machine_id=payload.machine_id,
                technician_id=payload.technician_id,
                scheduled_date=scheduled_date,
                estimated_duration=payload.estimated_duration,
                maintenance_type=payload.maintenance_type,
                priority=payload.priority,
                status=ScheduleStatus.SCHEDULED,
                frequency=payload.frequency,
                recurrence_pattern=payload.recurrence_pattern,
                checklist=payload.checklist,
                required_parts=(
                    [part.model_dump(mode="json") for part in payload.required_parts]
                    if payload.required_parts is not None
                    else None
                ),
                estimated_cost=payload.estimated_cost if payload.estimated_cost is not None else Decimal("0"),
                notes=payload.notes,
                next_scheduled_date=next_scheduled_date,
            )
            session.add(schedule)
            session.flush()

            machine.last_maintenance_date = scheduled_date
            machine.next_maintenance_date = next_scheduled_date or scheduled_date
            machine.updated_at = now_utc()
            session.add(machine)
            session.commit()
            session.refresh(schedule)
            machine_name = machine.name

        self.audit.record(
            actor,
            AuditAction.CREATE,
            ENTITY,
            schedule.id,
            details=f"maintenance schedule created: {schedule.title} for {machine_name}",
            meta={"machine_id": schedule.machine_id, "frequency": str(schedule.frequency)},
        )
        return schedule

    def list_schedules(
        self,
        *,
        status: ScheduleStatus | None = None,
        machine_id: str | None = None,
        technician_id: str | None = None,
        maintenance_type: MaintenanceType | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> MaintenanceScheduleListRead:
        page = max(page, 1)
        limit = max(limit, 1)
        with self._session() as session:
            statement = select(MaintenanceSchedule, Machine).join(
                Machine, col(Machine.id) == col(MaintenanceSchedule.machine_id)
            )
            if status is not None:
                statement = statement.where(MaintenanceSchedule.status == status)
            if machine_id is not None:
                statement = statement.where(MaintenanceSchedule.machine_id == machine_id)
            if technician_id is not None:
                statement = statement.where(MaintenanceSchedule.technician_id == technician_id)
            if maintenance_type is not None:
                statement = statement.where(MaintenanceSchedule.maintenance_type == maintenance_type)
            if start_date is not None:
                statement = statement.where(col(MaintenanceSchedule.scheduled_date) >= as_utc(start_date))
            if end_date is not None:
                statement = statement.where(col(MaintenanceSchedule.scheduled_date) <= as_utc(end_date))
            if search:
                pattern = f"%{search.strip()}%"
                statement = statement.where(
                    or_(
                        col(MaintenanceSchedule.title).ilike(pattern),
                        col(MaintenanceSchedule.description).ilike(pattern),
                        col(Machine.name).ilike(pattern),
                        col(Machine.reference).ilike(pattern),
                    )
                )

            total = session.exec(select(func.count()).select_from(statement.subquery())).one()
            rows = session.exec(
                statement.order_by(col(MaintenanceSchedule.scheduled_date).asc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).all()
            technicians = self._users_by_id(session, (schedule.technician_id for schedule, _ in rows))

            status_rows = session.exec(
                select(MaintenanceSchedule.status, func.count(col(MaintenanceSchedule.id))).group_by(
                    MaintenanceSchedule.status
                )
            ).all()

        return MaintenanceScheduleListRead(
            schedules=[
                self._list_item(schedule, machine, technicians.get(schedule.technician_id or ""))
                for schedule, machine in rows
            ],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
            stats={str(getattr(key, "value", key)): int(count) for key, count in status_rows},
        )

    def get_schedule(self, schedule_id: str) -> MaintenanceScheduleDetailRead:
        with self._session() as session:
            schedule = self._get_schedule(session, schedule_id)
            machine = session.get(Machine, schedule.machine_id)
            users = self._users_by_id(session, (schedule.technician_id, schedule.completed_by))
            attachments = self.attachments.list_for_owner(session, AttachmentFileType.MAINTENANCE, schedule.id)

            detail = MaintenanceScheduleDetailRead.model_validate(schedule)
            if machine is not None:
                detail.machine = MachineSummaryRead.model_validate(machine)
            technician = users.get(schedule.technician_id or "")
            if technician is not None:
                detail.technician = UserSummaryRead.model_validate(technician)
            completed_by = users.get(schedule.completed_by or "")
            if completed_by is not None:
                detail.completed_by_user = UserSummaryRead.model_validate(completed_by)
            detail.attachments = [self.attachments.to_read(item) for item in attachments]
            return detail

    def update_schedule(
        self,
        actor: Actor,
        schedule_id: str,
        payload: MaintenanceScheduleUpdate,
    ) -> MaintenanceSchedule:
        data = payload.model_dump(exclude_unset=True)
        for field, value in data.items():
            if value is None and field in NON_NULLABLE_PATCH_FIELDS:
                raise ValidationError(f"{field} cannot be null")

        with self._session() as session:
            schedule = self._get_schedule(session, schedule_id)
            if data.get("technician_id") is not None:
                self._validate_technician(session, data["technician_id"])
            if "machine_id" in data:
                self._get_machine(session, data["machine_id"])

            if "scheduled_date" in data:
                data["scheduled_date"] = as_utc(data["scheduled_date"])
            if payload.required_parts is not None:
                data["required_parts"] = [part.model_dump(mode="json") for part in payload.required_parts]

            if is_completion(schedule.status, payload.status):
                completed_at = now_utc()
                data["completed_at"] = completed_at
                data["completed_by"] = actor.id
                frequency = data.get("frequency", schedule.frequency)
                if is_recurring(frequency):
                    data["next_scheduled_date"] = advance(completed_at, frequency)

            for field, value in data.items():
                setattr(schedule, field, value)
            schedule.updated_at = now_utc()
            session.add(schedule)
            session.commit()
            session.refresh(schedule)

        self.audit.record(
            actor,
            AuditAction.UPDATE,
            ENTITY,
            schedule.id,
            details=f"maintenance schedule updated: {schedule.title}",
            meta={"fields": sorted(payload.model_fields_set)},
        )
        return schedule

    def complete_schedule(
        self,
        actor: Actor,
        schedule_id: str,
        payload: MaintenanceCompleteRequest,
        files: list[UploadedFile] | None = None,
    ) -> MaintenanceSchedule:
        files = files or []
        with self._session() as session:
            schedule = self._get_schedule(session, schedule_id)
            if schedule.status == ScheduleStatus.COMPLETED:
                raise ConflictError("maintenance already completed")
            self.attachments.validate_files(AttachmentFileType.MAINTENANCE, files)

            completed_at = now_utc()
            schedule.status = ScheduleStatus.COMPLETED
            schedule.completed_at = completed_at
            schedule.completed_by = actor.id
            schedule.completion_notes = payload.completion_notes
            schedule.actual_cost = payload.actual_cost if payload.actual_cost is not None else Decimal("0")
            if is_recurring(schedule.frequency):
                schedule.next_scheduled_date = advance(completed_at, schedule.frequency)
            schedule.updated_at = completed_at
            session.add(schedule)

            machine = self._get_machine(session, schedule.machine_id)
            machine.status = MachineStatus.OPERATIONAL
            machine.last_maintenance_date = completed_at
            machine.next_maintenance_date = schedule.next_scheduled_date or completed_at
            machine.updated_at = completed_at
            session.add(machine)

            rows = (
                self.attachments.attach(
                    session,
                    file_type=AttachmentFileType.MAINTENANCE,
                    owner_id=schedule.id,
                    files=files,
                    uploaded_by=actor.id,
                    description=f"maintenance completion: {schedule.title}",
                )
                if files
                else []
            )
            self.attachments.commit_with_files(session, rows)
            session.refresh(schedule)

        self.audit.record(
            actor,
            AuditAction.UPDATE,
            ENTITY,
            schedule.id,
            details=f"maintenance completed: {schedule.title}",
            meta={"actual_cost": str(schedule.actual_cost), "attachments": len(files)},
        )
        return schedule

    def delete_schedule(self, actor: Actor, schedule_id: str) -> None:
        with self._session() as session:
            schedule = self._get_schedule(session, schedule_id)
            title = schedule.title
            removed = self.attachments.delete_for_owner(session, AttachmentFileType.MAINTENANCE, schedule.id)
            session.delete(schedule)
            session.commit()

        self.audit.record(
            actor,
            AuditAction.DELETE,
            ENTITY,
            schedule_id,
            details=f"maintenance schedule deleted: {title}",
            meta={"attachments_removed": removed},
        )

    def list_overdue(self, now: datetime | None = None) -> list[MaintenanceScheduleListItemRead]:
        cutoff = as_utc(now) if now is not None else now_utc()
        with self._session() as session:
            statement = (
                select(MaintenanceSchedule, Machine)
                .join(Machine, col(Machine.id) == col(MaintenanceSchedule.machine_id))
                .where(MaintenanceSchedule.status == ScheduleStatus.SCHEDULED)
                .where(col(MaintenanceSchedule.scheduled_date) < cutoff)
                .order_by(col(MaintenanceSchedule.scheduled_date).asc())
            )
            rows = session.exec(statement).all()
            technicians = self._users_by_id(session, (schedule.technician_id for schedule, _ in rows))
        return [
            self._list_item(schedule, machine, technicians.get(schedule.technician_id or ""))
            for schedule, machine in rows
        ]

    def stats(
        self,
        *,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> MaintenanceStatsRead:
        with self._session() as session:
            statement = select(
                MaintenanceSchedule.status,
                MaintenanceSchedule.maintenance_type,
                func.count(col(MaintenanceSchedule.id)),
                func.sum(col(MaintenanceSchedule.actual_cost)),
            )
            if start_date is not None:
                statement = statement.where(col(MaintenanceSchedule.scheduled_date) >= as_utc(start_date))
            if end_date is not None:
                statement = statement.where(col(MaintenanceSchedule.scheduled_date) <= as_utc(end_date))
            statement = statement.group_by(MaintenanceSchedule.status, MaintenanceSchedule.maintenance_type)
            rows = session.exec(statement).all()
        return summarize_stats(rows)
