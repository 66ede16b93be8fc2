from __future__ import annotations

import math
from datetime import date, datetime

from sqlalchemy import func
from sqlmodel import Session, col, select

from maintenance_hub.domain.models import (
    AttachmentFileType,
    AuditAction,
    FileAttachment,
    Machine,
    MachineSummaryRead,
    Pagination,
    Report,
    ReportCreate,
    ReportDetailRead,
    ReportListRead,
    ReportRead,
    ReportUpdate,
    User,
    UserSummaryRead,
    now_utc,
)
from maintenance_hub.domain.permissions import Actor
from maintenance_hub.domain.state_machine import ReportStatus, can_report_transition
from maintenance_hub.infra.audit import AuditSink, audit_sink
from maintenance_hub.infra.db import get_engine
from maintenance_hub.services.attachment_service import AttachmentService, UploadedFile
from maintenance_hub.services.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError

ENTITY = "Report"
REFERENCE_DAY = date(1970, 1, 1)


def compute_duration(start_time: str, end_time: str) -> int:
    """Minutes between two ``HH:MM`` times taken on the same day."""
    try:
        start = datetime.combine(REFERENCE_DAY, datetime.strptime(start_time, "%H:%M").time())
        end = datetime.combine(REFERENCE_DAY, datetime.strptime(end_time, "%H:%M").time())
    except ValueError as exc:
        raise ValidationError("time must use HH:MM format") from exc
    return round((end - start).total_seconds() / 60)


def _checked_duration(start_time: str, end_time: str) -> int:
    duration = compute_duration(start_time, end_time)
    if duration <= 0:
        raise ValidationError("end time must be after start time")
    return duration


class ReportService:
    def __init__(
        self,
        attachments: AttachmentService | None = None,
        audit: AuditSink | None = None,
    ) -> None:
        self.attachments = attachments or AttachmentService()
        self.audit = audit or audit_sink

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_report(self, session: Session, report_id: str) -> Report:
        report = session.get(Report, report_id)
        if report is None:
            raise NotFoundError("report not found")
        return report

    def _ensure_machine(self, session: Session, machine_id: str) -> None:
        if session.get(Machine, machine_id) is None:
            raise NotFoundError("machine not found")

    def _ensure_visible(self, actor: Actor, report: Report) -> None:
        if actor.is_technician and report.technician_id != actor.id:
            raise AuthorizationError("access denied")

    def _detail(self, session: Session, report: Report) -> ReportDetailRead:
        detail = ReportDetailRead.model_validate(report)
        machine = session.get(Machine, report.machine_id)
        if machine is not None:
            detail.machine = MachineSummaryRead.model_validate(machine)
        technician = session.get(User, report.technician_id)
        if technician is not None:
            detail.technician = UserSummaryRead.model_validate(technician)
        detail.attachments = [
            self.attachments.to_read(item)
            for item in self.attachments.list_for_owner(session, AttachmentFileType.REPORT, report.id)
        ]
        return detail

    def create_report(
        self,
        actor: Actor,
        payload: ReportCreate,
        files: list[UploadedFile] | None = None,
    ) -> ReportDetailRead:
        if not actor.is_technician:
            raise AuthorizationError("only technicians can create reports")
        duration = _checked_duration(payload.start_time, payload.end_time)
        files = files or []
        with self._session() as session:
            self._ensure_machine(session, payload.machine_id)
            self.attachments.validate_files(AttachmentFileType.REPORT, files)
            data = payload.model_dump()
            report = Report(
                **data,
                duration=duration,
                technician_id=actor.id,
                status=ReportStatus.DRAFT,
            )
            session.add(report)
            session.flush()
            rows = (
                self.attachments.attach(
                    session,
                    file_type=AttachmentFileType.REPORT,
                    owner_id=report.id,
                    files=files,
                    uploaded_by=actor.id,
                    description=f"report attachment: {report.title}",
                )
                if files
                else []
            )
            self.attachments.commit_with_files(session, rows)
            session.refresh(report)
            detail = self._detail(session, report)

        self.audit.record(actor, AuditAction.CREATE, ENTITY, report.id, details=f"report created: {report.title}")
        return detail

    def list_reports(
        self,
        actor: Actor,
        *,
        status: ReportStatus | None = None,
        machine_id: str | None = None,
        technician_id: str | None = None,
        work_date: date | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> ReportListRead:
        page = max(page, 1)
        limit = max(limit, 1)
        with self._session() as session:
            statement = select(Report)
            if status is not None:
                statement = statement.where(Report.status == status)
            if machine_id is not None:
                statement = statement.where(Report.machine_id == machine_id)
            if work_date is not None:
                statement = statement.where(Report.work_date == work_date)
            if search:
                statement = statement.where(col(Report.title).ilike(f"%{search.strip()}%"))
            if actor.is_technician:
                statement = statement.where(Report.technician_id == actor.id)
            elif technician_id is not None:
                statement = statement.where(Report.technician_id == technician_id)

            total = session.exec(select(func.count()).select_from(statement.subquery())).one()
            rows = session.exec(
                statement.order_by(col(Report.work_date).desc(), col(Report.created_at).desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).all()

        return ReportListRead(
            reports=[ReportRead.model_validate(row) for row in rows],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
        )

    def get_report(self, actor: Actor, report_id: str) -> ReportDetailRead:
        with self._session() as session:
            report = self._get_report(session, report_id)
            self._ensure_visible(actor, report)
            return self._detail(session, report)

    def update_report(self, actor: Actor, report_id: str, payload: ReportUpdate) -> ReportDetailRead:
        data = payload.model_dump(exclude_unset=True)
        with self._session() as session:
            report = self._get_report(session, report_id)
            self._ensure_visible(actor, report)
            if actor.is_technician and report.status != ReportStatus.DRAFT:
                raise AuthorizationError("submitted report cannot be edited")
            if data.get("machine_id") is not None:
                self._ensure_machine(session, data["machine_id"])

            if "start_time" in data or "end_time" in data:
                data["duration"] = _checked_duration(
                    data.get("start_time") or report.start_time,
                    data.get("end_time") or report.end_time,
                )
            for field, value in data.items():
                if value is None and field in {"title", "start_time", "end_time", "machine_id", "work_type"}:
                    raise ValidationError(f"{field} cannot be null")
                setattr(report, field, value)
            report.updated_at = now_utc()
            session.add(report)
            session.commit()
            session.refresh(report)
            detail = self._detail(session, report)

        self.audit.record(actor, AuditAction.UPDATE, ENTITY, report.id, details=f"report updated: {report.title}")
        return detail

    def submit_report(self, actor: Actor, report_id: str) -> ReportDetailRead:
        with self._session() as session:
            report = self._get_report(session, report_id)
            if not actor.is_technician or report.technician_id != actor.id:
                raise AuthorizationError("access denied")
            if not can_report_transition(report.status, ReportStatus.SUBMITTED):
                raise ConflictError("report already submitted")
            report.status = ReportStatus.SUBMITTED
            report.updated_at = now_utc()
            session.add(report)
            session.commit()
            session.refresh(report)
            detail = self._detail(session, report)

        self.audit.record(actor, AuditAction.SUBMIT, ENTITY, report.id, details=f"report submitted: {report.title}")
        return detail

    def add_attachments(self, actor: Actor, report_id: str, files: list[UploadedFile]) -> list[FileAttachment]:
        if not files:
            raise ValidationError("no file provided")
        with self._session() as session:
            report = self._get_report(session, report_id)
            self._ensure_visible(actor, report)
            if actor.is_technician and report.status != ReportStatus.DRAFT:
                raise AuthorizationError("submitted report cannot be edited")
            rows = self.attachments.attach(
                session,
                file_type=AttachmentFileType.REPORT,
                owner_id=report.id,
                files=files,
                uploaded_by=actor.id,
                description=f"report attachment: {report.title}",
            )
            self.attachments.commit_with_files(session, rows)
            for row in rows:
                session.refresh(row)

        self.audit.record(
            actor,
            AuditAction.UPDATE,
            ENTITY,
            report_id,
            details="report attachments added",
            meta={"attachments": len(rows)},
        )
        return rows

    def delete_report(self, actor: Actor, report_id: str) -> None:
        with self._session() as session:
            report = self._get_report(session, report_id)
            self._ensure_visible(actor, report)
            title = report.title
            removed = self.attachments.delete_for_owner(session, AttachmentFileType.REPORT, report.id)
            session.delete(report)
            session.commit()

        self.audit.record(
            actor,
            AuditAction.DELETE,
            ENTITY,
            report_id,
            details=f"report deleted: {title}",
            meta={"attachments_removed": removed},
        )
