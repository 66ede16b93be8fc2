from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, DateTime, Index
from sqlmodel import Field, SQLModel

from maintenance_hub.domain.state_machine import ReportStatus, ScheduleStatus

TIME_OF_DAY_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def now_utc() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _id() -> str:
    return str(uuid4())


class Role(StrEnum):
    ADMIN = "admin"
    TECHNICIAN = "technician"
    ADMINISTRATION = "administration"


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MachineStatus(StrEnum):
    OPERATIONAL = "operational"
    MAINTENANCE = "maintenance"
    BREAKDOWN = "breakdown"
    RETIRED = "retired"


class MaintenanceType(StrEnum):
    PREVENTIVE = "preventive"
    CORRECTIVE = "corrective"
    EMERGENCY = "emergency"
    INSPECTION = "inspection"


class Frequency(StrEnum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class WorkType(StrEnum):
    MAINTENANCE = "maintenance"
    REPAIR = "repair"
    INSPECTION = "inspection"
    INSTALLATION = "installation"
    OTHER = "other"


class AttachmentCategory(StrEnum):
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    AUDIO = "audio"
    OTHER = "other"


class AttachmentFileType(StrEnum):
    AVATAR = "avatar"
    MACHINE = "machine"
    REPORT = "report"
    MAINTENANCE = "maintenance"


class AuditAction(StrEnum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    UPDATE_STATUS = "UPDATE_STATUS"
    SUBMIT = "SUBMIT"


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_logs_entity_entity_id", "entity", "entity_id"),)

    id: str = Field(default_factory=_id, primary_key=True)
    user_id: str | None = Field(default=None, index=True)
    action: str = Field(max_length=20, index=True)
    entity: str = Field(max_length=50)
    entity_id: str | None = None
    details: str | None = None
    meta: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False),
    )
    ip_address: str | None = Field(default=None, max_length=45)
    user_agent: str | None = None
    created_at: datetime = Field(default_factory=now_utc, sa_type=DateTime(timezone=True), index=True)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=_id, primary_key=True)
    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50)
    email: str = Field(max_length=255, index=True, unique=True)
    password_hash: str
    role: Role = Field(index=True)
    phone: str | None = Field(default=None, max_length=15)
    is_active: bool = Field(default=True)
    last_login: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    login_ip: str | None = Field(default=None, max_length=45)
    avatar: str | None = Field(default=None, max_length=512)
    created_at: datetime = Field(default_factory=now_utc, sa_type=DateTime(timezone=True), index=True)
    updated_at: datetime = Field(default_factory=now_utc, sa_type=DateTime(timezone=True))


class Machine(SQLModel, table=True):
    __tablename__ = "machines"

    id: str = Field(default_factory=_id, primary_key=True)
    name: str = Field(max_length=100, index=True)
    reference: str = Field(max_length=50, index=True, unique=True)
    brand: str | None = Field(default=None, max_length=50)
    model: str | None = Field(default=None, max_length=50)
    serial_number: str | None = Field(default=None, max_length=100, unique=True)
    location: str = Field(max_length=100)
    department: str = Field(max_length=50, index=True)
    description: str | None = None
    installation_date: date | None = None
    warranty_end_date: date | None = None
    status: MachineStatus = Field(default=MachineStatus.OPERATIONAL, index=True)
    priority: Priority = Field(default=Priority.MEDIUM)
    last_maintenance_date: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    next_maintenance_date: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    image: str | None = Field(default=None, max_length=512)
    created_at: datetime = Field(default_factory=now_utc, sa_type=DateTime(timezone=True), index=True)
    updated_at: datetime = Field(default_factory=now_utc, sa_type=DateTime(timezone=True))


class MaintenanceSchedule(SQLModel, table=True):
    __tablename__ = "maintenance_schedules"

    id: str = Field(default_factory=_id, primary_key=True)
    title: str = Field(max_length=200)
    description: str | None = None
    machine_id: str = Field(foreign_key="machines.id", index=True)
    technician_id: str | None = Field(default=None, foreign_key="users.id", index=True)
    scheduled_date: datetime = Field(sa_type=DateTime(timezone=True), index=True)
    estimated_duration: int = Field(default=60)
    maintenance_type: MaintenanceType = Field(default=MaintenanceType.PREVENTIVE, index=True)
    priority: Priority = Field(default=Priority.MEDIUM)
    status: ScheduleStatus = Field(default=ScheduleStatus.SCHEDULED, index=True)
    frequency: Frequency = Field(default=Frequency.ONCE)
    recurrence_pattern: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    checklist: list[str] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    required_parts: list[dict[str, Any]] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    estimated_cost: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    actual_cost: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    notes: str | None = None
    completed_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    completed_by: str | None = Field(default=None, index=True)
    completion_notes: str | None = None
    next_scheduled_date: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=now_utc, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=now_utc, sa_type=DateTime(timezone=True))


class Report(SQLModel, table=True):
    __tablename__ = "reports"

    id: str = Field(default_factory=_id, primary_key=True)
    title: str = Field(max_length=200)
    work_date: date = Field(index=True)
    start_time: str = Field(max_length=5)
    end_time: str = Field(max_length=5)
    duration: int
    machine_id: str = Field(foreign_key="machines.id", index=True)
    technician_id: str = Field(foreign_key="users.id", index=True)
    work_type: WorkType
    problem_description: str
    actions_taken: str
    parts_used: list[dict[str, Any]] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    tools_used: list[str] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    observations: str | None = None
    recommendations: str | None = None
    status: ReportStatus = Field(default=ReportStatus.DRAFT, index=True)
    priority: Priority = Field(default=Priority.MEDIUM)
    created_at: datetime = Field(default_factory=now_utc, sa_type=DateTime(timezone=True), index=True)
    updated_at: datetime = Field(default_factory=now_utc, sa_type=DateTime(timezone=True))


class FileAttachment(SQLModel, table=True):
    __tablename__ = "file_attachments"

    id: str = Field(default_factory=_id, primary_key=True)
    filename: str = Field(max_length=255)
    original_name: str = Field(max_length=255)
    path: str = Field(max_length=512)
    mimetype: str = Field(max_length=100)
    size: int
    category: AttachmentCategory = Field(default=AttachmentCategory.OTHER)
    file_type: AttachmentFileType
    description: str | None = Field(default=None, max_length=255)
    machine_id: str | None = Field(default=None, foreign_key="machines.id", index=True)
    user_id: str | None = Field(default=None, foreign_key="users.id", index=True)
    report_id: str | None = Field(default=None, foreign_key="reports.id", index=True)
    maintenance_schedule_id: str | None = Field(default=None, foreign_key="maintenance_schedules.id", index=True)
    uploaded_by: str = Field(index=True)
    created_at: datetime = Field(default_factory=now_utc, sa_type=DateTime(timezone=True))


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class BootstrapAdminRequest(BaseModel):
    first_name: str = PydanticField(min_length=2, max_length=50)
    last_name: str = PydanticField(min_length=2, max_length=50)
    email: str = PydanticField(pattern=EMAIL_PATTERN, max_length=255)
    password: str = PydanticField(min_length=6, max_length=100)


class LoginRequest(BaseModel):
    email: str = PydanticField(pattern=EMAIL_PATTERN)
    password: str = PydanticField(min_length=6)


class UserCreate(BaseModel):
    first_name: str = PydanticField(min_length=2, max_length=50)
    last_name: str = PydanticField(min_length=2, max_length=50)
    email: str = PydanticField(pattern=EMAIL_PATTERN, max_length=255)
    password: str = PydanticField(min_length=6, max_length=100)
    role: Role
    phone: str | None = PydanticField(default=None, min_length=10, max_length=15)


class UserUpdate(BaseModel):
    first_name: str | None = PydanticField(default=None, min_length=2, max_length=50)
    last_name: str | None = PydanticField(default=None, min_length=2, max_length=50)
    email: str | None = PydanticField(default=None, pattern=EMAIL_PATTERN, max_length=255)
    role: Role | None = None
    phone: str | None = PydanticField(default=None, min_length=10, max_length=15)
    is_active: bool | None = None


class UserRead(ORMReadModel):
    id: str
    first_name: str
    last_name: str
    email: str
    role: Role
    phone: str | None
    is_active: bool
    last_login: datetime | None
    avatar: str | None
    created_at: datetime


class UserSummaryRead(ORMReadModel):
    id: str
    first_name: str
    last_name: str
    email: str
    role: Role


class UserListRead(BaseModel):
    users: list[UserRead]
    pagination: Pagination


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead


class MachineCreate(BaseModel):
    name: str = PydanticField(min_length=2, max_length=100)
    reference: str = PydanticField(min_length=1, max_length=50)
    brand: str | None = PydanticField(default=None, max_length=50)
    model: str | None = PydanticField(default=None, max_length=50)
    serial_number: str | None = PydanticField(default=None, max_length=100)
    location: str = PydanticField(min_length=2, max_length=100)
    department: str = PydanticField(min_length=1, max_length=50)
    description: str | None = None
    installation_date: date | None = None
    warranty_end_date: date | None = None
    status: MachineStatus = MachineStatus.OPERATIONAL
    priority: Priority = Priority.MEDIUM


class MachineUpdate(BaseModel):
    name: str | None = PydanticField(default=None, min_length=2, max_length=100)
    reference: str | None = PydanticField(default=None, min_length=1, max_length=50)
    brand: str | None = PydanticField(default=None, max_length=50)
    model: str | None = PydanticField(default=None, max_length=50)
    serial_number: str | None = PydanticField(default=None, max_length=100)
    location: str | None = PydanticField(default=None, min_length=2, max_length=100)
    department: str | None = PydanticField(default=None, min_length=1, max_length=50)
    description: str | None = None
    installation_date: date | None = None
    warranty_end_date: date | None = None
    priority: Priority | None = None


class MachineStatusUpdate(BaseModel):
    status: MachineStatus


class MachineRead(ORMReadModel):
    id: str
    name: str
    reference: str
    brand: str | None
    model: str | None
    serial_number: str | None
    location: str
    department: str
    description: str | None
    installation_date: date | None
    warranty_end_date: date | None
    status: MachineStatus
    priority: Priority
    last_maintenance_date: datetime | None
    next_maintenance_date: datetime | None
    image: str | None
    created_at: datetime
    updated_at: datetime


class MachineSummaryRead(ORMReadModel):
    id: str
    name: str
    reference: str
    location: str
    department: str
    status: MachineStatus


class MachineListRead(BaseModel):
    machines: list[MachineRead]
    pagination: Pagination


class RequiredPart(BaseModel):
    name: str = PydanticField(min_length=1)
    quantity: int = PydanticField(gt=0)
    estimated_cost: Decimal | None = PydanticField(default=None, ge=0)


class MaintenanceScheduleCreate(BaseModel):
    title: str = PydanticField(min_length=5, max_length=200)
    description: str | None = None
    machine_id: str
    technician_id: str | None = None
    scheduled_date: datetime
    estimated_duration: int = PydanticField(default=60, ge=15, le=1440)
    maintenance_type: MaintenanceType = MaintenanceType.PREVENTIVE
    priority: Priority = Priority.MEDIUM
    frequency: Frequency = Frequency.ONCE
    recurrence_pattern: dict[str, Any] | None = None
    checklist: list[str] | None = None
    required_parts: list[RequiredPart] | None = None
    estimated_cost: Decimal | None = PydanticField(default=None, ge=0)
    notes: str | None = None


class MaintenanceScheduleUpdate(BaseModel):
    title: str | None = PydanticField(default=None, min_length=5, max_length=200)
    description: str | None = None
    machine_id: str | None = None
    technician_id: str | None = None
    scheduled_date: datetime | None = None
    estimated_duration: int | None = PydanticField(default=None, ge=15, le=1440)
    maintenance_type: MaintenanceType | None = None
    priority: Priority | None = None
    status: ScheduleStatus | None = None
    frequency: Frequency | None = None
    recurrence_pattern: dict[str, Any] | None = None
    checklist: list[str] | None = None
    required_parts: list[RequiredPart] | None = None
    estimated_cost: Decimal | None = PydanticField(default=None, ge=0)
    actual_cost: Decimal | None = PydanticField(default=None, ge=0)
    notes: str | None = None
    completion_notes: str | None = None


class MaintenanceCompleteRequest(BaseModel):
    completion_notes: str | None = None
    actual_cost: Decimal | None = PydanticField(default=None, ge=0)


class FileAttachmentRead(ORMReadModel):
    id: str
    filename: str
    original_name: str
    path: str
    url: str | None = None
    mimetype: str
    size: int
    category: AttachmentCategory
    file_type: AttachmentFileType
    description: str | None
    uploaded_by: str
    created_at: datetime


class MaintenanceScheduleRead(ORMReadModel):
    id: str
    title: str
    description: str | None
    machine_id: str
    technician_id: str | None
    scheduled_date: datetime
    estimated_duration: int
    maintenance_type: MaintenanceType
    priority: Priority
    status: ScheduleStatus
    frequency: Frequency
    recurrence_pattern: dict[str, Any] | None
    checklist: list[str] | None
    required_parts: list[dict[str, Any]] | None
    estimated_cost: Decimal
    actual_cost: Decimal
    notes: str | None
    completed_at: datetime | None
    completed_by: str | None
    completion_notes: str | None
    next_scheduled_date: datetime | None
    created_at: datetime
    updated_at: datetime


class MaintenanceScheduleListItemRead(MaintenanceScheduleRead):
    machine: MachineSummaryRead | None = None
    technician: UserSummaryRead | None = None


class MaintenanceScheduleDetailRead(MaintenanceScheduleListItemRead):
    completed_by_user: UserSummaryRead | None = None
    attachments: list[FileAttachmentRead] = PydanticField(default_factory=list)


class MaintenanceScheduleListRead(BaseModel):
    schedules: list[MaintenanceScheduleListItemRead]
    pagination: Pagination
    stats: dict[str, int]


class MaintenanceStatsRead(BaseModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    scheduled: int = 0
    overdue: int = 0
    cancelled: int = 0
    total_cost: Decimal = Decimal("0")
    by_type: dict[str, int] = PydanticField(default_factory=dict)


class ReportPart(BaseModel):
    name: str = PydanticField(min_length=1)
    reference: str | None = None
    quantity: float = PydanticField(gt=0)


class ReportCreate(BaseModel):
    title: str = PydanticField(min_length=5, max_length=200)
    work_date: date
    start_time: str = PydanticField(pattern=TIME_OF_DAY_PATTERN)
    end_time: str = PydanticField(pattern=TIME_OF_DAY_PATTERN)
    machine_id: str
    work_type: WorkType
    problem_description: str = PydanticField(min_length=10)
    actions_taken: str = PydanticField(min_length=10)
    parts_used: list[ReportPart] | None = None
    tools_used: list[str] | None = None
    observations: str | None = None
    recommendations: str | None = None
    priority: Priority = Priority.MEDIUM


class ReportUpdate(BaseModel):
    title: str | None = PydanticField(default=None, min_length=5, max_length=200)
    work_date: date | None = None
    start_time: str | None = PydanticField(default=None, pattern=TIME_OF_DAY_PATTERN)
    end_time: str | None = PydanticField(default=None, pattern=TIME_OF_DAY_PATTERN)
    machine_id: str | None = None
    work_type: WorkType | None = None
    problem_description: str | None = PydanticField(default=None, min_length=10)
    actions_taken: str | None = PydanticField(default=None, min_length=10)
    parts_used: list[ReportPart] | None = None
    tools_used: list[str] | None = None
    observations: str | None = None
    recommendations: str | None = None
    priority: Priority | None = None


class ReportRead(ORMReadModel):
    id: str
    title: str
    work_date: date
    start_time: str
    end_time: str
    duration: int
    machine_id: str
    technician_id: str
    work_type: WorkType
    problem_description: str
    actions_taken: str
    parts_used: list[dict[str, Any]] | None
    tools_used: list[str] | None
    observations: str | None
    recommendations: str | None
    status: ReportStatus
    priority: Priority
    created_at: datetime
    updated_at: datetime


class ReportDetailRead(ReportRead):
    machine: MachineSummaryRead | None = None
    technician: UserSummaryRead | None = None
    attachments: list[FileAttachmentRead] = PydanticField(default_factory=list)


class ReportListRead(BaseModel):
    reports: list[ReportRead]
    pagination: Pagination


class AuditLogRead(ORMReadModel):
    id: str
    user_id: str | None
    action: str
    entity: str
    entity_id: str | None
    details: str | None
    meta: dict[str, Any] = PydanticField(serialization_alias="metadata")
    ip_address: str | None
    user_agent: str | None
    created_at: datetime
