from __future__ import annotations

from enum import StrEnum


class ScheduleStatus(StrEnum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"


class ReportStatus(StrEnum):
    DRAFT = "draft"
    SUBMITTED = "submitted"


REPORT_ALLOWED_TRANSITIONS: dict[ReportStatus, set[ReportStatus]] = {
    ReportStatus.DRAFT: {ReportStatus.SUBMITTED},
    ReportStatus.SUBMITTED: set(),
}


def can_report_transition(source: ReportStatus, target: ReportStatus) -> bool:
    return target in REPORT_ALLOWED_TRANSITIONS.get(source, set())


def is_completion(source: ScheduleStatus, target: ScheduleStatus | None) -> bool:
    """A schedule is being completed when it moves into COMPLETED from any other status."""
    return target == ScheduleStatus.COMPLETED and source != ScheduleStatus.COMPLETED
