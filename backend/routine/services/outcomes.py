from __future__ import annotations

from dataclasses import dataclass, field

from routine.core.exceptions import ConflictError, ValidationError
from routine.models.scheduled_slot import ScheduledSlot
from routine.schemas.conflict import ConflictReport, ValidationWarning
from routine.services.schedule_events import ScheduleChange


@dataclass
class AssignmentResult:
    record: ScheduledSlot
    created: bool
    warnings: list[ValidationWarning]
    change: ScheduleChange


@dataclass
class BatchResult:
    records: list[ScheduledSlot]
    warnings: list[ValidationWarning]
    change: ScheduleChange
    spans: dict[str, list[ScheduledSlot]] = field(default_factory=dict)
    elective_group_id: str | None = None
    elective_info: dict | None = None


@dataclass
class ClearResult:
    found: bool
    deleted: int = 0
    teacher_ids: list[str] = field(default_factory=list)
    span_ids: list[str] = field(default_factory=list)
    elective_group_ids: list[str] = field(default_factory=list)
    change: ScheduleChange | None = None

    @classmethod
    def not_found(cls) -> "ClearResult":
        return cls(found=False)


def raise_for_report(report: ConflictReport, *, strict: bool, details: dict | None = None) -> None:
    if report.conflicts:
        raise ConflictError(
            "Scheduling conflicts detected",
            conflicts=report.conflicts,
            warnings=report.warnings,
            details=details,
        )
    if strict and report.warnings:
        payload = {"warnings": [warning.model_dump() for warning in report.warnings]}
        payload.update(details or {})
        raise ValidationError("Assignment has warnings and strict validation is enabled", details=payload)


def collect_teacher_ids(records: list[ScheduledSlot]) -> list[str]:
    teacher_ids: list[str] = []
    for record in records:
        teacher_ids.extend(record.teacher_ids or [])
    return list(dict.fromkeys(teacher_ids))


def expand_siblings(repository, records: list[ScheduledSlot]) -> list[ScheduledSlot]:
    """Add every record sharing a span or elective group with the given ones."""
    expanded: dict[str, ScheduledSlot] = {record.id: record for record in records}
    for record in records:
        if record.span_id:
            for member in repository.span_members(record.span_id):
                expanded.setdefault(member.id, member)
        if record.elective_group_id:
            for member in repository.elective_members(record.elective_group_id):
                expanded.setdefault(member.id, member)
    return list(expanded.values())
