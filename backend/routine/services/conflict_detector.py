from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence

from routine.models.room import RoomType
from routine.models.scheduled_slot import WHOLE_SLOT, ClassCategory, ClassKind, ScheduledSlot
from routine.repositories.slot_repository import SlotRepository
from routine.schemas.conflict import (
    AvailabilityOut,
    Conflict,
    ConflictingRecord,
    ConflictReport,
    ValidationWarning,
)
from routine.services.drafting import SlotDraft
from routine.services.references import ReferenceDirectory

logger = logging.getLogger(__name__)


def same_parity_group(semester_a: int, semester_b: int) -> bool:
    """Odd and even semesters run in different halves of the year and never meet."""
    return semester_a % 2 == semester_b % 2


def occupancies_overlap(first: str, second: str) -> bool:
    return first == WHOLE_SLOT or second == WHOLE_SLOT or first == second


def same_section(first, second) -> bool:
    return (
        first.program_id == second.program_id
        and first.semester == second.semester
        and first.section == second.section
    )


def sibling_lab_groups(first, second) -> bool:
    """Two sub-groups of one section sharing a slot, e.g. lab group A next to lab group B."""
    return (
        same_section(first, second)
        and first.occupancy != WHOLE_SLOT
        and second.occupancy != WHOLE_SLOT
        and first.occupancy != second.occupancy
    )


def same_elective_event(first, second) -> bool:
    return first.elective_group_id is not None and first.elective_group_id == second.elective_group_id


def summarize(record: ScheduledSlot | SlotDraft) -> ConflictingRecord:
    return ConflictingRecord(
        id=record.id,
        program_code=record.program_code,
        semester=record.semester,
        section=record.section,
        day_index=record.day_index,
        slot_index=record.slot_index,
        class_kind=record.class_kind,
        lab_group=record.lab_group,
        subject_id=record.subject_id,
        teacher_ids=list(record.teacher_ids or []),
        room_id=record.room_id,
        span_id=record.span_id,
        elective_group_id=record.elective_group_id,
    )


def _describe(record) -> str:
    label = f"{record.program_code} semester {record.semester} section {record.section.value}"
    if record.occupancy != WHOLE_SLOT:
        label = f"{label} lab group {record.occupancy}"
    return label


class ConflictDetector:
    """Decides whether a candidate slot collides with what is already scheduled.

    Teacher and room checks only compare semesters of the same parity. The
    section check compares every record of the same program, semester and
    section regardless of parity. Breaks only take part in the section check.
    """

    def __init__(self, repository: SlotRepository, references: ReferenceDirectory) -> None:
        self.repository = repository
        self.references = references

    def detect(
        self,
        draft: SlotDraft,
        *,
        exclude_ids: Iterable[str] = (),
        pending: Sequence[SlotDraft] = (),
    ) -> ConflictReport:
        excluded = set(exclude_ids)
        existing = [
            record
            for record in self.repository.records_at(draft.academic_year_id, draft.day_index, draft.slot_index)
            if record.id not in excluded
        ]

        report = ConflictReport(warnings=self.warnings_for(draft))
        for record in existing:
            report.conflicts.extend(self._compare(draft, record, origin="direct"))

        for other in pending:
            if other is draft or other.day_index != draft.day_index or other.slot_index != draft.slot_index:
                continue
            report.conflicts.extend(self._compare(draft, other, origin="batch"))

        if report.conflicts:
            logger.info(
                "Detected %d conflict(s) for %s on day %d slot %d",
                len(report.conflicts),
                _describe(draft),
                draft.day_index,
                draft.slot_index,
            )
        return report

    def detect_batch(
        self,
        drafts: Sequence[SlotDraft],
        *,
        pending: Sequence[SlotDraft] = (),
        exclude_ids: Iterable[str] = (),
    ) -> ConflictReport:
        """Check drafts that will be written together.

        Each draft is compared against storage, the drafts before it and any
        ``pending`` drafts from an earlier unit of the same request.
        """
        excluded = list(exclude_ids)
        report = ConflictReport()
        accepted: list[SlotDraft] = list(pending)
        for draft in drafts:
            report.extend(self.detect(draft, exclude_ids=excluded, pending=accepted))
            accepted.append(draft)
        return report

    def _compare(self, draft: SlotDraft, record, *, origin: str) -> list[Conflict]:
        conflicts: list[Conflict] = []
        if same_elective_event(draft, record):
            return conflicts

        summary = summarize(record)
        if same_section(draft, record) and occupancies_overlap(draft.occupancy, record.occupancy):
            section_origin = origin
            if draft.class_category == ClassCategory.ELECTIVE and origin == "direct":
                section_origin = (
                    "elective_overlap" if record.class_category == ClassCategory.ELECTIVE else "elective_core"
                )
            conflicts.append(
                Conflict(
                    kind="section",
                    origin=section_origin,
                    resource_id=f"{draft.program_code}:{draft.semester}:{draft.section.value}",
                    resource_name=_describe(draft),
                    reason=self._section_reason(record),
                    conflicting_record=summary,
                )
            )

        if draft.is_break or record.class_kind == ClassKind.BREAK:
            return conflicts
        if not same_parity_group(draft.semester, record.semester):
            return conflicts

        for teacher_id in draft.teacher_ids:
            if teacher_id in (record.teacher_ids or []):
                teacher = self.references.teacher(teacher_id)
                conflicts.append(
                    Conflict(
                        kind="teacher",
                        origin=origin,
                        resource_id=teacher_id,
                        resource_name=teacher.full_name if teacher else None,
                        reason=f"Teacher is already teaching {_describe(record)} at this time",
                        conflicting_record=summary,
                    )
                )

        if draft.room_id and draft.room_id == record.room_id and not sibling_lab_groups(draft, record):
            room = self.references.room(draft.room_id)
            conflicts.append(
                Conflict(
                    kind="room",
                    origin=origin,
                    resource_id=draft.room_id,
                    resource_name=room.name if room else None,
                    reason=f"Room is already booked by {_describe(record)} at this time",
                    conflicting_record=summary,
                )
            )
        return conflicts

    @staticmethod
    def _section_reason(record) -> str:
        if record.span_id:
            return "Slot is part of a multi-period class; clear the whole span before reassigning it"
        if record.elective_group_id:
            return "Slot holds a cross-section elective; clear the elective before reassigning it"
        if record.occupancy == WHOLE_SLOT:
            return "Section already has a class at this time"
        return f"Lab group {record.occupancy} is already scheduled at this time"

    def warnings_for(self, draft: SlotDraft) -> list[ValidationWarning]:
        warnings: list[ValidationWarning] = []
        if draft.is_break:
            return warnings
        if draft.class_kind == ClassKind.P and draft.room_id:
            room = self.references.room(draft.room_id)
            if room is not None and room.type != RoomType.lab:
                warnings.append(
                    ValidationWarning(
                        code="practical_in_non_lab_room",
                        message="Practical classes should typically be assigned to lab rooms",
                    )
                )
        if draft.class_kind != ClassKind.P and len(draft.teacher_ids) > 1:
            warnings.append(
                ValidationWarning(
                    code="multiple_teachers_non_practical",
                    message="Multiple teachers are typically only allowed for practical classes",
                )
            )
        return warnings

    def teacher_availability(
        self,
        *,
        academic_year_id: str,
        teacher_id: str,
        day_index: int,
        slot_index: int,
        semester: int | None = None,
    ) -> AvailabilityOut:
        conflicts = self._availability(
            academic_year_id=academic_year_id,
            day_index=day_index,
            slot_index=slot_index,
            semester=semester,
            matches=lambda record: teacher_id in (record.teacher_ids or []),
            kind="teacher",
            resource_id=teacher_id,
        )
        return AvailabilityOut(
            resource_type="teacher",
            resource_id=teacher_id,
            day_index=day_index,
            slot_index=slot_index,
            semester=semester,
            available=not conflicts,
            conflicts=conflicts,
        )

    def room_availability(
        self,
        *,
        academic_year_id: str,
        room_id: str,
        day_index: int,
        slot_index: int,
        semester: int | None = None,
    ) -> AvailabilityOut:
        conflicts = self._availability(
            academic_year_id=academic_year_id,
            day_index=day_index,
            slot_index=slot_index,
            semester=semester,
            matches=lambda record: record.room_id == room_id,
            kind="room",
            resource_id=room_id,
        )
        return AvailabilityOut(
            resource_type="room",
            resource_id=room_id,
            day_index=day_index,
            slot_index=slot_index,
            semester=semester,
            available=not conflicts,
            conflicts=conflicts,
        )

    def _availability(self, *, academic_year_id, day_index, slot_index, semester, matches, kind, resource_id):
        def relevant(record: ScheduledSlot) -> bool:
            if record.class_kind == ClassKind.BREAK or not matches(record):
                return False
            return semester is None or same_parity_group(semester, record.semester)

        direct = [
            record
            for record in self.repository.records_at(academic_year_id, day_index, slot_index)
            if relevant(record)
        ]
        if direct:
            return [self._busy(kind, resource_id, record, "direct") for record in direct]

        positions = self.references.slot_positions()
        target = positions.get(slot_index, slot_index)
        spans: dict[str, list[ScheduledSlot]] = defaultdict(list)
        for record in self.repository.span_records_on_day(academic_year_id, day_index):
            if relevant(record):
                spans[record.span_id].append(record)

        conflicts: list[Conflict] = []
        for span_id, records in spans.items():
            members = self.repository.span_members(span_id) or records
            covered = [positions.get(member.slot_index, member.slot_index) for member in members]
            if min(covered) <= target <= max(covered):
                master = next((member for member in members if member.is_span_master), members[0])
                conflicts.append(self._busy(kind, resource_id, master, "span"))
        return conflicts

    def _busy(self, kind: str, resource_id: str, record: ScheduledSlot, origin: str) -> Conflict:
        if kind == "teacher":
            teacher = self.references.teacher(resource_id)
            name = teacher.full_name if teacher else None
        else:
            room = self.references.room(resource_id)
            name = room.name if room else None
        return Conflict(
            kind=kind,
            origin=origin,
            resource_id=resource_id,
            resource_name=name,
            reason=f"{kind.capitalize()} is busy with {_describe(record)}",
            conflicting_record=summarize(record),
        )
