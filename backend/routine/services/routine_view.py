from __future__ import annotations

from collections import Counter, defaultdict

from routine.models.scheduled_slot import SECTION_LAB_GROUPS, ClassKind, LabGroup, ScheduledSlot, Section
from routine.repositories.slot_repository import SlotRepository
from routine.schemas.routine import ResourceScheduleOut, RoutineEntryOut, RoutineOut, TimeSlotOut
from routine.services.references import ReferenceDirectory

CLASS_KIND_LABELS = {
    ClassKind.L: "Lecture",
    ClassKind.P: "Practical",
    ClassKind.T: "Tutorial",
    ClassKind.BREAK: "Break",
}


def lab_group_label(record: ScheduledSlot) -> str | None:
    if record.class_kind != ClassKind.P or record.lab_group is None:
        return None
    if record.lab_group == LabGroup.ALL:
        first, second = SECTION_LAB_GROUPS[Section(record.section)]
        return f"Groups {first.value} & {second.value}"
    label = f"Group {record.lab_group.value}"
    if record.is_alternating_week:
        label = f"{label} - Alt Week"
    return label


class RoutineView:
    """Read-time projection of scheduled slots with names resolved from references."""

    def __init__(self, repository: SlotRepository, references: ReferenceDirectory) -> None:
        self.repository = repository
        self.references = references

    def entry(self, record: ScheduledSlot, span_lengths: Counter | None = None) -> RoutineEntryOut:
        subject = self.references.subject(record.subject_id)
        teachers = [self.references.teacher(teacher_id) for teacher_id in record.teacher_ids or []]
        room = self.references.room(record.room_id)
        group_label = lab_group_label(record)

        if record.class_kind == ClassKind.BREAK:
            display = "Break"
        else:
            display = subject.name if subject else "Unknown subject"
            if group_label:
                display = f"{display} ({group_label})"

        span_length = 1
        if record.span_id:
            if span_lengths is not None and record.span_id in span_lengths:
                span_length = span_lengths[record.span_id]
            else:
                span_length = len(self.repository.span_members(record.span_id)) or 1

        elective_info = record.elective_info or {}
        return RoutineEntryOut(
            id=record.id,
            program_code=record.program_code,
            semester=record.semester,
            section=record.section,
            day_index=record.day_index,
            slot_index=record.slot_index,
            class_kind=record.class_kind,
            class_kind_label=CLASS_KIND_LABELS[ClassKind(record.class_kind)],
            subject_id=record.subject_id,
            subject_code=subject.code if subject else None,
            subject_name=subject.name if subject else None,
            teacher_ids=list(record.teacher_ids or []),
            teacher_names=[teacher.full_name for teacher in teachers if teacher],
            teacher_short_names=[teacher.short_name for teacher in teachers if teacher],
            room_id=record.room_id,
            room_name=room.name if room else None,
            lab_group=record.lab_group,
            lab_group_label=group_label,
            display_label=display,
            is_alternating_week=record.is_alternating_week,
            span_id=record.span_id,
            is_span_master=record.is_span_master,
            span_length=span_length,
            class_category=record.class_category,
            elective_group_id=record.elective_group_id,
            elective_code=elective_info.get("elective_code"),
            notes=record.notes,
        )

    def section_routine(self, program_code: str, semester: int, section: Section) -> RoutineOut:
        program = self.references.require_program(program_code)
        academic_year = self.references.current_academic_year()
        records = self.repository.section_records(
            program_id=program.id,
            academic_year_id=academic_year.id,
            semester=semester,
            section=section,
        )
        span_lengths = Counter(record.span_id for record in records if record.span_id)

        grid: dict[int, dict[int, list[RoutineEntryOut]]] = defaultdict(lambda: defaultdict(list))
        for record in records:
            grid[record.day_index][record.slot_index].append(self.entry(record, span_lengths))

        return RoutineOut(
            program_code=program.code,
            semester=semester,
            section=section,
            academic_year_id=academic_year.id,
            time_slots=[TimeSlotOut.model_validate(slot) for slot in self.references.time_slots()],
            grid={day: dict(slots) for day, slots in grid.items()},
        )

    def teacher_schedule(self, teacher_id: str) -> ResourceScheduleOut:
        teacher = self.references.require_teacher(teacher_id)
        academic_year = self.references.current_academic_year()
        records = self.repository.teacher_records(academic_year.id, teacher_id)
        return ResourceScheduleOut(
            resource_type="teacher",
            resource_id=teacher.id,
            resource_name=teacher.full_name,
            academic_year_id=academic_year.id,
            entries=self._entries(records),
        )

    def room_schedule(self, room_id: str) -> ResourceScheduleOut:
        room = self.references.require_room(room_id)
        academic_year = self.references.current_academic_year()
        records = self.repository.room_records(academic_year.id, room_id)
        return ResourceScheduleOut(
            resource_type="room",
            resource_id=room.id,
            resource_name=room.name,
            academic_year_id=academic_year.id,
            entries=self._entries(records),
        )

    def _entries(self, records: list[ScheduledSlot]) -> list[RoutineEntryOut]:
        span_lengths = Counter(record.span_id for record in records if record.span_id)
        ordered = sorted(records, key=lambda record: (record.day_index, record.slot_index, record.program_code))
        return [self.entry(record, span_lengths) for record in ordered]
