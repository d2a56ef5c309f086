from __future__ import annotations

from dataclasses import dataclass, field

from routine.core.exceptions import ValidationError
from routine.models.academic_year import AcademicYear
from routine.models.program import Program
from routine.models.scheduled_slot import (
    WHOLE_SLOT,
    ClassCategory,
    ClassKind,
    LabGroup,
    ScheduledSlot,
    Section,
    lab_group_belongs_to,
)
from routine.services.references import ReferenceDirectory


@dataclass
class SlotDraft:
    """A validated, not yet persisted scheduled slot."""

    program_id: str
    program_code: str
    academic_year_id: str
    semester: int
    section: Section
    day_index: int
    slot_index: int
    class_kind: ClassKind
    subject_id: str | None = None
    teacher_ids: list[str] = field(default_factory=list)
    room_id: str | None = None
    lab_group: LabGroup | None = None
    is_alternating_week: bool = False
    alternate_group_config: dict | None = None
    span_id: str | None = None
    is_span_master: bool = False
    class_category: ClassCategory = ClassCategory.CORE
    elective_group_id: str | None = None
    elective_info: dict | None = None
    notes: str | None = None

    id = None

    @property
    def occupancy(self) -> str:
        if self.lab_group is None or self.lab_group == LabGroup.ALL:
            return WHOLE_SLOT
        return self.lab_group.value

    @property
    def is_break(self) -> bool:
        return self.class_kind == ClassKind.BREAK

    def _values(self) -> dict:
        return {
            "program_id": self.program_id,
            "program_code": self.program_code,
            "academic_year_id": self.academic_year_id,
            "semester": self.semester,
            "section": self.section,
            "day_index": self.day_index,
            "slot_index": self.slot_index,
            "class_kind": self.class_kind,
            "subject_id": self.subject_id,
            "teacher_ids": list(self.teacher_ids),
            "room_id": self.room_id,
            "lab_group": self.lab_group,
            "occupancy": self.occupancy,
            "is_alternating_week": self.is_alternating_week,
            "alternate_group_config": self.alternate_group_config,
            "span_id": self.span_id,
            "is_span_master": self.is_span_master,
            "class_category": self.class_category,
            "elective_group_id": self.elective_group_id,
            "elective_info": self.elective_info,
            "notes": self.notes,
        }

    def to_record(self) -> ScheduledSlot:
        return ScheduledSlot(is_active=True, **self._values())

    def apply_to(self, record: ScheduledSlot) -> ScheduledSlot:
        for key, value in self._values().items():
            setattr(record, key, value)
        record.is_active = True
        return record


def validate_semester(program: Program, semester: int) -> None:
    if semester < 1 or semester > program.total_semesters:
        raise ValidationError(
            f"Semester must be between 1 and {program.total_semesters} for {program.code}",
            fields={"semester": semester},
        )


def resolve_lab_group(class_kind: ClassKind, section: Section, lab_group: LabGroup | None) -> LabGroup | None:
    if class_kind != ClassKind.P:
        if lab_group is not None:
            raise ValidationError(
                "Lab groups can only be set on practical classes",
                fields={"lab_group": lab_group.value},
            )
        return None
    if lab_group is None:
        return LabGroup.ALL
    if not lab_group_belongs_to(section, lab_group):
        raise ValidationError(
            f"Lab group {lab_group.value} does not belong to section {section.value}",
            fields={"lab_group": lab_group.value},
        )
    return lab_group


def build_draft(
    references: ReferenceDirectory,
    *,
    program: Program,
    academic_year: AcademicYear,
    semester: int,
    section: Section,
    day_index: int,
    slot_index: int,
    class_kind: ClassKind,
    subject_id: str | None,
    teacher_ids: list[str],
    room_id: str | None,
    lab_group: LabGroup | None = None,
    is_alternating_week: bool = False,
    alternate_group_config: dict | None = None,
    notes: str | None = None,
) -> SlotDraft:
    """Check the shape of one assignment and that everything it references is active."""
    if class_kind == ClassKind.BREAK:
        references.require_time_slot(slot_index)
        return SlotDraft(
            program_id=program.id,
            program_code=program.code,
            academic_year_id=academic_year.id,
            semester=semester,
            section=section,
            day_index=day_index,
            slot_index=slot_index,
            class_kind=class_kind,
            notes=notes,
        )

    missing: dict[str, str] = {}
    if not subject_id:
        missing["subject_id"] = "required"
    if not teacher_ids:
        missing["teacher_ids"] = "at least one teacher is required"
    if not room_id:
        missing["room_id"] = "required"
    if missing:
        raise ValidationError("Subject, teachers and room are required for a class", fields=missing)

    resolved_group = resolve_lab_group(class_kind, section, lab_group)
    if is_alternating_week and class_kind != ClassKind.P:
        raise ValidationError(
            "Only practical classes can alternate weeks",
            fields={"is_alternating_week": True},
        )

    time_slot = references.require_time_slot(slot_index)
    if time_slot.is_break:
        raise ValidationError(
            f"Slot {time_slot.label} is a break and cannot hold a class",
            fields={"slot_index": slot_index},
        )
    references.require_subject(subject_id)
    references.require_teachers(teacher_ids)
    references.require_room(room_id)

    return SlotDraft(
        program_id=program.id,
        program_code=program.code,
        academic_year_id=academic_year.id,
        semester=semester,
        section=section,
        day_index=day_index,
        slot_index=slot_index,
        class_kind=class_kind,
        subject_id=subject_id,
        teacher_ids=list(teacher_ids),
        room_id=room_id,
        lab_group=resolved_group,
        is_alternating_week=is_alternating_week,
        alternate_group_config=alternate_group_config if is_alternating_week else None,
        notes=notes,
    )
