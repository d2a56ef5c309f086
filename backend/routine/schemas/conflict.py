from typing import Literal

from pydantic import BaseModel, Field

from routine.models.scheduled_slot import ClassKind, LabGroup, Section


class ConflictingRecord(BaseModel):
    id: str | None = None
    program_code: str
    semester: int
    section: Section
    day_index: int
    slot_index: int
    class_kind: ClassKind
    lab_group: LabGroup | None = None
    subject_id: str | None = None
    teacher_ids: list[str] = Field(default_factory=list)
    room_id: str | None = None
    span_id: str | None = None
    elective_group_id: str | None = None


class Conflict(BaseModel):
    kind: Literal["teacher", "room", "section"]
    origin: Literal["direct", "span", "elective_core", "elective_overlap", "batch"] = "direct"
    resource_id: str | None = None
    resource_name: str | None = None
    reason: str
    conflicting_record: ConflictingRecord


class ValidationWarning(BaseModel):
    code: Literal["practical_in_non_lab_room", "multiple_teachers_non_practical"]
    message: str


class ConflictReport(BaseModel):
    conflicts: list[Conflict] = Field(default_factory=list)
    warnings: list[ValidationWarning] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def extend(self, other: "ConflictReport") -> None:
        self.conflicts.extend(other.conflicts)
        for warning in other.warnings:
            if warning not in self.warnings:
                self.warnings.append(warning)


class AvailabilityOut(BaseModel):
    resource_type: Literal["teacher", "room"]
    resource_id: str
    day_index: int
    slot_index: int
    semester: int | None = None
    available: bool
    conflicts: list[Conflict] = Field(default_factory=list)
