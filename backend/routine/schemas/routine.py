from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from routine.models.scheduled_slot import ClassCategory, ClassKind, LabGroup, Section
from routine.schemas.conflict import ValidationWarning


def _clean_ids(values: list[str]) -> list[str]:
    cleaned = [item.strip() for item in values if item and item.strip()]
    return list(dict.fromkeys(cleaned))


class ElectiveType(str, Enum):
    TECHNICAL = "TECHNICAL"
    MANAGEMENT = "MANAGEMENT"
    OPEN = "OPEN"


class SlotAssignmentIn(BaseModel):
    day_index: int = Field(ge=0, le=6)
    slot_index: int = Field(ge=0)
    class_kind: ClassKind
    subject_id: str | None = None
    teacher_ids: list[str] = Field(default_factory=list, max_length=10)
    room_id: str | None = None
    lab_group: LabGroup | None = None
    is_alternating_week: bool = False
    alternate_group_config: dict | None = None
    notes: str | None = Field(default=None, max_length=500)
    strict: bool | None = None

    @field_validator("teacher_ids")
    @classmethod
    def normalize_teacher_ids(cls, value: list[str]) -> list[str]:
        return _clean_ids(value)


class ConflictCheckIn(SlotAssignmentIn):
    program_code: str = Field(min_length=1, max_length=20)
    semester: int = Field(ge=1, le=8)
    section: Section


class LabGroupAssignmentIn(BaseModel):
    lab_group: LabGroup
    subject_id: str
    teacher_ids: list[str] = Field(min_length=1, max_length=10)
    room_id: str
    is_alternating_week: bool = False
    alternate_group_config: dict | None = None
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("teacher_ids")
    @classmethod
    def normalize_teacher_ids(cls, value: list[str]) -> list[str]:
        return _clean_ids(value)


class SpannedAssignmentIn(BaseModel):
    program_code: str = Field(min_length=1, max_length=20)
    semester: int = Field(ge=1, le=8)
    section: Section
    day_index: int = Field(ge=0, le=6)
    slot_indexes: list[int] = Field(min_length=2, max_length=12)
    class_kind: ClassKind = ClassKind.P
    subject_id: str | None = None
    teacher_ids: list[str] = Field(default_factory=list, max_length=10)
    room_id: str | None = None
    lab_group: LabGroup | None = None
    is_alternating_week: bool = False
    alternate_group_config: dict | None = None
    notes: str | None = Field(default=None, max_length=500)
    both_groups: bool = False
    groups: list[LabGroupAssignmentIn] | None = Field(default=None, max_length=2)
    strict: bool | None = None

    @field_validator("teacher_ids")
    @classmethod
    def normalize_teacher_ids(cls, value: list[str]) -> list[str]:
        return _clean_ids(value)


class StudentEnrollmentIn(BaseModel):
    total: int | None = Field(default=None, ge=0)
    from_ab: int = Field(default=0, ge=0)
    from_cd: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def fill_total(self) -> "StudentEnrollmentIn":
        if self.total is None:
            self.total = self.from_ab + self.from_cd
        return self


class ElectiveScheduleIn(BaseModel):
    program_code: str = Field(min_length=1, max_length=20)
    semester: int = Field(ge=1, le=8)
    day_index: int = Field(ge=0, le=6)
    slot_indexes: list[int] = Field(min_length=1, max_length=12)
    class_kind: ClassKind = ClassKind.L
    subject_id: str
    teacher_ids: list[str] = Field(min_length=1, max_length=10)
    room_id: str
    target_sections: list[Section] = Field(default_factory=lambda: [Section.AB, Section.CD])
    elective_number: int = Field(default=1, ge=1, le=3)
    elective_type: ElectiveType = ElectiveType.TECHNICAL
    group_name: str | None = Field(default=None, max_length=200)
    student_enrollment: StudentEnrollmentIn | None = None
    notes: str | None = Field(default=None, max_length=500)
    strict: bool | None = None

    @field_validator("teacher_ids")
    @classmethod
    def normalize_teacher_ids(cls, value: list[str]) -> list[str]:
        return _clean_ids(value)


class ScheduledSlotOut(BaseModel):
    id: str
    program_code: str
    academic_year_id: str
    semester: int
    section: Section
    day_index: int
    slot_index: int
    class_kind: ClassKind
    subject_id: str | None = None
    teacher_ids: list[str] = Field(default_factory=list)
    room_id: str | None = None
    lab_group: LabGroup | None = None
    occupancy: str
    is_alternating_week: bool = False
    alternate_group_config: dict | None = None
    span_id: str | None = None
    is_span_master: bool = False
    class_category: ClassCategory
    elective_group_id: str | None = None
    elective_info: dict | None = None
    notes: str | None = None

    model_config = {"from_attributes": True}


class AssignmentOut(BaseModel):
    created: bool
    record: ScheduledSlotOut
    warnings: list[ValidationWarning] = Field(default_factory=list)


class SpanOut(BaseModel):
    span_id: str
    lab_group: LabGroup | None = None
    records: list[ScheduledSlotOut]


class SpannedAssignmentOut(BaseModel):
    spans: list[SpanOut]
    warnings: list[ValidationWarning] = Field(default_factory=list)


class ElectiveScheduleOut(BaseModel):
    elective_group_id: str
    elective_info: dict
    span_ids: list[str] = Field(default_factory=list)
    records: list[ScheduledSlotOut]
    warnings: list[ValidationWarning] = Field(default_factory=list)


class ClearResultOut(BaseModel):
    found: bool
    deleted: int = 0
    teacher_ids: list[str] = Field(default_factory=list)
    span_ids: list[str] = Field(default_factory=list)
    elective_group_ids: list[str] = Field(default_factory=list)


class TimeSlotOut(BaseModel):
    id: int
    label: str
    start_time: str
    end_time: str
    sort_order: int
    is_break: bool

    model_config = {"from_attributes": True}


class RoutineEntryOut(BaseModel):
    id: str
    program_code: str
    semester: int
    section: Section
    day_index: int
    slot_index: int
    class_kind: ClassKind
    class_kind_label: str
    subject_id: str | None = None
    subject_code: str | None = None
    subject_name: str | None = None
    teacher_ids: list[str] = Field(default_factory=list)
    teacher_names: list[str] = Field(default_factory=list)
    teacher_short_names: list[str] = Field(default_factory=list)
    room_id: str | None = None
    room_name: str | None = None
    lab_group: LabGroup | None = None
    lab_group_label: str | None = None
    display_label: str
    is_alternating_week: bool = False
    span_id: str | None = None
    is_span_master: bool = False
    span_length: int = 1
    class_category: ClassCategory
    elective_group_id: str | None = None
    elective_code: str | None = None
    notes: str | None = None


class RoutineOut(BaseModel):
    program_code: str
    semester: int
    section: Section
    academic_year_id: str
    time_slots: list[TimeSlotOut]
    grid: dict[int, dict[int, list[RoutineEntryOut]]]


class ResourceScheduleOut(BaseModel):
    resource_type: str
    resource_id: str
    resource_name: str
    academic_year_id: str
    entries: list[RoutineEntryOut]
