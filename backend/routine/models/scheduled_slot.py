from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Index, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from routine.db.base import Base


class Section(str, Enum):
    AB = "AB"
    CD = "CD"


class ClassKind(str, Enum):
    L = "L"
    P = "P"
    T = "T"
    BREAK = "BREAK"


class LabGroup(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    ALL = "ALL"


class ClassCategory(str, Enum):
    CORE = "CORE"
    ELECTIVE = "ELECTIVE"


WHOLE_SLOT = "ALL"

SECTION_LAB_GROUPS: dict[Section, tuple[LabGroup, LabGroup]] = {
    Section.AB: (LabGroup.A, LabGroup.B),
    Section.CD: (LabGroup.C, LabGroup.D),
}


def lab_group_belongs_to(section: Section, lab_group: LabGroup) -> bool:
    return lab_group == LabGroup.ALL or lab_group in SECTION_LAB_GROUPS[section]


class ScheduledSlot(Base):
    __tablename__ = "scheduled_slots"
    __table_args__ = (
        UniqueConstraint(
            "program_id",
            "academic_year_id",
            "semester",
            "section",
            "day_index",
            "slot_index",
            "occupancy",
            name="uq_scheduled_slots_section_slot",
        ),
        Index("ix_scheduled_slots_year_day_slot", "academic_year_id", "day_index", "slot_index"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    program_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    program_code: Mapped[str] = mapped_column(String(20), nullable=False)
    academic_year_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    section: Mapped[Section] = mapped_column(SAEnum(Section, name="routine_section"), nullable=False)
    day_index: Mapped[int] = mapped_column(Integer, nullable=False)
    slot_index: Mapped[int] = mapped_column(Integer, nullable=False)

    class_kind: Mapped[ClassKind] = mapped_column(SAEnum(ClassKind, name="class_kind"), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    teacher_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    room_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    lab_group: Mapped[LabGroup | None] = mapped_column(SAEnum(LabGroup, name="lab_group"), nullable=True)
    # "ALL" for whole-slot records, otherwise the lab group letter.
    occupancy: Mapped[str] = mapped_column(String(3), nullable=False, default=WHOLE_SLOT)

    is_alternating_week: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    alternate_group_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    span_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    is_span_master: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    class_category: Mapped[ClassCategory] = mapped_column(
        SAEnum(ClassCategory, name="class_category"),
        nullable=False,
        default=ClassCategory.CORE,
    )
    elective_group_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    elective_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_break(self) -> bool:
        return self.class_kind == ClassKind.BREAK

