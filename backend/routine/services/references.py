from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from routine.core.exceptions import ReferenceNotFoundError, ValidationError
from routine.models.academic_year import AcademicYear
from routine.models.program import Program
from routine.models.room import Room
from routine.models.subject import Subject
from routine.models.teacher import Teacher
from routine.models.time_slot import TimeSlot


class ReferenceDirectory:
    """Read-only lookups of the entities a scheduled slot points at."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._teachers: dict[str, Teacher | None] = {}
        self._rooms: dict[str, Room | None] = {}
        self._subjects: dict[str, Subject | None] = {}
        self._time_slots: list[TimeSlot] | None = None

    def require_program(self, program_code: str) -> Program:
        code = program_code.strip().upper()
        program = self.db.execute(select(Program).where(Program.code == code)).scalar_one_or_none()
        if program is None or not program.is_active:
            raise ReferenceNotFoundError("Program", code)
        return program

    def current_academic_year(self) -> AcademicYear:
        year = self.db.execute(
            select(AcademicYear)
            .where(AcademicYear.is_current.is_(True), AcademicYear.is_active.is_(True))
            .order_by(AcademicYear.created_at.desc())
        ).scalars().first()
        if year is None:
            raise ReferenceNotFoundError("AcademicYear", "current", message="No current academic year is configured")
        return year

    def subject(self, subject_id: str | None) -> Subject | None:
        if not subject_id:
            return None
        if subject_id not in self._subjects:
            self._subjects[subject_id] = self.db.get(Subject, subject_id)
        return self._subjects[subject_id]

    def teacher(self, teacher_id: str) -> Teacher | None:
        if teacher_id not in self._teachers:
            self._teachers[teacher_id] = self.db.get(Teacher, teacher_id)
        return self._teachers[teacher_id]

    def room(self, room_id: str | None) -> Room | None:
        if not room_id:
            return None
        if room_id not in self._rooms:
            self._rooms[room_id] = self.db.get(Room, room_id)
        return self._rooms[room_id]

    def require_subject(self, subject_id: str) -> Subject:
        subject = self.subject(subject_id)
        if subject is None or not subject.is_active:
            raise ReferenceNotFoundError("Subject", subject_id)
        return subject

    def require_teacher(self, teacher_id: str) -> Teacher:
        teacher = self.teacher(teacher_id)
        if teacher is None or not teacher.is_active:
            raise ReferenceNotFoundError("Teacher", teacher_id)
        return teacher

    def require_teachers(self, teacher_ids: list[str]) -> list[Teacher]:
        return [self.require_teacher(teacher_id) for teacher_id in teacher_ids]

    def require_room(self, room_id: str) -> Room:
        room = self.room(room_id)
        if room is None or not room.is_active:
            raise ReferenceNotFoundError("Room", room_id)
        return room

    def time_slots(self) -> list[TimeSlot]:
        if self._time_slots is None:
            self._time_slots = list(
                self.db.execute(
                    select(TimeSlot)
                    .where(TimeSlot.is_active.is_(True))
                    .order_by(TimeSlot.sort_order, TimeSlot.id)
                ).scalars()
            )
        return self._time_slots

    def slot_positions(self) -> dict[int, int]:
        return {slot.id: position for position, slot in enumerate(self.time_slots())}

    def require_time_slot(self, slot_index: int) -> TimeSlot:
        for slot in self.time_slots():
            if slot.id == slot_index:
                return slot
        raise ReferenceNotFoundError("TimeSlot", str(slot_index))

    def require_contiguous_slots(self, slot_indexes: list[int]) -> list[TimeSlot]:
        """Resolve teaching slots that must follow each other without a gap.

        Slots are returned in day order. A break between two requested slots
        breaks contiguity.
        """
        if len(set(slot_indexes)) != len(slot_indexes):
            raise ValidationError(
                "Slot indexes must be unique",
                fields={"slot_indexes": "duplicate slot index"},
            )
        slots = [self.require_time_slot(slot_index) for slot_index in slot_indexes]
        breaks = [slot.id for slot in slots if slot.is_break]
        if breaks:
            raise ValidationError(
                "Classes cannot be scheduled in break slots",
                fields={"slot_indexes": f"break slots: {breaks}"},
            )

        positions = self.slot_positions()
        ordered = sorted(slots, key=lambda slot: positions[slot.id])
        for previous, current in zip(ordered, ordered[1:]):
            if positions[current.id] != positions[previous.id] + 1:
                raise ValidationError(
                    "Slots must be consecutive",
                    fields={"slot_indexes": f"slot {previous.id} is not followed by slot {current.id}"},
                )
        return ordered
