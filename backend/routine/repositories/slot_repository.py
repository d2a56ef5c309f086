from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from routine.core.exceptions import StorageConstraintError
from routine.models.scheduled_slot import ScheduledSlot, Section

logger = logging.getLogger(__name__)


class SlotRepository(ABC):
    """Persistence boundary for scheduled slot records.

    Only active records are returned unless a method says otherwise.
    Implementations that cannot group writes atomically set
    ``supports_transactions`` to ``False``; callers then fall back to
    compensating deletes.
    """

    supports_transactions: bool = True

    @abstractmethod
    def get(self, slot_id: str) -> ScheduledSlot | None:
        ...

    @abstractmethod
    def records_at_key(
        self,
        *,
        program_id: str,
        academic_year_id: str,
        semester: int,
        section: Section,
        day_index: int,
        slot_index: int,
        include_inactive: bool = False,
    ) -> list[ScheduledSlot]:
        """Every occupancy recorded for one section at one day and slot."""

    @abstractmethod
    def records_at(self, academic_year_id: str, day_index: int, slot_index: int) -> list[ScheduledSlot]:
        """All records at a day and slot across programs, semesters and sections."""

    @abstractmethod
    def span_records_on_day(self, academic_year_id: str, day_index: int) -> list[ScheduledSlot]:
        ...

    @abstractmethod
    def span_members(self, span_id: str) -> list[ScheduledSlot]:
        ...

    @abstractmethod
    def elective_members(self, elective_group_id: str) -> list[ScheduledSlot]:
        ...

    @abstractmethod
    def section_records(
        self,
        *,
        program_id: str,
        academic_year_id: str,
        semester: int,
        section: Section,
    ) -> list[ScheduledSlot]:
        ...

    @abstractmethod
    def year_records(self, academic_year_id: str) -> list[ScheduledSlot]:
        ...

    @abstractmethod
    def add(self, record: ScheduledSlot) -> ScheduledSlot:
        ...

    @abstractmethod
    def save(self, record: ScheduledSlot) -> ScheduledSlot:
        ...

    @abstractmethod
    def delete(self, record: ScheduledSlot) -> None:
        ...

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Commit everything written inside the block, or nothing."""

    def teacher_records(self, academic_year_id: str, teacher_id: str) -> list[ScheduledSlot]:
        return [record for record in self.year_records(academic_year_id) if teacher_id in (record.teacher_ids or [])]

    def room_records(self, academic_year_id: str, room_id: str) -> list[ScheduledSlot]:
        return [record for record in self.year_records(academic_year_id) if record.room_id == room_id]


class SqlAlchemySlotRepository(SlotRepository):
    supports_transactions = True

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, slot_id: str) -> ScheduledSlot | None:
        return self.db.get(ScheduledSlot, slot_id)

    def records_at_key(
        self,
        *,
        program_id: str,
        academic_year_id: str,
        semester: int,
        section: Section,
        day_index: int,
        slot_index: int,
        include_inactive: bool = False,
    ) -> list[ScheduledSlot]:
        query = select(ScheduledSlot).where(
            ScheduledSlot.program_id == program_id,
            ScheduledSlot.academic_year_id == academic_year_id,
            ScheduledSlot.semester == semester,
            ScheduledSlot.section == section,
            ScheduledSlot.day_index == day_index,
            ScheduledSlot.slot_index == slot_index,
        )
        if not include_inactive:
            query = query.where(ScheduledSlot.is_active.is_(True))
        return list(self.db.execute(query).scalars())

    def records_at(self, academic_year_id: str, day_index: int, slot_index: int) -> list[ScheduledSlot]:
        return list(
            self.db.execute(
                select(ScheduledSlot).where(
                    ScheduledSlot.academic_year_id == academic_year_id,
                    ScheduledSlot.day_index == day_index,
                    ScheduledSlot.slot_index == slot_index,
                    ScheduledSlot.is_active.is_(True),
                )
            ).scalars()
        )

    def span_records_on_day(self, academic_year_id: str, day_index: int) -> list[ScheduledSlot]:
        return list(
            self.db.execute(
                select(ScheduledSlot).where(
                    ScheduledSlot.academic_year_id == academic_year_id,
                    ScheduledSlot.day_index == day_index,
                    ScheduledSlot.span_id.is_not(None),
                    ScheduledSlot.is_active.is_(True),
                )
            ).scalars()
        )

    def span_members(self, span_id: str) -> list[ScheduledSlot]:
        return list(
            self.db.execute(
                select(ScheduledSlot)
                .where(ScheduledSlot.span_id == span_id, ScheduledSlot.is_active.is_(True))
                .order_by(ScheduledSlot.slot_index)
            ).scalars()
        )

    def elective_members(self, elective_group_id: str) -> list[ScheduledSlot]:
        return list(
            self.db.execute(
                select(ScheduledSlot)
                .where(
                    ScheduledSlot.elective_group_id == elective_group_id,
                    ScheduledSlot.is_active.is_(True),
                )
                .order_by(ScheduledSlot.section, ScheduledSlot.slot_index)
            ).scalars()
        )

    def section_records(
        self,
        *,
        program_id: str,
        academic_year_id: str,
        semester: int,
        section: Section,
    ) -> list[ScheduledSlot]:
        return list(
            self.db.execute(
                select(ScheduledSlot)
                .where(
                    ScheduledSlot.program_id == program_id,
                    ScheduledSlot.academic_year_id == academic_year_id,
                    ScheduledSlot.semester == semester,
                    ScheduledSlot.section == section,
                    ScheduledSlot.is_active.is_(True),
                )
                .order_by(ScheduledSlot.day_index, ScheduledSlot.slot_index, ScheduledSlot.occupancy)
            ).scalars()
        )

    def year_records(self, academic_year_id: str) -> list[ScheduledSlot]:
        return list(
            self.db.execute(
                select(ScheduledSlot)
                .where(
                    ScheduledSlot.academic_year_id == academic_year_id,
                    ScheduledSlot.is_active.is_(True),
                )
                .order_by(ScheduledSlot.day_index, ScheduledSlot.slot_index)
            ).scalars()
        )

    def add(self, record: ScheduledSlot) -> ScheduledSlot:
        self.db.add(record)
        self._flush()
        return record

    def save(self, record: ScheduledSlot) -> ScheduledSlot:
        self._flush()
        return record

    def delete(self, record: ScheduledSlot) -> None:
        self.db.delete(record)
        self._flush()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise self._constraint_error(exc) from exc
        except Exception:
            self.db.rollback()
            raise

    def _flush(self) -> None:
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise self._constraint_error(exc) from exc

    @staticmethod
    def _constraint_error(exc: IntegrityError) -> StorageConstraintError:
        logger.warning("Scheduled slot write rejected by storage constraint: %s", exc.orig)
        return StorageConstraintError(
            "Another class was saved for this slot at the same time; reload and try again",
            details={"storage_error": str(exc.orig)},
        )
