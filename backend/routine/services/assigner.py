from __future__ import annotations

import logging

from routine.models.scheduled_slot import LabGroup, Section, WHOLE_SLOT
from routine.repositories.slot_repository import SlotRepository
from routine.schemas.conflict import ConflictReport
from routine.schemas.routine import SlotAssignmentIn
from routine.services import batch_writer
from routine.services.conflict_detector import ConflictDetector
from routine.services.drafting import build_draft, validate_semester
from routine.services.outcomes import (
    AssignmentResult,
    ClearResult,
    collect_teacher_ids,
    expand_siblings,
    raise_for_report,
)
from routine.services.references import ReferenceDirectory
from routine.services.schedule_events import ScheduleChange

logger = logging.getLogger(__name__)


class SlotAssigner:
    """Single slot assignment keyed by program, semester, section, day, slot and lab group."""

    def __init__(
        self,
        repository: SlotRepository,
        references: ReferenceDirectory,
        *,
        strict_default: bool = False,
    ) -> None:
        self.repository = repository
        self.references = references
        self.detector = ConflictDetector(repository, references)
        self.strict_default = strict_default

    def _draft(self, program_code: str, semester: int, section: Section, payload: SlotAssignmentIn):
        program = self.references.require_program(program_code)
        validate_semester(program, semester)
        academic_year = self.references.current_academic_year()
        return build_draft(
            self.references,
            program=program,
            academic_year=academic_year,
            semester=semester,
            section=section,
            day_index=payload.day_index,
            slot_index=payload.slot_index,
            class_kind=payload.class_kind,
            subject_id=payload.subject_id,
            teacher_ids=payload.teacher_ids,
            room_id=payload.room_id,
            lab_group=payload.lab_group,
            is_alternating_week=payload.is_alternating_week,
            alternate_group_config=payload.alternate_group_config,
            notes=payload.notes,
        )

    def _existing_at_key(self, draft):
        records = self.repository.records_at_key(
            program_id=draft.program_id,
            academic_year_id=draft.academic_year_id,
            semester=draft.semester,
            section=draft.section,
            day_index=draft.day_index,
            slot_index=draft.slot_index,
            include_inactive=True,
        )
        return next((record for record in records if record.occupancy == draft.occupancy), None)

    @staticmethod
    def _replaceable(record) -> bool:
        if record is None:
            return False
        # Inactive rows are reused whatever they held before.
        return not record.is_active or (not record.span_id and not record.elective_group_id)

    def check(self, program_code: str, semester: int, section: Section, payload: SlotAssignmentIn) -> ConflictReport:
        """Run every check an assignment would run without writing anything."""
        draft = self._draft(program_code, semester, section, payload)
        existing = self._existing_at_key(draft)
        exclude = [existing.id] if self._replaceable(existing) else []
        return self.detector.detect(draft, exclude_ids=exclude)

    def assign(
        self,
        program_code: str,
        semester: int,
        section: Section,
        payload: SlotAssignmentIn,
    ) -> AssignmentResult:
        draft = self._draft(program_code, semester, section, payload)
        existing = self._existing_at_key(draft)
        exclude = [existing.id] if self._replaceable(existing) else []

        report = self.detector.detect(draft, exclude_ids=exclude)
        strict = self.strict_default if payload.strict is None else payload.strict
        raise_for_report(report, strict=strict)

        previous_teachers: list[str] = []
        with self.repository.transaction():
            if self._replaceable(existing):
                if existing.is_active:
                    previous_teachers = list(existing.teacher_ids or [])
                record = self.repository.save(draft.apply_to(existing))
                created = False
            else:
                record = self.repository.add(draft.to_record())
                created = True

        logger.info(
            "%s %s class for %s semester %d section %s on day %d slot %d",
            "Created" if created else "Updated",
            draft.class_kind.value,
            draft.program_code,
            draft.semester,
            draft.section.value,
            draft.day_index,
            draft.slot_index,
        )
        change = ScheduleChange.for_teachers(
            "create" if created else "update",
            previous_teachers,
            draft.teacher_ids,
            program_code=draft.program_code,
            semester=draft.semester,
            section=draft.section.value,
            day_index=draft.day_index,
            slot_index=draft.slot_index,
        )
        return AssignmentResult(record=record, created=created, warnings=report.warnings, change=change)

    def clear_slot(
        self,
        program_code: str,
        semester: int,
        section: Section,
        day_index: int,
        slot_index: int,
        lab_group: LabGroup | None = None,
    ) -> ClearResult:
        program = self.references.require_program(program_code)
        academic_year = self.references.current_academic_year()
        records = self.repository.records_at_key(
            program_id=program.id,
            academic_year_id=academic_year.id,
            semester=semester,
            section=section,
            day_index=day_index,
            slot_index=slot_index,
        )
        if lab_group is not None:
            occupancy = WHOLE_SLOT if lab_group == LabGroup.ALL else lab_group.value
            records = [record for record in records if record.occupancy == occupancy]
        if not records:
            return ClearResult.not_found()

        targets = expand_siblings(self.repository, records)
        teacher_ids = collect_teacher_ids(targets)
        span_ids = sorted({record.span_id for record in targets if record.span_id})
        elective_ids = sorted({record.elective_group_id for record in targets if record.elective_group_id})
        deleted = batch_writer.delete_all(self.repository, targets)

        logger.info(
            "Cleared %d record(s) at %s semester %d section %s day %d slot %d",
            deleted,
            program.code,
            semester,
            section.value,
            day_index,
            slot_index,
        )
        change = ScheduleChange.for_teachers(
            "delete",
            teacher_ids,
            program_code=program.code,
            semester=semester,
            section=section.value,
            day_index=day_index,
            slot_index=slot_index,
            span_ids=tuple(span_ids),
            elective_group_id=elective_ids[0] if len(elective_ids) == 1 else None,
        )
        return ClearResult(
            found=True,
            deleted=deleted,
            teacher_ids=teacher_ids,
            span_ids=span_ids,
            elective_group_ids=elective_ids,
            change=change,
        )

    def clear_section(self, program_code: str, semester: int, section: Section) -> ClearResult:
        """Remove every class of one section. Electives it takes part in are removed from every section."""
        program = self.references.require_program(program_code)
        academic_year = self.references.current_academic_year()
        records = self.repository.section_records(
            program_id=program.id,
            academic_year_id=academic_year.id,
            semester=semester,
            section=section,
        )
        if not records:
            return ClearResult.not_found()

        section_count = len(records)
        records = expand_siblings(self.repository, records)
        teacher_ids = collect_teacher_ids(records)
        deleted = batch_writer.delete_all(self.repository, records)
        if deleted > section_count:
            logger.info(
                "Clearing %s semester %d section %s also removed %d elective record(s) of other sections",
                program.code,
                semester,
                section.value,
                deleted - section_count,
            )
        logger.info("Cleared routine of %s semester %d section %s (%d records)", program.code, semester, section.value, deleted)
        return ClearResult(
            found=True,
            deleted=deleted,
            teacher_ids=teacher_ids,
            span_ids=sorted({record.span_id for record in records if record.span_id}),
            elective_group_ids=sorted({record.elective_group_id for record in records if record.elective_group_id}),
            change=ScheduleChange.for_teachers(
                "delete",
                teacher_ids,
                program_code=program.code,
                semester=semester,
                section=section.value,
            ),
        )
