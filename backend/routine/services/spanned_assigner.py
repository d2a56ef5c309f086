from __future__ import annotations

import logging
import uuid

from routine.core.exceptions import ConflictError, ReferenceNotFoundError, ValidationError
from routine.models.academic_year import AcademicYear
from routine.models.program import Program
from routine.models.scheduled_slot import SECTION_LAB_GROUPS, ClassKind, LabGroup, Section
from routine.repositories.slot_repository import SlotRepository
from routine.schemas.conflict import ConflictReport
from routine.schemas.routine import LabGroupAssignmentIn, SpannedAssignmentIn
from routine.services import batch_writer
from routine.services.conflict_detector import ConflictDetector
from routine.services.drafting import SlotDraft, build_draft, validate_semester
from routine.services.outcomes import (
    BatchResult,
    ClearResult,
    collect_teacher_ids,
    expand_siblings,
    raise_for_report,
)
from routine.services.references import ReferenceDirectory
from routine.services.schedule_events import ScheduleChange

logger = logging.getLogger(__name__)


def new_span_id() -> str:
    return str(uuid.uuid4())


class SpannedAssigner:
    """Multi-period classes stored as one record per slot sharing a span id.

    A span is checked slot by slot before anything is written and is then
    written as one unit. The "both lab groups" mode writes one span per lab
    group of the section in the same unit.
    """

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

    def _span_drafts(
        self,
        *,
        program: Program,
        academic_year: AcademicYear,
        semester: int,
        section: Section,
        day_index: int,
        slot_indexes: list[int],
        class_kind: ClassKind,
        subject_id: str | None,
        teacher_ids: list[str],
        room_id: str | None,
        lab_group: LabGroup | None,
        is_alternating_week: bool,
        alternate_group_config: dict | None,
        notes: str | None,
    ) -> list[SlotDraft]:
        ordered = self.references.require_contiguous_slots(slot_indexes)
        span_id = new_span_id()
        drafts: list[SlotDraft] = []
        for position, time_slot in enumerate(ordered):
            draft = build_draft(
                self.references,
                program=program,
                academic_year=academic_year,
                semester=semester,
                section=section,
                day_index=day_index,
                slot_index=time_slot.id,
                class_kind=class_kind,
                subject_id=subject_id,
                teacher_ids=teacher_ids,
                room_id=room_id,
                lab_group=lab_group,
                is_alternating_week=is_alternating_week,
                alternate_group_config=alternate_group_config,
                notes=notes,
            )
            draft.span_id = span_id
            draft.is_span_master = position == 0
            drafts.append(draft)
        return drafts

    def assign(self, payload: SpannedAssignmentIn) -> BatchResult:
        if payload.class_kind == ClassKind.BREAK:
            raise ValidationError("Breaks cannot span several slots", fields={"class_kind": "BREAK"})

        program = self.references.require_program(payload.program_code)
        validate_semester(program, payload.semester)
        academic_year = self.references.current_academic_year()
        strict = self.strict_default if payload.strict is None else payload.strict

        if payload.both_groups:
            return self._assign_both_groups(payload, program, academic_year, strict)

        drafts = self._span_drafts(
            program=program,
            academic_year=academic_year,
            semester=payload.semester,
            section=payload.section,
            day_index=payload.day_index,
            slot_indexes=payload.slot_indexes,
            class_kind=payload.class_kind,
            subject_id=payload.subject_id,
            teacher_ids=payload.teacher_ids,
            room_id=payload.room_id,
            lab_group=payload.lab_group,
            is_alternating_week=payload.is_alternating_week,
            alternate_group_config=payload.alternate_group_config,
            notes=payload.notes,
        )
        report = self.detector.detect_batch(drafts)
        raise_for_report(report, strict=strict)

        records = batch_writer.write_all(
            self.repository,
            drafts,
            purge=batch_writer.stale_rows(self.repository, drafts),
        )
        span_id = drafts[0].span_id
        logger.info(
            "Created span %s of %d slot(s) for %s semester %d section %s on day %d",
            span_id,
            len(records),
            program.code,
            payload.semester,
            payload.section.value,
            payload.day_index,
        )
        return BatchResult(
            records=records,
            warnings=report.warnings,
            spans={span_id: records},
            change=ScheduleChange.for_teachers(
                "create",
                payload.teacher_ids,
                program_code=program.code,
                semester=payload.semester,
                section=payload.section.value,
                day_index=payload.day_index,
                slot_index=drafts[0].slot_index,
                span_ids=(span_id,),
            ),
        )

    def _resolve_groups(self, payload: SpannedAssignmentIn) -> list[LabGroupAssignmentIn]:
        expected = SECTION_LAB_GROUPS[payload.section]
        groups = payload.groups or []
        if sorted(group.lab_group.value for group in groups) != sorted(group.value for group in expected):
            raise ValidationError(
                f"Section {payload.section.value} needs one assignment for each of lab groups "
                f"{expected[0].value} and {expected[1].value}",
                fields={"groups": [group.lab_group.value for group in groups]},
            )
        return sorted(groups, key=lambda group: group.lab_group.value)

    def _assign_both_groups(
        self,
        payload: SpannedAssignmentIn,
        program: Program,
        academic_year: AcademicYear,
        strict: bool,
    ) -> BatchResult:
        if payload.class_kind != ClassKind.P:
            raise ValidationError(
                "Both lab groups can only be scheduled for practical classes",
                fields={"class_kind": payload.class_kind.value},
            )

        pending: list[SlotDraft] = []
        spans: dict[str, LabGroup] = {}
        combined = ConflictReport()
        for group in self._resolve_groups(payload):
            try:
                drafts = self._span_drafts(
                    program=program,
                    academic_year=academic_year,
                    semester=payload.semester,
                    section=payload.section,
                    day_index=payload.day_index,
                    slot_indexes=payload.slot_indexes,
                    class_kind=ClassKind.P,
                    subject_id=group.subject_id,
                    teacher_ids=group.teacher_ids,
                    room_id=group.room_id,
                    lab_group=group.lab_group,
                    is_alternating_week=group.is_alternating_week,
                    alternate_group_config=group.alternate_group_config,
                    notes=group.notes or payload.notes,
                )
                report = self.detector.detect_batch(drafts, pending=pending)
                raise_for_report(report, strict=strict, details={"lab_group": group.lab_group.value})
            except (ValidationError, ReferenceNotFoundError) as exc:
                exc.details.setdefault("lab_group", group.lab_group.value)
                exc.message = f"Lab group {group.lab_group.value}: {exc.message}"
                raise
            except ConflictError as exc:
                exc.message = f"Lab group {group.lab_group.value}: {exc.message}"
                raise
            combined.extend(report)
            spans[drafts[0].span_id] = group.lab_group
            pending.extend(drafts)

        records = batch_writer.write_all(
            self.repository,
            pending,
            purge=batch_writer.stale_rows(self.repository, pending),
        )
        by_span: dict[str, list] = {span_id: [] for span_id in spans}
        for record in records:
            by_span[record.span_id].append(record)

        logger.info(
            "Created lab group spans %s for %s semester %d section %s on day %d",
            ", ".join(f"{group.value}={span_id}" for span_id, group in spans.items()),
            program.code,
            payload.semester,
            payload.section.value,
            payload.day_index,
        )
        return BatchResult(
            records=records,
            warnings=combined.warnings,
            spans=by_span,
            change=ScheduleChange.for_teachers(
                "create",
                collect_teacher_ids(records),
                program_code=program.code,
                semester=payload.semester,
                section=payload.section.value,
                day_index=payload.day_index,
                slot_index=pending[0].slot_index,
                span_ids=tuple(spans),
            ),
        )

    def clear_span(self, span_id: str) -> ClearResult:
        """Delete a span. Elective spans take every sibling of the elective with them."""
        members = self.repository.span_members(span_id)
        if not members:
            raise ReferenceNotFoundError("Span", span_id)

        records = members
        if any(record.elective_group_id for record in members):
            records = expand_siblings(self.repository, members)
        teacher_ids = collect_teacher_ids(records)
        span_ids = sorted({record.span_id for record in records if record.span_id})
        elective_ids = sorted({record.elective_group_id for record in records if record.elective_group_id})
        master = next((record for record in members if record.is_span_master), members[0])
        change = ScheduleChange.for_teachers(
            "delete",
            teacher_ids,
            program_code=master.program_code,
            semester=master.semester,
            section=master.section.value,
            day_index=master.day_index,
            slot_index=master.slot_index,
            span_ids=tuple(span_ids),
            elective_group_id=elective_ids[0] if len(elective_ids) == 1 else None,
        )
        deleted = batch_writer.delete_all(self.repository, records)
        logger.info("Cleared span %s (%d records)", span_id, deleted)
        return ClearResult(
            found=True,
            deleted=deleted,
            teacher_ids=teacher_ids,
            span_ids=span_ids,
            elective_group_ids=elective_ids,
            change=change,
        )
