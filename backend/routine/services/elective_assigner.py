from __future__ import annotations

import logging
import uuid

from routine.core.exceptions import ReferenceNotFoundError, ValidationError
from routine.models.program import Program
from routine.models.scheduled_slot import ClassCategory, ClassKind
from routine.repositories.slot_repository import SlotRepository
from routine.schemas.routine import ElectiveScheduleIn
from routine.services import batch_writer
from routine.services.conflict_detector import ConflictDetector
from routine.services.drafting import SlotDraft, build_draft, validate_semester
from routine.services.outcomes import BatchResult, ClearResult, collect_teacher_ids, raise_for_report
from routine.services.references import ReferenceDirectory
from routine.services.schedule_events import ScheduleChange
from routine.services.spanned_assigner import new_span_id

logger = logging.getLogger(__name__)


def _ordinal(number: int) -> str:
    if 10 <= number % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def build_elective_info(program: Program, payload: ElectiveScheduleIn) -> dict:
    elective_type = payload.elective_type.value
    enrollment = payload.student_enrollment
    composition = None
    if enrollment is not None:
        composition = {
            "total": enrollment.total,
            "from_ab": enrollment.from_ab,
            "from_cd": enrollment.from_cd,
            "distribution_note": (
                f"{enrollment.total} students ({enrollment.from_ab} from AB, {enrollment.from_cd} from CD)"
            ),
        }
    return {
        "elective_number": payload.elective_number,
        "elective_type": elective_type,
        "group_name": payload.group_name
        or f"{_ordinal(payload.semester)} Sem {elective_type.title()} Elective",
        "elective_code": f"ELEC-{elective_type[:4]}-{payload.elective_number}",
        "student_composition": composition,
        "target_sections": [section.value for section in payload.target_sections],
        "cross_section": len(payload.target_sections) > 1,
        "program_code": program.code,
    }


class ElectiveAssigner:
    """Fans one elective out to every target section as sibling records."""

    def __init__(
        self,
        repository: SlotRepository,
        references: ReferenceDirectory,
        *,
        elective_semesters: list[int],
        strict_default: bool = False,
    ) -> None:
        self.repository = repository
        self.references = references
        self.detector = ConflictDetector(repository, references)
        self.elective_semesters = list(elective_semesters)
        self.strict_default = strict_default

    def _validate(self, payload: ElectiveScheduleIn) -> None:
        if payload.semester not in self.elective_semesters:
            allowed = ", ".join(str(item) for item in self.elective_semesters)
            raise ValidationError(
                f"Electives can only be scheduled for semesters {allowed}",
                fields={"semester": payload.semester},
            )
        if not payload.target_sections:
            raise ValidationError("At least one target section is required", fields={"target_sections": []})
        if len(set(payload.target_sections)) != len(payload.target_sections):
            raise ValidationError(
                "Target sections must be unique",
                fields={"target_sections": [section.value for section in payload.target_sections]},
            )
        if payload.class_kind == ClassKind.BREAK:
            raise ValidationError("An elective cannot be a break", fields={"class_kind": "BREAK"})

    def schedule(self, payload: ElectiveScheduleIn) -> BatchResult:
        self._validate(payload)
        program = self.references.require_program(payload.program_code)
        validate_semester(program, payload.semester)
        academic_year = self.references.current_academic_year()
        ordered = self.references.require_contiguous_slots(payload.slot_indexes)

        elective_group_id = str(uuid.uuid4())
        elective_info = build_elective_info(program, payload)
        multi_period = len(ordered) > 1

        drafts: list[SlotDraft] = []
        span_ids: list[str] = []
        for section in payload.target_sections:
            span_id = new_span_id() if multi_period else None
            if span_id:
                span_ids.append(span_id)
            for position, time_slot in enumerate(ordered):
                draft = build_draft(
                    self.references,
                    program=program,
                    academic_year=academic_year,
                    semester=payload.semester,
                    section=section,
                    day_index=payload.day_index,
                    slot_index=time_slot.id,
                    class_kind=payload.class_kind,
                    subject_id=payload.subject_id,
                    teacher_ids=payload.teacher_ids,
                    room_id=payload.room_id,
                    notes=payload.notes,
                )
                draft.class_category = ClassCategory.ELECTIVE
                draft.elective_group_id = elective_group_id
                draft.elective_info = dict(elective_info)
                draft.span_id = span_id
                draft.is_span_master = span_id is not None and position == 0
                drafts.append(draft)

        report = self.detector.detect_batch(drafts)
        strict = self.strict_default if payload.strict is None else payload.strict
        raise_for_report(report, strict=strict)

        records = batch_writer.write_all(
            self.repository,
            drafts,
            purge=batch_writer.stale_rows(self.repository, drafts),
        )
        logger.info(
            "Scheduled elective %s (%s) for %s semester %d in sections %s: %d record(s)",
            elective_group_id,
            elective_info["elective_code"],
            program.code,
            payload.semester,
            ", ".join(elective_info["target_sections"]),
            len(records),
        )
        spans: dict[str, list] = {span_id: [] for span_id in span_ids}
        for record in records:
            if record.span_id:
                spans[record.span_id].append(record)
        return BatchResult(
            records=records,
            warnings=report.warnings,
            spans=spans,
            elective_group_id=elective_group_id,
            elective_info=elective_info,
            change=ScheduleChange.for_teachers(
                "create",
                payload.teacher_ids,
                program_code=program.code,
                semester=payload.semester,
                day_index=payload.day_index,
                slot_index=ordered[0].id,
                span_ids=tuple(span_ids),
                elective_group_id=elective_group_id,
            ),
        )

    def clear_elective(self, elective_group_id: str) -> ClearResult:
        records = self.repository.elective_members(elective_group_id)
        if not records:
            raise ReferenceNotFoundError("ElectiveGroup", elective_group_id)

        teacher_ids = collect_teacher_ids(records)
        span_ids = sorted({record.span_id for record in records if record.span_id})
        first = records[0]
        change = ScheduleChange.for_teachers(
            "delete",
            teacher_ids,
            program_code=first.program_code,
            semester=first.semester,
            day_index=first.day_index,
            span_ids=tuple(span_ids),
            elective_group_id=elective_group_id,
        )
        deleted = batch_writer.delete_all(self.repository, records)
        logger.info("Cleared elective %s (%d records)", elective_group_id, deleted)
        return ClearResult(
            found=True,
            deleted=deleted,
            teacher_ids=teacher_ids,
            span_ids=span_ids,
            elective_group_ids=[elective_group_id],
            change=change,
        )
