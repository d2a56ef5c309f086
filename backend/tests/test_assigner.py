import pytest
from pydantic import ValidationError as SchemaValidationError

from routine.core.exceptions import ConflictError, ReferenceNotFoundError, ValidationError
from routine.models.scheduled_slot import ClassKind, LabGroup, Section
from routine.schemas.routine import SlotAssignmentIn, SpannedAssignmentIn
from routine.services.assigner import SlotAssigner


def _lecture(day: int = 0, slot: int = 1, teacher_ids: list[str] | None = None, room_id: str = "r1", **extra):
    return SlotAssignmentIn(
        day_index=day,
        slot_index=slot,
        class_kind=ClassKind.L,
        subject_id=extra.pop("subject_id", "subj-math"),
        teacher_ids=teacher_ids or ["t1"],
        room_id=room_id,
        **extra,
    )


def test_assign_creates_record_with_resolved_program(assigner, seeded):
    result = assigner.assign("bct", 3, Section.AB, _lecture())

    assert result.created is True
    assert result.record.program_id == seeded.program_id
    assert result.record.program_code == "BCT"
    assert result.record.academic_year_id == seeded.academic_year_id
    assert result.record.occupancy == "ALL"
    assert result.change.action == "create"
    assert result.change.teacher_ids == ("t1",)


def test_reassigning_same_key_updates_in_place(assigner, repository, seeded):
    first = assigner.assign("BCT", 3, Section.AB, _lecture(teacher_ids=["t1"]))
    second = assigner.assign("BCT", 3, Section.AB, _lecture(teacher_ids=["t2"], room_id="r2"))

    assert second.created is False
    assert second.record.id == first.record.id
    assert second.record.teacher_ids == ["t2"]
    assert second.record.room_id == "r2"
    assert second.change.action == "update"
    assert second.change.teacher_ids == ("t1", "t2")

    records = repository.records_at(seeded.academic_year_id, 0, 1)
    assert [record.id for record in records] == [first.record.id]


def test_repeating_identical_assignment_is_idempotent(assigner, repository, seeded):
    assigner.assign("BCT", 3, Section.AB, _lecture())
    again = assigner.assign("BCT", 3, Section.AB, _lecture())

    assert again.created is False
    assert len(repository.year_records(seeded.academic_year_id)) == 1


def test_inactive_record_at_key_is_reactivated(assigner, repository, seeded):
    first = assigner.assign("BCT", 3, Section.AB, _lecture())
    with repository.transaction():
        first.record.is_active = False
        repository.save(first.record)

    revived = assigner.assign("BCT", 3, Section.AB, _lecture(teacher_ids=["t3"]))

    assert revived.created is False
    assert revived.record.id == first.record.id
    assert revived.record.is_active is True
    assert revived.change.teacher_ids == ("t3",)


def test_lab_groups_of_one_slot_are_separate_records(assigner):
    group_a = assigner.assign(
        "BCT", 3, Section.AB,
        SlotAssignmentIn(day_index=0, slot_index=2, class_kind=ClassKind.P, subject_id="subj-lab",
                         teacher_ids=["t1"], room_id="lab1", lab_group=LabGroup.A),
    )
    group_b = assigner.assign(
        "BCT", 3, Section.AB,
        SlotAssignmentIn(day_index=0, slot_index=2, class_kind=ClassKind.P, subject_id="subj-lab",
                         teacher_ids=["t2"], room_id="lab2", lab_group=LabGroup.B),
    )

    assert group_a.record.id != group_b.record.id
    assert group_b.created is True


@pytest.mark.parametrize(
    ("program_code", "semester", "payload", "message"),
    [
        ("BCT", 9, _lecture(), "Semester must be between 1 and 8"),
        ("BCT", 3, SlotAssignmentIn(day_index=0, slot_index=1, class_kind=ClassKind.L, subject_id="subj-math"),
         "Subject, teachers and room are required"),
        ("BCT", 3, _lecture(slot=4), "is a break and cannot hold a class"),
        ("BCT", 3, _lecture(lab_group=LabGroup.A), "Lab groups can only be set on practical classes"),
        ("BCT", 3, _lecture(is_alternating_week=True), "Only practical classes can alternate weeks"),
        ("BCT", 3,
         SlotAssignmentIn(day_index=0, slot_index=1, class_kind=ClassKind.P, subject_id="subj-lab",
                          teacher_ids=["t1"], room_id="lab1", lab_group=LabGroup.C),
         "does not belong to section AB"),
    ],
)
def test_invalid_assignments_are_rejected(assigner, repository, seeded, program_code, semester, payload, message):
    with pytest.raises(ValidationError, match=message):
        assigner.assign(program_code, semester, Section.AB, payload)

    assert repository.year_records(seeded.academic_year_id) == []


@pytest.mark.parametrize(
    ("program_code", "payload", "resource_type"),
    [
        ("XYZ", _lecture(), "Program"),
        ("OLD", _lecture(), "Program"),
        ("BCT", _lecture(subject_id="subj-retired"), "Subject"),
        ("BCT", _lecture(teacher_ids=["t1", "t-inactive"]), "Teacher"),
        ("BCT", _lecture(room_id="missing-room"), "Room"),
        ("BCT", _lecture(slot=42), "TimeSlot"),
    ],
)
def test_unknown_or_inactive_references_are_rejected(assigner, program_code, payload, resource_type):
    with pytest.raises(ReferenceNotFoundError) as exc_info:
        assigner.assign(program_code, 3, Section.AB, payload)

    assert exc_info.value.resource_type == resource_type
    assert exc_info.value.status_code == 404


def test_scalar_teacher_ids_are_rejected_by_schema():
    with pytest.raises(SchemaValidationError):
        SlotAssignmentIn(day_index=0, slot_index=1, class_kind=ClassKind.L, subject_id="subj-math",
                         teacher_ids="t1", room_id="r1")


def test_teacher_ids_are_deduplicated():
    payload = _lecture(teacher_ids=["t1", " t1 ", "t2", ""])

    assert payload.teacher_ids == ["t1", "t2"]


def test_strict_mode_turns_warnings_into_errors(assigner, repository, seeded):
    payload = _lecture(teacher_ids=["t1", "t2"], strict=True)

    with pytest.raises(ValidationError) as exc_info:
        assigner.assign("BCT", 3, Section.AB, payload)

    codes = [warning["code"] for warning in exc_info.value.details["warnings"]]
    assert codes == ["multiple_teachers_non_practical"]
    assert repository.year_records(seeded.academic_year_id) == []


def test_strict_default_applies_when_request_does_not_say(repository, references):
    strict_assigner = SlotAssigner(repository, references, strict_default=True)

    with pytest.raises(ValidationError):
        strict_assigner.assign("BCT", 3, Section.AB, _lecture(teacher_ids=["t1", "t2"]))

    relaxed = strict_assigner.assign("BCT", 3, Section.AB, _lecture(teacher_ids=["t1", "t2"], strict=False))
    assert relaxed.created is True


def test_check_is_a_dry_run(assigner, repository, seeded):
    assigner.assign("BCT", 3, Section.AB, _lecture(teacher_ids=["t1"]))

    clash = assigner.check("BEI", 3, Section.AB, _lecture(teacher_ids=["t1"], room_id="r2"))
    same_key = assigner.check("BCT", 3, Section.AB, _lecture(teacher_ids=["t1"]))

    assert [conflict.kind for conflict in clash.conflicts] == ["teacher"]
    assert same_key.has_conflicts is False
    assert len(repository.year_records(seeded.academic_year_id)) == 1


def test_single_assign_does_not_overwrite_span_member(assigner, spanned_assigner, repository, seeded):
    spanned_assigner.assign(
        SpannedAssignmentIn(program_code="BCT", semester=3, section=Section.AB, day_index=1, slot_indexes=[1, 2],
                            class_kind=ClassKind.L, subject_id="subj-dsa", teacher_ids=["t2"], room_id="r2")
    )

    with pytest.raises(ConflictError) as exc_info:
        assigner.assign("BCT", 3, Section.AB, _lecture(day=1, slot=2, teacher_ids=["t3"]))

    conflict = exc_info.value.conflicts[0]
    assert conflict.kind == "section"
    assert "multi-period" in conflict.reason
    assert len(repository.year_records(seeded.academic_year_id)) == 2


def test_clear_slot_reports_not_found(assigner):
    result = assigner.clear_slot("BCT", 3, Section.AB, 0, 1)

    assert result.found is False
    assert result.deleted == 0
    assert result.change is None


def test_clear_slot_by_lab_group(assigner, repository, seeded):
    for lab_group, teacher_id, room_id in ((LabGroup.A, "t1", "lab1"), (LabGroup.B, "t2", "lab2")):
        assigner.assign(
            "BCT", 3, Section.AB,
            SlotAssignmentIn(day_index=2, slot_index=1, class_kind=ClassKind.P, subject_id="subj-lab",
                             teacher_ids=[teacher_id], room_id=room_id, lab_group=lab_group),
        )

    result = assigner.clear_slot("BCT", 3, Section.AB, 2, 1, lab_group=LabGroup.A)

    assert result.found is True
    assert result.deleted == 1
    assert result.teacher_ids == ["t1"]
    remaining = repository.records_at(seeded.academic_year_id, 2, 1)
    assert [record.occupancy for record in remaining] == ["B"]


def test_assign_after_clear_recreates_the_same_class(assigner, repository, seeded):
    practical = SlotAssignmentIn(day_index=1, slot_index=3, class_kind=ClassKind.P, subject_id="subj-lab",
                                 teacher_ids=["t2", "t1"], room_id="lab1", lab_group=LabGroup.A)
    first = assigner.assign("BCT", 3, Section.AB, practical)

    assert assigner.clear_slot("BCT", 3, Section.AB, 1, 3, lab_group=LabGroup.A).deleted == 1
    again = assigner.assign("BCT", 3, Section.AB, practical)

    assert again.created is True
    assert again.record.subject_id == first.record.subject_id
    assert again.record.teacher_ids == first.record.teacher_ids
    assert again.record.room_id == first.record.room_id
    assert again.record.class_kind == first.record.class_kind
    assert again.record.lab_group == first.record.lab_group
    assert again.record.occupancy == first.record.occupancy == "A"
    assert len(repository.year_records(seeded.academic_year_id)) == 1


def test_clearing_a_slot_twice_finds_nothing_the_second_time(assigner):
    assigner.assign("BCT", 3, Section.AB, _lecture(day=1, slot=5))

    first = assigner.clear_slot("BCT", 3, Section.AB, 1, 5)
    second = assigner.clear_slot("BCT", 3, Section.AB, 1, 5)

    assert first.found is True
    assert first.deleted == 1
    assert second.found is False
    assert second.deleted == 0
    assert second.change is None


def test_clear_slot_removes_whole_span(assigner, spanned_assigner, repository, seeded):
    spanned_assigner.assign(
        SpannedAssignmentIn(program_code="BCT", semester=3, section=Section.AB, day_index=3, slot_indexes=[5, 6, 7],
                            subject_id="subj-lab", teacher_ids=["t4"], room_id="lab1")
    )

    result = assigner.clear_slot("BCT", 3, Section.AB, 3, 6)

    assert result.deleted == 3
    assert len(result.span_ids) == 1
    assert result.change.span_ids == tuple(result.span_ids)
    assert repository.year_records(seeded.academic_year_id) == []


def test_clear_section_only_touches_that_section(assigner, repository, seeded):
    assigner.assign("BCT", 3, Section.AB, _lecture(slot=1, teacher_ids=["t1"]))
    assigner.assign("BCT", 3, Section.AB, _lecture(slot=2, teacher_ids=["t2"]))
    kept = assigner.assign("BCT", 3, Section.CD, _lecture(slot=3, teacher_ids=["t3"], room_id="r2"))

    result = assigner.clear_section("BCT", 3, Section.AB)

    assert result.found is True
    assert result.deleted == 2
    assert result.teacher_ids == ["t1", "t2"]
    assert [record.id for record in repository.year_records(seeded.academic_year_id)] == [kept.record.id]

    assert assigner.clear_section("BCT", 3, Section.AB).found is False
