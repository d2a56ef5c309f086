import pytest

from routine.core.exceptions import ConflictError, ReferenceNotFoundError, ValidationError
from routine.models.scheduled_slot import ClassKind, LabGroup, Section
from routine.schemas.routine import LabGroupAssignmentIn, SlotAssignmentIn, SpannedAssignmentIn


def _span(**overrides) -> SpannedAssignmentIn:
    values = dict(
        program_code="BCT",
        semester=5,
        section=Section.AB,
        day_index=1,
        slot_indexes=[1, 2, 3],
        class_kind=ClassKind.P,
        subject_id="subj-lab",
        teacher_ids=["t1", "t2"],
        room_id="lab1",
    )
    values.update(overrides)
    return SpannedAssignmentIn(**values)


def _both_groups(**overrides) -> SpannedAssignmentIn:
    values = dict(
        both_groups=True,
        teacher_ids=[],
        room_id=None,
        subject_id=None,
        groups=[
            LabGroupAssignmentIn(lab_group=LabGroup.A, subject_id="subj-lab", teacher_ids=["t1"], room_id="lab1"),
            LabGroupAssignmentIn(lab_group=LabGroup.B, subject_id="subj-lab", teacher_ids=["t2"], room_id="lab2"),
        ],
    )
    values.update(overrides)
    return _span(**values)


def test_span_writes_one_record_per_slot_with_first_as_master(spanned_assigner):
    result = spanned_assigner.assign(_span(slot_indexes=[3, 1, 2]))

    (span_id, records), = result.spans.items()
    assert [record.slot_index for record in records] == [1, 2, 3]
    assert {record.span_id for record in records} == {span_id}
    assert [record.is_span_master for record in records] == [True, False, False]
    assert all(record.lab_group == LabGroup.ALL for record in records)
    assert result.change.span_ids == (span_id,)
    assert result.change.teacher_ids == ("t1", "t2")
    assert result.warnings == []


def test_span_across_break_is_rejected_without_writes(spanned_assigner, repository, seeded):
    with pytest.raises(ValidationError, match="break slots"):
        spanned_assigner.assign(_span(slot_indexes=[3, 4, 5]))

    with pytest.raises(ValidationError, match="Slots must be consecutive"):
        spanned_assigner.assign(_span(slot_indexes=[3, 5]))

    assert repository.year_records(seeded.academic_year_id) == []


def test_duplicate_slot_indexes_are_rejected(spanned_assigner):
    with pytest.raises(ValidationError, match="Slot indexes must be unique"):
        spanned_assigner.assign(_span(slot_indexes=[1, 1]))


def test_break_cannot_span(spanned_assigner):
    with pytest.raises(ValidationError, match="Breaks cannot span several slots"):
        spanned_assigner.assign(_span(class_kind=ClassKind.BREAK))


def test_conflict_in_any_slot_leaves_nothing_written(assigner, spanned_assigner, repository, seeded):
    existing = assigner.assign(
        "BEI", 3, Section.CD,
        SlotAssignmentIn(day_index=1, slot_index=3, class_kind=ClassKind.L, subject_id="subj-math",
                         teacher_ids=["t2"], room_id="r1"),
    )

    with pytest.raises(ConflictError) as exc_info:
        spanned_assigner.assign(_span())

    conflict = exc_info.value.conflicts[0]
    assert conflict.kind == "teacher"
    assert conflict.conflicting_record.slot_index == 3
    remaining = repository.year_records(seeded.academic_year_id)
    assert [record.id for record in remaining] == [existing.record.id]


def test_span_reuses_inactive_rows_on_its_keys(spanned_assigner, repository, seeded):
    first = spanned_assigner.assign(_span())
    (span_id, records), = first.spans.items()
    with repository.transaction():
        for record in records:
            record.is_active = False
            repository.save(record)

    second = spanned_assigner.assign(_span(teacher_ids=["t3"]))

    (new_span_id, new_records), = second.spans.items()
    assert new_span_id != span_id
    assert len(repository.year_records(seeded.academic_year_id)) == 3
    assert all(record.teacher_ids == ["t3"] for record in new_records)


def test_both_groups_writes_a_span_per_lab_group(spanned_assigner, repository, seeded):
    result = spanned_assigner.assign(_both_groups())

    assert len(result.spans) == 2
    groups = {records[0].lab_group: records for records in result.spans.values()}
    assert set(groups) == {LabGroup.A, LabGroup.B}
    assert [record.room_id for record in groups[LabGroup.A]] == ["lab1", "lab1", "lab1"]
    assert [record.room_id for record in groups[LabGroup.B]] == ["lab2", "lab2", "lab2"]
    assert set(result.change.teacher_ids) == {"t1", "t2"}
    assert len(repository.year_records(seeded.academic_year_id)) == 6


def test_both_groups_may_share_a_lab_room(spanned_assigner):
    payload = _both_groups(
        groups=[
            LabGroupAssignmentIn(lab_group=LabGroup.B, subject_id="subj-lab", teacher_ids=["t2"], room_id="lab1"),
            LabGroupAssignmentIn(lab_group=LabGroup.A, subject_id="subj-lab", teacher_ids=["t1"], room_id="lab1"),
        ]
    )

    result = spanned_assigner.assign(payload)

    assert len(result.records) == 6


def test_both_groups_failure_names_the_lab_group_and_writes_nothing(spanned_assigner, repository, seeded):
    payload = _both_groups(
        groups=[
            LabGroupAssignmentIn(lab_group=LabGroup.A, subject_id="subj-lab", teacher_ids=["t1"], room_id="lab1"),
            LabGroupAssignmentIn(lab_group=LabGroup.B, subject_id="subj-lab", teacher_ids=["t1"], room_id="lab2"),
        ]
    )

    with pytest.raises(ConflictError) as exc_info:
        spanned_assigner.assign(payload)

    assert exc_info.value.message.startswith("Lab group B: ")
    assert exc_info.value.details["lab_group"] == "B"
    assert exc_info.value.conflicts[0].origin == "batch"
    assert repository.year_records(seeded.academic_year_id) == []


def test_both_groups_reference_error_is_tagged(spanned_assigner):
    payload = _both_groups(
        groups=[
            LabGroupAssignmentIn(lab_group=LabGroup.A, subject_id="subj-lab", teacher_ids=["t1"], room_id="lab1"),
            LabGroupAssignmentIn(lab_group=LabGroup.B, subject_id="subj-lab", teacher_ids=["nobody"], room_id="lab2"),
        ]
    )

    with pytest.raises(ReferenceNotFoundError) as exc_info:
        spanned_assigner.assign(payload)

    assert exc_info.value.details["lab_group"] == "B"
    assert exc_info.value.message.startswith("Lab group B: ")


@pytest.mark.parametrize(
    "overrides",
    [
        {"class_kind": ClassKind.L},
        {"section": Section.CD},
        {"groups": [LabGroupAssignmentIn(lab_group=LabGroup.A, subject_id="subj-lab", teacher_ids=["t1"], room_id="lab1")]},
    ],
)
def test_both_groups_shape_is_validated(spanned_assigner, overrides):
    with pytest.raises(ValidationError):
        spanned_assigner.assign(_both_groups(**overrides))


def test_clear_span_removes_every_member(spanned_assigner, repository, seeded):
    result = spanned_assigner.assign(_span())
    (span_id, _records), = result.spans.items()

    cleared = spanned_assigner.clear_span(span_id)

    assert cleared.found is True
    assert cleared.deleted == 3
    assert cleared.teacher_ids == ["t1", "t2"]
    assert cleared.change.action == "delete"
    assert cleared.change.slot_index == 1
    assert repository.year_records(seeded.academic_year_id) == []


def test_clear_unknown_span_is_not_found(spanned_assigner):
    with pytest.raises(ReferenceNotFoundError) as exc_info:
        spanned_assigner.clear_span("missing-span")

    assert exc_info.value.resource_type == "Span"
