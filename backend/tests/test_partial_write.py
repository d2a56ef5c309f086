import logging

import pytest

from routine.core.exceptions import PartialWriteError, StorageConstraintError
from routine.models.scheduled_slot import ClassKind, Section
from routine.schemas.routine import SpannedAssignmentIn
from routine.services import batch_writer
from routine.services.drafting import build_draft
from routine.services.spanned_assigner import SpannedAssigner


def _payload(**overrides) -> SpannedAssignmentIn:
    values = dict(
        program_code="BCT",
        semester=3,
        section=Section.AB,
        day_index=4,
        slot_indexes=[5, 6, 7],
        class_kind=ClassKind.P,
        subject_id="subj-lab",
        teacher_ids=["t1"],
        room_id="lab1",
    )
    values.update(overrides)
    return SpannedAssignmentIn(**values)


def _draft(references, slot_index: int = 1):
    return build_draft(
        references,
        program=references.require_program("BCT"),
        academic_year=references.current_academic_year(),
        semester=3,
        section=Section.AB,
        day_index=0,
        slot_index=slot_index,
        class_kind=ClassKind.L,
        subject_id="subj-math",
        teacher_ids=["t1"],
        room_id="r1",
    )


def test_failure_midway_is_compensated(memory_repository, references, caplog):
    memory_repository.fail_on_add = 3
    assigner = SpannedAssigner(memory_repository, references)

    with caplog.at_level(logging.ERROR, logger="routine"):
        with pytest.raises(PartialWriteError) as exc_info:
            assigner.assign(_payload())

    error = exc_info.value
    assert error.status_code == 500
    assert error.written == 2
    assert error.rolled_back == 2
    assert error.rollback_succeeded is True
    assert error.details["cause"] == "simulated storage failure"
    assert memory_repository.records == {}
    assert "Batch write failed after 2 of 3" in caplog.text


def test_failure_on_first_write_keeps_original_error(memory_repository, references):
    memory_repository.fail_on_add = 1
    assigner = SpannedAssigner(memory_repository, references)

    with pytest.raises(StorageConstraintError):
        assigner.assign(_payload())

    assert memory_repository.records == {}


def test_failed_compensation_is_reported(memory_repository, references):
    memory_repository.fail_on_add = 2
    memory_repository.fail_on_delete = True
    assigner = SpannedAssigner(memory_repository, references)

    with pytest.raises(PartialWriteError) as exc_info:
        assigner.assign(_payload())

    assert exc_info.value.written == 1
    assert exc_info.value.rolled_back == 0
    assert exc_info.value.rollback_succeeded is False
    assert len(memory_repository.records) == 1


def test_successful_write_without_transactions(memory_repository, references):
    assigner = SpannedAssigner(memory_repository, references)

    result = assigner.assign(_payload())

    assert len(memory_repository.records) == 3
    assert [record.slot_index for record in result.records] == [5, 6, 7]


def test_storage_constraint_rolls_back_the_whole_batch(repository, references, seeded):
    drafts = [_draft(references, 1), _draft(references, 2), _draft(references, 1)]

    with pytest.raises(StorageConstraintError) as exc_info:
        batch_writer.write_all(repository, drafts)

    assert exc_info.value.status_code == 409
    assert "storage_error" in exc_info.value.details
    assert repository.year_records(seeded.academic_year_id) == []
