from __future__ import annotations

import logging
from collections.abc import Sequence

from routine.core.exceptions import PartialWriteError
from routine.models.scheduled_slot import ScheduledSlot
from routine.repositories.slot_repository import SlotRepository
from routine.services.drafting import SlotDraft

logger = logging.getLogger(__name__)


def write_all(
    repository: SlotRepository,
    drafts: Sequence[SlotDraft],
    *,
    purge: Sequence[ScheduledSlot] = (),
) -> list[ScheduledSlot]:
    """Persist every draft or none of them.

    ``purge`` holds inactive rows that still occupy a target key; they are
    removed before the drafts are written.
    """
    if repository.supports_transactions:
        with repository.transaction():
            for record in purge:
                repository.delete(record)
            return [repository.add(draft.to_record()) for draft in drafts]

    for record in purge:
        repository.delete(record)

    written: list[ScheduledSlot] = []
    try:
        for draft in drafts:
            written.append(repository.add(draft.to_record()))
    except Exception as exc:
        if not written:
            raise
        rolled_back, rollback_succeeded = _compensate(repository, written)
        logger.error(
            "Batch write failed after %d of %d record(s); rolled back %d (complete=%s)",
            len(written),
            len(drafts),
            rolled_back,
            rollback_succeeded,
        )
        raise PartialWriteError(
            "Saving the classes failed partway through",
            written=len(written),
            rolled_back=rolled_back,
            rollback_succeeded=rollback_succeeded,
            details={"cause": str(exc)},
        ) from exc
    return written


def delete_all(repository: SlotRepository, records: Sequence[ScheduledSlot]) -> int:
    with repository.transaction():
        for record in records:
            repository.delete(record)
    return len(records)


def _compensate(repository: SlotRepository, written: list[ScheduledSlot]) -> tuple[int, bool]:
    rolled_back = 0
    succeeded = True
    for record in reversed(written):
        try:
            repository.delete(record)
            rolled_back += 1
        except Exception:
            succeeded = False
            logger.exception("Unable to remove partially written slot %s", record.id)
    return rolled_back, succeeded


def stale_rows(repository: SlotRepository, drafts: Sequence[SlotDraft]) -> list[ScheduledSlot]:
    """Inactive rows sitting on the storage keys the drafts are about to take."""
    stale: dict[str, ScheduledSlot] = {}
    for draft in drafts:
        for record in repository.records_at_key(
            program_id=draft.program_id,
            academic_year_id=draft.academic_year_id,
            semester=draft.semester,
            section=draft.section,
            day_index=draft.day_index,
            slot_index=draft.slot_index,
            include_inactive=True,
        ):
            if not record.is_active and record.occupancy == draft.occupancy:
                stale[record.id] = record
    return list(stale.values())
