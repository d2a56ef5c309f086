from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from routine.core.config import Settings, get_settings
from routine.db.session import SessionLocal
from routine.repositories.slot_repository import SlotRepository, SqlAlchemySlotRepository
from routine.services.assigner import SlotAssigner
from routine.services.conflict_detector import ConflictDetector
from routine.services.elective_assigner import ElectiveAssigner
from routine.services.publisher import NotificationPublisher
from routine.services.references import ReferenceDirectory
from routine.services.routine_view import RoutineView
from routine.services.schedule_events import ScheduleEventDispatcher
from routine.services.spanned_assigner import SpannedAssigner


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_slot_repository(db: Session = Depends(get_db)) -> SlotRepository:
    return SqlAlchemySlotRepository(db)


def get_references(db: Session = Depends(get_db)) -> ReferenceDirectory:
    return ReferenceDirectory(db)


def get_publisher(request: Request) -> NotificationPublisher | None:
    return getattr(request.app.state, "publisher", None)


def get_dispatcher(
    publisher: NotificationPublisher | None = Depends(get_publisher),
    settings: Settings = Depends(get_settings),
) -> ScheduleEventDispatcher:
    return ScheduleEventDispatcher.from_settings(publisher, settings)


def get_slot_assigner(
    repository: SlotRepository = Depends(get_slot_repository),
    references: ReferenceDirectory = Depends(get_references),
    settings: Settings = Depends(get_settings),
) -> SlotAssigner:
    return SlotAssigner(repository, references, strict_default=settings.strict_validation)


def get_spanned_assigner(
    repository: SlotRepository = Depends(get_slot_repository),
    references: ReferenceDirectory = Depends(get_references),
    settings: Settings = Depends(get_settings),
) -> SpannedAssigner:
    return SpannedAssigner(repository, references, strict_default=settings.strict_validation)


def get_elective_assigner(
    repository: SlotRepository = Depends(get_slot_repository),
    references: ReferenceDirectory = Depends(get_references),
    settings: Settings = Depends(get_settings),
) -> ElectiveAssigner:
    return ElectiveAssigner(
        repository,
        references,
        elective_semesters=settings.elective_semesters,
        strict_default=settings.strict_validation,
    )


def get_conflict_detector(
    repository: SlotRepository = Depends(get_slot_repository),
    references: ReferenceDirectory = Depends(get_references),
) -> ConflictDetector:
    return ConflictDetector(repository, references)


def get_routine_view(
    repository: SlotRepository = Depends(get_slot_repository),
    references: ReferenceDirectory = Depends(get_references),
) -> RoutineView:
    return RoutineView(repository, references)
