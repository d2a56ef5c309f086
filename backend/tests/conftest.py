import os

# The app module builds its engine from settings at import time; keep it off any real database.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["NOTIFICATION_RETRY_BACKOFF_SECONDS"] = "0"
os.environ["NOTIFICATION_RECONNECT_DELAY_SECONDS"] = "0"

import uuid  # noqa: E402
from contextlib import contextmanager  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from routine.api.deps import get_db, get_publisher  # noqa: E402
from routine.core.exceptions import NotificationError, StorageConstraintError  # noqa: E402
from routine.db.base import Base  # noqa: E402
from routine.main import app  # noqa: E402
from routine.models import (  # noqa: E402
    AcademicYear,
    Program,
    Room,
    RoomType,
    Subject,
    Teacher,
    TimeSlot,
)
from routine.repositories.slot_repository import SlotRepository, SqlAlchemySlotRepository  # noqa: E402
from routine.services.assigner import SlotAssigner  # noqa: E402
from routine.services.elective_assigner import ElectiveAssigner  # noqa: E402
from routine.services.publisher import NotificationPublisher  # noqa: E402
from routine.services.references import ReferenceDirectory  # noqa: E402
from routine.services.spanned_assigner import SpannedAssigner  # noqa: E402


class RecordingPublisher(NotificationPublisher):
    """Keeps published payloads in memory; can be told to fail a number of times."""

    def __init__(self) -> None:
        self.published: list[tuple[str, dict]] = []
        self.failures_remaining = 0
        self.attempts = 0
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        self._connected = True

    def close(self) -> None:
        self._connected = False

    def publish(self, topic: str, payload: dict) -> bool:
        self.attempts += 1
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            raise NotificationError("broker unavailable")
        self.published.append((topic, payload))
        return True


class InMemorySlotRepository(SlotRepository):
    """Slot store without transactions, used to exercise compensating deletes."""

    supports_transactions = False

    def __init__(self) -> None:
        self.records: dict[str, object] = {}
        self.adds = 0
        self.fail_on_add: int | None = None
        self.fail_on_delete = False

    def get(self, slot_id):
        return self.records.get(slot_id)

    def _active(self):
        return [record for record in self.records.values() if record.is_active]

    def records_at_key(self, *, program_id, academic_year_id, semester, section, day_index, slot_index, include_inactive=False):
        pool = self.records.values() if include_inactive else self._active()
        return [
            record
            for record in pool
            if record.program_id == program_id
            and record.academic_year_id == academic_year_id
            and record.semester == semester
            and record.section == section
            and record.day_index == day_index
            and record.slot_index == slot_index
        ]

    def records_at(self, academic_year_id, day_index, slot_index):
        return [
            record
            for record in self._active()
            if record.academic_year_id == academic_year_id
            and record.day_index == day_index
            and record.slot_index == slot_index
        ]

    def span_records_on_day(self, academic_year_id, day_index):
        return [
            record
            for record in self._active()
            if record.academic_year_id == academic_year_id and record.day_index == day_index and record.span_id
        ]

    def span_members(self, span_id):
        return sorted(
            (record for record in self._active() if record.span_id == span_id),
            key=lambda record: record.slot_index,
        )

    def elective_members(self, elective_group_id):
        return [record for record in self._active() if record.elective_group_id == elective_group_id]

    def section_records(self, *, program_id, academic_year_id, semester, section):
        return [
            record
            for record in self._active()
            if record.program_id == program_id
            and record.academic_year_id == academic_year_id
            and record.semester == semester
            and record.section == section
        ]

    def year_records(self, academic_year_id):
        return [record for record in self._active() if record.academic_year_id == academic_year_id]

    def add(self, record):
        self.adds += 1
        if self.fail_on_add is not None and self.adds >= self.fail_on_add:
            raise StorageConstraintError("simulated storage failure")
        record.id = record.id or str(uuid.uuid4())
        self.records[record.id] = record
        return record

    def save(self, record):
        self.records[record.id] = record
        return record

    def delete(self, record):
        if self.fail_on_delete:
            raise RuntimeError("simulated delete failure")
        self.records.pop(record.id, None)

    @contextmanager
    def transaction(self):
        yield


def seed_reference_data(db) -> SimpleNamespace:
    db.add_all(
        [
            Program(id="prog-bct", code="BCT", name="Computer Engineering", total_semesters=8),
            Program(id="prog-bei", code="BEI", name="Electronics and Information", total_semesters=8),
            Program(id="prog-old", code="OLD", name="Retired Program", total_semesters=8, is_active=False),
            AcademicYear(id="ay-current", title="2081/2082", is_current=True),
            AcademicYear(id="ay-previous", title="2080/2081", is_current=False),
            Subject(id="subj-math", code="SH401", name="Engineering Mathematics III"),
            Subject(id="subj-dsa", code="CT402", name="Data Structures and Algorithms"),
            Subject(id="subj-lab", code="CT401", name="Computer Programming Lab"),
            Subject(id="subj-ai", code="CT725", name="Artificial Intelligence"),
            Subject(id="subj-retired", code="XX000", name="Retired Subject", is_active=False),
            Teacher(id="t1", full_name="Anita Sharma", short_name="AS", email="anita@example.com"),
            Teacher(id="t2", full_name="Bikash Thapa", short_name="BT", email="bikash@example.com"),
            Teacher(id="t3", full_name="Chandra Rai", short_name="CR", email="chandra@example.com"),
            Teacher(id="t4", full_name="Dipika Karki", short_name="DK", email="dipika@example.com"),
            Teacher(id="t-inactive", full_name="On Leave", short_name="OL", email="leave@example.com", is_active=False),
            Room(id="r1", name="Room 101", type=RoomType.lecture, capacity=48),
            Room(id="r2", name="Room 102", type=RoomType.lecture, capacity=48),
            Room(id="lab1", name="Computer Lab 1", type=RoomType.lab, capacity=24),
            Room(id="lab2", name="Computer Lab 2", type=RoomType.lab, capacity=24),
            TimeSlot(id=1, label="P1", start_time="10:15", end_time="11:05", sort_order=1),
            TimeSlot(id=2, label="P2", start_time="11:05", end_time="11:55", sort_order=2),
            TimeSlot(id=3, label="P3", start_time="11:55", end_time="12:45", sort_order=3),
            TimeSlot(id=4, label="Lunch", start_time="12:45", end_time="13:35", sort_order=4, is_break=True),
            TimeSlot(id=5, label="P5", start_time="13:35", end_time="14:25", sort_order=5),
            TimeSlot(id=6, label="P6", start_time="14:25", end_time="15:15", sort_order=6),
            TimeSlot(id=7, label="P7", start_time="15:15", end_time="16:05", sort_order=7),
        ]
    )
    db.commit()
    return SimpleNamespace(program_id="prog-bct", academic_year_id="ay-current")


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def seeded(db_session):
    return seed_reference_data(db_session)


@pytest.fixture()
def references(db_session, seeded):
    return ReferenceDirectory(db_session)


@pytest.fixture()
def repository(db_session):
    return SqlAlchemySlotRepository(db_session)


@pytest.fixture()
def memory_repository():
    return InMemorySlotRepository()


@pytest.fixture()
def assigner(repository, references):
    return SlotAssigner(repository, references)


@pytest.fixture()
def spanned_assigner(repository, references):
    return SpannedAssigner(repository, references)


@pytest.fixture()
def elective_assigner(repository, references):
    return ElectiveAssigner(repository, references, elective_semesters=[7, 8])


@pytest.fixture()
def publisher():
    return RecordingPublisher()


@pytest.fixture()
def client(session_factory, seeded, publisher):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_publisher] = lambda: publisher

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
