import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.db.base import Base
from app.main import app


@pytest.fixture()
def session_factory():
    # One shared in-memory database per test.
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def catalog(db_session):
    """A small school: one timing with a break, two classes, a two-slot lab and a theory subject."""
    from types import SimpleNamespace

    from app.models.room import Room, RoomType
    from app.models.school_class import Batch, ClassSubjectAssignment, SchoolClass
    from app.models.subject import Subject
    from app.models.teacher import Teacher
    from app.models.time_slot import TimeSlot, Timing
    from app.models.timetable import Timetable

    timing = Timing(id="timing-1", name="Regular")
    slots = [
        TimeSlot(id="slot-0", timing_id="timing-1", start_time="08:00", end_time="09:00", slot_order=0),
        TimeSlot(id="slot-1", timing_id="timing-1", start_time="09:00", end_time="10:00", slot_order=1),
        TimeSlot(id="slot-2", timing_id="timing-1", start_time="10:00", end_time="10:30", slot_order=2, is_break=True),
        TimeSlot(id="slot-3", timing_id="timing-1", start_time="10:30", end_time="11:30", slot_order=3),
        TimeSlot(id="slot-4", timing_id="timing-1", start_time="11:30", end_time="12:30", slot_order=4),
    ]
    classes = [SchoolClass(id="class-a", name="Class A"), SchoolClass(id="class-b", name="Class B")]
    batches = [
        Batch(id="batch-a1", class_id="class-a", name="A1"),
        Batch(id="batch-a2", class_id="class-a", name="A2"),
    ]
    subjects = [
        Subject(id="subj-math", name="Mathematics", code="MATH", is_lab=False, lab_duration_slots=1),
        Subject(id="subj-chem", name="Chemistry Lab", code="CHEML", is_lab=True, lab_duration_slots=2),
    ]
    teachers = [Teacher(id="teacher-1", name="Ada"), Teacher(id="teacher-2", name="Grace")]
    rooms = [
        Room(id="room-101", name="101", capacity=40, type=RoomType.lecture),
        Room(id="room-lab", name="Chem Lab", capacity=25, type=RoomType.lab),
    ]
    assignments = [ClassSubjectAssignment(id="csa-1", class_id="class-a", subject_id="subj-chem")]
    timetable = Timetable(id="tt-1", name="Term 1", timing_id="timing-1")

    db_session.add(timing)
    db_session.add_all([*slots, *classes, *subjects, *teachers, *rooms])
    db_session.flush()
    db_session.add_all([*batches, *assignments, timetable])
    db_session.commit()

    return SimpleNamespace(timing=timing, slots=slots, timetable=timetable)
