import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import ResourceNotFoundError, TransientUnavailableError, WriteConflictError
from app.models.timetable import Lesson
from app.schemas.lab_schedule import LabScheduleRow
from app.services.repository import TimetableRepository


def make_lesson(lesson_id, slot_id, *, subject_id="subj-math", class_id="class-a", teacher_id="teacher-1", room_id=None):
    return Lesson(
        id=lesson_id,
        timetable_id="tt-1",
        day=0,
        time_slot_id=slot_id,
        class_id=class_id,
        subject_id=subject_id,
        teacher_id=teacher_id,
        room_id=room_id,
    )


def lab_row(batch_id, slot_id="slot-0", day=0):
    return LabScheduleRow(
        subject_id="subj-chem",
        class_id="class-a",
        batch_id=batch_id,
        day=day,
        time_slot_id=slot_id,
        teacher_id="teacher-1",
        room_id="room-lab",
    )


def test_fetch_missing_timetable_raises(db_session, catalog):
    repository = TimetableRepository(db_session)
    with pytest.raises(ResourceNotFoundError) as exc_info:
        repository.fetch_timetable("nope")
    assert exc_info.value.status_code == 404
    assert exc_info.value.details == {"resource_type": "Timetable", "resource_id": "nope"}


def test_persist_lesson_links_continuation(db_session, catalog):
    repository = TimetableRepository(db_session)
    parent = make_lesson("p", "slot-0", subject_id="subj-chem", room_id="room-lab")
    child = make_lesson("c", "slot-1", subject_id="subj-chem", room_id="room-lab")

    repository.persist_lesson(parent, child)

    stored = {lesson.id: lesson for lesson in repository.list_lessons("tt-1")}
    assert stored["c"].is_continuation
    assert stored["c"].parent_lesson_id == "p"
    assert not stored["p"].is_continuation


def test_timetable_view_orders_lessons_and_adds_badges(db_session, catalog):
    repository = TimetableRepository(db_session)
    repository.persist_lesson(
        make_lesson("p", "slot-0", subject_id="subj-chem", room_id="room-lab"),
        make_lesson("c", "slot-1", subject_id="subj-chem", room_id="room-lab"),
    )
    repository.persist_lesson(make_lesson("m", "slot-3"))

    view = repository.fetch_timetable_view("tt-1")

    assert view.name == "Term 1"
    assert [(lesson.id, lesson.badge) for lesson in view.lessons] == [
        ("p", "2h Lab"),
        ("c", "2h Lab - Slot 2"),
        ("m", ""),
    ]


def test_duplicate_slot_write_becomes_write_conflict(db_session, catalog):
    repository = TimetableRepository(db_session)
    repository.persist_lesson(make_lesson("first", "slot-0"))

    with pytest.raises(WriteConflictError) as exc_info:
        repository.persist_lesson(make_lesson("second", "slot-0", teacher_id="teacher-2"))

    assert exc_info.value.details["retryable"] is True
    assert [lesson.id for lesson in repository.list_lessons("tt-1")] == ["first"]


def test_delete_lesson_group_sweeps_dangling_continuations(db_session, catalog):
    repository = TimetableRepository(db_session)
    parent = make_lesson("p", "slot-0", subject_id="subj-chem", room_id="room-lab")
    repository.persist_lesson(parent, make_lesson("c", "slot-1", subject_id="subj-chem", room_id="room-lab"))
    repository.persist_lesson(make_lesson("m", "slot-3"))

    deleted = repository.delete_lesson_group([repository.get_lesson("tt-1", "p")])

    assert sorted(deleted) == ["c", "p"]
    assert [lesson.id for lesson in repository.list_lessons("tt-1")] == ["m"]


def test_get_lesson_from_other_timetable_is_not_found(db_session, catalog):
    repository = TimetableRepository(db_session)
    repository.persist_lesson(make_lesson("m", "slot-3"))
    with pytest.raises(ResourceNotFoundError):
        repository.get_lesson("tt-other", "m")


def test_catalog_reads(db_session, catalog):
    repository = TimetableRepository(db_session)

    assert [slot.id for slot in repository.list_non_break_slots_ordered("timing-1")] == [
        "slot-0",
        "slot-1",
        "slot-3",
        "slot-4",
    ]
    assert [room.id for room in repository.list_lab_rooms()] == ["room-lab"]
    assert [batch.id for batch in repository.list_batches()] == ["batch-a1", "batch-a2"]
    assert [item.subject_id for item in repository.list_class_subject_assignments()] == ["subj-chem"]


def test_replace_lab_schedules_in_chunks(db_session, catalog):
    repository = TimetableRepository(db_session, insert_chunk_size=1)
    repository.replace_lab_schedules([lab_row("batch-a1"), lab_row("batch-a2", slot_id="slot-1")])

    count = repository.replace_lab_schedules([lab_row("batch-a2", day=2), lab_row("batch-a1", day=3)])

    stored = repository.list_lab_schedules()
    assert count == 2
    assert [(row.batch_id, row.day, row.sequence) for row in stored] == [("batch-a2", 2, 0), ("batch-a1", 3, 1)]
    assert [row.batch_id for row in repository.list_lab_schedules(batch_id="batch-a1")] == ["batch-a1"]
    assert repository.list_lab_schedules(class_id="class-b") == []


def test_failed_replacement_keeps_previous_set(db_session, catalog):
    repository = TimetableRepository(db_session, insert_chunk_size=1)
    repository.replace_lab_schedules([lab_row("batch-a1")])

    with pytest.raises(WriteConflictError):
        # The same (subject, class, batch) twice violates the identity constraint.
        repository.replace_lab_schedules([lab_row("batch-a2"), lab_row("batch-a2", day=1)])

    assert [row.batch_id for row in repository.list_lab_schedules()] == ["batch-a1"]


def test_store_outage_becomes_transient_error(db_session, catalog, monkeypatch):
    repository = TimetableRepository(db_session)

    def unavailable(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db_session, "execute", unavailable)

    with pytest.raises(TransientUnavailableError) as exc_info:
        repository.list_subjects()
    assert exc_info.value.status_code == 503
