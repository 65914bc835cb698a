import gc

import pytest

from app.core.exceptions import ConflictRejectedError, ResourceNotFoundError, SchedulerError
from app.models.time_slot import TimeSlot
from app.models.timetable import Lesson, Timetable
from app.schemas.change import ChangeKind
from app.schemas.timetable import LessonUpdate, PlacementRequest
from app.services import placement
from app.services.placement import PlacementService, timetable_lock
from app.services.repository import TimetableRepository


@pytest.fixture
def events():
    return []


@pytest.fixture
def service(db_session, catalog, events):
    return PlacementService(TimetableRepository(db_session), publish=events.append)


def request(slot_id, subject_id="subj-math", **overrides):
    values = {
        "day": 0,
        "time_slot_id": slot_id,
        "class_id": "class-a",
        "subject_id": subject_id,
        "teacher_id": "teacher-1",
        "room_id": "room-101",
    }
    values.update(overrides)
    return PlacementRequest(**values)


def lab_request(slot_id, **overrides):
    return request(slot_id, subject_id="subj-chem", room_id="room-lab", **overrides)


def test_place_single_lesson(service, events):
    lessons = service.place("tt-1", request("slot-0"))

    assert len(lessons) == 1
    assert not lessons[0].is_continuation
    assert [(event.event, event.lesson_id) for event in events] == [(ChangeKind.insert, lessons[0].id)]


def test_place_two_slot_lab_creates_parent_and_continuation(service, events):
    parent, continuation = service.place("tt-1", lab_request("slot-0", batch_id="batch-a1"))

    assert parent.time_slot_id == "slot-0"
    assert continuation.time_slot_id == "slot-1"
    assert continuation.is_continuation
    assert continuation.parent_lesson_id == parent.id
    assert continuation.batch_id == "batch-a1"
    assert [event.event for event in events] == [ChangeKind.insert, ChangeKind.insert]
    assert events[1].lesson.parent_lesson_id == parent.id


def test_lab_before_break_is_rejected(service, events):
    with pytest.raises(ConflictRejectedError) as exc_info:
        service.place("tt-1", lab_request("slot-1"))

    assert exc_info.value.reason == "no consecutive slot available"
    assert exc_info.value.status_code == 409
    assert events == []


def test_lab_rejected_when_teacher_busy_in_next_slot(service):
    service.place("tt-1", request("slot-1", class_id="class-b", room_id=None))

    decision = service.check("tt-1", lab_request("slot-0"))

    assert not decision.allowed
    assert decision.reason == "next slot occupied"
    assert decision.next_slot_id == "slot-1"


def test_check_does_not_write(service, db_session):
    assert service.check("tt-1", request("slot-0")).allowed
    assert db_session.query(Lesson).count() == 0


def test_lab_missing_its_continuation_still_holds_next_slot(service):
    # A stored lab parent whose continuation row was lost.
    service.repository.persist_lesson(
        Lesson(
            id="dangling",
            timetable_id="tt-1",
            day=0,
            time_slot_id="slot-3",
            class_id="class-b",
            subject_id="subj-chem",
            teacher_id="teacher-2",
            room_id="room-lab",
        )
    )

    blocked = service.check("tt-1", request("slot-4", class_id="class-b", teacher_id="teacher-1"))
    free = service.check("tt-1", request("slot-4"))

    assert blocked.reason == "current slot occupied"
    assert free.allowed


def test_move_lab_group_recreates_continuation(service, events):
    parent, old_continuation = service.place("tt-1", lab_request("slot-0"))
    events.clear()

    head, continuation = service.move("tt-1", old_continuation.id, LessonUpdate(time_slot_id="slot-3"))

    assert head.id == parent.id
    assert head.time_slot_id == "slot-3"
    assert continuation.time_slot_id == "slot-4"
    assert continuation.parent_lesson_id == head.id
    assert [event.event for event in events] == [ChangeKind.delete, ChangeKind.update, ChangeKind.insert]
    assert events[0].lesson_id == old_continuation.id
    remaining = {lesson.time_slot_id for lesson in service.repository.list_lessons("tt-1")}
    assert remaining == {"slot-3", "slot-4"}


def test_move_may_overlap_its_own_old_slots(service):
    lesson = service.place("tt-1", request("slot-0"))[0]
    moved = service.move("tt-1", lesson.id, LessonUpdate(teacher_id="teacher-2"))
    assert moved[0].teacher_id == "teacher-2"
    assert moved[0].time_slot_id == "slot-0"


def test_move_into_occupied_slot_is_rejected(service):
    service.place("tt-1", request("slot-3", class_id="class-b", teacher_id="teacher-2", room_id=None))
    lesson = service.place("tt-1", request("slot-0"))[0]

    with pytest.raises(ConflictRejectedError) as exc_info:
        service.move("tt-1", lesson.id, LessonUpdate(time_slot_id="slot-3", teacher_id="teacher-2"))

    assert exc_info.value.reason == "current slot occupied"
    assert service.repository.get_lesson("tt-1", lesson.id).time_slot_id == "slot-0"


def test_delete_through_continuation_removes_group(service, events):
    parent, continuation = service.place("tt-1", lab_request("slot-0"))
    events.clear()

    deleted = service.delete("tt-1", continuation.id)

    assert sorted(deleted) == sorted([parent.id, continuation.id])
    assert service.repository.list_lessons("tt-1") == []
    assert [event.event for event in events] == [ChangeKind.delete, ChangeKind.delete]


def test_unknown_references_are_not_found(service):
    with pytest.raises(ResourceNotFoundError):
        service.check("tt-1", request("slot-0", subject_id="ghost"))
    with pytest.raises(ResourceNotFoundError):
        service.check("missing", request("slot-0"))


def test_invalid_requests(service):
    with pytest.raises(SchedulerError, match="break"):
        service.check("tt-1", request("slot-2"))
    with pytest.raises(SchedulerError, match="Batch"):
        service.check("tt-1", request("slot-0", class_id="class-b", batch_id="batch-a1"))


@pytest.fixture
def third_morning_slot(db_session, catalog):
    # slot-3, slot-4 and slot-5 are three consecutive teaching slots.
    db_session.add(TimeSlot(id="slot-5", timing_id="timing-1", start_time="12:30", end_time="13:30", slot_order=5))
    db_session.commit()


def test_move_lab_forward_into_its_own_continuation_slot(service, third_morning_slot):
    parent, old_continuation = service.place("tt-1", lab_request("slot-3"))

    head, continuation = service.move("tt-1", parent.id, LessonUpdate(time_slot_id="slot-4"))

    assert head.id == parent.id
    assert head.time_slot_id == "slot-4"
    assert continuation.time_slot_id == "slot-5"
    assert continuation.id != old_continuation.id
    stored = {(lesson.time_slot_id, lesson.is_continuation) for lesson in service.repository.list_lessons("tt-1")}
    assert stored == {("slot-4", False), ("slot-5", True)}


def test_move_lab_back_into_its_own_parent_slot(service, third_morning_slot):
    parent, _ = service.place("tt-1", lab_request("slot-4"))

    head, continuation = service.move("tt-1", parent.id, LessonUpdate(time_slot_id="slot-3"))

    assert (head.time_slot_id, continuation.time_slot_id) == ("slot-3", "slot-4")
    assert len(service.repository.list_lessons("tt-1")) == 2


def test_unknown_timetable_leaves_no_lock_behind(service):
    for number in range(20):
        with pytest.raises(ResourceNotFoundError):
            service.place(f"missing-{number}", request("slot-0"))

    assert not [key for key in list(placement._timetable_locks.keys()) if key.startswith("missing-")]


def test_timetable_lock_is_shared_while_held_and_dropped_after():
    lock = timetable_lock("tt-shared")
    assert timetable_lock("tt-shared") is lock

    del lock
    gc.collect()
    assert "tt-shared" not in placement._timetable_locks


def test_timetable_without_timing_cannot_take_placements(service, db_session):
    db_session.add(Timetable(id="tt-loose", name="Draft"))
    db_session.commit()

    with pytest.raises(SchedulerError, match="no timing"):
        service.check("tt-loose", request("slot-0"))
    with pytest.raises(SchedulerError, match="no timing"):
        service.place("tt-loose", request("slot-0"))
    assert service.repository.list_lessons("tt-loose") == []
