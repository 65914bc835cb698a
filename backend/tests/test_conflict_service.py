import copy
from types import SimpleNamespace

import pytest

from app.services.conflict_service import (
    REASON_CURRENT_SLOT_OCCUPIED,
    REASON_NEXT_SLOT_OCCUPIED,
    REASON_NO_CONSECUTIVE_SLOT,
    ConflictService,
    can_place,
    can_place_multi_hour,
    can_place_single,
    prior_slot_occupant,
    slot_occupied,
)


def slot(slot_id, order, is_break=False):
    return SimpleNamespace(id=slot_id, slot_order=order, is_break=is_break)


def lesson(lesson_id, *, day=0, slot_id="s1", class_id="c1", subject_id="math", teacher_id="t1", room_id="r1"):
    return SimpleNamespace(
        id=lesson_id,
        day=day,
        time_slot_id=slot_id,
        class_id=class_id,
        subject_id=subject_id,
        teacher_id=teacher_id,
        room_id=room_id,
        is_continuation=False,
        parent_lesson_id=None,
    )


@pytest.fixture
def slots():
    return [slot("s0", 0), slot("s1", 1), slot("s2", 2), slot("s3", 3, is_break=True), slot("s4", 4)]


@pytest.fixture
def chem_lab():
    return SimpleNamespace(id="chem-lab", is_lab=True, lab_duration_slots=2)


def test_slot_occupied_by_class_teacher_or_room():
    existing = [lesson("l1", slot_id="s1", class_id="c1", teacher_id="t1", room_id="r1")]

    assert slot_occupied(0, "s1", "c1", "t9", "r9", existing)
    assert slot_occupied(0, "s1", "c9", "t1", "r9", existing)
    assert slot_occupied(0, "s1", "c9", "t9", "r1", existing)
    assert not slot_occupied(0, "s1", "c9", "t9", "r9", existing)
    assert not slot_occupied(1, "s1", "c1", "t1", "r1", existing)
    assert not slot_occupied(0, "s2", "c1", "t1", "r1", existing)


def test_missing_room_never_matches_on_room():
    existing = [lesson("l1", room_id=None)]
    assert not slot_occupied(0, "s1", "c9", "t9", None, existing)


def test_ignored_lessons_do_not_occupy():
    existing = [lesson("l1")]
    assert not slot_occupied(0, "s1", "c1", "t1", "r1", existing, ignore_lesson_ids={"l1"})


def test_single_placement_decision():
    existing = [lesson("l1")]
    assert can_place_single(0, "s1", "c1", "t2", "r2", existing).reason == REASON_CURRENT_SLOT_OCCUPIED
    decision = can_place_single(0, "s2", "c1", "t1", "r1", existing)
    assert decision.allowed
    assert decision.next_slot_id is None


def test_multi_hour_rejects_when_next_slot_is_taken(slots):
    existing = [lesson("l1", slot_id="s2", class_id="c2", teacher_id="T1", room_id="r9")]

    decision = can_place_multi_hour(0, "s1", "c1", "T1", "r1", existing, slots)

    assert not decision.allowed
    assert decision.reason == REASON_NEXT_SLOT_OCCUPIED
    assert decision.next_slot_id == "s2"


def test_multi_hour_reports_current_slot_first(slots):
    existing = [lesson("l1", slot_id="s1"), lesson("l2", slot_id="s2")]
    decision = can_place_multi_hour(0, "s1", "c1", "t1", "r1", existing, slots)
    assert decision.reason == REASON_CURRENT_SLOT_OCCUPIED


def test_no_consecutive_slot_wins_regardless_of_occupancy(slots):
    # s2 is followed by a break and s4 is the last slot of the day.
    for start in ("s2", "s4"):
        free = can_place_multi_hour(0, start, "c1", "t1", "r1", [], slots)
        busy = can_place_multi_hour(0, start, "c1", "t1", "r1", [lesson("l1", slot_id=start)], slots)
        assert free.reason == busy.reason == REASON_NO_CONSECUTIVE_SLOT
        assert not free.allowed


def test_multi_hour_allowed_returns_following_slot(slots):
    decision = can_place_multi_hour(0, "s0", "c1", "t1", "r1", [lesson("l1", slot_id="s2")], slots)
    assert decision.allowed
    assert decision.next_slot_id == "s1"


def test_multi_hour_check_is_pure(slots):
    existing = [lesson("l1", slot_id="s2"), lesson("l2", day=3, slot_id="s0")]
    existing_before = copy.deepcopy(existing)
    slots_before = copy.deepcopy(slots)

    first = can_place_multi_hour(0, "s1", "c1", "t1", "r1", existing, slots)
    second = can_place_multi_hour(0, "s1", "c1", "t1", "r1", existing, slots)

    assert first == second
    assert [vars(item) for item in existing] == [vars(item) for item in existing_before]
    assert [vars(item) for item in slots] == [vars(item) for item in slots_before]


def test_can_place_dispatches_on_subject(slots, chem_lab):
    theory = SimpleNamespace(id="math", is_lab=False, lab_duration_slots=1)
    assert can_place(theory, 0, "s2", "c1", "t1", "r1", [], slots).allowed
    assert can_place(None, 0, "s2", "c1", "t1", "r1", [], slots).allowed
    assert can_place(chem_lab, 0, "s2", "c1", "t1", "r1", [], slots).reason == REASON_NO_CONSECUTIVE_SLOT


def test_prior_slot_occupant_only_reports_two_slot_lessons(slots, chem_lab):
    subjects = [chem_lab, SimpleNamespace(id="math", is_lab=False, lab_duration_slots=1)]
    lab = lesson("lab", slot_id="s0", subject_id="chem-lab", teacher_id="t1")
    theory = lesson("theory", slot_id="s1", subject_id="math", teacher_id="t2", class_id="c2", room_id="r2")

    assert prior_slot_occupant(0, "s1", [lab, theory], subjects, slots, teacher_id="t1") is lab
    assert prior_slot_occupant(0, "s2", [lab, theory], subjects, slots, teacher_id="t2") is None
    assert prior_slot_occupant(0, "s1", [lab], subjects, slots, teacher_id="t9") is None
    assert prior_slot_occupant(0, "s0", [lab], subjects, slots) is None


@pytest.fixture
def double_booked():
    return [
        lesson("a", slot_id="s1", class_id="c1", teacher_id="t1", room_id="r1"),
        lesson("b", slot_id="s1", class_id="c2", teacher_id="t1", room_id="r1"),
        lesson("c", slot_id="s2", class_id="c1", teacher_id="t2", room_id="r2"),
    ]


def test_detect_room_and_teacher_conflicts(double_booked):
    service = ConflictService(double_booked, {"r1": {"id": "r1", "name": "Lab 1"}}, {"t1": {"name": "Prof A"}})
    report = service.detect_conflicts()

    kinds = sorted(conflict.conflict_type for conflict in report.conflicts)
    assert kinds == ["room_conflict", "teacher_conflict"]
    room_conflict = next(item for item in report.conflicts if item.conflict_type == "room_conflict")
    assert "Room Lab 1 double-booked on Monday" in room_conflict.description
    assert room_conflict.affected_lessons == ["a", "b"]
    assert report.suggested_resolutions == []


def test_detect_class_conflict_without_name_maps():
    lessons = [lesson("a", teacher_id="t1", room_id="r1"), lesson("b", teacher_id="t2", room_id="r2")]
    report = ConflictService(lessons).detect_conflicts()
    assert [conflict.conflict_type for conflict in report.conflicts] == ["class_conflict"]
    assert "Class c1" in report.conflicts[0].description


def test_resolutions_follow_conflict_type(double_booked):
    report = ConflictService(double_booked).report_with_resolutions()
    actions = sorted(resolution.action_type for resolution in report.suggested_resolutions)
    assert actions == ["change_room", "change_teacher", "move_slot"]
    assert all(resolution.target_lesson_id == "b" for resolution in report.suggested_resolutions)


def test_clean_timetable_has_no_conflicts():
    lessons = [lesson("a", slot_id="s1"), lesson("b", slot_id="s2"), lesson("c", day=1, slot_id="s1")]
    assert ConflictService(lessons).report_with_resolutions().conflicts == []
