from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Iterable, Sequence
from typing import Dict, List

from app.schemas.conflict import ConflictDetail, ConflictReport, ResolutionAction
from app.schemas.timetable import PlacementDecision, day_name
from app.services.lesson_groups import LessonLike, SubjectLike, is_multi_hour, lesson_is_multi_hour
from app.services.slot_index import SlotLike, next_slot, previous_slot

REASON_NO_CONSECUTIVE_SLOT = "no consecutive slot available"
REASON_CURRENT_SLOT_OCCUPIED = "current slot occupied"
REASON_NEXT_SLOT_OCCUPIED = "next slot occupied"


def slot_occupied(
    day: int,
    slot_id: str,
    class_id: str,
    teacher_id: str,
    room_id: str | None,
    existing_lessons: Iterable[LessonLike],
    ignore_lesson_ids: Collection[str] = (),
) -> bool:
    """True when any lesson at (day, slot) already holds the class, the teacher or the room."""
    for lesson in existing_lessons:
        if lesson.day != day or lesson.time_slot_id != slot_id:
            continue
        if lesson.id in ignore_lesson_ids:
            continue
        if lesson.class_id == class_id or lesson.teacher_id == teacher_id:
            return True
        if room_id and lesson.room_id == room_id:
            return True
    return False


def can_place_single(
    day: int,
    slot_id: str,
    class_id: str,
    teacher_id: str,
    room_id: str | None,
    existing_lessons: Sequence[LessonLike],
    ignore_lesson_ids: Collection[str] = (),
) -> PlacementDecision:
    if slot_occupied(day, slot_id, class_id, teacher_id, room_id, existing_lessons, ignore_lesson_ids):
        return PlacementDecision(allowed=False, reason=REASON_CURRENT_SLOT_OCCUPIED)
    return PlacementDecision(allowed=True)


def can_place_multi_hour(
    day: int,
    slot_id: str,
    class_id: str,
    teacher_id: str,
    room_id: str | None,
    existing_lessons: Sequence[LessonLike],
    slots: Sequence[SlotLike],
    ignore_lesson_ids: Collection[str] = (),
) -> PlacementDecision:
    following = next_slot(slot_id, slots)
    if following is None:
        return PlacementDecision(allowed=False, reason=REASON_NO_CONSECUTIVE_SLOT)
    if slot_occupied(day, slot_id, class_id, teacher_id, room_id, existing_lessons, ignore_lesson_ids):
        return PlacementDecision(allowed=False, reason=REASON_CURRENT_SLOT_OCCUPIED, next_slot_id=following.id)
    if slot_occupied(day, following.id, class_id, teacher_id, room_id, existing_lessons, ignore_lesson_ids):
        return PlacementDecision(allowed=False, reason=REASON_NEXT_SLOT_OCCUPIED, next_slot_id=following.id)
    return PlacementDecision(allowed=True, next_slot_id=following.id)


def can_place(
    subject: SubjectLike | None,
    day: int,
    slot_id: str,
    class_id: str,
    teacher_id: str,
    room_id: str | None,
    existing_lessons: Sequence[LessonLike],
    slots: Sequence[SlotLike],
    ignore_lesson_ids: Collection[str] = (),
) -> PlacementDecision:
    if subject is not None and is_multi_hour(subject):
        return can_place_multi_hour(
            day, slot_id, class_id, teacher_id, room_id, existing_lessons, slots, ignore_lesson_ids
        )
    return can_place_single(day, slot_id, class_id, teacher_id, room_id, existing_lessons, ignore_lesson_ids)


def prior_slot_occupant(
    day: int,
    slot_id: str,
    lessons: Sequence[LessonLike],
    subjects: Sequence[SubjectLike],
    slots: Sequence[SlotLike],
    *,
    class_id: str | None = None,
    teacher_id: str | None = None,
    room_id: str | None = None,
) -> LessonLike | None:
    """Return the two-slot lesson sitting in the slot just before ``slot_id``, if any.

    Filters are ANDed. A single-slot lesson in the previous slot does not count.
    """
    previous = previous_slot(slot_id, slots)
    if previous is None:
        return None

    for lesson in lessons:
        if lesson.day != day or lesson.time_slot_id != previous.id:
            continue
        if class_id and lesson.class_id != class_id:
            continue
        if teacher_id and lesson.teacher_id != teacher_id:
            continue
        if room_id and lesson.room_id != room_id:
            continue
        return lesson if lesson_is_multi_hour(lesson, subjects) else None
    return None


class ConflictService:
    """Audits a whole lesson set for double-booked teachers, classes and rooms."""

    def __init__(
        self,
        lessons: Sequence[LessonLike],
        room_map: Dict[str, dict] | None = None,
        teacher_map: Dict[str, dict] | None = None,
        class_map: Dict[str, dict] | None = None,
    ):
        self.lessons = lessons
        self.room_map = room_map or {}
        self.teacher_map = teacher_map or {}
        self.class_map = class_map or {}

    def _name(self, mapping: Dict[str, dict], key: str) -> str:
        return mapping.get(key, {}).get("name", key)

    def detect_conflicts(self) -> ConflictReport:
        conflicts: List[ConflictDetail] = []

        # Lessons only collide inside the same (day, slot) bucket.
        lessons_by_cell = defaultdict(list)
        for lesson in self.lessons:
            lessons_by_cell[(lesson.day, lesson.time_slot_id)].append(lesson)

        for (day, slot_id), cell in sorted(lessons_by_cell.items(), key=lambda item: item[0]):
            n = len(cell)
            for i in range(n):
                first = cell[i]
                for j in range(i + 1, n):
                    second = cell[j]
                    pair = [first.id, second.id]
                    where = f"{day_name(day)} slot {slot_id}"
                    if first.room_id and first.room_id == second.room_id:
                        conflicts.append(ConflictDetail(
                            id=f"room-{first.id}-{second.id}",
                            conflict_type="room_conflict",
                            description=f"Room {self._name(self.room_map, first.room_id)} double-booked on {where}",
                            severity="hard",
                            day=day,
                            time_slot_id=slot_id,
                            affected_lessons=pair,
                        ))
                    if first.teacher_id == second.teacher_id:
                        conflicts.append(ConflictDetail(
                            id=f"teacher-{first.id}-{second.id}",
                            conflict_type="teacher_conflict",
                            description=(
                                f"Teacher {self._name(self.teacher_map, first.teacher_id)} double-booked on {where}"
                            ),
                            severity="hard",
                            day=day,
                            time_slot_id=slot_id,
                            affected_lessons=pair,
                        ))
                    if first.class_id == second.class_id:
                        conflicts.append(ConflictDetail(
                            id=f"class-{first.id}-{second.id}",
                            conflict_type="class_conflict",
                            description=f"Class {self._name(self.class_map, first.class_id)} double-booked on {where}",
                            severity="hard",
                            day=day,
                            time_slot_id=slot_id,
                            affected_lessons=pair,
                        ))

        return ConflictReport(conflicts=conflicts, suggested_resolutions=[])

    def generate_resolutions(self, conflict: ConflictDetail) -> List[ResolutionAction]:
        resolutions = []
        target = conflict.affected_lessons[-1]
        if conflict.conflict_type == "room_conflict":
            resolutions.append(ResolutionAction(
                action_type="change_room",
                description="Pick a room that is free in this slot",
                target_lesson_id=target,
                parameters={},
            ))
        if conflict.conflict_type == "teacher_conflict":
            resolutions.append(ResolutionAction(
                action_type="change_teacher",
                description="Assign another teacher for this slot",
                target_lesson_id=target,
                parameters={},
            ))
        if conflict.conflict_type in ("teacher_conflict", "class_conflict"):
            resolutions.append(ResolutionAction(
                action_type="move_slot",
                description="Move to a different time slot",
                target_lesson_id=target,
                parameters={"day": conflict.day},
            ))
        return resolutions

    def report_with_resolutions(self) -> ConflictReport:
        report = self.detect_conflicts()
        for conflict in report.conflicts:
            report.suggested_resolutions.extend(self.generate_resolutions(conflict))
        return report
