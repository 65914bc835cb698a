"""Whole-timetable generation.

Every subject assigned to a class is scheduled for its periods_per_week, or
for one count shared by all subjects when the generator is given one. A
period goes to the first (day, slot, teacher) that passes the same placement
check as a hand-placed lesson plus two generation rules: a teacher
never teaches the same subject to the same class in adjacent slots, and a
teacher takes at most a fixed number of lessons a day. Days and qualified
teachers are shuffled on every attempt; the class's free slots next to its
existing lessons are tried first so days stay compact. Two-slot labs are
placed as a parent and continuation pair.

Rooms are chosen once the slot is settled and may be left empty when nothing
is free.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
import logging
import random
from time import perf_counter
from typing import Protocol
import uuid

from app.core.config import get_settings
from app.models.room import RoomType
from app.models.timetable import Lesson, Timetable
from app.schemas.timetable import PlacementDecision
from app.services.conflict_service import can_place
from app.services.lesson_groups import LessonLike, SubjectLike
from app.services.slot_index import SlotLike, next_slot, ordered_teaching_slots, previous_slot

logger = logging.getLogger(__name__)

# Monday to Saturday.
GENERATION_DAYS: tuple[int, ...] = (0, 1, 2, 3, 4, 5)

REASON_BACK_TO_BACK = "same subject back to back"
REASON_TEACHER_DAILY_LIMIT = "teacher daily limit reached"


class _NamedLike(Protocol):
    id: str
    name: str


class _GenerationSubjectLike(SubjectLike, Protocol):
    name: str
    periods_per_week: int


class _RoomLike(Protocol):
    id: str
    capacity: int
    type: RoomType


class _ClassSubjectLike(Protocol):
    class_id: str
    subject_id: str


class _TeacherSubjectLike(Protocol):
    teacher_id: str
    subject_id: str


class _ClassRoomLike(Protocol):
    class_id: str
    room_id: str


class _LabScheduleLike(Protocol):
    subject_id: str
    class_id: str
    day: int
    time_slot_id: str
    room_id: str


@dataclass(frozen=True)
class PlannedLesson:
    id: str
    day: int
    time_slot_id: str
    class_id: str
    subject_id: str
    teacher_id: str
    room_id: str | None = None
    is_continuation: bool = False
    parent_lesson_id: str | None = None


def check_generation_rules(
    day: int,
    slot_ids: Sequence[str],
    teacher_id: str,
    class_id: str,
    subject_id: str,
    existing_lessons: Sequence[LessonLike],
    slots: Sequence[SlotLike],
    teacher_daily_limit: int,
) -> str | None:
    """Return the reason the generator may not use ``slot_ids``, or ``None``."""
    neighbours: set[str] = set()
    for slot_id in slot_ids:
        for neighbour in (previous_slot(slot_id, slots), next_slot(slot_id, slots)):
            if neighbour is not None and neighbour.id not in slot_ids:
                neighbours.add(neighbour.id)

    teacher_lessons_today = 0
    for lesson in existing_lessons:
        if lesson.day != day or lesson.teacher_id != teacher_id:
            continue
        teacher_lessons_today += 1
        if lesson.class_id == class_id and lesson.subject_id == subject_id and lesson.time_slot_id in neighbours:
            return REASON_BACK_TO_BACK

    if teacher_lessons_today + len(slot_ids) > teacher_daily_limit:
        return REASON_TEACHER_DAILY_LIMIT
    return None


def can_generate(
    subject: SubjectLike,
    day: int,
    slot_id: str,
    class_id: str,
    teacher_id: str,
    existing_lessons: Sequence[LessonLike],
    slots: Sequence[SlotLike],
    teacher_daily_limit: int,
) -> PlacementDecision:
    decision = can_place(subject, day, slot_id, class_id, teacher_id, None, existing_lessons, slots)
    if not decision.allowed:
        return decision

    slot_ids = [slot_id] if decision.next_slot_id is None else [slot_id, decision.next_slot_id]
    reason = check_generation_rules(
        day, slot_ids, teacher_id, class_id, subject.id, existing_lessons, slots, teacher_daily_limit
    )
    if reason is not None:
        return PlacementDecision(allowed=False, reason=reason, next_slot_id=decision.next_slot_id)
    return decision


def preferred_slots(
    day: int,
    class_id: str,
    slots: Sequence[SlotLike],
    existing_lessons: Sequence[LessonLike],
) -> list[SlotLike]:
    """The class's free teaching slots on ``day``, those next to its lessons first."""
    teaching = ordered_teaching_slots(slots)
    occupied = {lesson.time_slot_id for lesson in existing_lessons if lesson.day == day and lesson.class_id == class_id}
    if not occupied:
        return teaching

    adjacent: list[SlotLike] = []
    others: list[SlotLike] = []
    for slot in teaching:
        if slot.id in occupied:
            continue
        neighbours = (previous_slot(slot.id, slots), next_slot(slot.id, slots))
        if any(neighbour is not None and neighbour.id in occupied for neighbour in neighbours):
            adjacent.append(slot)
        else:
            others.append(slot)
    return adjacent + others


def find_suitable_room(
    subject: _GenerationSubjectLike,
    class_id: str,
    rooms: Sequence[_RoomLike],
    class_rooms: Sequence[_ClassRoomLike],
    lab_schedules: Sequence[_LabScheduleLike],
    day: int,
    slot_ids: Sequence[str],
    existing_lessons: Sequence[LessonLike],
) -> _RoomLike | None:
    """Pick the smallest free room for a period, preferring the class's home room.

    A lab subject first takes the room its batch lab schedule booked for this
    slot. Rooms booked by any lab schedule are otherwise kept free. When no
    preferred room fits, any free room of the right type will do, and
failing that any free room at all.
    """
    if not rooms:
        return None

    def is_free(room: _RoomLike) -> bool:
        if any(
            lesson.day == day and lesson.time_slot_id in slot_ids and lesson.room_id == room.id
            for lesson in existing_lessons
        ):
            return False
        return not any(
            schedule.room_id == room.id and schedule.day == day and schedule.time_slot_id in slot_ids
            for schedule in lab_schedules
        )

    preferred = list(rooms)
    home = next((assignment for assignment in class_rooms if assignment.class_id == class_id), None)
    if home is not None:
        home_room = next((room for room in rooms if room.id == home.room_id), None)
        if home_room is not None:
            preferred = [home_room]

    if subject.is_lab:
        booking = next(
            (
                schedule
                for schedule in lab_schedules
                if schedule.subject_id == subject.id
                and schedule.class_id == class_id
                and schedule.day == day
                and schedule.time_slot_id == slot_ids[0]
            ),
            None,
        )
        if booking is not None:
            booked_room = next((room for room in rooms if room.id == booking.room_id), None)
            if booked_room is not None and booked_room.type == RoomType.lab:
                occupied = any(
                    lesson.day == day and lesson.time_slot_id in slot_ids and lesson.room_id == booked_room.id
                    for lesson in existing_lessons
                )
                if not occupied:
                    return booked_room

    def suits(room: _RoomLike) -> bool:
        return room.type == RoomType.lab or not subject.is_lab

    available = [room for room in preferred if is_free(room) and suits(room)]
    if not available:
        available = [room for room in rooms if is_free(room) and suits(room)]
    if not available:
        available = [room for room in rooms if is_free(room)]
    if not available:
        return None
    return min(available, key=lambda room: room.capacity)


@dataclass(frozen=True)
class TimetableGenerationInputs:
    classes: Sequence[_NamedLike]
    subjects: Sequence[_GenerationSubjectLike]
    teachers: Sequence[_NamedLike]
    slots: Sequence[SlotLike]
    rooms: Sequence[_RoomLike]
    class_subjects: Sequence[_ClassSubjectLike]
    teacher_subjects: Sequence[_TeacherSubjectLike]
    class_rooms: Sequence[_ClassRoomLike] = ()
    lab_schedules: Sequence[_LabScheduleLike] = ()
    working_days: tuple[int, ...] = GENERATION_DAYS


@dataclass
class GenerationResult:
    lessons: list[PlannedLesson]
    periods_required: int = 0
    periods_scheduled: int = 0
    warnings: list[str] = field(default_factory=list)


class TimetableGenerationStrategy(Protocol):
    name: str

    def generate(self, inputs: TimetableGenerationInputs) -> GenerationResult:
        ...


class GreedyTimetableGenerator:
    name = "greedy"

    def __init__(
        self,
        *,
        periods_per_subject: int | None = None,
        teacher_daily_limit: int | None = None,
        max_attempts: int | None = None,
        seed: int | None = None,
    ) -> None:
        settings = get_settings()
        # None means each subject's own periods_per_week.
        self.periods_per_subject = periods_per_subject
        self.teacher_daily_limit = (
            teacher_daily_limit if teacher_daily_limit is not None else settings.generator_teacher_daily_limit
        )
        self.max_attempts = max_attempts if max_attempts is not None else settings.generator_max_attempts
        self.random = random.Random(seed if seed is not None else settings.generator_random_seed)

    def generate(self, inputs: TimetableGenerationInputs) -> GenerationResult:
        result = GenerationResult(lessons=[])
        qualified = {(assignment.teacher_id, assignment.subject_id) for assignment in inputs.teacher_subjects}

        for class_item in inputs.classes:
            assigned = {item.subject_id for item in inputs.class_subjects if item.class_id == class_item.id}
            for subject in (subject for subject in inputs.subjects if subject.id in assigned):
                periods = self.periods_per_subject or subject.periods_per_week
                result.periods_required += periods
                teachers = [teacher for teacher in inputs.teachers if (teacher.id, subject.id) in qualified]
                if not teachers:
                    self._warn(result, f"No qualified teacher for {subject.name} in {class_item.name}")
                    continue

                placed = 0
                attempts = 0
                while placed < periods and attempts < self.max_attempts:
                    attempts += 1
                    period = self._place_period(inputs, class_item.id, subject, teachers, result.lessons)
                    if period is None:
                        # The attempt already tried every day, slot and teacher.
                        break
                    result.lessons.extend(period)
                    placed += 1

                result.periods_scheduled += placed
                if placed < periods:
                    self._warn(
                        result,
                        f"Could only schedule {placed}/{periods} periods "
                        f"for {subject.name} in {class_item.name}",
                    )
        return result

    def _place_period(
        self,
        inputs: TimetableGenerationInputs,
        class_id: str,
        subject: _GenerationSubjectLike,
        teachers: Sequence[_NamedLike],
        lessons: Sequence[PlannedLesson],
    ) -> list[PlannedLesson] | None:
        days = list(inputs.working_days)
        self.random.shuffle(days)
        candidates = list(teachers)
        self.random.shuffle(candidates)

        for day in days:
            for slot in preferred_slots(day, class_id, inputs.slots, lessons):
                for teacher in candidates:
                    decision = can_generate(
                        subject, day, slot.id, class_id, teacher.id, lessons, inputs.slots, self.teacher_daily_limit
                    )
                    if not decision.allowed:
                        continue
                    slot_ids = [slot.id] if decision.next_slot_id is None else [slot.id, decision.next_slot_id]
                    room = find_suitable_room(
                        subject,
                        class_id,
                        inputs.rooms,
                        inputs.class_rooms,
                        inputs.lab_schedules,
                        day,
                        slot_ids,
                        lessons,
                    )
                    parent = PlannedLesson(
                        id=str(uuid.uuid4()),
                        day=day,
                        time_slot_id=slot.id,
                        class_id=class_id,
                        subject_id=subject.id,
                        teacher_id=teacher.id,
                        room_id=room.id if room is not None else None,
                    )
                    if decision.next_slot_id is None:
                        return [parent]
                    continuation = PlannedLesson(
                        id=str(uuid.uuid4()),
                        day=day,
                        time_slot_id=decision.next_slot_id,
                        class_id=class_id,
                        subject_id=subject.id,
                        teacher_id=teacher.id,
                        room_id=parent.room_id,
                        is_continuation=True,
                        parent_lesson_id=parent.id,
                    )
                    return [parent, continuation]
        return None

    @staticmethod
    def _warn(result: GenerationResult, message: str) -> None:
        logger.warning(message)
        result.warnings.append(message)


class TimetableGenerationSource(Protocol):
    def list_classes(self) -> list: ...
    def list_subjects(self) -> list: ...
    def list_teachers(self) -> list: ...
    def list_time_slots(self, timing_id: str | None = None) -> list: ...
    def list_rooms(self) -> list: ...
    def list_class_subject_assignments(self) -> list: ...
    def list_teacher_subject_assignments(self) -> list: ...
    def list_class_room_assignments(self) -> list: ...
    def list_lab_schedules(self) -> list: ...
    def save_generated_timetable(self, timetable: Timetable, lessons: Sequence[Lesson]) -> Timetable: ...


def load_generation_inputs(source: TimetableGenerationSource, *, timing_id: str) -> TimetableGenerationInputs:
    return TimetableGenerationInputs(
        classes=source.list_classes(),
        subjects=source.list_subjects(),
        teachers=source.list_teachers(),
        slots=source.list_time_slots(timing_id),
        rooms=source.list_rooms(),
        class_subjects=source.list_class_subject_assignments(),
        teacher_subjects=source.list_teacher_subject_assignments(),
        class_rooms=source.list_class_room_assignments(),
        lab_schedules=source.list_lab_schedules(),
    )


@dataclass
class TimetableGenerationRun:
    timetable_id: str
    strategy: str
    result: GenerationResult


def generate_timetable(
    source: TimetableGenerationSource,
    *,
    name: str,
    timing_id: str,
    strategy: TimetableGenerationStrategy | None = None,
) -> TimetableGenerationRun:
    """Generate a new timetable for ``timing_id`` and store it with all of its lessons."""
    strategy = strategy or GreedyTimetableGenerator()
    started = perf_counter()
    inputs = load_generation_inputs(source, timing_id=timing_id)
    logger.info(
        "Timetable generation inputs: %d classes, %d subjects, %d teachers, %d rooms, %d slots",
        len(inputs.classes),
        len(inputs.subjects),
        len(inputs.teachers),
        len(inputs.rooms),
        len(inputs.slots),
    )

    result = strategy.generate(inputs)
    if not ordered_teaching_slots(inputs.slots):
        message = "No teaching time slots in this timing; the timetable is empty"
        logger.warning(message)
        result.warnings.append(message)

    timetable = Timetable(id=str(uuid.uuid4()), name=name, timing_id=timing_id)
    rows = [Lesson(timetable_id=timetable.id, **asdict(lesson)) for lesson in result.lessons]
    source.save_generated_timetable(timetable, rows)
    logger.info(
        "Generated timetable %s with %s: %d lessons, %d/%d periods in %.3fs",
        timetable.id,
        strategy.name,
        len(rows),
        result.periods_scheduled,
        result.periods_required,
        perf_counter() - started,
    )
    return TimetableGenerationRun(timetable_id=timetable.id, strategy=strategy.name, result=result)
