from __future__ import annotations

from collections.abc import Callable, Sequence
import logging
from threading import Lock
import uuid
from weakref import WeakValueDictionary

from app.core.exceptions import ConflictRejectedError, SchedulerError
from app.models.room import Room
from app.models.school_class import Batch, SchoolClass
from app.models.subject import Subject
from app.models.teacher import Teacher
from app.models.time_slot import TimeSlot
from app.models.timetable import Lesson, Timetable
from app.schemas.change import ChangeEvent, ChangeKind, DeletedLesson
from app.schemas.timetable import LessonSnapshot, LessonUpdate, PlacementDecision, PlacementRequest
from app.services.conflict_service import REASON_CURRENT_SLOT_OCCUPIED, REASON_NEXT_SLOT_OCCUPIED, can_place, prior_slot_occupant
from app.services.lesson_groups import LessonLookup
from app.services.repository import TimetableRepository

logger = logging.getLogger(__name__)

ChangePublisher = Callable[[ChangeEvent], None]

_locks_guard = Lock()
# An entry lives only while some request holds a reference to its lock.
_timetable_locks: WeakValueDictionary[str, Lock] = WeakValueDictionary()


def timetable_lock(timetable_id: str) -> Lock:
    """One lock per timetable; check-and-commit for that timetable runs under it."""
    with _locks_guard:
        lock = _timetable_locks.get(timetable_id)
        if lock is None:
            lock = Lock()
            _timetable_locks[timetable_id] = lock
        return lock


def _change_event(kind: ChangeKind, lesson: Lesson) -> ChangeEvent:
    if kind == ChangeKind.delete:
        return ChangeEvent(event=kind, timetable_id=lesson.timetable_id, deleted=DeletedLesson(id=lesson.id))
    return ChangeEvent(event=kind, timetable_id=lesson.timetable_id, lesson=LessonSnapshot.model_validate(lesson))


class PlacementService:
    """Approves, stores and removes lessons for one request.

    The conflict check and the write happen under the timetable's lock so two
    overlapping placements cannot both pass. The store's unique constraints
    back this up across processes.
    """

    def __init__(self, repository: TimetableRepository, publish: ChangePublisher | None = None) -> None:
        self.repository = repository
        self.publish = publish

    def _slots_for(self, timetable: Timetable) -> list[TimeSlot]:
        # Slot orders are only comparable within one timing.
        if timetable.timing_id is None:
            raise SchedulerError(
                "Timetable has no timing; assign one before placing lessons",
                details={"timetable_id": timetable.id},
            )
        return self.repository.list_time_slots(timetable.timing_id)

    def _validate_references(self, request: PlacementRequest | LessonUpdate, *, class_id: str) -> Subject | None:
        self.repository.require(SchoolClass, class_id, "Class")
        if request.teacher_id is not None:
            self.repository.require(Teacher, request.teacher_id, "Teacher")
        if request.room_id is not None:
            self.repository.require(Room, request.room_id, "Room")
        if request.batch_id is not None:
            batch = self.repository.require(Batch, request.batch_id, "Batch")
            if batch.class_id != class_id:
                raise SchedulerError(
                    "Batch does not belong to the lesson's class",
                    details={"batch_id": batch.id, "class_id": class_id},
                )
        if request.time_slot_id is not None:
            slot = self.repository.require(TimeSlot, request.time_slot_id, "Time slot")
            if slot.is_break:
                raise SchedulerError("Lessons cannot be placed in a break slot", details={"time_slot_id": slot.id})
        return self.repository.require(Subject, request.subject_id, "Subject") if request.subject_id else None

    def _decide(
        self,
        *,
        subject: Subject | None,
        day: int,
        slot_id: str,
        class_id: str,
        teacher_id: str,
        room_id: str | None,
        lessons: Sequence[Lesson],
        slots: Sequence[TimeSlot],
        subjects: Sequence[Subject],
        ignore_ids: set[str],
    ) -> PlacementDecision:
        if slots and all(slot.id != slot_id for slot in slots):
            raise SchedulerError(
                "Time slot does not belong to the timetable's timing",
                details={"time_slot_id": slot_id},
            )
        active = [lesson for lesson in lessons if lesson.id not in ignore_ids]
        decision = can_place(subject, day, slot_id, class_id, teacher_id, room_id, active, slots)
        if not decision.allowed:
            return decision

        # A stored two-slot lab whose continuation row is missing still holds the following slot.
        lookup = LessonLookup(active)
        targets = [(slot_id, REASON_CURRENT_SLOT_OCCUPIED)]
        if decision.next_slot_id is not None:
            targets.append((decision.next_slot_id, REASON_NEXT_SLOT_OCCUPIED))
        for target_id, reason in targets:
            for filters in ({"class_id": class_id}, {"teacher_id": teacher_id}, {"room_id": room_id}):
                if not any(filters.values()):
                    continue
                occupant = prior_slot_occupant(day, target_id, active, subjects, slots, **filters)
                if occupant is None or occupant.is_continuation:
                    continue
                if len(lookup.group(occupant, subjects)) == 1:
                    return PlacementDecision(allowed=False, reason=reason, next_slot_id=decision.next_slot_id)
        return decision

    def check(self, timetable_id: str, request: PlacementRequest) -> PlacementDecision:
        timetable = self.repository.fetch_timetable(timetable_id)
        subject = self._validate_references(request, class_id=request.class_id)
        return self._decide(
            subject=subject,
            day=request.day,
            slot_id=request.time_slot_id,
            class_id=request.class_id,
            teacher_id=request.teacher_id,
            room_id=request.room_id,
            lessons=self.repository.list_lessons(timetable_id),
            slots=self._slots_for(timetable),
            subjects=self.repository.list_subjects(),
            ignore_ids=set(),
        )

    def place(self, timetable_id: str, request: PlacementRequest) -> list[Lesson]:
        self.repository.fetch_timetable(timetable_id)
        with timetable_lock(timetable_id):
            decision = self.check(timetable_id, request)
            if not decision.allowed:
                logger.info("Rejected placement in timetable %s: %s", timetable_id, decision.reason)
                raise ConflictRejectedError(decision.reason, details={"next_slot_id": decision.next_slot_id})

            values = request.model_dump()
            lesson = Lesson(id=str(uuid.uuid4()), timetable_id=timetable_id, is_continuation=False, **values)
            continuation = None
            if decision.next_slot_id is not None:
                continuation = Lesson(
                    id=str(uuid.uuid4()),
                    timetable_id=timetable_id,
                    **{**values, "time_slot_id": decision.next_slot_id},
                )
            self.repository.persist_lesson(lesson, continuation)

        group = [lesson] if continuation is None else [lesson, continuation]
        logger.info("Placed %d lesson(s) in timetable %s", len(group), timetable_id)
        self._publish(ChangeKind.insert, group)
        return group

    def move(self, timetable_id: str, lesson_id: str, update: LessonUpdate) -> list[Lesson]:
        timetable = self.repository.fetch_timetable(timetable_id)
        with timetable_lock(timetable_id):
            target = self.repository.get_lesson(timetable_id, lesson_id)
            lessons = self.repository.list_lessons(timetable_id)
            subjects = self.repository.list_subjects()
            group = LessonLookup(lessons).group(target, subjects)
            head = group[0]
            if head.is_continuation:
                raise SchedulerError(
                    "Continuation lesson has no parent to move with",
                    details={"lesson_id": head.id},
                )

            changes = update.model_dump(exclude_unset=True)
            subject = self._validate_references(update, class_id=head.class_id)
            merged = PlacementRequest(
                day=changes.get("day", head.day),
                time_slot_id=changes.get("time_slot_id", head.time_slot_id),
                class_id=head.class_id,
                subject_id=changes.get("subject_id", head.subject_id),
                teacher_id=changes.get("teacher_id", head.teacher_id),
                room_id=changes.get("room_id", head.room_id),
                batch_id=changes.get("batch_id", head.batch_id),
            )
            if subject is None:
                subject = self.repository.require(Subject, merged.subject_id, "Subject")

            decision = self._decide(
                subject=subject,
                day=merged.day,
                slot_id=merged.time_slot_id,
                class_id=merged.class_id,
                teacher_id=merged.teacher_id,
                room_id=merged.room_id,
                lessons=lessons,
                slots=self._slots_for(timetable),
                subjects=subjects,
                ignore_ids={lesson.id for lesson in group},
            )
            if not decision.allowed:
                logger.info("Rejected move of lesson %s: %s", head.id, decision.reason)
                raise ConflictRejectedError(decision.reason, details={"next_slot_id": decision.next_slot_id})

            removed = [lesson for lesson in group if lesson is not head]
            removed_ids = [lesson.id for lesson in removed]
            values = merged.model_dump()
            continuation = None
            if decision.next_slot_id is not None:
                continuation = Lesson(
                    id=str(uuid.uuid4()),
                    timetable_id=timetable_id,
                    **{**values, "time_slot_id": decision.next_slot_id},
                )
            self.repository.replace_lesson_group(removed, head, values, continuation)

        for removed_id in removed_ids:
            self._emit(ChangeEvent(event=ChangeKind.delete, timetable_id=timetable_id, deleted=DeletedLesson(id=removed_id)))
        self._publish(ChangeKind.update, [head])
        if continuation is not None:
            self._publish(ChangeKind.insert, [continuation])
        return [head] if continuation is None else [head, continuation]

    def delete(self, timetable_id: str, lesson_id: str) -> list[str]:
        self.repository.fetch_timetable(timetable_id)
        with timetable_lock(timetable_id):
            target = self.repository.get_lesson(timetable_id, lesson_id)
            lessons = self.repository.list_lessons(timetable_id)
            group = LessonLookup(lessons).group(target, self.repository.list_subjects())
            deleted_ids = self.repository.delete_lesson_group(group)

        logger.info("Deleted lesson group %s from timetable %s", deleted_ids, timetable_id)
        for deleted_id in deleted_ids:
            self._emit(ChangeEvent(event=ChangeKind.delete, timetable_id=timetable_id, deleted=DeletedLesson(id=deleted_id)))
        return deleted_ids

    def _publish(self, kind: ChangeKind, lessons: Sequence[Lesson]) -> None:
        for lesson in lessons:
            self._emit(_change_event(kind, lesson))

    def _emit(self, event: ChangeEvent) -> None:
        if self.publish is None:
            return
        self.publish(event)
