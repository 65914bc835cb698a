from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.core.exceptions import ResourceNotFoundError, TransientUnavailableError, WriteConflictError
from app.models.lab_schedule import LabSchedule
from app.models.room import Room, RoomType
from app.models.school_class import Batch, ClassRoomAssignment, ClassSubjectAssignment, SchoolClass
from app.models.subject import Subject
from app.models.teacher import Teacher, TeacherSubjectAssignment
from app.models.time_slot import TimeSlot
from app.models.timetable import Lesson, Timetable
from app.schemas.lab_schedule import LabScheduleRow
from app.schemas.timetable import LessonOut, TimetableOut
from app.services.lesson_groups import lesson_badge

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(db: Session, action: str) -> Iterator[None]:
    """Roll back and translate driver failures into the service error taxonomy."""
    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        logger.info("Write conflict while %s: %s", action, exc.orig)
        raise WriteConflictError(
            f"Another change already occupies the target slot(s) while {action}",
            details={"action": action},
        ) from exc
    except OperationalError as exc:
        db.rollback()
        logger.warning("Store unavailable while %s", action, exc_info=True)
        raise TransientUnavailableError(details={"action": action}) from exc


class TimetableRepository:
    def __init__(self, db: Session, *, insert_chunk_size: int = 100) -> None:
        self.db = db
        self.insert_chunk_size = max(1, insert_chunk_size)

    def _all(self, query) -> list:
        with store_errors(self.db, "reading"):
            return list(self.db.execute(query).scalars())

    def require(self, model: type, entity_id: str, label: str):
        with store_errors(self.db, f"loading {label}"):
            record = self.db.get(model, entity_id)
        if record is None:
            raise ResourceNotFoundError(label, entity_id)
        return record

    # Timetables and lessons

    def fetch_timetable(self, timetable_id: str) -> Timetable:
        return self.require(Timetable, timetable_id, "Timetable")

    def list_timetables(self) -> list[Timetable]:
        return self._all(select(Timetable).order_by(Timetable.created_at.desc(), Timetable.id))

    def list_lessons(self, timetable_id: str) -> list[Lesson]:
        return self._all(
            select(Lesson)
            .outerjoin(TimeSlot, Lesson.time_slot_id == TimeSlot.id)
            .where(Lesson.timetable_id == timetable_id)
            .order_by(Lesson.day, TimeSlot.slot_order, Lesson.is_continuation, Lesson.id)
        )

    def get_lesson(self, timetable_id: str, lesson_id: str) -> Lesson:
        lesson = self.require(Lesson, lesson_id, "Lesson")
        if lesson.timetable_id != timetable_id:
            raise ResourceNotFoundError("Lesson", lesson_id)
        return lesson

    def fetch_timetable_view(self, timetable_id: str) -> TimetableOut:
        timetable = self.fetch_timetable(timetable_id)
        subjects = self.list_subjects()
        lessons = [
            LessonOut.model_validate(lesson).model_copy(update={"badge": lesson_badge(lesson, subjects)})
            for lesson in self.list_lessons(timetable_id)
        ]
        return TimetableOut(id=timetable.id, name=timetable.name, timing_id=timetable.timing_id, lessons=lessons)

    def persist_lesson(self, lesson: Lesson, continuation: Lesson | None = None) -> Lesson:
        """Store a lesson and its continuation in one transaction."""
        with store_errors(self.db, "placing lesson"):
            self.db.add(lesson)
            self.db.flush()
            if continuation is not None:
                continuation.is_continuation = True
                continuation.parent_lesson_id = lesson.id
                self.db.add(continuation)
            self.db.commit()
        self.db.refresh(lesson)
        return lesson

    def replace_lesson_group(
        self,
        removed: Sequence[Lesson],
        lesson: Lesson,
        changes: Mapping[str, object],
        continuation: Lesson | None = None,
    ) -> Lesson:
        """Delete ``removed``, apply ``changes`` to ``lesson`` and store the new group in one transaction.

        ``lesson`` is the kept parent row. Its new values are only written once the
        removed rows are gone, since it may move into a slot one of them held.
        """
        with store_errors(self.db, "moving lesson"):
            # Continuations go first so the parent row is never left dangling.
            for stale in sorted(removed, key=lambda item: not item.is_continuation):
                if stale is lesson:
                    continue
                self.db.delete(stale)
            self.db.flush()
            for key, value in changes.items():
                setattr(lesson, key, value)
            self.db.add(lesson)
            self.db.flush()
            if continuation is not None:
                continuation.is_continuation = True
                continuation.parent_lesson_id = lesson.id
                self.db.add(continuation)
            self.db.commit()
        self.db.refresh(lesson)
        return lesson

    def save_generated_timetable(self, timetable: Timetable, lessons: Sequence[Lesson]) -> Timetable:
        """Store a new timetable and all of its lessons, or nothing."""
        with store_errors(self.db, "saving generated timetable"):
            self.db.add(timetable)
            self.db.flush()
            # Parents first; continuations point at them.
            self.db.add_all(lesson for lesson in lessons if not lesson.is_continuation)
            self.db.flush()
            self.db.add_all(lesson for lesson in lessons if lesson.is_continuation)
            self.db.commit()
        self.db.refresh(timetable)
        return timetable

    def delete_lesson_group(self, group: Sequence[Lesson]) -> list[str]:
        """Delete a lesson group plus any continuation still pointing at it."""
        ids = [lesson.id for lesson in group]
        with store_errors(self.db, "deleting lesson"):
            orphans = self._all(
                select(Lesson).where(Lesson.parent_lesson_id.in_(ids), Lesson.id.not_in(ids))
            )
            for lesson in [*orphans, *sorted(group, key=lambda item: not item.is_continuation)]:
                self.db.delete(lesson)
            self.db.commit()
        return [*ids, *(lesson.id for lesson in orphans)]

    # Catalog reads

    def list_time_slots(self, timing_id: str | None = None) -> list[TimeSlot]:
        query = select(TimeSlot).order_by(TimeSlot.slot_order, TimeSlot.start_time, TimeSlot.id)
        if timing_id is not None:
            query = query.where(TimeSlot.timing_id == timing_id)
        return self._all(query)

    def list_non_break_slots_ordered(self, timing_id: str | None = None) -> list[TimeSlot]:
        return [slot for slot in self.list_time_slots(timing_id) if not slot.is_break]

    def list_subjects(self) -> list[Subject]:
        return self._all(select(Subject).order_by(Subject.name, Subject.id))

    def list_classes(self) -> list[SchoolClass]:
        return self._all(select(SchoolClass).order_by(SchoolClass.name, SchoolClass.id))

    def list_batches(self) -> list[Batch]:
        return self._all(select(Batch).order_by(Batch.name, Batch.id))

    def list_teachers(self) -> list[Teacher]:
        return self._all(select(Teacher).order_by(Teacher.name, Teacher.id))

    def list_rooms(self) -> list[Room]:
        return self._all(select(Room).order_by(Room.name, Room.id))

    def list_lab_rooms(self) -> list[Room]:
        return self._all(select(Room).where(Room.type == RoomType.lab).order_by(Room.name, Room.id))

    def list_class_subject_assignments(self) -> list[ClassSubjectAssignment]:
        return self._all(
            select(ClassSubjectAssignment).order_by(ClassSubjectAssignment.created_at, ClassSubjectAssignment.id)
        )

    def list_teacher_subject_assignments(self) -> list[TeacherSubjectAssignment]:
        return self._all(
            select(TeacherSubjectAssignment).order_by(TeacherSubjectAssignment.created_at, TeacherSubjectAssignment.id)
        )

    def list_class_room_assignments(self) -> list[ClassRoomAssignment]:
        return self._all(select(ClassRoomAssignment).order_by(ClassRoomAssignment.created_at, ClassRoomAssignment.id))

    # Lab schedules

    def list_lab_schedules(self, *, class_id: str | None = None, batch_id: str | None = None) -> list[LabSchedule]:
        query = select(LabSchedule).order_by(LabSchedule.sequence, LabSchedule.id)
        if class_id is not None:
            query = query.where(LabSchedule.class_id == class_id)
        if batch_id is not None:
            query = query.where(LabSchedule.batch_id == batch_id)
        return self._all(query)

    def replace_lab_schedules(self, rows: Sequence[LabScheduleRow]) -> int:
        """Swap the whole lab schedule set; readers see either the old set or the new one."""
        with store_errors(self.db, "replacing lab schedules"):
            self.db.execute(delete(LabSchedule))
            for start in range(0, len(rows), self.insert_chunk_size):
                chunk = rows[start:start + self.insert_chunk_size]
                self.db.add_all(
                    LabSchedule(sequence=start + offset, **row.model_dump())
                    for offset, row in enumerate(chunk)
                )
                self.db.flush()
                logger.debug(
                    "Staged lab schedule chunk %d/%d",
                    start // self.insert_chunk_size + 1,
                    -(-len(rows) // self.insert_chunk_size),
                )
            self.db.commit()
        return len(rows)
