"""Parent/continuation pairing for two-slot lab lessons.

A two-slot lab is stored as two lessons: the parent in the first slot and a
continuation in the following slot that points back through
``parent_lesson_id``. Nothing stores the span itself, so every lookup here
tolerates a missing half and falls back to treating the lesson on its own.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar, Union


class SubjectLike(Protocol):
    id: str
    is_lab: bool
    lab_duration_slots: int


class LessonLike(Protocol):
    id: str
    day: int
    time_slot_id: str
    class_id: str
    subject_id: str
    teacher_id: str
    room_id: str | None
    is_continuation: bool
    parent_lesson_id: str | None


LessonT = TypeVar("LessonT", bound=LessonLike)


def is_multi_hour(subject: SubjectLike) -> bool:
    return bool(subject.is_lab) and subject.lab_duration_slots == 2


def find_subject(subject_id: str, subjects: Iterable[SubjectLike]) -> SubjectLike | None:
    return next((subject for subject in subjects if subject.id == subject_id), None)


def lesson_is_multi_hour(lesson: LessonLike, subjects: Iterable[SubjectLike]) -> bool:
    subject = find_subject(lesson.subject_id, subjects)
    return is_multi_hour(subject) if subject is not None else False


@dataclass(frozen=True)
class SingleLesson:
    lesson_id: str


@dataclass(frozen=True)
class MultiHead:
    lesson_id: str
    continuation_id: str | None


@dataclass(frozen=True)
class MultiTail:
    lesson_id: str
    parent_id: str | None


LessonLink = Union[SingleLesson, MultiHead, MultiTail]


class LessonLookup:
    """Id-keyed view of a lesson set used to resolve pairings."""

    def __init__(self, lessons: Iterable[LessonT]) -> None:
        self.by_id: dict[str, LessonT] = {}
        self.continuation_by_parent: dict[str, LessonT] = {}
        for lesson in lessons:
            self.by_id.setdefault(lesson.id, lesson)
            if lesson.is_continuation and lesson.parent_lesson_id:
                self.continuation_by_parent.setdefault(lesson.parent_lesson_id, lesson)

    def get(self, lesson_id: str | None) -> LessonT | None:
        if lesson_id is None:
            return None
        return self.by_id.get(lesson_id)

    def link(self, lesson: LessonLike, subjects: Sequence[SubjectLike]) -> LessonLink:
        if not lesson_is_multi_hour(lesson, subjects):
            return SingleLesson(lesson_id=lesson.id)
        if lesson.is_continuation and lesson.parent_lesson_id:
            parent = self.by_id.get(lesson.parent_lesson_id)
            return MultiTail(lesson_id=lesson.id, parent_id=parent.id if parent is not None else None)
        continuation = self.continuation_by_parent.get(lesson.id)
        return MultiHead(
            lesson_id=lesson.id,
            continuation_id=continuation.id if continuation is not None else None,
        )

    def group(self, lesson: LessonT, subjects: Sequence[SubjectLike]) -> list[LessonT]:
        link = self.link(lesson, subjects)
        if isinstance(link, MultiTail) and link.parent_id is not None:
            return [self.by_id[link.parent_id], lesson]
        if isinstance(link, MultiHead) and link.continuation_id is not None:
            return [lesson, self.by_id[link.continuation_id]]
        return [lesson]


def lesson_link(lesson: LessonLike, lessons: Iterable[LessonLike], subjects: Sequence[SubjectLike]) -> LessonLink:
    return LessonLookup(lessons).link(lesson, subjects)


def lesson_group(lesson: LessonT, lessons: Iterable[LessonT], subjects: Sequence[SubjectLike]) -> list[LessonT]:
    """Return ``[lesson]`` or the ``[parent, continuation]`` pair it belongs to."""
    return LessonLookup(lessons).group(lesson, subjects)


def lesson_badge(lesson: LessonLike, subjects: Iterable[SubjectLike]) -> str:
    subject = find_subject(lesson.subject_id, subjects)
    if subject is None or not subject.is_lab:
        return ""
    if is_multi_hour(subject):
        return "2h Lab - Slot 2" if lesson.is_continuation else "2h Lab"
    return "Lab"
