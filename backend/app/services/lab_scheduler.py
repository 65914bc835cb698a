"""Round-robin lab session assignment.

Every (class, lab subject, batch) triple gets a (day, slot, teacher, room)
quadruple picked by one running counter taken modulo each resource pool. The
generator does not consult the conflict detector while placing, so small pools
can double-book a teacher or a room; the run audits its own output and reports
such collisions as warnings instead of fixing them.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import logging
from threading import Lock
from time import perf_counter
from typing import Protocol

from app.core.exceptions import WriteConflictError
from app.schemas.conflict import ConflictReport
from app.schemas.lab_schedule import LabScheduleRow
from app.services.conflict_service import ConflictService

logger = logging.getLogger(__name__)

# Monday to Friday.
WORKING_DAYS: tuple[int, ...] = (0, 1, 2, 3, 4)


class _HasId(Protocol):
    id: str


class _BatchLike(Protocol):
    id: str
    class_id: str


class _AssignmentLike(Protocol):
    class_id: str
    subject_id: str


class _SubjectLike(Protocol):
    id: str
    is_lab: bool


@dataclass(frozen=True)
class LabScheduleInputs:
    subjects: Sequence[_SubjectLike]
    classes: Sequence[_HasId]
    batches: Sequence[_BatchLike]
    teachers: Sequence[_HasId]
    lab_rooms: Sequence[_HasId]
    slots: Sequence[_HasId]
    assignments: Sequence[_AssignmentLike]
    working_days: tuple[int, ...] = WORKING_DAYS


def assign_lab_schedules(
    subjects: Sequence[_SubjectLike],
    classes: Sequence[_HasId],
    batches: Sequence[_BatchLike],
    teachers: Sequence[_HasId],
    lab_rooms: Sequence[_HasId],
    slots: Sequence[_HasId],
    assignments: Sequence[_AssignmentLike],
    working_days: Sequence[int] = WORKING_DAYS,
) -> list[LabScheduleRow]:
    """Assign every lab batch of every class in input order.

    ``slots`` must already be the non-break slots in teaching order. An empty
    teacher, room, slot or day pool yields no rows.
    """
    if not teachers or not lab_rooms or not slots or not working_days:
        return []

    lab_subjects = {subject.id: subject for subject in subjects if subject.is_lab}
    rows: list[LabScheduleRow] = []
    index = 0
    for class_item in classes:
        class_batches = [batch for batch in batches if batch.class_id == class_item.id]
        class_subjects = [
            lab_subjects[assignment.subject_id]
            for assignment in assignments
            if assignment.class_id == class_item.id and assignment.subject_id in lab_subjects
        ]
        for subject in class_subjects:
            for batch in class_batches:
                day_index = (index // len(slots)) % len(working_days)
                rows.append(
                    LabScheduleRow(
                        subject_id=subject.id,
                        class_id=class_item.id,
                        batch_id=batch.id,
                        day=working_days[day_index],
                        time_slot_id=slots[index % len(slots)].id,
                        teacher_id=teachers[index % len(teachers)].id,
                        room_id=lab_rooms[index % len(lab_rooms)].id,
                    )
                )
                index += 1
    return rows


class LabScheduleStrategy(Protocol):
    name: str

    def generate(self, inputs: LabScheduleInputs) -> list[LabScheduleRow]:
        ...


class RoundRobinLabScheduler:
    name = "round_robin"

    def generate(self, inputs: LabScheduleInputs) -> list[LabScheduleRow]:
        return assign_lab_schedules(
            inputs.subjects,
            inputs.classes,
            inputs.batches,
            inputs.teachers,
            inputs.lab_rooms,
            inputs.slots,
            inputs.assignments,
            inputs.working_days,
        )


@dataclass(frozen=True)
class LabSessionEntry:
    """A generated row seen through the lesson fields the conflict audit reads."""

    id: str
    day: int
    time_slot_id: str
    class_id: str
    teacher_id: str
    room_id: str | None


def audit_lab_schedule(rows: Sequence[LabScheduleRow]) -> ConflictReport:
    entries = [
        LabSessionEntry(
            id=f"lab-{sequence}",
            day=row.day,
            time_slot_id=row.time_slot_id,
            class_id=row.class_id,
            teacher_id=row.teacher_id,
            room_id=row.room_id,
        )
        for sequence, row in enumerate(rows)
    ]
    return ConflictService(entries).detect_conflicts()


def degenerate_input_warnings(inputs: LabScheduleInputs) -> list[str]:
    warnings: list[str] = []
    if not inputs.teachers:
        warnings.append("No teachers available; no lab sessions were assigned")
    if not inputs.lab_rooms:
        warnings.append("No lab rooms available; no lab sessions were assigned")
    if not inputs.slots:
        warnings.append("No teaching time slots available; no lab sessions were assigned")
    return warnings


@dataclass
class LabScheduleRun:
    strategy: str
    schedules: list[LabScheduleRow]
    warnings: list[str] = field(default_factory=list)
    collisions: ConflictReport = field(default_factory=lambda: ConflictReport(conflicts=[], suggested_resolutions=[]))


class LabScheduleSource(Protocol):
    def list_subjects(self) -> list: ...
    def list_classes(self) -> list: ...
    def list_batches(self) -> list: ...
    def list_teachers(self) -> list: ...
    def list_lab_rooms(self) -> list: ...
    def list_non_break_slots_ordered(self, timing_id: str | None = None) -> list: ...
    def list_class_subject_assignments(self) -> list: ...
    def replace_lab_schedules(self, rows: Sequence[LabScheduleRow]) -> int: ...


def load_lab_schedule_inputs(source: LabScheduleSource, *, timing_id: str | None = None) -> LabScheduleInputs:
    return LabScheduleInputs(
        subjects=[subject for subject in source.list_subjects() if subject.is_lab],
        classes=source.list_classes(),
        batches=source.list_batches(),
        teachers=source.list_teachers(),
        lab_rooms=source.list_lab_rooms(),
        slots=source.list_non_break_slots_ordered(timing_id),
        assignments=source.list_class_subject_assignments(),
    )


_regeneration_lock = Lock()


def regenerate_lab_schedule(
    source: LabScheduleSource,
    *,
    strategy: LabScheduleStrategy | None = None,
    timing_id: str | None = None,
) -> LabScheduleRun:
    """Generate a fresh lab schedule and replace the stored set with it.

    Runs are single-writer: a second call while one is in progress is rejected.
    Read or write failures propagate unchanged and leave the stored set as it was.
    """
    if not _regeneration_lock.acquire(blocking=False):
        raise WriteConflictError("A lab schedule regeneration is already running")
    try:
        strategy = strategy or RoundRobinLabScheduler()
        started = perf_counter()
        inputs = load_lab_schedule_inputs(source, timing_id=timing_id)
        logger.info(
            "Lab schedule inputs: %d lab subjects, %d classes, %d batches, %d teachers, %d lab rooms, %d slots",
            len(inputs.subjects),
            len(inputs.classes),
            len(inputs.batches),
            len(inputs.teachers),
            len(inputs.lab_rooms),
            len(inputs.slots),
        )

        warnings = degenerate_input_warnings(inputs)
        for message in warnings:
            logger.warning(message)

        rows = strategy.generate(inputs)
        collisions = audit_lab_schedule(rows)
        if collisions.conflicts:
            message = (
                f"{len(collisions.conflicts)} teacher/room/class collision(s) in generated lab schedule; "
                "add teachers, lab rooms or slots to spread sessions further"
            )
            logger.warning(message)
            warnings.append(message)

        source.replace_lab_schedules(rows)
        logger.info(
            "Lab schedule regenerated with %s: %d sessions in %.3fs",
            strategy.name,
            len(rows),
            perf_counter() - started,
        )
        return LabScheduleRun(strategy=strategy.name, schedules=rows, warnings=warnings, collisions=collisions)
    finally:
        _regeneration_lock.release()
