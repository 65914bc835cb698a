import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base import Base


class Timetable(Base):
    __tablename__ = "timetables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    timing_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("timings.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    lessons: Mapped[list["Lesson"]] = relationship(
        back_populates="timetable",
        cascade="all, delete-orphan",
    )


class Lesson(Base):
    __tablename__ = "lessons"
    # The store enforces the same per-slot exclusivity the placement pre-check mirrors.
    __table_args__ = (
        UniqueConstraint("timetable_id", "day", "time_slot_id", "class_id", name="uq_lessons_class_slot"),
        UniqueConstraint("timetable_id", "day", "time_slot_id", "teacher_id", name="uq_lessons_teacher_slot"),
        UniqueConstraint("timetable_id", "day", "time_slot_id", "room_id", name="uq_lessons_room_slot"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    timetable_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("timetables.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    time_slot_id: Mapped[str] = mapped_column(String(36), ForeignKey("time_slots.id"), nullable=False)
    class_id: Mapped[str] = mapped_column(String(36), ForeignKey("classes.id"), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(36), ForeignKey("subjects.id"), nullable=False)
    teacher_id: Mapped[str] = mapped_column(String(36), ForeignKey("teachers.id"), nullable=False)
    room_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("rooms.id"), nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("batches.id"), nullable=True)
    is_continuation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parent_lesson_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("lessons.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    timetable: Mapped[Timetable] = relationship(back_populates="lessons")
