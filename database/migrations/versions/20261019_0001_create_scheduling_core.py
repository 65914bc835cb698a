"""create scheduling core

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    room_type = sa.Enum("lecture", "lab", "seminar", name="room_type")

    op.create_table(
        "timings",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "time_slots",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "timing_id",
            sa.String(length=36),
            sa.ForeignKey("timings.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("slot_order", sa.Integer(), nullable=False),
        sa.Column("is_break", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_time_slots_timing_id", "time_slots", ["timing_id"])
    op.create_index("ix_time_slots_slot_order", "time_slots", ["slot_order"])

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("is_lab", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("lab_duration_slots", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("periods_per_week", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_subjects_code", "subjects", ["code"], unique=True)

    op.create_table(
        "classes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        sa.Column("year", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "batches",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), sa.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("strength", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("class_id", "name", name="uq_batches_class_name"),
    )
    op.create_index("ix_batches_class_id", "batches", ["class_id"])

    op.create_table(
        "class_subject_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), sa.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "subject_id",
            sa.String(length=36),
            sa.ForeignKey("subjects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("class_id", "subject_id", name="uq_class_subject_assignments_pair"),
    )
    op.create_index("ix_class_subject_assignments_class_id", "class_subject_assignments", ["class_id"])
    op.create_index("ix_class_subject_assignments_subject_id", "class_subject_assignments", ["subject_id"])

    op.create_table(
        "teachers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_teachers_email", "teachers", ["email"], unique=True)

    op.create_table(
        "rooms",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("type", room_type, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_rooms_name", "rooms", ["name"], unique=True)

    op.create_table(
        "timetables",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column(
            "timing_id",
            sa.String(length=36),
            sa.ForeignKey("timings.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "lessons",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "timetable_id",
            sa.String(length=36),
            sa.ForeignKey("timetables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("time_slot_id", sa.String(length=36), sa.ForeignKey("time_slots.id"), nullable=False),
        sa.Column("class_id", sa.String(length=36), sa.ForeignKey("classes.id"), nullable=False),
        sa.Column("subject_id", sa.String(length=36), sa.ForeignKey("subjects.id"), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), sa.ForeignKey("teachers.id"), nullable=False),
        sa.Column("room_id", sa.String(length=36), sa.ForeignKey("rooms.id"), nullable=True),
        sa.Column("batch_id", sa.String(length=36), sa.ForeignKey("batches.id"), nullable=True),
        sa.Column("is_continuation", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "parent_lesson_id",
            sa.String(length=36),
            sa.ForeignKey("lessons.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("timetable_id", "day", "time_slot_id", "class_id", name="uq_lessons_class_slot"),
        sa.UniqueConstraint("timetable_id", "day", "time_slot_id", "teacher_id", name="uq_lessons_teacher_slot"),
        sa.UniqueConstraint("timetable_id", "day", "time_slot_id", "room_id", name="uq_lessons_room_slot"),
    )
    op.create_index("ix_lessons_timetable_id", "lessons", ["timetable_id"])
    op.create_index("ix_lessons_parent_lesson_id", "lessons", ["parent_lesson_id"])

    op.create_table(
        "lab_schedules",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "subject_id",
            sa.String(length=36),
            sa.ForeignKey("subjects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("class_id", sa.String(length=36), sa.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("batch_id", sa.String(length=36), sa.ForeignKey("batches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("time_slot_id", sa.String(length=36), sa.ForeignKey("time_slots.id"), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), sa.ForeignKey("teachers.id"), nullable=False),
        sa.Column("room_id", sa.String(length=36), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("subject_id", "class_id", "batch_id", name="uq_lab_schedules_identity"),
    )
    op.create_index("ix_lab_schedules_subject_id", "lab_schedules", ["subject_id"])
    op.create_index("ix_lab_schedules_class_id", "lab_schedules", ["class_id"])
    op.create_index("ix_lab_schedules_batch_id", "lab_schedules", ["batch_id"])


def downgrade() -> None:
    op.drop_table("lab_schedules")
    op.drop_table("lessons")
    op.drop_table("timetables")
    op.drop_table("rooms")
    op.drop_table("teachers")
    op.drop_table("class_subject_assignments")
    op.drop_table("batches")
    op.drop_table("classes")
    op.drop_table("subjects")
    op.drop_table("time_slots")
    op.drop_table("timings")
    sa.Enum(name="room_type").drop(op.get_bind(), checkfirst=True)
