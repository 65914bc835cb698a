"""add generation assignments

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:00:01.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "teacher_subject_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("teacher_id", sa.String(length=36), sa.ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("subject_id", sa.String(length=36), sa.ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("teacher_id", "subject_id", name="uq_teacher_subject_assignments_pair"),
    )
    op.create_index("ix_teacher_subject_assignments_teacher_id", "teacher_subject_assignments", ["teacher_id"])
    op.create_index("ix_teacher_subject_assignments_subject_id", "teacher_subject_assignments", ["subject_id"])

    op.create_table(
        "class_room_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), sa.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("room_id", sa.String(length=36), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("class_id", name="uq_class_room_assignments_class"),
    )
    op.create_index("ix_class_room_assignments_room_id", "class_room_assignments", ["room_id"])


def downgrade() -> None:
    op.drop_index("ix_class_room_assignments_room_id", table_name="class_room_assignments")
    op.drop_table("class_room_assignments")
    op.drop_index("ix_teacher_subject_assignments_subject_id", table_name="teacher_subject_assignments")
    op.drop_index("ix_teacher_subject_assignments_teacher_id", table_name="teacher_subject_assignments")
    op.drop_table("teacher_subject_assignments")
