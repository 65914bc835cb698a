from __future__ import annotations

import logging

from sqlalchemy import inspect

from app.db.base import Base
from app.db.session import engine
import app.models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "time_slots": {"id", "timing_id", "slot_order", "is_break"},
    "subjects": {"id", "is_lab", "lab_duration_slots"},
    "lessons": {"id", "timetable_id", "day", "time_slot_id", "is_continuation", "parent_lesson_id"},
    "lab_schedules": {"id", "subject_id", "class_id", "batch_id", "sequence"},
}


def _assert_required_columns(bind=None) -> None:
    with (bind or engine).connect() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema(bind=None) -> None:
    try:
        Base.metadata.create_all(bind=bind or engine)
        _assert_required_columns(bind)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema bootstrap failed")
        raise RuntimeError("Runtime schema bootstrap failed") from exc
