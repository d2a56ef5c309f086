from __future__ import annotations

import logging

from sqlalchemy import inspect, text

import routine.models  # noqa: F401
from routine.db.base import Base
from routine.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "programs": {"id", "code", "total_semesters", "is_active"},
    "academic_years": {"id", "is_current", "is_active"},
    "time_slots": {"id", "sort_order", "is_break", "is_active"},
    "scheduled_slots": {
        "id",
        "program_id",
        "academic_year_id",
        "semester",
        "section",
        "day_index",
        "slot_index",
        "occupancy",
        "span_id",
        "is_span_master",
        "class_category",
        "elective_group_id",
        "elective_info",
        "is_alternating_week",
        "alternate_group_config",
    },
}


def _ensure_scheduled_slot_alternate_week_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "scheduled_slots" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("scheduled_slots")}
        if "is_alternating_week" not in column_names:
            connection.execute(
                text(
                    "ALTER TABLE scheduled_slots "
                    "ADD COLUMN is_alternating_week BOOLEAN NOT NULL DEFAULT false"
                )
            )
        if "alternate_group_config" not in column_names:
            column_type = "JSONB" if connection.dialect.name == "postgresql" else "JSON"
            connection.execute(
                text(f"ALTER TABLE scheduled_slots ADD COLUMN alternate_group_config {column_type}")
            )


def _ensure_scheduled_slot_elective_info_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "scheduled_slots" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("scheduled_slots")}
        if "elective_info" in column_names:
            return
        column_type = "JSONB" if connection.dialect.name == "postgresql" else "JSON"
        connection.execute(text(f"ALTER TABLE scheduled_slots ADD COLUMN elective_info {column_type}"))


def _assert_required_columns() -> None:
    with engine.begin() as connection:
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


def ensure_runtime_schema_compatibility() -> None:
    try:
        # Missing tables first, then additive column patches for older databases.
        Base.metadata.create_all(bind=engine)
        _ensure_scheduled_slot_alternate_week_columns()
        _ensure_scheduled_slot_elective_info_column()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
