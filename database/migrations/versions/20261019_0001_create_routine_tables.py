"""create routine tables

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
    room_type = sa.Enum("lecture", "lab", "seminar", "tutorial", name="room_type")
    routine_section = sa.Enum("AB", "CD", name="routine_section")
    class_kind = sa.Enum("L", "P", "T", "BREAK", name="class_kind")
    lab_group = sa.Enum("A", "B", "C", "D", "ALL", name="lab_group")
    class_category = sa.Enum("CORE", "ELECTIVE", name="class_category")

    op.create_table(
        "programs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("total_semesters", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_programs_code", "programs", ["code"], unique=True)

    op.create_table(
        "academic_years",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=50), nullable=False, unique=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_academic_years_is_current", "academic_years", ["is_current"])

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("credit_hours", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_subjects_code", "subjects", ["code"], unique=True)

    op.create_table(
        "teachers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("short_name", sa.String(length=20), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_teachers_email", "teachers", ["email"], unique=True)

    op.create_table(
        "rooms",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", room_type, nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="48"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_rooms_name", "rooms", ["name"], unique=True)

    op.create_table(
        "time_slots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False, nullable=False),
        sa.Column("label", sa.String(length=50), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_break", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index("ix_time_slots_sort_order", "time_slots", ["sort_order"])

    op.create_table(
        "scheduled_slots",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("program_id", sa.String(length=36), nullable=False),
        sa.Column("program_code", sa.String(length=20), nullable=False),
        sa.Column("academic_year_id", sa.String(length=36), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("section", routine_section, nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column("slot_index", sa.Integer(), nullable=False),
        sa.Column("class_kind", class_kind, nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("teacher_ids", sa.JSON(), nullable=False),
        sa.Column("room_id", sa.String(length=36), nullable=True),
        sa.Column("lab_group", lab_group, nullable=True),
        sa.Column("occupancy", sa.String(length=3), nullable=False, server_default="ALL"),
        sa.Column("is_alternating_week", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("alternate_group_config", sa.JSON(), nullable=True),
        sa.Column("span_id", sa.String(length=36), nullable=True),
        sa.Column("is_span_master", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("class_category", class_category, nullable=False, server_default="CORE"),
        sa.Column("elective_group_id", sa.String(length=36), nullable=True),
        sa.Column("elective_info", sa.JSON(), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "program_id",
            "academic_year_id",
            "semester",
            "section",
            "day_index",
            "slot_index",
            "occupancy",
            name="uq_scheduled_slots_section_slot",
        ),
    )
    op.create_index("ix_scheduled_slots_program_id", "scheduled_slots", ["program_id"])
    op.create_index("ix_scheduled_slots_academic_year_id", "scheduled_slots", ["academic_year_id"])
    op.create_index("ix_scheduled_slots_subject_id", "scheduled_slots", ["subject_id"])
    op.create_index("ix_scheduled_slots_room_id", "scheduled_slots", ["room_id"])
    op.create_index("ix_scheduled_slots_span_id", "scheduled_slots", ["span_id"])
    op.create_index("ix_scheduled_slots_elective_group_id", "scheduled_slots", ["elective_group_id"])
    op.create_index(
        "ix_scheduled_slots_year_day_slot",
        "scheduled_slots",
        ["academic_year_id", "day_index", "slot_index"],
    )


def downgrade() -> None:
    op.drop_index("ix_scheduled_slots_year_day_slot", table_name="scheduled_slots")
    op.drop_index("ix_scheduled_slots_elective_group_id", table_name="scheduled_slots")
    op.drop_index("ix_scheduled_slots_span_id", table_name="scheduled_slots")
    op.drop_index("ix_scheduled_slots_room_id", table_name="scheduled_slots")
    op.drop_index("ix_scheduled_slots_subject_id", table_name="scheduled_slots")
    op.drop_index("ix_scheduled_slots_academic_year_id", table_name="scheduled_slots")
    op.drop_index("ix_scheduled_slots_program_id", table_name="scheduled_slots")
    op.drop_table("scheduled_slots")
    op.drop_index("ix_time_slots_sort_order", table_name="time_slots")
    op.drop_table("time_slots")
    op.drop_index("ix_rooms_name", table_name="rooms")
    op.drop_table("rooms")
    op.drop_index("ix_teachers_email", table_name="teachers")
    op.drop_table("teachers")
    op.drop_index("ix_subjects_code", table_name="subjects")
    op.drop_table("subjects")
    op.drop_index("ix_academic_years_is_current", table_name="academic_years")
    op.drop_table("academic_years")
    op.drop_index("ix_programs_code", table_name="programs")
    op.drop_table("programs")
    sa.Enum(name="class_category").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="lab_group").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="class_kind").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="routine_section").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="room_type").drop(op.get_bind(), checkfirst=True)
