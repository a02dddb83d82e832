"""create exam scheduling tables

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


intent_kind = sa.Enum("supervised_test", "lab_exam", "main_exam", "retake_exam", name="intent_kind")
lifecycle_override = sa.Enum("cancelled", name="lifecycle_override")


def upgrade() -> None:
    op.create_table(
        "staff",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("department", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("availability_windows", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_staff_email", "staff", ["email"], unique=True)

    op.create_table(
        "staff_date_overrides",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("staff_id", sa.String(length=36), sa.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False),
        sa.Column("override_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_staff_date_overrides_staff_id", "staff_date_overrides", ["staff_id"], unique=False)

    op.create_table(
        "rooms",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("building", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_rooms_name", "rooms", ["name"], unique=True)

    op.create_table(
        "student_groups",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("section", sa.String(length=100), nullable=True),
        sa.Column("size", sa.Integer(), nullable=False),
    )

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("group_ids", sa.JSON(), nullable=False, server_default="[]"),
    )
    op.create_index("ix_subjects_code", "subjects", ["code"], unique=True)

    op.create_table(
        "exam_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("subject_id", sa.String(length=36), sa.ForeignKey("subjects.id"), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("room_id", sa.String(length=36), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("group_ids", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("supervisor_ids", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("intent_kind", intent_kind, nullable=False, server_default="main_exam"),
        sa.Column("lifecycle_override", lifecycle_override, nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_exam_sessions_session_date", "exam_sessions", ["session_date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_exam_sessions_session_date", table_name="exam_sessions")
    op.drop_table("exam_sessions")
    op.drop_index("ix_subjects_code", table_name="subjects")
    op.drop_table("subjects")
    op.drop_table("student_groups")
    op.drop_index("ix_rooms_name", table_name="rooms")
    op.drop_table("rooms")
    op.drop_index("ix_staff_date_overrides_staff_id", table_name="staff_date_overrides")
    op.drop_table("staff_date_overrides")
    op.drop_index("ix_staff_email", table_name="staff")
    op.drop_table("staff")
    lifecycle_override.drop(op.get_bind(), checkfirst=True)
    intent_kind.drop(op.get_bind(), checkfirst=True)
