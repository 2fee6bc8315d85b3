"""create skill course engine

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


course_status_enum = sa.Enum("draft", "published", name="coursestatus")
submission_status_enum = sa.Enum("pending", "approved", "rejected", "rework", name="submissionstatus")
skill_event_type_enum = sa.Enum(
    "course_published",
    "course_unpublished",
    "enrolled",
    "unenrolled",
    "round1_completed",
    "quiz_submitted",
    "project_submitted",
    "project_reviewed",
    name="skilleventtype",
)


def upgrade() -> None:
    op.create_table(
        "skill_courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("short_description", sa.String(length=2000), nullable=True),
        sa.Column("category", sa.String(length=200), nullable=True),
        sa.Column("difficulty", sa.String(length=50), nullable=True),
        sa.Column("duration", sa.String(length=100), nullable=True),
        sa.Column("pass_threshold", sa.Integer(), nullable=False, server_default="70"),
        sa.Column("status", course_status_enum, nullable=False, server_default="draft"),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("pass_threshold >= 0 AND pass_threshold <= 100", name="ck_skill_course_threshold"),
    )
    op.create_index("ix_skill_courses_title", "skill_courses", ["title"], unique=False)
    op.create_index("ix_skill_courses_category", "skill_courses", ["category"], unique=False)
    op.create_index("ix_skill_courses_status", "skill_courses", ["status"], unique=False)
    op.create_index("ix_skill_courses_created_by", "skill_courses", ["created_by"], unique=False)

    op.create_table(
        "skill_rounds",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("skill_courses.id"), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False, server_default=""),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("course_id", "round_number", name="uq_skill_round_course_number"),
        sa.CheckConstraint("round_number BETWEEN 1 AND 4", name="ck_skill_round_number"),
    )
    op.create_index("ix_skill_rounds_course_id", "skill_rounds", ["course_id"], unique=False)

    op.create_table(
        "skill_enrollments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("skill_courses.id"), nullable=False),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("round1_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("round2_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("round3_approved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("round4_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("round2_score", sa.Integer(), nullable=True),
        sa.Column("round4_score", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("course_id", "student_id", name="uq_skill_enrollment_course_student"),
        sa.CheckConstraint("round2_score IS NULL OR (round2_score >= 0 AND round2_score <= 100)", name="ck_skill_round2_score"),
        sa.CheckConstraint("round4_score IS NULL OR (round4_score >= 0 AND round4_score <= 100)", name="ck_skill_round4_score"),
    )
    op.create_index("ix_skill_enrollments_course_id", "skill_enrollments", ["course_id"], unique=False)
    op.create_index("ix_skill_enrollments_student_id", "skill_enrollments", ["student_id"], unique=False)

    op.create_table(
        "skill_project_submissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "enrollment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("skill_enrollments.id"),
            nullable=False,
        ),
        sa.Column("attempt_no", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("file_ref", sa.String(length=1000), nullable=False),
        sa.Column("description", sa.String(length=5000), nullable=True),
        sa.Column("status", submission_status_enum, nullable=False, server_default="pending"),
        sa.Column("feedback", sa.String(), nullable=True),
        sa.Column("reviewed_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("enrollment_id", "attempt_no", name="uq_skill_submission_attempt"),
    )
    op.create_index(
        "ix_skill_project_submissions_enrollment_id", "skill_project_submissions", ["enrollment_id"], unique=False
    )
    op.create_index("ix_skill_project_submissions_status", "skill_project_submissions", ["status"], unique=False)

    op.create_table(
        "skill_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("enrollment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("type", skill_event_type_enum, nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=True),
        sa.Column("meta", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_skill_events_course_id", "skill_events", ["course_id"], unique=False)
    op.create_index("ix_skill_events_enrollment_id", "skill_events", ["enrollment_id"], unique=False)
    op.create_index("ix_skill_events_type", "skill_events", ["type"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_skill_events_type", table_name="skill_events")
    op.drop_index("ix_skill_events_enrollment_id", table_name="skill_events")
    op.drop_index("ix_skill_events_course_id", table_name="skill_events")
    op.drop_table("skill_events")

    op.drop_index("ix_skill_project_submissions_status", table_name="skill_project_submissions")
    op.drop_index("ix_skill_project_submissions_enrollment_id", table_name="skill_project_submissions")
    op.drop_table("skill_project_submissions")

    op.drop_index("ix_skill_enrollments_student_id", table_name="skill_enrollments")
    op.drop_index("ix_skill_enrollments_course_id", table_name="skill_enrollments")
    op.drop_table("skill_enrollments")

    op.drop_index("ix_skill_rounds_course_id", table_name="skill_rounds")
    op.drop_table("skill_rounds")

    op.drop_index("ix_skill_courses_created_by", table_name="skill_courses")
    op.drop_index("ix_skill_courses_status", table_name="skill_courses")
    op.drop_index("ix_skill_courses_category", table_name="skill_courses")
    op.drop_index("ix_skill_courses_title", table_name="skill_courses")
    op.drop_table("skill_courses")

    bind = op.get_bind()
    skill_event_type_enum.drop(bind, checkfirst=True)
    submission_status_enum.drop(bind, checkfirst=True)
    course_status_enum.drop(bind, checkfirst=True)
