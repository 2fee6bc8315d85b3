import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from skillcourses.db.base import Base


class SubmissionStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    rework = "rework"


class SkillEnrollment(Base):
    __tablename__ = "skill_enrollments"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    course_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("skill_courses.id"), index=True)
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)

    round1_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    round2_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    round3_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    round4_completed: Mapped[bool] = mapped_column(Boolean, default=False)

    round2_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    round4_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("course_id", "student_id", name="uq_skill_enrollment_course_student"),)
    __mapper_args__ = {"version_id_col": version}


class ProjectSubmission(Base):
    __tablename__ = "skill_project_submissions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    enrollment_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("skill_enrollments.id"), index=True)

    # The highest attempt_no is the active submission; older rows are history.
    attempt_no: Mapped[int] = mapped_column(Integer, default=1)

    file_ref: Mapped[str] = mapped_column(String(1000))
    description: Mapped[str | None] = mapped_column(String(5000), nullable=True)

    status: Mapped[SubmissionStatus] = mapped_column(Enum(SubmissionStatus), default=SubmissionStatus.pending, index=True)
    feedback: Mapped[str | None] = mapped_column(String, nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("enrollment_id", "attempt_no", name="uq_skill_submission_attempt"),)
