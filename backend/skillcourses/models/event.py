import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from skillcourses.db.base import Base


class SkillEventType(str, enum.Enum):
    course_published = "course_published"
    course_unpublished = "course_unpublished"
    enrolled = "enrolled"
    unenrolled = "unenrolled"
    round1_completed = "round1_completed"
    quiz_submitted = "quiz_submitted"
    project_submitted = "project_submitted"
    project_reviewed = "project_reviewed"


class SkillEvent(Base):
    __tablename__ = "skill_events"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # No foreign keys: events outlive the enrollments they describe.
    course_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), index=True)
    enrollment_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True, index=True)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    type: Mapped[SkillEventType] = mapped_column(Enum(SkillEventType), index=True)
    round_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    meta: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
