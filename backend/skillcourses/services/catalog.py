from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from skillcourses.core.config import settings
from skillcourses.core.errors import (
    CourseLocked,
    CourseNotFound,
    InvalidRoundDefinition,
    RoundNotFound,
    RoundsIncomplete,
    ValidationError,
)
from skillcourses.models.course import CourseStatus, SkillCourse, SkillRound
from skillcourses.models.enrollment import SkillEnrollment
from skillcourses.models.event import SkillEvent, SkillEventType
from skillcourses.schemas.round import QUIZ_ROUNDS, RoundDefinition, round_adapter

log = logging.getLogger(__name__)

ROUND_NUMBERS = (1, 2, 3, 4)

_UPDATABLE_FIELDS = ("title", "short_description", "category", "difficulty", "duration", "pass_threshold")


class CatalogService:
    """Courses and their four round definitions.

    The catalog is read by the enrollment flow and written by faculty
    authoring. Quiz answer keys are locked once a learner has a recorded score
    against them.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_course(
        self,
        *,
        title: str,
        created_by: uuid.UUID,
        short_description: str | None = None,
        pass_threshold: int | None = None,
        category: str | None = None,
        difficulty: str | None = None,
        duration: str | None = None,
    ) -> SkillCourse:
        threshold = settings.default_pass_threshold if pass_threshold is None else int(pass_threshold)
        if not 0 <= threshold <= 100:
            raise ValidationError("pass_threshold must be between 0 and 100")

        now = datetime.utcnow()
        course = SkillCourse(
            title=title.strip(),
            short_description=short_description,
            category=category,
            difficulty=difficulty,
            duration=duration,
            pass_threshold=threshold,
            status=CourseStatus.draft,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self.db.add(course)
        self.db.commit()
        log.info("course created id=%s by=%s", course.id, created_by)
        return course

    def get_course(self, course_id: uuid.UUID) -> SkillCourse:
        course = self.db.scalar(select(SkillCourse).where(SkillCourse.id == course_id))
        if course is None:
            raise CourseNotFound()
        return course

    def list_courses(
        self,
        *,
        status: CourseStatus | None = None,
        category: str | None = None,
        created_by: uuid.UUID | None = None,
    ) -> list[SkillCourse]:
        stmt = select(SkillCourse)
        if status is not None:
            stmt = stmt.where(SkillCourse.status == status)
        if category:
            stmt = stmt.where(SkillCourse.category == category)
        if created_by is not None:
            stmt = stmt.where(SkillCourse.created_by == created_by)
        return list(self.db.scalars(stmt.order_by(SkillCourse.created_at.desc(), SkillCourse.title)).all())

    def update_course(self, course_id: uuid.UUID, **changes: Any) -> SkillCourse:
        course = self.get_course(course_id)
        for name in _UPDATABLE_FIELDS:
            if name not in changes or changes[name] is None:
                continue
            value = changes[name]
            if name == "pass_threshold":
                value = int(value)
                if not 0 <= value <= 100:
                    raise ValidationError("pass_threshold must be between 0 and 100")
            setattr(course, name, value)
        # Threshold changes apply to future attempts; stored completion flags stay as they are.
        course.updated_at = datetime.utcnow()
        self.db.commit()
        return course

    def delete_course(self, course_id: uuid.UUID) -> None:
        course = self.get_course(course_id)
        if self._enrollment_count(course.id) > 0:
            raise CourseLocked("course has enrollments")
        self.db.execute(delete(SkillRound).where(SkillRound.course_id == course.id))
        self.db.delete(course)
        self.db.commit()
        log.info("course deleted id=%s", course_id)

    def list_rounds(self, course_id: uuid.UUID) -> list[SkillRound]:
        return list(
            self.db.scalars(
                select(SkillRound).where(SkillRound.course_id == course_id).order_by(SkillRound.round_number)
            ).all()
        )

    def get_round(self, course_id: uuid.UUID, round_number: int) -> SkillRound:
        row = self.db.scalar(
            select(SkillRound).where(SkillRound.course_id == course_id, SkillRound.round_number == round_number)
        )
        if row is None:
            raise RoundNotFound(f"round {round_number} is not defined", round_number=round_number)
        return row

    def get_round_definition(self, course_id: uuid.UUID, round_number: int) -> RoundDefinition:
        return self.parse_round(self.get_round(course_id, round_number))

    @staticmethod
    def parse_round(row: SkillRound) -> RoundDefinition:
        data = dict(row.payload or {})
        data["round_number"] = row.round_number
        data["title"] = row.title or ""
        return round_adapter.validate_python(data)

    def define_round(self, course_id: uuid.UUID, definition: RoundDefinition) -> SkillRound:
        course = self.get_course(course_id)
        n = int(definition.round_number)
        if n not in ROUND_NUMBERS:
            raise InvalidRoundDefinition(f"round_number must be one of {ROUND_NUMBERS}")

        payload = definition.model_dump(mode="json", exclude={"round_number", "title"})
        row = self.db.scalar(
            select(SkillRound).where(SkillRound.course_id == course.id, SkillRound.round_number == n)
        )

        if row is not None and n in QUIZ_ROUNDS:
            changes_key = (row.payload or {}).get("questions") != payload.get("questions")
            if changes_key and self._scored_count(course.id, n) > 0:
                raise CourseLocked(
                    f"round {n} questions cannot change after learners have been scored",
                    round_number=n,
                )

        if row is None:
            row = SkillRound(course_id=course.id, round_number=n)
            self.db.add(row)
        row.title = definition.title
        row.payload = payload
        row.updated_at = datetime.utcnow()
        course.updated_at = row.updated_at

        self.db.commit()
        log.info("round defined course=%s round=%s", course.id, n)
        return row

    def publish(self, course_id: uuid.UUID, *, actor_id: uuid.UUID | None = None) -> SkillCourse:
        course = self.get_course(course_id)
        defined = {r.round_number for r in self.list_rounds(course.id)}
        missing = [n for n in ROUND_NUMBERS if n not in defined]
        if missing:
            raise RoundsIncomplete(f"rounds not defined: {missing}", missing=missing)
        if course.status != CourseStatus.published:
            course.status = CourseStatus.published
            course.updated_at = datetime.utcnow()
            self._record(course, SkillEventType.course_published, actor_id)
            self.db.commit()
            log.info("course published id=%s", course.id)
        return course

    def unpublish(self, course_id: uuid.UUID, *, actor_id: uuid.UUID | None = None) -> SkillCourse:
        # Existing enrollments keep progressing; only new enrollments are refused.
        course = self.get_course(course_id)
        if course.status != CourseStatus.draft:
            course.status = CourseStatus.draft
            course.updated_at = datetime.utcnow()
            self._record(course, SkillEventType.course_unpublished, actor_id)
            self.db.commit()
            log.info("course unpublished id=%s", course.id)
        return course

    def _record(self, course: SkillCourse, event_type: SkillEventType, actor_id: uuid.UUID | None) -> None:
        self.db.add(
            SkillEvent(
                course_id=course.id,
                enrollment_id=None,
                actor_id=actor_id,
                type=event_type,
                meta=json.dumps({"title": course.title}, ensure_ascii=False),
            )
        )

    def _enrollment_count(self, course_id: uuid.UUID) -> int:
        return int(
            self.db.scalar(select(func.count(SkillEnrollment.id)).where(SkillEnrollment.course_id == course_id)) or 0
        )

    def _scored_count(self, course_id: uuid.UUID, round_number: int) -> int:
        score_col = SkillEnrollment.round2_score if round_number == 2 else SkillEnrollment.round4_score
        return int(
            self.db.scalar(
                select(func.count(SkillEnrollment.id)).where(
                    SkillEnrollment.course_id == course_id,
                    score_col.is_not(None),
                )
            )
            or 0
        )
