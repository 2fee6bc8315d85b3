from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from skillcourses.core.errors import (
    AlreadyEnrolled,
    ConcurrentModification,
    CourseNotPublished,
    EnrollmentNotFound,
    SkillEngineError,
    SubmissionNotFound,
    ValidationError,
)
from skillcourses.models.course import CourseStatus
from skillcourses.models.enrollment import ProjectSubmission, SkillEnrollment, SubmissionStatus
from skillcourses.models.event import SkillEvent, SkillEventType
from skillcourses.schemas.round import QUIZ_ROUNDS
from skillcourses.services import gating, review
from skillcourses.services.catalog import CatalogService

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class QuizOutcome:
    round_number: int
    score: int
    passed: bool
    correct: int
    total: int
    enrollment: SkillEnrollment


def run_with_retry(db: Session, fn: Callable[[], T]) -> T:
    """Run ``fn`` and retry it once against fresh state on a version conflict."""
    try:
        return fn()
    except ConcurrentModification:
        log.info("concurrent modification, retrying once")
        db.expire_all()
        return fn()


def state_of(enrollment: SkillEnrollment, active: ProjectSubmission | None) -> gating.EnrollmentState:
    return gating.EnrollmentState(
        round1_completed=bool(enrollment.round1_completed),
        round2_completed=bool(enrollment.round2_completed),
        round3_approved=bool(enrollment.round3_approved),
        round4_completed=bool(enrollment.round4_completed),
        round2_score=enrollment.round2_score,
        round4_score=enrollment.round4_score,
        submission_status=active.status if active is not None else None,
    )


class EnrollmentService:
    """Per-student enrollment records and every action that mutates them.

    Each mutating method reads the enrollment, asks the gating state machine
    for the next state, writes it back and commits in one transaction. The
    enrollment row is version-checked, so a writer working from stale state
    fails with ``ConcurrentModification`` and nothing is committed.
    """

    def __init__(self, db: Session):
        self.db = db
        self.catalog = CatalogService(db)

    # Reads

    def get_enrollment(self, enrollment_id: uuid.UUID) -> SkillEnrollment:
        enrollment = self.db.scalar(select(SkillEnrollment).where(SkillEnrollment.id == enrollment_id))
        if enrollment is None:
            raise EnrollmentNotFound()
        return enrollment

    def find_enrollment(self, course_id: uuid.UUID, student_id: uuid.UUID) -> SkillEnrollment:
        enrollment = self.db.scalar(
            select(SkillEnrollment).where(
                SkillEnrollment.course_id == course_id,
                SkillEnrollment.student_id == student_id,
            )
        )
        if enrollment is None:
            raise EnrollmentNotFound("not enrolled in this course")
        return enrollment

    def list_enrollments(self, course_id: uuid.UUID) -> list[SkillEnrollment]:
        self.catalog.get_course(course_id)
        return list(
            self.db.scalars(
                select(SkillEnrollment)
                .where(SkillEnrollment.course_id == course_id)
                .order_by(SkillEnrollment.created_at, SkillEnrollment.id)
            ).all()
        )

    def get_submission(self, submission_id: uuid.UUID) -> ProjectSubmission:
        submission = self.db.scalar(select(ProjectSubmission).where(ProjectSubmission.id == submission_id))
        if submission is None:
            raise SubmissionNotFound()
        return submission

    def active_submission(self, enrollment_id: uuid.UUID) -> ProjectSubmission | None:
        return self.db.scalar(
            select(ProjectSubmission)
            .where(ProjectSubmission.enrollment_id == enrollment_id)
            .order_by(ProjectSubmission.attempt_no.desc())
            .limit(1)
        )

    def submission_history(self, enrollment_id: uuid.UUID) -> list[ProjectSubmission]:
        return list(
            self.db.scalars(
                select(ProjectSubmission)
                .where(ProjectSubmission.enrollment_id == enrollment_id)
                .order_by(ProjectSubmission.attempt_no)
            ).all()
        )

    def list_submissions(
        self,
        course_id: uuid.UUID,
        *,
        status: SubmissionStatus | None = None,
    ) -> list[tuple[ProjectSubmission, SkillEnrollment]]:
        self.catalog.get_course(course_id)
        stmt = (
            select(ProjectSubmission, SkillEnrollment)
            .join(SkillEnrollment, SkillEnrollment.id == ProjectSubmission.enrollment_id)
            .where(SkillEnrollment.course_id == course_id)
        )
        if status is not None:
            stmt = stmt.where(ProjectSubmission.status == status)
        rows = self.db.execute(stmt.order_by(ProjectSubmission.created_at.desc(), ProjectSubmission.attempt_no.desc()))
        return [(s, e) for s, e in rows.all()]

    def latest_attempts(self, course_id: uuid.UUID) -> dict[uuid.UUID, int]:
        """Highest attempt_no per enrollment of a course, regardless of status."""
        rows = self.db.execute(
            select(ProjectSubmission.enrollment_id, func.max(ProjectSubmission.attempt_no))
            .join(SkillEnrollment, SkillEnrollment.id == ProjectSubmission.enrollment_id)
            .where(SkillEnrollment.course_id == course_id)
            .group_by(ProjectSubmission.enrollment_id)
        )
        return {enrollment_id: int(attempt_no) for enrollment_id, attempt_no in rows.all()}

    def is_active(self, submission: ProjectSubmission) -> bool:
        latest = self.db.scalar(
            select(func.max(ProjectSubmission.attempt_no)).where(
                ProjectSubmission.enrollment_id == submission.enrollment_id
            )
        )
        return latest is not None and int(latest) == int(submission.attempt_no)

    def get_progress(self, enrollment_id: uuid.UUID) -> dict[str, Any]:
        """Derived view of an enrollment; the composite percentage is never stored."""
        enrollment = self.get_enrollment(enrollment_id)
        course = self.catalog.get_course(enrollment.course_id)
        active = self.active_submission(enrollment.id)
        state = state_of(enrollment, active)

        return {
            "enrollment_id": str(enrollment.id),
            "course_id": str(enrollment.course_id),
            "student_id": str(enrollment.student_id),
            "flags": state.flags,
            "scores": {"round2": state.round2_score, "round4": state.round4_score},
            "pass_threshold": int(course.pass_threshold),
            "composite_percentage": gating.composite_percentage(state),
            "rounds": {str(n): s.value for n, s in gating.round_states(state).items()},
            "active_submission": active,
        }

    # Enrollment lifecycle

    def enroll(self, course_id: uuid.UUID, student_id: uuid.UUID) -> SkillEnrollment:
        course = self.catalog.get_course(course_id)
        if course.status != CourseStatus.published:
            raise CourseNotPublished()

        existing = self.db.scalar(
            select(SkillEnrollment.id).where(
                SkillEnrollment.course_id == course.id,
                SkillEnrollment.student_id == student_id,
            )
        )
        if existing is not None:
            raise AlreadyEnrolled()

        now = datetime.utcnow()
        enrollment = SkillEnrollment(
            course_id=course.id,
            student_id=student_id,
            round1_completed=False,
            round2_completed=False,
            round3_approved=False,
            round4_completed=False,
            round2_score=None,
            round4_score=None,
            created_at=now,
            updated_at=now,
        )
        self.db.add(enrollment)
        try:
            self.db.flush()
        except IntegrityError as e:
            # lost a race against a concurrent enroll for the same pair
            self.db.rollback()
            raise AlreadyEnrolled() from e

        self._record(
            enrollment,
            gating.GatingEvent(type=SkillEventType.enrolled, round_number=1),
            actor_id=student_id,
        )
        self._commit(on_integrity=AlreadyEnrolled)
        log.info("enrolled course=%s student=%s enrollment=%s", course.id, student_id, enrollment.id)
        return enrollment

    def unenroll(self, enrollment_id: uuid.UUID, *, actor_id: uuid.UUID | None = None) -> None:
        """Remove an enrollment and the submissions that depend on it.

        The audit trail keeps the final progress snapshot.
        """
        enrollment = self.get_enrollment(enrollment_id)
        state = state_of(enrollment, self.active_submission(enrollment.id))
        history = self.submission_history(enrollment.id)

        self.db.add(
            SkillEvent(
                course_id=enrollment.course_id,
                enrollment_id=enrollment.id,
                actor_id=actor_id,
                type=SkillEventType.unenrolled,
                meta=json.dumps(
                    {
                        "student_id": str(enrollment.student_id),
                        "flags": state.flags,
                        "scores": {"round2": state.round2_score, "round4": state.round4_score},
                        "submissions": [
                            {"id": str(s.id), "attempt_no": s.attempt_no, "status": s.status.value} for s in history
                        ],
                    },
                    ensure_ascii=False,
                ),
            )
        )
        self.db.execute(delete(ProjectSubmission).where(ProjectSubmission.enrollment_id == enrollment.id))
        self.db.delete(enrollment)
        self._commit()
        log.info("unenrolled enrollment=%s invalidated_submissions=%s", enrollment_id, len(history))

    # Round actions

    def complete_round1(self, enrollment_id: uuid.UUID) -> SkillEnrollment:
        enrollment = self.get_enrollment(enrollment_id)
        # the learning round must exist before it can be completed
        self.catalog.get_round(enrollment.course_id, 1)
        state = state_of(enrollment, self.active_submission(enrollment.id))

        result = gating.transition(state, gating.CompleteLesson())
        if result.event is None:
            return enrollment

        self._apply(enrollment, result)
        self._commit()
        log.info("round 1 completed enrollment=%s", enrollment.id)
        return enrollment

    def submit_quiz(self, enrollment_id: uuid.UUID, round_number: int, answers: list[int]) -> QuizOutcome:
        if round_number not in QUIZ_ROUNDS:
            raise ValidationError(f"round {round_number} is not a quiz round")

        enrollment = self.get_enrollment(enrollment_id)
        course = self.catalog.get_course(enrollment.course_id)
        state = state_of(enrollment, self.active_submission(enrollment.id))

        definition = self.catalog.get_round_definition(course.id, round_number)
        result = gating.transition(
            state,
            gating.SubmitQuiz(
                round_number=round_number,
                questions=definition.questions,
                answers=list(answers),
                pass_threshold=int(course.pass_threshold),
            ),
        )

        self._apply(enrollment, result)
        self._commit()

        meta = result.event.meta if result.event is not None else {}
        log.info(
            "quiz submitted enrollment=%s round=%s score=%s passed=%s",
            enrollment.id,
            round_number,
            meta.get("score"),
            meta.get("passed"),
        )
        return QuizOutcome(
            round_number=round_number,
            score=int(meta["score"]),
            passed=bool(meta["passed"]),
            correct=int(meta["correct"]),
            total=int(meta["total"]),
            enrollment=enrollment,
        )

    def submit_project(
        self,
        enrollment_id: uuid.UUID,
        *,
        file_ref: str,
        description: str | None = None,
    ) -> ProjectSubmission:
        ref = (file_ref or "").strip()
        if not ref:
            raise ValidationError("file_ref is required")

        enrollment = self.get_enrollment(enrollment_id)
        self.catalog.get_round(enrollment.course_id, 3)
        active = self.active_submission(enrollment.id)
        state = state_of(enrollment, active)

        result = gating.transition(state, gating.SubmitProject())

        submission = ProjectSubmission(
            enrollment_id=enrollment.id,
            attempt_no=(active.attempt_no + 1) if active is not None else 1,
            file_ref=ref,
            description=description,
            status=SubmissionStatus.pending,
            created_at=datetime.utcnow(),
        )
        self.db.add(submission)
        self._apply(enrollment, result, meta_extra={"attempt_no": submission.attempt_no})
        # A racing submission takes the same attempt_no and trips the unique constraint.
        self._commit(on_integrity=ConcurrentModification)
        log.info("project submitted enrollment=%s attempt=%s", enrollment.id, submission.attempt_no)
        return submission

    def review_project(
        self,
        submission_id: uuid.UUID,
        *,
        status: str | SubmissionStatus,
        feedback: str | None = None,
        reviewer_id: uuid.UUID | None = None,
    ) -> ProjectSubmission:
        requested = review.parse_review_status(status)
        submission = self.get_submission(submission_id)
        enrollment = self.get_enrollment(submission.enrollment_id)

        if not self.is_active(submission):
            # Superseded submissions were sent back for rework; they can only be
            # re-confirmed, never re-decided.
            decision = review.decide_review(submission.status, requested)
            if decision.applies:
                # a superseded submission is never pending; this view predates the resubmission
                raise ConcurrentModification("submission was superseded while under review")
            return submission

        state = state_of(enrollment, submission)
        result = gating.transition(state, gating.ReviewProject(status=requested))
        if result.event is None:
            return submission

        submission.status = requested
        submission.feedback = feedback
        submission.reviewed_by = reviewer_id
        submission.reviewed_at = datetime.utcnow()
        self._apply(
            enrollment,
            result,
            actor_id=reviewer_id,
            meta_extra={"submission_id": str(submission.id), "attempt_no": submission.attempt_no},
        )
        self._commit()
        log.info(
            "project reviewed submission=%s enrollment=%s status=%s",
            submission.id,
            enrollment.id,
            requested.value,
        )
        return submission

    # Persistence

    def _apply(
        self,
        enrollment: SkillEnrollment,
        result: gating.Transition,
        *,
        actor_id: uuid.UUID | None = None,
        meta_extra: dict[str, Any] | None = None,
    ) -> None:
        new = result.state
        enrollment.round1_completed = new.round1_completed
        enrollment.round2_completed = new.round2_completed
        enrollment.round3_approved = new.round3_approved
        enrollment.round4_completed = new.round4_completed
        enrollment.round2_score = new.round2_score
        enrollment.round4_score = new.round4_score
        # Always dirty the row so the version check covers submission-only changes too.
        enrollment.updated_at = datetime.utcnow()

        if result.event is not None:
            self._record(
                enrollment,
                result.event,
                actor_id=actor_id if actor_id is not None else enrollment.student_id,
                meta_extra=meta_extra,
            )

    def _record(
        self,
        enrollment: SkillEnrollment,
        event: gating.GatingEvent,
        *,
        actor_id: uuid.UUID | None,
        meta_extra: dict[str, Any] | None = None,
    ) -> None:
        meta = dict(event.meta)
        if meta_extra:
            meta.update(meta_extra)
        self.db.add(
            SkillEvent(
                course_id=enrollment.course_id,
                enrollment_id=enrollment.id,
                actor_id=actor_id,
                type=event.type,
                round_number=event.round_number,
                meta=json.dumps(meta, ensure_ascii=False) if meta else None,
            )
        )

    def _commit(self, *, on_integrity: type[SkillEngineError] = ConcurrentModification) -> None:
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            raise ConcurrentModification() from e
        except IntegrityError as e:
            self.db.rollback()
            raise on_integrity() from e
        except Exception:
            self.db.rollback()
            raise
