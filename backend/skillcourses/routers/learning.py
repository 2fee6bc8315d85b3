from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from skillcourses.core.config import settings
from skillcourses.core.rate_limit import rate_limit
from skillcourses.core.security import Principal, UserRole, require_roles
from skillcourses.db.session import get_db
from skillcourses.routers.common import enrollment_public, parse_uuid, progress_public, submission_public
from skillcourses.schemas.enrollment import (
    EnrollmentProgressResponse,
    EnrollmentPublic,
    ProjectSubmitRequest,
    QuizSubmitRequest,
    QuizSubmitResponse,
    SubmissionPublic,
)
from skillcourses.services.enrollments import EnrollmentService, run_with_retry

router = APIRouter(prefix="/skills/courses", tags=["skill-learning"])

student_only = require_roles(UserRole.student)


@router.post("/{course_id}/enroll", response_model=EnrollmentPublic)
def enroll(course_id: str, db: Session = Depends(get_db), user: Principal = Depends(student_only)):
    cid = parse_uuid(course_id, field="course_id")
    service = EnrollmentService(db)
    enrollment = service.enroll(cid, user.id)
    return enrollment_public(enrollment)


@router.delete("/{course_id}/enroll")
def unenroll(course_id: str, db: Session = Depends(get_db), user: Principal = Depends(student_only)):
    cid = parse_uuid(course_id, field="course_id")
    service = EnrollmentService(db)

    def _op() -> None:
        enrollment = service.find_enrollment(cid, user.id)
        service.unenroll(enrollment.id, actor_id=user.id)

    run_with_retry(db, _op)
    return {"ok": True}


@router.get("/{course_id}/progress", response_model=EnrollmentProgressResponse)
def my_progress(course_id: str, db: Session = Depends(get_db), user: Principal = Depends(student_only)):
    cid = parse_uuid(course_id, field="course_id")
    service = EnrollmentService(db)
    enrollment = service.find_enrollment(cid, user.id)
    return progress_public(service.get_progress(enrollment.id))


@router.post("/{course_id}/rounds/1/complete", response_model=EnrollmentPublic)
def complete_round1(course_id: str, db: Session = Depends(get_db), user: Principal = Depends(student_only)):
    cid = parse_uuid(course_id, field="course_id")
    service = EnrollmentService(db)

    def _op():
        enrollment = service.find_enrollment(cid, user.id)
        return service.complete_round1(enrollment.id)

    enrollment = run_with_retry(db, _op)
    return enrollment_public(enrollment, service.active_submission(enrollment.id))


@router.post("/{course_id}/rounds/{round_number}/quiz", response_model=QuizSubmitResponse)
def submit_quiz(
    course_id: str,
    round_number: int,
    body: QuizSubmitRequest,
    db: Session = Depends(get_db),
    user: Principal = Depends(student_only),
    _: object = rate_limit(
        key_prefix="skill_quiz_submit",
        limit=settings.quiz_submit_rate_limit,
        window_seconds=settings.quiz_submit_rate_window_seconds,
    ),
):
    cid = parse_uuid(course_id, field="course_id")
    service = EnrollmentService(db)

    def _op():
        enrollment = service.find_enrollment(cid, user.id)
        return service.submit_quiz(enrollment.id, round_number, body.answers)

    outcome = run_with_retry(db, _op)
    enrollment = outcome.enrollment
    return {
        "round_number": outcome.round_number,
        "score": outcome.score,
        "passed": outcome.passed,
        "correct": outcome.correct,
        "total": outcome.total,
        "enrollment": enrollment_public(enrollment, service.active_submission(enrollment.id)),
    }


@router.post("/{course_id}/project", response_model=SubmissionPublic)
def submit_project(
    course_id: str,
    body: ProjectSubmitRequest,
    db: Session = Depends(get_db),
    user: Principal = Depends(student_only),
):
    cid = parse_uuid(course_id, field="course_id")
    service = EnrollmentService(db)

    def _op():
        enrollment = service.find_enrollment(cid, user.id)
        return service.submit_project(enrollment.id, file_ref=body.file_ref, description=body.description)

    submission = run_with_retry(db, _op)
    return submission_public(submission, student_id=user.id)


@router.get("/{course_id}/project", response_model=list[SubmissionPublic])
def my_project_history(course_id: str, db: Session = Depends(get_db), user: Principal = Depends(student_only)):
    cid = parse_uuid(course_id, field="course_id")
    service = EnrollmentService(db)
    enrollment = service.find_enrollment(cid, user.id)
    history = service.submission_history(enrollment.id)
    latest = history[-1].attempt_no if history else None
    return [submission_public(s, active=s.attempt_no == latest, student_id=user.id) for s in history]
