from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from skillcourses.core.security import Principal, UserRole, require_roles
from skillcourses.db.session import get_db
from skillcourses.models.enrollment import SubmissionStatus
from skillcourses.routers.common import (
    enrollment_public,
    ensure_course_owner,
    parse_uuid,
    progress_public,
    submission_public,
)
from skillcourses.schemas.enrollment import (
    EnrollmentProgressResponse,
    EnrollmentPublic,
    ProjectReviewRequest,
    SubmissionPublic,
)
from skillcourses.services.catalog import CatalogService
from skillcourses.services.enrollments import EnrollmentService, run_with_retry

router = APIRouter(prefix="/skills", tags=["skill-reviews"])

faculty_only = require_roles(UserRole.faculty)


@router.get("/courses/{course_id}/enrollments", response_model=list[EnrollmentPublic])
def list_enrollments(course_id: str, db: Session = Depends(get_db), user: Principal = Depends(faculty_only)):
    course = CatalogService(db).get_course(parse_uuid(course_id, field="course_id"))
    ensure_course_owner(course, user)

    service = EnrollmentService(db)
    return [enrollment_public(e, service.active_submission(e.id)) for e in service.list_enrollments(course.id)]


@router.get("/courses/{course_id}/projects", response_model=list[SubmissionPublic])
def list_project_submissions(
    course_id: str,
    status: SubmissionStatus | None = Query(default=None),
    db: Session = Depends(get_db),
    user: Principal = Depends(faculty_only),
):
    course = CatalogService(db).get_course(parse_uuid(course_id, field="course_id"))
    ensure_course_owner(course, user)

    service = EnrollmentService(db)
    rows = service.list_submissions(course.id, status=status)
    latest = service.latest_attempts(course.id)
    return [
        submission_public(
            s,
            active=s.attempt_no == latest.get(s.enrollment_id),
            student_id=e.student_id,
            with_download_url=True,
        )
        for s, e in rows
    ]


@router.get("/enrollments/{enrollment_id}/progress", response_model=EnrollmentProgressResponse)
def enrollment_progress(enrollment_id: str, db: Session = Depends(get_db), user: Principal = Depends(faculty_only)):
    service = EnrollmentService(db)
    enrollment = service.get_enrollment(parse_uuid(enrollment_id, field="enrollment_id"))
    ensure_course_owner(service.catalog.get_course(enrollment.course_id), user)
    return progress_public(service.get_progress(enrollment.id))


@router.put("/projects/{submission_id}/review", response_model=SubmissionPublic)
def review_project(
    submission_id: str,
    body: ProjectReviewRequest,
    db: Session = Depends(get_db),
    user: Principal = Depends(faculty_only),
):
    sid = parse_uuid(submission_id, field="submission_id")
    service = EnrollmentService(db)

    submission = service.get_submission(sid)
    enrollment = service.get_enrollment(submission.enrollment_id)
    ensure_course_owner(service.catalog.get_course(enrollment.course_id), user)

    reviewed = run_with_retry(
        db,
        lambda: service.review_project(sid, status=body.status, feedback=body.feedback, reviewer_id=user.id),
    )
    return submission_public(reviewed, active=service.is_active(reviewed), student_id=enrollment.student_id)
