import uuid

import pytest
from sqlalchemy import func, select

from skillcourses.core.errors import ConcurrentModification, SubmissionAlreadyReviewed
from skillcourses.db import session as session_module
from skillcourses.models.enrollment import SubmissionStatus
from skillcourses.models.event import SkillEvent, SkillEventType
from skillcourses.schemas.round import round_adapter
from skillcourses.services.catalog import CatalogService
from skillcourses.services.enrollments import EnrollmentService, run_with_retry

from conftest import QUIZ_KEY, round_payloads


@pytest.fixture()
def enrollment_id(db):
    catalog = CatalogService(db)
    course = catalog.create_course(title="Concurrency", created_by=uuid.uuid4())
    for payload in round_payloads():
        catalog.define_round(course.id, round_adapter.validate_python(payload))
    catalog.publish(course.id)
    return EnrollmentService(db).enroll(course.id, uuid.uuid4()).id


@pytest.fixture()
def pending_submission(db, enrollment_id):
    """(enrollment_id, submission_id) with round 2 passed and attempt 1 awaiting review."""
    service = EnrollmentService(db)
    service.complete_round1(enrollment_id)
    service.submit_quiz(enrollment_id, 2, list(QUIZ_KEY))
    submission = service.submit_project(enrollment_id, file_ref="projects/a.zip")
    return enrollment_id, submission.id


def _events(db, enrollment_id, event_type) -> int:
    return int(
        db.scalar(
            select(func.count(SkillEvent.id)).where(
                SkillEvent.enrollment_id == enrollment_id,
                SkillEvent.type == event_type,
            )
        )
    )


def test_stale_writer_is_rejected(enrollment_id):
    with session_module.SessionLocal() as first, session_module.SessionLocal() as second:
        stale = EnrollmentService(first)
        stale_row = stale.get_enrollment(enrollment_id)
        assert stale_row.version == 1

        EnrollmentService(second).complete_round1(enrollment_id)

        with pytest.raises(ConcurrentModification):
            stale.complete_round1(enrollment_id)

    with session_module.SessionLocal() as db:
        assert _events(db, enrollment_id, SkillEventType.round1_completed) == 1
        assert EnrollmentService(db).get_enrollment(enrollment_id).version == 2


def test_retry_runs_against_fresh_state(enrollment_id):
    with session_module.SessionLocal() as first, session_module.SessionLocal() as second:
        stale = EnrollmentService(first)
        stale_row = stale.get_enrollment(enrollment_id)
        assert stale_row.round1_completed is False

        EnrollmentService(second).complete_round1(enrollment_id)

        calls = []

        def _op():
            calls.append(1)
            return stale.complete_round1(enrollment_id)

        enrollment = run_with_retry(first, _op)
        assert len(calls) == 2
        assert enrollment.round1_completed is True
        assert enrollment.version == 2

    with session_module.SessionLocal() as db:
        assert _events(db, enrollment_id, SkillEventType.round1_completed) == 1


def test_retry_gives_up_after_second_conflict(db):
    calls = []

    def _always_conflicts():
        calls.append(1)
        raise ConcurrentModification()

    with pytest.raises(ConcurrentModification):
        run_with_retry(db, _always_conflicts)
    assert len(calls) == 2


def test_stale_review_loses_to_concurrent_review(pending_submission):
    enrollment_id, submission_id = pending_submission
    with session_module.SessionLocal() as first, session_module.SessionLocal() as second:
        stale = EnrollmentService(first)
        held = (stale.get_enrollment(enrollment_id), stale.get_submission(submission_id))
        assert held[1].status == SubmissionStatus.pending

        EnrollmentService(second).review_project(submission_id, status="approved", reviewer_id=uuid.uuid4())

        with pytest.raises(ConcurrentModification):
            stale.review_project(submission_id, status="rework", reviewer_id=uuid.uuid4())

    with session_module.SessionLocal() as db:
        service = EnrollmentService(db)
        assert service.get_submission(submission_id).status == SubmissionStatus.approved
        assert service.get_enrollment(enrollment_id).round3_approved is True


def test_review_racing_a_resubmission(pending_submission):
    enrollment_id, submission_id = pending_submission
    with session_module.SessionLocal() as first, session_module.SessionLocal() as second:
        stale = EnrollmentService(first)
        held = (stale.get_enrollment(enrollment_id), stale.get_submission(submission_id))
        assert held[1].status == SubmissionStatus.pending

        other = EnrollmentService(second)
        other.review_project(submission_id, status="rework", reviewer_id=uuid.uuid4())
        resubmitted = other.submit_project(enrollment_id, file_ref="projects/b.zip")
        assert resubmitted.attempt_no == 2

        # the reviewer still sees attempt 1 as pending
        with pytest.raises(ConcurrentModification):
            stale.review_project(submission_id, status="approved", reviewer_id=uuid.uuid4())

        # against fresh state the verdict conflicts with the recorded rework
        with pytest.raises(SubmissionAlreadyReviewed):
            run_with_retry(
                first,
                lambda: stale.review_project(submission_id, status="approved", reviewer_id=uuid.uuid4()),
            )

    with session_module.SessionLocal() as db:
        service = EnrollmentService(db)
        enrollment = service.get_enrollment(enrollment_id)
        assert enrollment.round3_approved is False
        active = service.active_submission(enrollment_id)
        assert (active.attempt_no, active.status) == (2, SubmissionStatus.pending)
        assert service.get_submission(submission_id).status == SubmissionStatus.rework
