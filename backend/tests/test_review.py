import pytest

from skillcourses.core.errors import InvalidStatus, SubmissionAlreadyReviewed
from skillcourses.models.enrollment import SubmissionStatus
from skillcourses.services.review import decide_review, parse_review_status


def test_pending_accepts_every_outcome():
    for status in ("approved", "rejected", "rework"):
        decision = decide_review(SubmissionStatus.pending, status)
        assert decision.applies
        assert decision.status == SubmissionStatus(status)


def test_same_verdict_is_a_noop():
    decision = decide_review(SubmissionStatus.approved, "approved")
    assert decision.status == SubmissionStatus.approved
    assert not decision.applies


def test_different_verdict_on_resolved_submission_conflicts():
    with pytest.raises(SubmissionAlreadyReviewed):
        decide_review(SubmissionStatus.approved, "rejected")
    with pytest.raises(SubmissionAlreadyReviewed):
        decide_review(SubmissionStatus.rework, "approved")


def test_unknown_status_is_invalid():
    with pytest.raises(InvalidStatus):
        parse_review_status("maybe")
    with pytest.raises(InvalidStatus):
        parse_review_status("pending")
    with pytest.raises(InvalidStatus):
        decide_review(SubmissionStatus.pending, "")


def test_status_parsing_is_case_insensitive():
    assert parse_review_status(" Approved ") == SubmissionStatus.approved
