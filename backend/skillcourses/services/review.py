from __future__ import annotations

from dataclasses import dataclass

from skillcourses.core.errors import InvalidStatus, SubmissionAlreadyReviewed
from skillcourses.models.enrollment import SubmissionStatus

REVIEW_OUTCOMES = (SubmissionStatus.approved, SubmissionStatus.rejected, SubmissionStatus.rework)


@dataclass(frozen=True)
class ReviewDecision:
    status: SubmissionStatus
    applies: bool


def parse_review_status(value: str | SubmissionStatus) -> SubmissionStatus:
    raw = getattr(value, "value", value)
    try:
        status = SubmissionStatus(str(raw or "").strip().lower())
    except ValueError as e:
        raise InvalidStatus(f"unknown review status: {raw!r}") from e
    if status not in REVIEW_OUTCOMES:
        raise InvalidStatus(f"{status.value} is not a review outcome")
    return status


def decide_review(current: SubmissionStatus, requested: str | SubmissionStatus) -> ReviewDecision:
    """Pending -> approved | rejected | rework.

    Repeating the verdict a submission already has is a successful no-op so
    that retried review requests are harmless; any other verdict on a resolved
    submission is a conflict.
    """
    status = parse_review_status(requested)
    if current == SubmissionStatus.pending:
        return ReviewDecision(status=status, applies=True)
    if current == status:
        return ReviewDecision(status=status, applies=False)
    raise SubmissionAlreadyReviewed(
        f"submission is already {current.value}",
        current=current.value,
        requested=status.value,
    )
