"""Round gating state machine.

Pure decision logic: ``transition`` takes the current enrollment state and an
action and returns the next state plus the event describing what happened.
It is the only place the progress flags change, so the invariants below hold
for anything committed through it:

- ``round2_completed`` only after a round 2 score >= pass threshold
- ``round3_approved`` only while the active submission is approved
- ``round4_completed`` only when round 3 is approved and a round 4 score passed
- a round action for N > 1 only once N's prerequisite is satisfied
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Union

from skillcourses.core.errors import DuplicateSubmission, RoundLocked, ValidationError
from skillcourses.models.enrollment import SubmissionStatus
from skillcourses.models.event import SkillEventType
from skillcourses.schemas.round import QUIZ_ROUNDS, QuizQuestion
from skillcourses.services import review, scoring


class RoundState(str, enum.Enum):
    locked = "locked"
    available = "available"
    completed = "completed"
    under_review = "under_review"
    rework = "rework"


@dataclass(frozen=True)
class EnrollmentState:
    round1_completed: bool = False
    round2_completed: bool = False
    round3_approved: bool = False
    round4_completed: bool = False
    round2_score: int | None = None
    round4_score: int | None = None
    # Status of the active project submission, if any.
    submission_status: SubmissionStatus | None = None

    @property
    def flags(self) -> dict[str, bool]:
        return {
            "round1_completed": self.round1_completed,
            "round2_completed": self.round2_completed,
            "round3_approved": self.round3_approved,
            "round4_completed": self.round4_completed,
        }


@dataclass(frozen=True)
class CompleteLesson:
    round_number = 1


@dataclass(frozen=True)
class SubmitQuiz:
    round_number: int
    questions: Sequence[QuizQuestion]
    answers: Sequence[int]
    pass_threshold: int


@dataclass(frozen=True)
class SubmitProject:
    round_number = 3


@dataclass(frozen=True)
class ReviewProject:
    status: SubmissionStatus
    round_number = 3


Action = Union[CompleteLesson, SubmitQuiz, SubmitProject, ReviewProject]


@dataclass(frozen=True)
class GatingEvent:
    type: SkillEventType
    round_number: int
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Transition:
    state: EnrollmentState
    # None when the action was an idempotent repeat.
    event: GatingEvent | None


def round_state(state: EnrollmentState, round_number: int) -> RoundState:
    if round_number == 1:
        return RoundState.completed if state.round1_completed else RoundState.available

    if round_number == 2:
        if not state.round1_completed:
            return RoundState.locked
        return RoundState.completed if state.round2_completed else RoundState.available

    if round_number == 3:
        if state.round3_approved:
            return RoundState.completed
        if not state.round2_completed:
            return RoundState.locked
        status = state.submission_status
        if status is None:
            return RoundState.available
        if status == SubmissionStatus.pending:
            return RoundState.under_review
        if status == SubmissionStatus.rework:
            return RoundState.rework
        # rejected is terminal for this enrollment
        return RoundState.locked

    if round_number == 4:
        if not state.round3_approved:
            return RoundState.locked
        return RoundState.completed if state.round4_completed else RoundState.available

    raise ValidationError(f"unknown round {round_number}")


def round_states(state: EnrollmentState) -> dict[int, RoundState]:
    return {n: round_state(state, n) for n in (1, 2, 3, 4)}


def composite_percentage(state: EnrollmentState) -> int:
    done = sum(1 for v in state.flags.values() if v)
    return (100 * done) // 4


def transition(state: EnrollmentState, action: Action) -> Transition:
    if isinstance(action, CompleteLesson):
        return _complete_lesson(state)
    if isinstance(action, SubmitQuiz):
        return _submit_quiz(state, action)
    if isinstance(action, SubmitProject):
        return _submit_project(state)
    if isinstance(action, ReviewProject):
        return _review_project(state, action)
    raise ValidationError(f"unsupported action {type(action).__name__}")


def _complete_lesson(state: EnrollmentState) -> Transition:
    if state.round1_completed:
        return Transition(state=state, event=None)
    new = replace(state, round1_completed=True)
    return Transition(
        state=new,
        event=GatingEvent(type=SkillEventType.round1_completed, round_number=1, meta={"unlocked": 2}),
    )


def _submit_quiz(state: EnrollmentState, action: SubmitQuiz) -> Transition:
    n = action.round_number
    if n not in QUIZ_ROUNDS:
        raise ValidationError(f"round {n} is not a quiz round")

    # Completed quiz rounds may be retaken; only locked ones are refused.
    if round_state(state, n) == RoundState.locked:
        raise RoundLocked(f"round {n} is locked", round_number=n)

    result = scoring.score_answers(action.questions, action.answers)
    if not 0 <= result.score <= 100:
        raise ValidationError("score out of range")
    passed = scoring.is_passing(result.score, action.pass_threshold)

    if n == 2:
        newly_completed = passed and not state.round2_completed
        new = replace(
            state,
            round2_score=result.score,
            round2_completed=state.round2_completed or passed,
        )
    else:
        newly_completed = passed and not state.round4_completed
        new = replace(
            state,
            round4_score=result.score,
            round4_completed=state.round4_completed or passed,
        )

    meta: dict[str, Any] = {
        "score": result.score,
        "passed": passed,
        "correct": result.correct,
        "total": result.total,
        "pass_threshold": int(action.pass_threshold),
        "newly_completed": newly_completed,
    }
    if newly_completed:
        if n == 2:
            meta["unlocked"] = 3
        else:
            meta["course_completed"] = True
    return Transition(state=new, event=GatingEvent(type=SkillEventType.quiz_submitted, round_number=n, meta=meta))


def _submit_project(state: EnrollmentState) -> Transition:
    current = round_state(state, 3)
    if current == RoundState.under_review:
        raise DuplicateSubmission()
    if current not in (RoundState.available, RoundState.rework):
        raise RoundLocked(f"round 3 is {current.value}", round_number=3)

    new = replace(state, submission_status=SubmissionStatus.pending)
    return Transition(
        state=new,
        event=GatingEvent(
            type=SkillEventType.project_submitted,
            round_number=3,
            meta={"resubmission": state.submission_status == SubmissionStatus.rework},
        ),
    )


def _review_project(state: EnrollmentState, action: ReviewProject) -> Transition:
    if state.submission_status is None:
        raise RoundLocked("no project submission to review", round_number=3)

    decision = review.decide_review(state.submission_status, action.status)
    if not decision.applies:
        return Transition(state=state, event=None)

    approved = decision.status == SubmissionStatus.approved
    new = replace(
        state,
        submission_status=decision.status,
        round3_approved=approved,
    )
    meta: dict[str, Any] = {"status": decision.status.value}
    if approved:
        meta["unlocked"] = 4
    return Transition(state=new, event=GatingEvent(type=SkillEventType.project_reviewed, round_number=3, meta=meta))
