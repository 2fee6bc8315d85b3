"""Error taxonomy of the skill-course engine.

Every failure is scoped to a single request and leaves prior state unchanged.
The HTTP layer renders these with the same envelope it uses for
``HTTPException`` (see ``skillcourses.main``), keyed by ``error_code``.
"""

from __future__ import annotations


class SkillEngineError(Exception):
    status_code = 400
    error_code = "engine_error"
    default_message = "request failed"

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


# Malformed input. Never retried automatically.
class ValidationError(SkillEngineError):
    status_code = 400
    error_code = "validation_error"
    default_message = "invalid input"


class InvalidSubmission(ValidationError):
    error_code = "invalid_submission"
    default_message = "answers do not match the round questions"


class InvalidStatus(ValidationError):
    error_code = "invalid_status"
    default_message = "unknown review status"


class InvalidRoundDefinition(ValidationError):
    error_code = "invalid_round_definition"
    default_message = "invalid round definition"


class RoundsIncomplete(ValidationError):
    error_code = "rounds_incomplete"
    default_message = "all four rounds must be defined before publishing"


# Business rule violations: a 4xx outcome, not a system fault.
class GatingViolation(SkillEngineError):
    status_code = 409
    error_code = "gating_violation"
    default_message = "action not permitted in the current state"


class RoundLocked(GatingViolation):
    error_code = "round_locked"
    default_message = "round is locked"


class DuplicateSubmission(GatingViolation):
    error_code = "duplicate_submission"
    default_message = "a project submission is already pending review"


class SubmissionAlreadyReviewed(GatingViolation):
    error_code = "submission_already_reviewed"
    default_message = "submission has already been reviewed"


class CourseNotPublished(GatingViolation):
    error_code = "course_not_published"
    default_message = "course is not published"


class AlreadyEnrolled(GatingViolation):
    error_code = "already_enrolled"
    default_message = "student is already enrolled in this course"


class CourseLocked(GatingViolation):
    error_code = "course_locked"
    default_message = "course has enrollments that depend on this definition"


class ConcurrencyConflict(SkillEngineError):
    status_code = 409
    error_code = "concurrency_conflict"
    default_message = "record was modified concurrently"


class ConcurrentModification(ConcurrencyConflict):
    error_code = "concurrent_modification"


class NotFoundError(SkillEngineError):
    status_code = 404
    error_code = "not_found"
    default_message = "not found"


class CourseNotFound(NotFoundError):
    error_code = "course_not_found"
    default_message = "course not found"


class RoundNotFound(NotFoundError):
    error_code = "round_not_found"
    default_message = "round not found"


class EnrollmentNotFound(NotFoundError):
    error_code = "enrollment_not_found"
    default_message = "enrollment not found"


class SubmissionNotFound(NotFoundError):
    error_code = "submission_not_found"
    default_message = "submission not found"
