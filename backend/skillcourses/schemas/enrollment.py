from __future__ import annotations

from pydantic import BaseModel, Field


class EnrollmentPublic(BaseModel):
    id: str
    course_id: str
    student_id: str
    round1_completed: bool
    round2_completed: bool
    round3_approved: bool
    round4_completed: bool
    round2_score: int | None
    round4_score: int | None
    composite_percentage: int


class QuizSubmitRequest(BaseModel):
    answers: list[int]


class QuizSubmitResponse(BaseModel):
    round_number: int
    score: int
    passed: bool
    correct: int
    total: int
    enrollment: EnrollmentPublic


class ProjectSubmitRequest(BaseModel):
    file_ref: str = Field(min_length=1, max_length=1000)
    description: str | None = Field(default=None, max_length=5000)


class ProjectReviewRequest(BaseModel):
    # Validated by the review workflow so unknown values map to invalid_status.
    status: str
    feedback: str | None = None


class SubmissionPublic(BaseModel):
    id: str
    enrollment_id: str
    attempt_no: int
    file_ref: str
    description: str | None
    status: str
    feedback: str | None
    reviewed_by: str | None
    reviewed_at: str | None
    created_at: str | None
    active: bool = True
    student_id: str | None = None
    download_url: str | None = None


class EnrollmentProgressResponse(BaseModel):
    enrollment_id: str
    course_id: str
    student_id: str
    flags: dict[str, bool]
    scores: dict[str, int | None]
    pass_threshold: int
    composite_percentage: int
    rounds: dict[str, str]
    active_submission: SubmissionPublic | None
