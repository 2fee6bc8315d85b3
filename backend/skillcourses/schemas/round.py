"""Round definitions as a tagged variant keyed by ``round_number``.

Each round carries only the fields that make sense for it:

- 1 ``LearnRound``: lesson notes and/or a video link, no scoring
- 2 ``QuizRound`` / 4 ``FinalQuizRound``: ordered questions with an answer key
- 3 ``ProjectRound``: a brief and requirement strings, graded by review
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator


class QuizQuestion(BaseModel):
    prompt: str = Field(min_length=1)
    options: list[str] = Field(min_length=2)
    correct_index: int = Field(ge=0)

    @model_validator(mode="after")
    def _correct_index_in_options(self) -> "QuizQuestion":
        if self.correct_index >= len(self.options):
            raise ValueError("correct_index is outside the option range")
        return self


class LearnRound(BaseModel):
    round_number: Literal[1] = 1
    title: str = Field(default="", max_length=300)
    notes: str | None = None
    video_url: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _has_content(self) -> "LearnRound":
        if not (self.notes or "").strip() and not (self.video_url or "").strip():
            raise ValueError("learning round needs notes or a video url")
        return self


class QuizRound(BaseModel):
    round_number: Literal[2] = 2
    title: str = Field(default="", max_length=300)
    questions: list[QuizQuestion] = Field(min_length=1)


class ProjectRound(BaseModel):
    round_number: Literal[3] = 3
    title: str = Field(default="", max_length=300)
    brief: str = Field(min_length=1)
    requirements: list[str] = Field(default_factory=list)


class FinalQuizRound(QuizRound):
    round_number: Literal[4] = 4


RoundDefinition = Annotated[
    Union[LearnRound, QuizRound, ProjectRound, FinalQuizRound],
    Field(discriminator="round_number"),
]

round_adapter: TypeAdapter[RoundDefinition] = TypeAdapter(RoundDefinition)

QUIZ_ROUNDS = (2, 4)


class QuizQuestionPublic(BaseModel):
    prompt: str
    options: list[str]


class RoundPublic(BaseModel):
    """Round as shown to learners: answer keys are never exposed."""

    id: str
    round_number: int
    title: str
    notes: str | None = None
    video_url: str | None = None
    brief: str | None = None
    requirements: list[str] | None = None
    questions: list[QuizQuestionPublic] | None = None


class RoundAuthoring(BaseModel):
    id: str
    course_id: str
    definition: RoundDefinition
