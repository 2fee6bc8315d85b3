from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from skillcourses.core.errors import InvalidSubmission
from skillcourses.schemas.round import QuizQuestion


@dataclass(frozen=True)
class QuizScore:
    correct: int
    total: int
    score: int


def score_answers(questions: Sequence[QuizQuestion], answers: Sequence[int]) -> QuizScore:
    """Score an ordered answer list against the round's answer key.

    Each answer is the 0-based index of the chosen option. The result is a
    whole percentage; persisting it is the caller's job.
    """
    total = len(questions)
    if total == 0:
        raise InvalidSubmission("round has no questions")
    if len(answers) != total:
        raise InvalidSubmission(
            f"expected {total} answers, got {len(answers)}",
            expected=total,
            received=len(answers),
        )

    correct = 0
    for pos, (question, answer) in enumerate(zip(questions, answers)):
        if isinstance(answer, bool) or not isinstance(answer, int):
            raise InvalidSubmission(f"answer {pos + 1} is not an option index", position=pos)
        if answer < 0 or answer >= len(question.options):
            raise InvalidSubmission(f"answer {pos + 1} is outside the option range", position=pos)
        if answer == question.correct_index:
            correct += 1

    score = int(round((correct / total) * 100))
    return QuizScore(correct=correct, total=total, score=score)


def is_passing(score: int, pass_threshold: int) -> bool:
    return int(score) >= int(pass_threshold)
