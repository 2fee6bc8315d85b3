import pytest

from skillcourses.core.errors import InvalidSubmission
from skillcourses.schemas.round import QuizQuestion
from skillcourses.services.scoring import is_passing, score_answers


def _questions(n: int) -> list[QuizQuestion]:
    return [QuizQuestion(prompt=f"q{i}", options=["a", "b", "c"], correct_index=i % 3) for i in range(n)]


def test_three_of_five_is_sixty_percent():
    questions = _questions(5)
    answers = [q.correct_index for q in questions]
    answers[3] = (answers[3] + 1) % 3
    answers[4] = (answers[4] + 1) % 3

    result = score_answers(questions, answers)
    assert (result.correct, result.total, result.score) == (3, 5, 60)
    assert not is_passing(result.score, 70)
    assert is_passing(result.score, 60)


def test_all_correct_and_none_correct():
    questions = _questions(4)
    assert score_answers(questions, [q.correct_index for q in questions]).score == 100
    assert score_answers(questions, [(q.correct_index + 1) % 3 for q in questions]).score == 0


def test_rounding_to_whole_percent():
    questions = _questions(3)
    answers = [q.correct_index for q in questions]
    answers[2] = (answers[2] + 1) % 3
    # 2/3 -> 66.67 -> 67
    assert score_answers(questions, answers).score == 67


def test_answer_count_must_match():
    with pytest.raises(InvalidSubmission):
        score_answers(_questions(5), [0, 1, 2, 0])


def test_answer_index_out_of_range():
    with pytest.raises(InvalidSubmission):
        score_answers(_questions(2), [0, 3])
    with pytest.raises(InvalidSubmission):
        score_answers(_questions(2), [-1, 0])


def test_non_integer_answers_rejected():
    with pytest.raises(InvalidSubmission):
        score_answers(_questions(2), [0, True])
    with pytest.raises(InvalidSubmission):
        score_answers(_questions(2), [0, "1"])


def test_threshold_boundary_is_inclusive():
    assert is_passing(70, 70)
    assert not is_passing(69, 70)
    assert is_passing(0, 0)
