"""Tests for the scoring engine."""

from uuid import uuid4

import pytest

from coursegate.assessments.scoring import (
    SubmittedAnswer,
    grade,
    score_percent,
    validate_answers,
)
from coursegate.catalog.models import QuestionKind
from coursegate.core.exceptions import AnswerValidationError
from tests.fakes import answers_with_correct, correct_answers, make_question


@pytest.fixture
def questions():
    return [make_question(QuestionKind.TEST, n) for n in range(1, 5)]


class TestScorePercent:
    @pytest.mark.parametrize(
        "correct,total,expected",
        [
            (0, 4, 0),
            (3, 4, 75),
            (4, 4, 100),
            (1, 3, 33),
            (2, 3, 67),
            (139, 200, 70),  # 69.5 rounds half up
            (1, 8, 13),  # 12.5 rounds half up
        ],
    )
    def test_rounding(self, correct: int, total: int, expected: int) -> None:
        assert score_percent(correct, total) == expected

    def test_empty_snapshot_scores_zero(self) -> None:
        assert score_percent(0, 0) == 0


class TestGrade:
    def test_all_correct(self, questions) -> None:
        result = grade(questions, correct_answers(questions), 70)

        assert result.score == 100
        assert result.correct_count == 4
        assert result.total_questions == 4
        assert result.passed is True
        assert all(r.is_correct for r in result.results)

    def test_threshold_is_inclusive(self) -> None:
        questions = [make_question(QuestionKind.TEST, n) for n in range(10)]
        result = grade(questions, answers_with_correct(questions, 7), 70)

        assert result.score == 70
        assert result.passed is True

    def test_below_threshold_fails(self, questions) -> None:
        result = grade(questions, answers_with_correct(questions, 2), 70)

        assert result.score == 50
        assert result.passed is False

    def test_unanswered_questions_are_incorrect(self, questions) -> None:
        answers = [SubmittedAnswer(questions[0].id, questions[0].correct_answer)]
        result = grade(questions, answers, 70)

        assert result.correct_count == 1
        assert result.total_questions == 4
        assert result.score == 25
        assert result.results[1].selected_answer is None
        assert result.results[1].is_correct is False

    def test_null_selection_is_incorrect(self, questions) -> None:
        answers = [SubmittedAnswer(q.id, None) for q in questions]
        result = grade(questions, answers, 0)

        assert result.correct_count == 0
        assert result.passed is True  # zero threshold passes a zero score

    def test_answers_outside_snapshot_are_ignored(self, questions) -> None:
        answers = [*correct_answers(questions), SubmittedAnswer(uuid4(), "bravo")]
        result = grade(questions, answers, 70)

        assert result.total_questions == 4
        assert result.correct_count == 4

    def test_match_is_exact(self, questions) -> None:
        answers = [SubmittedAnswer(q.id, "Bravo") for q in questions]
        result = grade(questions, answers, 70)

        assert result.correct_count == 0

    def test_results_follow_snapshot_order(self, questions) -> None:
        answers = list(reversed(correct_answers(questions)))
        result = grade(questions, answers, 70)

        assert [r.question_id for r in result.results] == [q.id for q in questions]
        assert result.results[0].explanation == questions[0].explanation


class TestValidateAnswers:
    def test_accepts_partial_answers(self, questions) -> None:
        validate_answers(questions, correct_answers(questions)[:2])

    def test_rejects_more_answers_than_questions(self, questions) -> None:
        answers = [*correct_answers(questions), SubmittedAnswer(uuid4(), "x")]

        with pytest.raises(AnswerValidationError) as exc_info:
            validate_answers(questions, answers)

        assert exc_info.value.code == "validation_error"

    def test_rejects_duplicate_question(self, questions) -> None:
        answers = [
            SubmittedAnswer(questions[0].id, "alpha"),
            SubmittedAnswer(questions[0].id, "bravo"),
        ]

        with pytest.raises(AnswerValidationError, match="more than once"):
            validate_answers(questions, answers)

    def test_rejects_unknown_question(self, questions) -> None:
        with pytest.raises(AnswerValidationError, match="not part of"):
            validate_answers(questions, [SubmittedAnswer(uuid4(), "bravo")])
