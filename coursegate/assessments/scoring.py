"""Scoring engine.

Grades a submitted answer set against a frozen question snapshot. Pure
functions only: no storage, no clock.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from coursegate.catalog.models import Question
from coursegate.core.exceptions import AnswerValidationError


@dataclass(frozen=True)
class SubmittedAnswer:
    question_id: UUID
    selected_answer: str | None = None


@dataclass(frozen=True)
class QuestionResult:
    """Per-question review row; never used for gating."""

    question_id: UUID
    question_text: str
    selected_answer: str | None
    correct_answer: str
    is_correct: bool
    explanation: str | None = None


@dataclass(frozen=True)
class GradeResult:
    score: int
    correct_count: int
    total_questions: int
    passed: bool
    passing_score: int
    results: tuple[QuestionResult, ...] = ()


def score_percent(correct_count: int, total_questions: int) -> int:
    """Percentage rounded half up, so 69.5 becomes 70."""
    if total_questions <= 0:
        return 0
    ratio = Decimal(correct_count) * 100 / Decimal(total_questions)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def validate_answers(
    snapshot: Sequence[Question], answers: Sequence[SubmittedAnswer]
) -> None:
    """Reject malformed payloads before an attempt is consumed.

    Raises:
        AnswerValidationError: More answers than questions, a question
            answered twice, or an id that is not in the snapshot
    """
    if len(answers) > len(snapshot):
        raise AnswerValidationError(
            f"Received {len(answers)} answers for {len(snapshot)} questions",
            {"answers": len(answers), "questions": len(snapshot)},
        )

    known = {q.id for q in snapshot}
    seen: set[UUID] = set()
    for answer in answers:
        if answer.question_id in seen:
            raise AnswerValidationError(
                "Question answered more than once",
                {"question_id": str(answer.question_id)},
            )
        seen.add(answer.question_id)
        if answer.question_id not in known:
            raise AnswerValidationError(
                "Answer references a question that is not part of this assessment",
                {"question_id": str(answer.question_id)},
            )


def grade(
    snapshot: Sequence[Question],
    answers: Sequence[SubmittedAnswer],
    passing_score: int,
) -> GradeResult:
    """Grade answers against the snapshot.

    Every snapshot question is scored once: unanswered questions count as
    incorrect and answers to ids outside the snapshot are ignored. Passing
    is inclusive (score >= passing_score).
    """
    by_question = {a.question_id: a.selected_answer for a in answers}

    results = []
    correct_count = 0
    for question in snapshot:
        selected = by_question.get(question.id)
        is_correct = selected is not None and selected == question.correct_answer
        if is_correct:
            correct_count += 1
        results.append(
            QuestionResult(
                question_id=question.id,
                question_text=question.question_text,
                selected_answer=selected,
                correct_answer=question.correct_answer,
                is_correct=is_correct,
                explanation=question.explanation,
            )
        )

    score = score_percent(correct_count, len(snapshot))
    return GradeResult(
        score=score,
        correct_count=correct_count,
        total_questions=len(snapshot),
        passed=score >= passing_score,
        passing_score=passing_score,
        results=tuple(results),
    )
