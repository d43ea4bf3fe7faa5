"""Pydantic schemas for assessments.

Request and response models for:
- Answer submission (shared by lesson quizzes, chapter tests, final exams)
- Session start, submit, abandon and inspection
- Final exam submission with certificate issuance
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from coursegate.assessments.models import (
    AssessmentKind,
    AssessmentSession,
    SessionStatus,
)
from coursegate.assessments.scoring import GradeResult, QuestionResult, SubmittedAnswer
from coursegate.certificates.schemas import CertificateResponse


# ==============================================================================
# Answers and Grading
# ==============================================================================


class AnswerIn(BaseModel):
    """One answer; a null selection counts as unanswered."""

    question_id: UUID
    selected_answer: str | None = Field(default=None, max_length=2000)

    def to_domain(self) -> SubmittedAnswer:
        return SubmittedAnswer(self.question_id, self.selected_answer)


def answers_to_domain(answers: list[AnswerIn]) -> list[SubmittedAnswer]:
    return [a.to_domain() for a in answers]


class QuestionResultResponse(BaseModel):
    question_id: UUID
    question_text: str
    selected_answer: str | None
    correct_answer: str
    is_correct: bool
    explanation: str | None = None

    @classmethod
    def from_result(cls, result: QuestionResult) -> "QuestionResultResponse":
        return cls(
            question_id=result.question_id,
            question_text=result.question_text,
            selected_answer=result.selected_answer,
            correct_answer=result.correct_answer,
            is_correct=result.is_correct,
            explanation=result.explanation,
        )


class GradeResponse(BaseModel):
    """Graded attempt."""

    score: int = Field(description="0-100, rounded half up")
    correct_count: int
    total_questions: int
    passed: bool
    passing_score: int
    results: list[QuestionResultResponse] = Field(default_factory=list)

    @classmethod
    def grade_fields(cls, grade: GradeResult) -> dict:
        return {
            "score": grade.score,
            "correct_count": grade.correct_count,
            "total_questions": grade.total_questions,
            "passed": grade.passed,
            "passing_score": grade.passing_score,
            "results": [QuestionResultResponse.from_result(r) for r in grade.results],
        }


# ==============================================================================
# Sessions
# ==============================================================================


class SessionQuestionResponse(BaseModel):
    """Question as shown during an attempt: no answer key, no explanation."""

    question_id: UUID
    question_text: str
    options: list[str]


class SessionStartResponse(BaseModel):
    session_id: UUID
    kind: AssessmentKind
    course_id: UUID
    chapter_id: UUID | None = None
    started_at: datetime
    expires_at: datetime
    time_limit_seconds: int
    passing_score: int
    total_questions: int
    questions: list[SessionQuestionResponse]

    @classmethod
    def from_session(cls, session: AssessmentSession) -> "SessionStartResponse":
        return cls(
            session_id=session.id,
            kind=session.target.kind,
            course_id=session.target.course_id,
            chapter_id=session.target.chapter_id,
            started_at=session.started_at,
            expires_at=session.expires_at,
            time_limit_seconds=int(
                (session.expires_at - session.started_at).total_seconds()
            ),
            passing_score=session.passing_score,
            total_questions=session.question_count,
            questions=[
                SessionQuestionResponse(
                    question_id=q.id,
                    question_text=q.question_text,
                    options=session.options_for(q),
                )
                for q in session.questions
            ],
        )


class SessionResponse(BaseModel):
    """Session state; questions are included only while Active."""

    session_id: UUID
    kind: AssessmentKind
    course_id: UUID
    chapter_id: UUID | None = None
    status: SessionStatus
    started_at: datetime
    expires_at: datetime
    ended_at: datetime | None = None
    remaining_seconds: int = 0
    score: int | None = None
    passed: bool | None = None
    questions: list[SessionQuestionResponse] = Field(default_factory=list)

    @classmethod
    def from_session(
        cls, session: AssessmentSession, now: datetime
    ) -> "SessionResponse":
        active = session.status is SessionStatus.ACTIVE
        return cls(
            session_id=session.id,
            kind=session.target.kind,
            course_id=session.target.course_id,
            chapter_id=session.target.chapter_id,
            status=session.status,
            started_at=session.started_at,
            expires_at=session.expires_at,
            ended_at=session.ended_at,
            remaining_seconds=(
                max(int((session.expires_at - now).total_seconds()), 0)
                if active
                else 0
            ),
            score=session.score,
            passed=session.passed,
            questions=(
                [
                    SessionQuestionResponse(
                        question_id=q.id,
                        question_text=q.question_text,
                        options=session.options_for(q),
                    )
                    for q in session.questions
                ]
                if active
                else []
            ),
        )


class SubmitSessionRequest(BaseModel):
    session_id: UUID
    answers: list[AnswerIn] = Field(default_factory=list, max_length=500)


class AbandonSessionRequest(BaseModel):
    session_id: UUID


class AbandonResponse(BaseModel):
    session_id: UUID
    status: SessionStatus
    message: str = "Assessment abandoned"


class ChapterTestResultResponse(GradeResponse):
    """Graded chapter test plus the resulting gate state."""

    session_id: UUID
    chapter_id: UUID
    test_passed: bool = Field(description="Chapter gate state after this attempt")
    best_score: int
    attempts: int
    cooldown_until: datetime | None = None


# ==============================================================================
# Final Exam
# ==============================================================================


class SubmitExamRequest(BaseModel):
    """Final exam answers; without a session_id the exam is started and
    graded in the same request."""

    answers: list[AnswerIn] = Field(default_factory=list, max_length=500)
    session_id: UUID | None = None


class ExamResultResponse(GradeResponse):
    session_id: UUID
    course_id: UUID
    best_score: int
    attempts: int
    cooldown_until: datetime | None = None
    course_completed: bool
    certificate_issued: bool
    certificates: list[CertificateResponse] | None = None
