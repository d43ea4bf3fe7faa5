"""Pydantic schemas for learner progress.

Request and response models for:
- Lesson completion and lesson quiz submission
- Compact and detailed course progress views
- The next recommended action
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from coursegate.assessments.schemas import AnswerIn, GradeResponse
from coursegate.catalog.models import ContentType
from coursegate.certificates.schemas import CertificateResponse
from coursegate.progress.planner import NextAction, NextActionType


# ==============================================================================
# Next Action
# ==============================================================================


class NextActionResponse(BaseModel):
    type: NextActionType
    message: str
    chapter_id: UUID | None = None
    chapter_number: int | None = None
    lesson_id: UUID | None = None
    lesson_number: int | None = None
    title: str | None = None

    @classmethod
    def from_action(cls, action: NextAction) -> "NextActionResponse":
        return cls(
            type=action.type,
            message=action.message,
            chapter_id=action.chapter_id,
            chapter_number=action.chapter_number,
            lesson_id=action.lesson_id,
            lesson_number=action.lesson_number,
            title=action.title,
        )


# ==============================================================================
# Lesson Operations
# ==============================================================================


class LessonCompletionResponse(BaseModel):
    lesson_id: UUID
    completed: bool
    completed_at: datetime | None = None
    current_chapter: int
    current_lesson: int
    next_action: NextActionResponse


class SubmitQuizRequest(BaseModel):
    answers: list[AnswerIn] = Field(default_factory=list, max_length=500)


class QuizResultResponse(GradeResponse):
    """Graded lesson quiz plus the resulting lesson state."""

    lesson_id: UUID
    lesson_completed: bool
    best_score: int
    attempts: int
    cooldown_until: datetime | None = None
    next_action: NextActionResponse


# ==============================================================================
# Progress Views
# ==============================================================================


class CourseProgressResponse(BaseModel):
    """Compact course progress."""

    course_id: UUID
    course_title: str
    current_chapter: int
    current_lesson: int
    lessons_completed: int
    lessons_total: int
    chapters_passed: int
    chapters_total: int
    progress_percent: int = Field(description="Completed lessons, 0-100")
    final_exam_passed: bool
    course_completed: bool
    certificate_issued: bool
    completed_at: datetime | None = None
    updated_at: datetime | None = None


class CourseProgressListResponse(BaseModel):
    items: list[CourseProgressResponse]
    total: int


class LessonProgressDetail(BaseModel):
    lesson_id: UUID
    lesson_number: int
    title: str
    content_type: ContentType
    has_quiz: bool
    completed: bool
    best_score: int
    attempts: int
    completed_at: datetime | None = None
    cooldown_until: datetime | None = None
    accessible: bool
    locked_reason: str | None = None


class ChapterProgressDetail(BaseModel):
    chapter_id: UUID
    chapter_number: int
    title: str
    lessons_completed: int
    lessons_total: int
    has_test: bool
    test_passed: bool
    test_score: int
    attempts: int
    test_attempted_at: datetime | None = None
    cooldown_until: datetime | None = None
    test_accessible: bool
    test_locked_reason: str | None = None
    lessons: list[LessonProgressDetail]


class FinalExamAttemptDetail(BaseModel):
    score: int
    passed: bool
    attempted_at: datetime


class FinalExamDetail(BaseModel):
    attempts: list[FinalExamAttemptDetail]
    best_score: int
    passed: bool
    cooldown_until: datetime | None = None
    accessible: bool
    locked_reason: str | None = None


class DetailedProgressResponse(CourseProgressResponse):
    """Full progress view with the planner's recommendation."""

    chapters: list[ChapterProgressDetail]
    final_exam: FinalExamDetail
    certificates: list[CertificateResponse] = Field(default_factory=list)
    next_action: NextActionResponse
