"""Learner progress API endpoints.

Provides routes for:
- Lesson completion and lesson quiz submission
- Compact and detailed course progress
- Progress across all of the caller's courses
"""

from uuid import UUID

from fastapi import APIRouter

from coursegate.assessments.schemas import answers_to_domain
from coursegate.auth.dependencies import LearnerIdentity

from .dependencies import ProgressServiceDep
from .schemas import (
    CourseProgressListResponse,
    CourseProgressResponse,
    DetailedProgressResponse,
    LessonCompletionResponse,
    QuizResultResponse,
    SubmitQuizRequest,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])
lessons_router = APIRouter(prefix="/v1/lessons", tags=["progress"])
courses_router = APIRouter(prefix="/v1/courses", tags=["progress"])


# ==============================================================================
# Lesson Endpoints
# ==============================================================================


@lessons_router.post(
    "/{lesson_id}/complete",
    response_model=LessonCompletionResponse,
    summary="Mark lesson as completed",
)
async def complete_lesson(
    lesson_id: UUID,
    progress_service: ProgressServiceDep,
    identity: LearnerIdentity,
) -> LessonCompletionResponse:
    """Complete a lesson without a quiz.

    The previous lesson must be completed first. Lessons with a quiz are
    completed by passing the quiz.
    """
    return await progress_service.complete_lesson(identity, lesson_id)


@lessons_router.post(
    "/{lesson_id}/submit-quiz",
    response_model=QuizResultResponse,
    summary="Submit lesson quiz",
)
async def submit_lesson_quiz(
    lesson_id: UUID,
    data: SubmitQuizRequest,
    progress_service: ProgressServiceDep,
    identity: LearnerIdentity,
) -> QuizResultResponse:
    """Grade the lesson quiz; a pass completes the lesson."""
    return await progress_service.submit_lesson_quiz(
        identity, lesson_id, answers_to_domain(data.answers)
    )


# ==============================================================================
# Progress Queries
# ==============================================================================


@courses_router.get(
    "/{course_id}/progress",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    identity: LearnerIdentity,
) -> CourseProgressResponse:
    return await progress_service.get_course_progress(identity, course_id)


@courses_router.get(
    "/{course_id}/detailed-progress",
    response_model=DetailedProgressResponse,
    summary="Get detailed course progress",
)
async def get_detailed_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    identity: LearnerIdentity,
) -> DetailedProgressResponse:
    """Per-chapter and per-lesson state with the next recommended action."""
    return await progress_service.get_detailed_progress(identity, course_id)


@router.get(
    "/me",
    response_model=CourseProgressListResponse,
    summary="List my course progress",
)
async def list_my_progress(
    progress_service: ProgressServiceDep,
    identity: LearnerIdentity,
) -> CourseProgressListResponse:
    return await progress_service.list_my_progress(identity.user_id)
