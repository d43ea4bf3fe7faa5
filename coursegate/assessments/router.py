"""Assessment API endpoints.

Provides routes for:
- Chapter test sessions (start, submit, abandon)
- Final exam sessions (start, submit, abandon) and one-shot submission
- Session inspection
"""

from uuid import UUID

from fastapi import APIRouter

from coursegate.auth.dependencies import LearnerIdentity

from .dependencies import AssessmentServiceDep
from .schemas import (
    AbandonResponse,
    AbandonSessionRequest,
    ChapterTestResultResponse,
    ExamResultResponse,
    SessionResponse,
    SessionStartResponse,
    SubmitExamRequest,
    SubmitSessionRequest,
    answers_to_domain,
)


chapters_router = APIRouter(prefix="/v1/chapters", tags=["assessments"])
exams_router = APIRouter(prefix="/v1/courses", tags=["assessments"])
sessions_router = APIRouter(prefix="/v1/sessions", tags=["assessments"])


# ==============================================================================
# Chapter Tests
# ==============================================================================


@chapters_router.post(
    "/{chapter_id}/test/start",
    response_model=SessionStartResponse,
    summary="Start chapter test",
)
async def start_chapter_test(
    chapter_id: UUID,
    assessment_service: AssessmentServiceDep,
    identity: LearnerIdentity,
) -> SessionStartResponse:
    """Start a timed session; correct answers are never included."""
    return await assessment_service.start_chapter_test(identity, chapter_id)


@chapters_router.post(
    "/{chapter_id}/test/submit",
    response_model=ChapterTestResultResponse,
    summary="Submit chapter test",
)
async def submit_chapter_test(
    chapter_id: UUID,
    data: SubmitSessionRequest,
    assessment_service: AssessmentServiceDep,
    identity: LearnerIdentity,
) -> ChapterTestResultResponse:
    return await assessment_service.submit_chapter_test(
        identity, chapter_id, data.session_id, answers_to_domain(data.answers)
    )


@chapters_router.post(
    "/{chapter_id}/test/abandon",
    response_model=AbandonResponse,
    summary="Abandon chapter test",
)
async def abandon_chapter_test(
    chapter_id: UUID,
    data: AbandonSessionRequest,
    assessment_service: AssessmentServiceDep,
    identity: LearnerIdentity,
) -> AbandonResponse:
    return await assessment_service.abandon(
        identity, data.session_id, chapter_id=chapter_id
    )


# ==============================================================================
# Final Exam
# ==============================================================================


@exams_router.post(
    "/{course_id}/exam/start",
    response_model=SessionStartResponse,
    summary="Start final exam",
)
async def start_final_exam(
    course_id: UUID,
    assessment_service: AssessmentServiceDep,
    identity: LearnerIdentity,
) -> SessionStartResponse:
    return await assessment_service.start_final_exam(identity, course_id)


@exams_router.post(
    "/{course_id}/submit-exam",
    response_model=ExamResultResponse,
    summary="Submit final exam",
)
async def submit_final_exam(
    course_id: UUID,
    data: SubmitExamRequest,
    assessment_service: AssessmentServiceDep,
    identity: LearnerIdentity,
) -> ExamResultResponse:
    """Grade the final exam; a pass completes the course and issues the
    certificate pair.

    Without ``session_id`` the exam is started and graded in one request.
    """
    return await assessment_service.submit_final_exam(
        identity,
        course_id,
        answers_to_domain(data.answers),
        session_id=data.session_id,
    )


@exams_router.post(
    "/{course_id}/exam/abandon",
    response_model=AbandonResponse,
    summary="Abandon final exam",
)
async def abandon_final_exam(
    course_id: UUID,
    data: AbandonSessionRequest,
    assessment_service: AssessmentServiceDep,
    identity: LearnerIdentity,
) -> AbandonResponse:
    return await assessment_service.abandon(
        identity, data.session_id, course_id=course_id
    )


# ==============================================================================
# Sessions
# ==============================================================================


@sessions_router.get(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Get assessment session",
)
async def get_session(
    session_id: UUID,
    assessment_service: AssessmentServiceDep,
    identity: LearnerIdentity,
) -> SessionResponse:
    """Session state; an overdue session is reported as expired."""
    return await assessment_service.get_session(identity, session_id)
