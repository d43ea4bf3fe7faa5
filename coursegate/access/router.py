"""Access check API endpoints.

Read-only: each route reports whether the caller may open a lesson, start
a chapter test or start the final exam, and if not, the first unmet
prerequisite.
"""

from uuid import UUID

from fastapi import APIRouter, Query

from coursegate.auth.dependencies import LearnerIdentity

from .dependencies import AccessGuardDep
from .schemas import AccessDecisionResponse


router = APIRouter(prefix="/v1/access", tags=["access"])


@router.get(
    "/lesson/{lesson_id}",
    response_model=AccessDecisionResponse,
    summary="Check lesson access",
)
async def check_lesson_access(
    lesson_id: UUID,
    guard: AccessGuardDep,
    identity: LearnerIdentity,
) -> AccessDecisionResponse:
    decision = await guard.check_lesson_access(identity, lesson_id)
    return AccessDecisionResponse.from_decision(decision)


@router.get(
    "/chapter-test/{chapter_id}",
    response_model=AccessDecisionResponse,
    summary="Check chapter test access",
)
async def check_chapter_test_access(
    chapter_id: UUID,
    guard: AccessGuardDep,
    identity: LearnerIdentity,
) -> AccessDecisionResponse:
    decision = await guard.check_chapter_test_access(identity, chapter_id)
    return AccessDecisionResponse.from_decision(decision)


@router.get(
    "/final-exam",
    response_model=AccessDecisionResponse,
    summary="Check final exam access",
)
async def check_final_exam_access(
    guard: AccessGuardDep,
    identity: LearnerIdentity,
    course_id: UUID = Query(..., description="Course whose final exam to check"),
) -> AccessDecisionResponse:
    decision = await guard.check_final_exam_access(identity, course_id)
    return AccessDecisionResponse.from_decision(decision)
