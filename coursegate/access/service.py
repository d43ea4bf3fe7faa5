"""Access guard service.

Loads the course outline and the learner's progress and evaluates the pure
predicates in ``access.guard``. ``check_*`` return a decision for the
access endpoints; ``require_*`` raise ``AccessDeniedError`` instead.
"""

from uuid import UUID

from coursegate.access.guard import (
    AccessDecision,
    chapter_test_access,
    final_exam_access,
    lesson_access,
)
from coursegate.auth.schemas import Identity
from coursegate.catalog.service import CatalogReader
from coursegate.progress.models import CourseProgress
from coursegate.progress.service import ProgressService


class AccessGuard:
    """Prerequisite checks for lessons, chapter tests and the final exam."""

    def __init__(self, catalog: CatalogReader, progress_service: ProgressService):
        self.catalog = catalog
        self.progress_service = progress_service

    async def _progress(self, identity: Identity, course_id: UUID) -> CourseProgress:
        # Read-only: a learner without a record simply has no completions
        progress = await self.progress_service.get_progress(identity.user_id, course_id)
        return progress or CourseProgress(user_id=identity.user_id, course_id=course_id)

    async def check_lesson_access(
        self, identity: Identity, lesson_id: UUID
    ) -> AccessDecision:
        outline, _ = await self.catalog.outline_for_lesson(lesson_id)
        progress = await self._progress(identity, outline.course_id)
        return lesson_access(outline, progress, lesson_id, identity.role)

    async def check_chapter_test_access(
        self, identity: Identity, chapter_id: UUID
    ) -> AccessDecision:
        outline, _ = await self.catalog.outline_for_chapter(chapter_id)
        progress = await self._progress(identity, outline.course_id)
        return chapter_test_access(outline, progress, chapter_id, identity.role)

    async def check_final_exam_access(
        self, identity: Identity, course_id: UUID
    ) -> AccessDecision:
        outline = await self.catalog.get_course_outline(course_id)
        progress = await self._progress(identity, course_id)
        return final_exam_access(outline, progress, identity.role)

    async def require_lesson_access(self, identity: Identity, lesson_id: UUID) -> None:
        (await self.check_lesson_access(identity, lesson_id)).raise_if_denied()

    async def require_chapter_test_access(
        self, identity: Identity, chapter_id: UUID
    ) -> None:
        (await self.check_chapter_test_access(identity, chapter_id)).raise_if_denied()

    async def require_final_exam_access(
        self, identity: Identity, course_id: UUID
    ) -> None:
        (await self.check_final_exam_access(identity, course_id)).raise_if_denied()
