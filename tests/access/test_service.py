"""Tests for the access guard service."""

from uuid import uuid4

import pytest

from coursegate.core.exceptions import AccessDeniedError, NotFoundError
from tests.fakes import complete_chapter1_lessons, ready_for_exam


class TestAccessGuard:
    @pytest.mark.asyncio
    async def test_reads_without_creating_progress(
        self, access_guard, progress_repo, student, sample
    ) -> None:
        decision = await access_guard.check_lesson_access(student, sample.lesson2.id)

        assert decision.allowed is False
        assert progress_repo.rows == {}

    @pytest.mark.asyncio
    async def test_chapter_test_follows_progress(
        self, access_guard, progress_service, student, sample
    ) -> None:
        before = await access_guard.check_chapter_test_access(
            student, sample.chapter1.id
        )
        await complete_chapter1_lessons(progress_service, student, sample)
        after = await access_guard.check_chapter_test_access(
            student, sample.chapter1.id
        )

        assert before.allowed is False
        assert after.allowed is True

    @pytest.mark.asyncio
    async def test_final_exam(
        self, access_guard, assessment_service, progress_service, student, sample
    ) -> None:
        with pytest.raises(AccessDeniedError):
            await access_guard.require_final_exam_access(student, sample.id)

        await ready_for_exam(assessment_service, progress_service, student, sample)

        await access_guard.require_final_exam_access(student, sample.id)

    @pytest.mark.asyncio
    async def test_require_lesson_access(self, access_guard, student, sample) -> None:
        await access_guard.require_lesson_access(student, sample.lesson1.id)
        with pytest.raises(AccessDeniedError):
            await access_guard.require_lesson_access(student, sample.lesson3.id)

    @pytest.mark.asyncio
    async def test_require_chapter_test_access_bypass(
        self, access_guard, admin, sample
    ) -> None:
        await access_guard.require_chapter_test_access(admin, sample.chapter1.id)

    @pytest.mark.asyncio
    async def test_unknown_chapter(self, access_guard, student) -> None:
        with pytest.raises(NotFoundError):
            await access_guard.check_chapter_test_access(student, uuid4())
