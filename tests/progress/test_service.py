"""Tests for the progress service."""

from datetime import timedelta
from uuid import uuid4

import pytest

from coursegate.assessments.scoring import SubmittedAnswer
from coursegate.config.settings import Settings
from coursegate.core.exceptions import (
    AccessDeniedError,
    AnswerValidationError,
    CooldownActiveError,
    NotFoundError,
    ProgressConflictError,
)
from coursegate.progress.models import CourseProgress
from coursegate.progress.planner import NextActionType
from coursegate.progress.service import ProgressService
from tests.fakes import (
    answers_with_correct,
    complete_chapter1_lessons,
    correct_answers,
    pass_chapter1,
    ready_for_exam,
)


# ==============================================================================
# Record access
# ==============================================================================


class TestGetOrCreateProgress:
    @pytest.mark.asyncio
    async def test_creates_once(
        self, progress_service, progress_repo, student, sample
    ) -> None:
        first = await progress_service.get_or_create_progress(
            student.user_id, sample.id
        )
        second = await progress_service.get_or_create_progress(
            student.user_id, sample.id
        )

        assert first.version == 1
        assert second.version == 1
        assert progress_repo.saves == 1

    @pytest.mark.asyncio
    async def test_lost_creation_race_returns_winner(
        self, progress_service, progress_repo, student, sample
    ) -> None:
        winner = CourseProgress(
            user_id=student.user_id, course_id=sample.id, version=3
        )
        reads = iter([None, winner])

        async def get(user_id, course_id):
            return next(reads)

        progress_repo.get = get
        progress_repo.conflicts = 1

        result = await progress_service.get_or_create_progress(
            student.user_id, sample.id
        )

        assert result is winner


class TestMutate:
    @pytest.mark.asyncio
    async def test_retries_after_conflict(
        self, progress_service, progress_repo, student, sample
    ) -> None:
        progress_repo.conflicts = 2
        calls = []

        def apply(progress):
            calls.append(progress.version)
            progress.lesson(sample.lesson1.id).completed = True
            return "ok"

        progress, result = await progress_service.mutate(
            student.user_id, sample.id, apply
        )

        assert result == "ok"
        assert len(calls) == 3
        assert progress.version == 1
        assert progress.is_lesson_completed(sample.lesson1.id)

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise(
        self, catalog, progress_repo, clock, student, sample
    ) -> None:
        service = ProgressService(
            progress_repo,
            catalog,
            Settings(progress_max_write_retries=2),
            clock=clock,
        )
        progress_repo.conflicts = 5

        with pytest.raises(ProgressConflictError) as exc_info:
            await service.mutate(student.user_id, sample.id, lambda p: None)

        assert exc_info.value.retryable is True
        assert progress_repo.rows == {}

    @pytest.mark.asyncio
    async def test_raising_fn_writes_nothing(
        self, progress_service, progress_repo, student, sample
    ) -> None:
        def apply(progress):
            progress.course_completed = True
            raise AccessDeniedError("nope")

        with pytest.raises(AccessDeniedError):
            await progress_service.mutate(student.user_id, sample.id, apply)

        assert progress_repo.saves == 0


# ==============================================================================
# Lessons
# ==============================================================================


class TestCompleteLesson:
    @pytest.mark.asyncio
    async def test_first_lesson_completes(
        self, progress_service, student, sample, clock
    ) -> None:
        response = await progress_service.complete_lesson(student, sample.lesson1.id)

        assert response.completed is True
        assert response.completed_at == clock.now
        assert (response.current_chapter, response.current_lesson) == (1, 2)
        assert response.next_action.lesson_id == sample.lesson2.id

    @pytest.mark.asyncio
    async def test_completion_is_idempotent(
        self, progress_service, student, sample, clock
    ) -> None:
        await progress_service.complete_lesson(student, sample.lesson1.id)
        first_at = clock.now
        clock.advance(hours=1)

        response = await progress_service.complete_lesson(student, sample.lesson1.id)

        assert response.completed_at == first_at

    @pytest.mark.asyncio
    async def test_next_lesson_locked(self, progress_service, student, sample) -> None:
        with pytest.raises(AccessDeniedError) as exc_info:
            await progress_service.complete_lesson(student, sample.lesson3.id)

        assert exc_info.value.reason == "Complete Lesson 2 of Chapter 1 first"

    @pytest.mark.asyncio
    async def test_quiz_lesson_requires_quiz(
        self, progress_service, student, sample
    ) -> None:
        await progress_service.complete_lesson(student, sample.lesson1.id)

        with pytest.raises(AccessDeniedError):
            await progress_service.complete_lesson(student, sample.lesson2.id)

    @pytest.mark.asyncio
    async def test_bypass_role_completes_anything(
        self, progress_service, admin, sample
    ) -> None:
        response = await progress_service.complete_lesson(admin, sample.lesson2.id)
        assert response.completed is True

    @pytest.mark.asyncio
    async def test_unknown_lesson(self, progress_service, student) -> None:
        with pytest.raises(NotFoundError):
            await progress_service.complete_lesson(student, uuid4())


class TestSubmitLessonQuiz:
    @pytest.mark.asyncio
    async def test_pass_completes_lesson(
        self, progress_service, student, sample
    ) -> None:
        await complete_chapter1_lessons(progress_service, student, sample)
        progress = await progress_service.get_progress(student.user_id, sample.id)

        state = progress.lessons[sample.lesson2.id]
        assert state.completed is True
        assert state.best_score == 100
        assert state.attempts == 1

    @pytest.mark.asyncio
    async def test_failure_allows_immediate_retry(
        self, progress_service, student, sample
    ) -> None:
        await progress_service.complete_lesson(student, sample.lesson1.id)

        failed = await progress_service.submit_lesson_quiz(
            student, sample.lesson2.id, answers_with_correct(sample.quiz_questions, 1)
        )
        passed = await progress_service.submit_lesson_quiz(
            student, sample.lesson2.id, correct_answers(sample.quiz_questions)
        )

        assert failed.score == 50
        assert failed.passed is False
        assert failed.lesson_completed is False
        assert failed.cooldown_until is None
        assert passed.lesson_completed is True
        assert passed.attempts == 2
        assert passed.next_action.type is NextActionType.CHAPTER_TEST

    @pytest.mark.asyncio
    async def test_limited_retries_apply_cooldown(
        self, catalog, progress_repo, clock, student, sample
    ) -> None:
        service = ProgressService(
            progress_repo,
            catalog,
            Settings(unlimited_quiz_retries=False, quiz_cooldown_hours=1),
            clock=clock,
        )
        await service.complete_lesson(student, sample.lesson1.id)
        failed = await service.submit_lesson_quiz(
            student, sample.lesson2.id, answers_with_correct(sample.quiz_questions, 0)
        )

        assert failed.cooldown_until == clock.now + timedelta(hours=1)
        with pytest.raises(CooldownActiveError):
            await service.submit_lesson_quiz(
                student, sample.lesson2.id, correct_answers(sample.quiz_questions)
            )

    @pytest.mark.asyncio
    async def test_best_score_survives_worse_retake(
        self, progress_service, student, sample
    ) -> None:
        await complete_chapter1_lessons(progress_service, student, sample)

        retake = await progress_service.submit_lesson_quiz(
            student, sample.lesson2.id, answers_with_correct(sample.quiz_questions, 0)
        )

        assert retake.score == 0
        assert retake.best_score == 100
        assert retake.lesson_completed is True

    @pytest.mark.asyncio
    async def test_invalid_payload_consumes_nothing(
        self, progress_service, progress_repo, student, sample
    ) -> None:
        await progress_service.complete_lesson(student, sample.lesson1.id)
        saves = progress_repo.saves

        with pytest.raises(AnswerValidationError):
            await progress_service.submit_lesson_quiz(
                student, sample.lesson2.id, [SubmittedAnswer(uuid4(), "bravo")]
            )

        assert progress_repo.saves == saves

    @pytest.mark.asyncio
    async def test_locked_lesson_quiz(
        self, progress_service, student, sample
    ) -> None:
        with pytest.raises(AccessDeniedError):
            await progress_service.submit_lesson_quiz(
                student, sample.lesson2.id, correct_answers(sample.quiz_questions)
            )

    @pytest.mark.asyncio
    async def test_lesson_without_quiz(
        self, progress_service, student, sample
    ) -> None:
        with pytest.raises(NotFoundError):
            await progress_service.submit_lesson_quiz(student, sample.lesson1.id, [])


# ==============================================================================
# Assessment outcomes
# ==============================================================================


class TestRecordAttempts:
    @pytest.mark.asyncio
    async def test_chapter_pass_is_permanent(
        self, progress_service, catalog, student, sample, clock
    ) -> None:
        outline = catalog.outline(sample.id)
        await progress_service.record_chapter_attempt(
            student.user_id, outline, sample.chapter1.id, 80, True, clock.now
        )

        record = await progress_service.record_chapter_attempt(
            student.user_id, outline, sample.chapter1.id, 20, False, clock.now
        )
        state = record.state

        assert state.test_passed is True
        assert state.test_score == 80
        assert state.attempts == 2
        assert state.cooldown_until is None

    @pytest.mark.asyncio
    async def test_exam_failure_sets_cooldown(
        self, progress_service, catalog, student, sample, clock
    ) -> None:
        outline = catalog.outline(sample.id)

        record = await progress_service.record_exam_attempt(
            student.user_id, outline, 40, False, clock.now
        )
        exam = record.state

        assert exam.attempt_count == 1
        assert exam.best_score == 40
        assert exam.cooldown_until == clock.now + timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_catalog_cooldown_overrides_default(
        self, progress_service, catalog, student, sample, clock
    ) -> None:
        sample.course.exam_cooldown_hours = 48
        outline = catalog.outline(sample.id)

        record = await progress_service.record_exam_attempt(
            student.user_id, outline, 40, False, clock.now
        )
        exam = record.state

        assert exam.cooldown_until == clock.now + timedelta(hours=48)

    @pytest.mark.asyncio
    async def test_same_session_recorded_once(
        self, progress_service, catalog, student, sample, clock
    ) -> None:
        outline = catalog.outline(sample.id)
        session_id = uuid4()
        first = await progress_service.record_chapter_attempt(
            student.user_id,
            outline,
            sample.chapter1.id,
            25,
            False,
            clock.now,
            session_id=session_id,
        )
        clock.advance(minutes=5)

        again = await progress_service.record_chapter_attempt(
            student.user_id,
            outline,
            sample.chapter1.id,
            100,
            True,
            clock.now,
            session_id=session_id,
        )

        assert first.created is True
        assert again.created is False
        assert again.attempt == first.attempt
        assert again.state.attempts == 1
        assert again.state.test_passed is False
        assert again.state.history == [first.attempt]

    @pytest.mark.asyncio
    async def test_exam_session_recorded_once(
        self, progress_service, catalog, student, sample, clock
    ) -> None:
        outline = catalog.outline(sample.id)
        session_id = uuid4()
        for _ in range(2):
            record = await progress_service.record_exam_attempt(
                student.user_id, outline, 40, False, clock.now, session_id=session_id
            )

        assert record.created is False
        assert record.state.attempt_count == 1
        assert record.progress.final_exam.find_attempt(session_id) is not None


# ==============================================================================
# Views
# ==============================================================================


class TestViews:
    @pytest.mark.asyncio
    async def test_course_progress_summary(
        self, progress_service, student, sample
    ) -> None:
        await complete_chapter1_lessons(progress_service, student, sample)

        summary = await progress_service.get_course_progress(student, sample.id)

        assert summary.lessons_completed == 2
        assert summary.lessons_total == 3
        assert summary.progress_percent == 67
        assert summary.chapters_passed == 0
        assert summary.chapters_total == 2
        assert summary.course_completed is False

    @pytest.mark.asyncio
    async def test_detailed_progress_reports_locks(
        self, progress_service, student, sample
    ) -> None:
        detail = await progress_service.get_detailed_progress(student, sample.id)

        chapter1, chapter2 = detail.chapters
        assert chapter1.lessons[0].accessible is True
        assert chapter1.lessons[1].accessible is False
        assert chapter1.lessons[1].locked_reason == (
            "Complete Lesson 1 of Chapter 1 first"
        )
        assert chapter1.test_accessible is False
        assert chapter2.has_test is False
        assert detail.final_exam.accessible is False
        assert detail.next_action.lesson_id == sample.lesson1.id

    @pytest.mark.asyncio
    async def test_detailed_progress_ready_for_exam(
        self, progress_service, assessment_service, student, sample
    ) -> None:
        await ready_for_exam(assessment_service, progress_service, student, sample)

        detail = await progress_service.get_detailed_progress(student, sample.id)

        assert detail.chapters_passed == 2
        assert detail.chapters[0].test_passed is True
        assert detail.final_exam.accessible is True
        assert detail.next_action.type is NextActionType.FINAL_EXAM

    @pytest.mark.asyncio
    async def test_list_my_progress(
        self, progress_service, assessment_service, student, sample
    ) -> None:
        await pass_chapter1(assessment_service, progress_service, student, sample)

        listing = await progress_service.list_my_progress(student.user_id)

        assert listing.total == 1
        assert listing.items[0].course_title == "Medical Interpreter Certification"
        assert listing.items[0].chapters_passed == 1
