"""Learner progress service layer.

Business logic for:
- Lazy creation of the per-(user, course) progress record
- Serialized read-modify-write of progress (optimistic version check)
- Lesson completion and lesson quiz submission
- Recording chapter test and final exam attempts
- Compact and detailed progress views with the next recommended action
"""

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TypeVar
from uuid import UUID

import structlog

from coursegate.access.guard import (
    chapter_gate_passed,
    chapter_has_test,
    chapter_test_access,
    completed_lesson_count,
    final_exam_access,
    lesson_access,
)
from coursegate.assessments.cooldown import CooldownPolicy
from coursegate.assessments.models import AssessmentKind
from coursegate.assessments.schemas import GradeResponse
from coursegate.assessments.scoring import SubmittedAnswer, grade, validate_answers
from coursegate.auth.schemas import Identity
from coursegate.catalog.models import CourseOutline
from coursegate.catalog.service import CatalogReader
from coursegate.certificates.schemas import CertificateResponse
from coursegate.config.settings import Settings
from coursegate.core.exceptions import (
    AccessDeniedError,
    NotFoundError,
    ProgressConflictError,
)
from coursegate.progress.models import (
    AssessmentAttempt,
    AttemptRecord,
    ChapterState,
    CourseProgress,
    FinalExamState,
    LessonState,
)
from coursegate.progress.planner import plan_next_action, refresh_position
from coursegate.progress.repository import ProgressRepository
from coursegate.progress.schemas import (
    ChapterProgressDetail,
    CourseProgressListResponse,
    CourseProgressResponse,
    DetailedProgressResponse,
    FinalExamAttemptDetail,
    FinalExamDetail,
    LessonCompletionResponse,
    LessonProgressDetail,
    NextActionResponse,
    QuizResultResponse,
)
from coursegate.utils.timeutils import Clock, utcnow


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ProgressService:
    """Service for learner progress.

    All writes go through ``mutate``, which re-reads and re-applies the
    change when a concurrent writer bumped the row version first.
    """

    def __init__(
        self,
        repository: ProgressRepository,
        catalog: CatalogReader,
        settings: Settings,
        cooldown: CooldownPolicy | None = None,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.catalog = catalog
        self.settings = settings
        self.cooldown = cooldown or CooldownPolicy(settings)
        self.clock = clock

    # ==========================================================================
    # Record Access
    # ==========================================================================

    async def get_progress(
        self, user_id: UUID, course_id: UUID
    ) -> CourseProgress | None:
        return await self.repository.get(user_id, course_id)

    async def get_or_create_progress(
        self, user_id: UUID, course_id: UUID
    ) -> CourseProgress:
        """Progress for (user, course), created on first interaction."""
        existing = await self.repository.get(user_id, course_id)
        if existing is not None:
            return existing

        progress = CourseProgress(
            user_id=user_id, course_id=course_id, created_at=self.clock()
        )
        if await self.repository.save(progress):
            logger.info(
                "progress_created", user_id=str(user_id), course_id=str(course_id)
            )
            return progress

        # Another request created it first
        winner = await self.repository.get(user_id, course_id)
        if winner is None:
            raise ProgressConflictError
        return winner

    async def mutate(
        self,
        user_id: UUID,
        course_id: UUID,
        fn: Callable[[CourseProgress], T],
        outline: CourseOutline | None = None,
    ) -> tuple[CourseProgress, T]:
        """Apply ``fn`` to the current progress and persist it atomically.

        ``fn`` mutates the record in place and may raise to abort without
        writing. It can run more than once, so it must not have side effects
        outside the record.

        Raises:
            ProgressConflictError: If every retry lost to a concurrent writer
        """
        attempts = self.settings.progress_max_write_retries
        for attempt in range(1, attempts + 1):
            progress = await self.repository.get(user_id, course_id)
            if progress is None:
                progress = CourseProgress(
                    user_id=user_id, course_id=course_id, created_at=self.clock()
                )

            result = fn(progress)
            if outline is not None:
                refresh_position(outline, progress)
            progress.updated_at = self.clock()

            if await self.repository.save(progress):
                return progress, result

            logger.info(
                "progress_write_conflict",
                user_id=str(user_id),
                course_id=str(course_id),
                attempt=attempt,
            )

        logger.warning(
            "progress_write_retries_exhausted",
            user_id=str(user_id),
            course_id=str(course_id),
            attempts=attempts,
        )
        raise ProgressConflictError

    # ==========================================================================
    # Lesson Operations
    # ==========================================================================

    async def complete_lesson(
        self, identity: Identity, lesson_id: UUID
    ) -> LessonCompletionResponse:
        """Mark a lesson without a quiz as completed.

        Lessons with a quiz are completed by passing the quiz; only bypass
        roles may complete them directly.

        Raises:
            NotFoundError: If the lesson does not exist
            AccessDeniedError: If the previous lesson is not completed, or
                the lesson requires passing its quiz
        """
        outline, lesson = await self.catalog.outline_for_lesson(lesson_id)
        if lesson.has_quiz and not identity.is_bypass:
            raise AccessDeniedError("Pass the lesson quiz to complete this lesson")

        now = self.clock()

        def apply(progress: CourseProgress) -> LessonState:
            lesson_access(outline, progress, lesson_id, identity.role).raise_if_denied()
            state = progress.lesson(lesson_id)
            if not state.completed:
                state.completed = True
                state.completed_at = now
            return state

        progress, state = await self.mutate(
            identity.user_id, outline.course_id, apply, outline
        )
        logger.info(
            "lesson_completed",
            user_id=str(identity.user_id),
            lesson_id=str(lesson_id),
        )
        return LessonCompletionResponse(
            lesson_id=lesson_id,
            completed=state.completed,
            completed_at=state.completed_at,
            current_chapter=progress.current_chapter,
            current_lesson=progress.current_lesson,
            next_action=NextActionResponse.from_action(
                plan_next_action(outline, progress)
            ),
        )

    async def submit_lesson_quiz(
        self,
        identity: Identity,
        lesson_id: UUID,
        answers: Sequence[SubmittedAnswer],
    ) -> QuizResultResponse:
        """Grade a lesson quiz and record the attempt.

        Raises:
            NotFoundError: If the lesson does not exist or has no quiz
            AnswerValidationError: If the payload is malformed (no attempt
                is consumed)
            AccessDeniedError: If the lesson is still locked
            CooldownActiveError: If quiz retries are limited and the
                cooldown has not elapsed
        """
        outline, lesson = await self.catalog.outline_for_lesson(lesson_id)
        if not lesson.has_quiz:
            raise NotFoundError("This lesson has no quiz")
        questions = await self.catalog.get_questions(lesson.quiz_question_ids)
        if not questions:
            raise NotFoundError("Quiz questions not found")

        validate_answers(questions, answers)
        result = grade(
            questions, answers, self.cooldown.passing_score(AssessmentKind.QUIZ, lesson)
        )
        now = self.clock()

        def apply(progress: CourseProgress) -> LessonState:
            lesson_access(outline, progress, lesson_id, identity.role).raise_if_denied()
            state = progress.lesson(lesson_id)
            if not identity.is_bypass:
                self.cooldown.check(state, AssessmentKind.QUIZ, now)

            state.attempts += 1
            state.last_attempted_at = now
            state.best_score = max(state.best_score, result.score)
            if result.passed:
                if not state.completed:
                    state.completed = True
                    state.completed_at = now
                state.cooldown_until = None
            elif not state.completed:
                state.cooldown_until = self.cooldown.cooldown_after_failure(
                    AssessmentKind.QUIZ, lesson, now
                )
            return state

        progress, state = await self.mutate(
            identity.user_id, outline.course_id, apply, outline
        )
        logger.info(
            "lesson_quiz_submitted",
            user_id=str(identity.user_id),
            lesson_id=str(lesson_id),
            score=result.score,
            passed=result.passed,
        )
        return QuizResultResponse(
            **GradeResponse.grade_fields(result),
            lesson_id=lesson_id,
            lesson_completed=state.completed,
            best_score=state.best_score,
            attempts=state.attempts,
            cooldown_until=state.cooldown_until,
            next_action=NextActionResponse.from_action(
                plan_next_action(outline, progress)
            ),
        )

    # ==========================================================================
    # Assessment Outcomes
    # ==========================================================================

    async def record_chapter_attempt(
        self,
        user_id: UUID,
        outline: CourseOutline,
        chapter_id: UUID,
        score: int,
        passed: bool,
        attempted_at: datetime,
        session_id: UUID | None = None,
    ) -> AttemptRecord:
        """Record one scored chapter test attempt.

        A pass sets test_passed for good and keeps the best passing score;
        a failure before the chapter was ever passed starts the cooldown.
        An attempt already recorded for ``session_id`` is returned as is.
        """
        chapter_outline = outline.find_chapter(chapter_id)
        if chapter_outline is None:
            raise NotFoundError("Chapter not found")
        chapter = chapter_outline.chapter

        def apply(
            progress: CourseProgress,
        ) -> tuple[ChapterState, AssessmentAttempt, bool]:
            state = progress.chapter(chapter_id)
            if session_id is not None:
                existing = state.find_attempt(session_id)
                if existing is not None:
                    return state, existing, False

            attempt = AssessmentAttempt(score, passed, attempted_at, session_id)
            state.history.append(attempt)
            state.attempts += 1
            state.test_attempted_at = attempted_at
            if passed:
                state.test_passed = True
                state.test_score = max(state.test_score, score)
                state.cooldown_until = None
            elif not state.test_passed:
                state.cooldown_until = self.cooldown.cooldown_after_failure(
                    AssessmentKind.CHAPTER_TEST, chapter, attempted_at
                )
            return state, attempt, True

        progress, (state, attempt, created) = await self.mutate(
            user_id, outline.course_id, apply, outline
        )
        return AttemptRecord(progress, state, attempt, created)

    async def record_exam_attempt(
        self,
        user_id: UUID,
        outline: CourseOutline,
        score: int,
        passed: bool,
        attempted_at: datetime,
        session_id: UUID | None = None,
    ) -> AttemptRecord:
        """Record one scored final exam attempt, once per ``session_id``."""
        course = outline.course

        def apply(
            progress: CourseProgress,
        ) -> tuple[FinalExamState, AssessmentAttempt, bool]:
            state = progress.final_exam
            if session_id is not None:
                existing = state.find_attempt(session_id)
                if existing is not None:
                    return state, existing, False

            attempt = AssessmentAttempt(score, passed, attempted_at, session_id)
            state.attempts.append(attempt)
            state.best_score = max(state.best_score, score)
            if passed:
                state.passed = True
                state.cooldown_until = None
            elif not state.passed:
                state.cooldown_until = self.cooldown.cooldown_after_failure(
                    AssessmentKind.FINAL_EXAM, course, attempted_at
                )
            return state, attempt, True

        progress, (state, attempt, created) = await self.mutate(
            user_id, outline.course_id, apply, outline
        )
        return AttemptRecord(progress, state, attempt, created)

    # ==========================================================================
    # Views
    # ==========================================================================

    async def get_course_progress(
        self, identity: Identity, course_id: UUID
    ) -> CourseProgressResponse:
        outline = await self.catalog.get_course_outline(course_id)
        progress = await self.get_or_create_progress(identity.user_id, course_id)
        return CourseProgressResponse(**self._summary_fields(outline, progress))

    async def get_detailed_progress(
        self, identity: Identity, course_id: UUID
    ) -> DetailedProgressResponse:
        """Per-chapter and per-lesson progress plus the next action."""
        outline = await self.catalog.get_course_outline(course_id)
        progress = await self.get_or_create_progress(identity.user_id, course_id)
        return self.build_detailed_view(outline, progress, identity)

    async def list_my_progress(self, user_id: UUID) -> CourseProgressListResponse:
        """Summary of every course the user has progress in."""
        items = []
        for progress in await self.repository.list_for_user(user_id):
            try:
                outline = await self.catalog.get_course_outline(progress.course_id)
            except NotFoundError:
                logger.warning(
                    "progress_course_missing",
                    user_id=str(user_id),
                    course_id=str(progress.course_id),
                )
                continue
            items.append(
                CourseProgressResponse(**self._summary_fields(outline, progress))
            )
        return CourseProgressListResponse(items=items, total=len(items))

    def build_detailed_view(
        self,
        outline: CourseOutline,
        progress: CourseProgress,
        identity: Identity,
    ) -> DetailedProgressResponse:
        chapters = []
        for chapter in outline.chapters:
            lessons = []
            for lesson in chapter.lessons:
                state = progress.lessons.get(lesson.id) or LessonState()
                decision = lesson_access(outline, progress, lesson.id, identity.role)
                lessons.append(
                    LessonProgressDetail(
                        lesson_id=lesson.id,
                        lesson_number=lesson.lesson_number,
                        title=lesson.title,
                        content_type=lesson.content_type,
                        has_quiz=lesson.has_quiz,
                        completed=state.completed,
                        best_score=state.best_score,
                        attempts=state.attempts,
                        completed_at=state.completed_at,
                        cooldown_until=state.cooldown_until,
                        accessible=decision.allowed,
                        locked_reason=decision.reason,
                    )
                )

            chapter_state = progress.chapters.get(chapter.id) or ChapterState()
            test_decision = chapter_test_access(
                outline, progress, chapter.id, identity.role
            )
            chapters.append(
                ChapterProgressDetail(
                    chapter_id=chapter.id,
                    chapter_number=chapter.chapter_number,
                    title=chapter.chapter.title,
                    lessons_completed=completed_lesson_count(chapter, progress),
                    lessons_total=len(chapter.lessons),
                    has_test=chapter_has_test(chapter),
                    test_passed=chapter_state.test_passed,
                    test_score=chapter_state.test_score,
                    attempts=chapter_state.attempts,
                    test_attempted_at=chapter_state.test_attempted_at,
                    cooldown_until=chapter_state.cooldown_until,
                    test_accessible=test_decision.allowed,
                    test_locked_reason=test_decision.reason,
                    lessons=lessons,
                )
            )

        exam = progress.final_exam
        exam_decision = final_exam_access(outline, progress, identity.role)
        return DetailedProgressResponse(
            **self._summary_fields(outline, progress),
            chapters=chapters,
            final_exam=FinalExamDetail(
                attempts=[
                    FinalExamAttemptDetail(
                        score=a.score, passed=a.passed, attempted_at=a.attempted_at
                    )
                    for a in exam.attempts
                ],
                best_score=exam.best_score,
                passed=exam.passed,
                cooldown_until=exam.cooldown_until,
                accessible=exam_decision.allowed,
                locked_reason=exam_decision.reason,
            ),
            certificates=[
                CertificateResponse.from_record(r) for r in progress.certificates
            ],
            next_action=NextActionResponse.from_action(
                plan_next_action(outline, progress)
            ),
        )

    @staticmethod
    def _summary_fields(outline: CourseOutline, progress: CourseProgress) -> dict:
        lessons = outline.all_lessons()
        completed = sum(
            1 for lesson in lessons if progress.is_lesson_completed(lesson.id)
        )
        chapters_passed = sum(
            1 for chapter in outline.chapters if chapter_gate_passed(chapter, progress)
        )
        return {
            "course_id": outline.course_id,
            "course_title": outline.course.title,
            "current_chapter": progress.current_chapter,
            "current_lesson": progress.current_lesson,
            "lessons_completed": completed,
            "lessons_total": len(lessons),
            "chapters_passed": chapters_passed,
            "chapters_total": len(outline.chapters),
            "progress_percent": round(completed * 100 / len(lessons)) if lessons else 0,
            "final_exam_passed": progress.final_exam.passed,
            "course_completed": progress.course_completed,
            "certificate_issued": progress.certificate_issued,
            "completed_at": progress.completed_at,
            "updated_at": progress.updated_at,
        }
