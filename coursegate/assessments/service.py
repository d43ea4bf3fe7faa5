"""Assessment session manager.

Business logic for:
- Starting a timed chapter test or final exam session (guard, cooldown,
  single Active session per user and target)
- Submitting, abandoning and inspecting sessions
- Lazy expiry: an Active session touched after its deadline becomes Expired
  and counts as a failed attempt with score 0
- One-shot final exam submission (start and submit in one call)
- Certificate issuance after a passed final exam
"""

import random
import secrets
from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

import structlog

from coursegate.access.guard import (
    chapter_has_test,
    chapter_test_access,
    final_exam_access,
)
from coursegate.assessments.cooldown import CooldownPolicy
from coursegate.assessments.models import (
    AssessmentKind,
    AssessmentSession,
    AssessmentTarget,
    SessionStatus,
)
from coursegate.assessments.repository import AssessmentRepository
from coursegate.assessments.schemas import (
    AbandonResponse,
    ChapterTestResultResponse,
    ExamResultResponse,
    GradeResponse,
    SessionResponse,
    SessionStartResponse,
)
from coursegate.assessments.scoring import (
    GradeResult,
    SubmittedAnswer,
    grade,
    validate_answers,
)
from coursegate.auth.schemas import Identity
from coursegate.catalog.models import CourseOutline, Question
from coursegate.catalog.service import CatalogReader
from coursegate.certificates.schemas import CertificateResponse
from coursegate.certificates.service import CertificateService
from coursegate.config.settings import Settings
from coursegate.core.exceptions import (
    InvalidSessionError,
    NotFoundError,
    SessionConflictError,
)
from coursegate.progress.models import (
    AssessmentAttempt,
    AttemptRecord,
    CourseProgress,
)
from coursegate.progress.service import ProgressService
from coursegate.utils.timeutils import Clock, utcnow


logger = structlog.get_logger(__name__)


class AssessmentService:
    """Service for chapter test and final exam sessions."""

    def __init__(
        self,
        repository: AssessmentRepository,
        catalog: CatalogReader,
        progress_service: ProgressService,
        certificate_service: CertificateService,
        settings: Settings,
        cooldown: CooldownPolicy | None = None,
        clock: Clock = utcnow,
        rng: random.Random | None = None,
    ):
        self.repository = repository
        self.catalog = catalog
        self.progress_service = progress_service
        self.certificate_service = certificate_service
        self.settings = settings
        self.cooldown = cooldown or CooldownPolicy(settings)
        self.clock = clock
        self.rng = rng or secrets.SystemRandom()

    # ==========================================================================
    # Start
    # ==========================================================================

    async def start_chapter_test(
        self, identity: Identity, chapter_id: UUID
    ) -> SessionStartResponse:
        """Start a timed chapter test session.

        Raises:
            NotFoundError: If the chapter does not exist or has no test
            AccessDeniedError: If a lesson of the chapter is not completed
            AlreadyPassedError: If the chapter test was already passed
            CooldownActiveError: If the last failure is still cooling down
            SessionConflictError: If a session for this test is in progress
        """
        outline, chapter = await self.catalog.outline_for_chapter(chapter_id)
        if not chapter_has_test(chapter):
            raise NotFoundError("This chapter has no test")
        target = AssessmentTarget.chapter_test(outline.course_id, chapter_id)
        session = await self._start(identity, target, outline)
        return SessionStartResponse.from_session(session)

    async def start_final_exam(
        self, identity: Identity, course_id: UUID
    ) -> SessionStartResponse:
        """Start a timed final exam session."""
        outline = await self.catalog.get_course_outline(course_id)
        if not outline.course.exam_question_ids:
            raise NotFoundError("This course has no final exam")
        session = await self._start(
            identity, AssessmentTarget.final_exam(course_id), outline
        )
        return SessionStartResponse.from_session(session)

    async def _start(
        self,
        identity: Identity,
        target: AssessmentTarget,
        outline: CourseOutline,
    ) -> AssessmentSession:
        questions, passing_score = await self._resolve_questions(target, outline)

        holder_id: UUID | None = None
        for _ in range(2):
            now = self.clock()
            progress = await self.progress_service.get_or_create_progress(
                identity.user_id, outline.course_id
            )
            self._check_gates(identity, target, outline, progress, now)

            # The session row exists before the slot can point at it
            session = self._new_session(identity, target, questions, passing_score)
            await self.repository.insert_session(session)
            claimed, holder_id = await self.repository.claim_active_slot(session)
            if claimed:
                logger.info(
                    "assessment_started",
                    session_id=str(session.id),
                    user_id=str(identity.user_id),
                    target=target.key,
                    questions=session.question_count,
                    expires_at=session.expires_at.isoformat(),
                )
                return session
            await self.repository.transition(
                session, SessionStatus.ABANDONED, ended_at=now
            )

            holder = (
                await self.repository.get_session(holder_id) if holder_id else None
            )
            if holder is not None:
                holder = await self._touch(holder)
                if holder.status is SessionStatus.ACTIVE:
                    raise SessionConflictError(holder.id, holder.expires_at)

            # The slot points at a closed or vanished session
            if holder_id is not None:
                await self.repository.release_active_slot(
                    identity.user_id, target, holder_id
                )

        raise SessionConflictError(holder_id)

    async def _resolve_questions(
        self, target: AssessmentTarget, outline: CourseOutline
    ) -> tuple[list[Question], int]:
        if target.kind is AssessmentKind.CHAPTER_TEST:
            chapter = outline.find_chapter(target.chapter_id)
            if chapter is None:
                raise NotFoundError("Chapter not found")
            item = chapter.chapter
            question_ids = item.question_ids
        else:
            item = outline.course
            question_ids = item.exam_question_ids

        questions = await self.catalog.get_questions(question_ids)
        if not questions:
            raise NotFoundError("Assessment questions not found")
        return questions, self.cooldown.passing_score(target.kind, item)

    def _check_gates(
        self,
        identity: Identity,
        target: AssessmentTarget,
        outline: CourseOutline,
        progress: CourseProgress,
        now: datetime,
    ) -> None:
        if target.kind is AssessmentKind.CHAPTER_TEST:
            decision = chapter_test_access(
                outline, progress, target.chapter_id, identity.role
            )
            entry = progress.chapters.get(target.chapter_id)
        else:
            decision = final_exam_access(outline, progress, identity.role)
            entry = progress.final_exam
        decision.raise_if_denied()

        if not identity.is_bypass:
            self.cooldown.check(entry, target.kind, now)

    def _new_session(
        self,
        identity: Identity,
        target: AssessmentTarget,
        questions: list[Question],
        passing_score: int,
    ) -> AssessmentSession:
        started_at = self.clock()
        return AssessmentSession(
            user_id=identity.user_id,
            target=target,
            questions=questions,
            passing_score=passing_score,
            started_at=started_at,
            expires_at=started_at + self.cooldown.session_duration(len(questions)),
            option_order={
                q.id: self.rng.sample(q.options, len(q.options)) for q in questions
            },
        )

    # ==========================================================================
    # Closing
    # ==========================================================================

    async def _expire(self, session: AssessmentSession) -> AssessmentSession:
        """Move an overdue session to Expired and record a failed attempt.

        The attempt is dated at the deadline, so the cooldown runs from
        ``expires_at`` rather than from whenever the expiry was noticed.
        """
        outline = await self.catalog.get_course_outline(session.target.course_id)
        record = await self._record_attempt(
            session, outline, 0, False, session.expires_at
        )
        session = await self._close(session, SessionStatus.EXPIRED, record.attempt)

        logger.info(
            "assessment_expired",
            session_id=str(session.id),
            user_id=str(session.user_id),
            target=session.target.key,
        )
        return session

    async def _close(
        self,
        session: AssessmentSession,
        status: SessionStatus,
        attempt: AssessmentAttempt,
    ) -> AssessmentSession:
        """Move a session whose attempt is on progress to a terminal status.

        Progress is always written before the session leaves Active, so a
        failure in between leaves an Active session with a recorded attempt
        that the next touch closes here.
        """
        applied = await self.repository.transition(
            session,
            status,
            ended_at=attempt.attempted_at,
            score=attempt.score,
            passed=attempt.passed,
        )
        if not applied:
            return await self.repository.get_session(session.id) or session
        await self.repository.release_active_slot(
            session.user_id, session.target, session.id
        )
        return session

    async def _touch(self, session: AssessmentSession) -> AssessmentSession:
        if session.status is not SessionStatus.ACTIVE:
            return session
        recorded = await self._recorded_attempt(session)
        if recorded is not None:
            return await self._close(session, SessionStatus.SUBMITTED, recorded)
        if session.is_expired(self.clock()):
            return await self._expire(session)
        return session

    # ==========================================================================
    # Submit
    # ==========================================================================

    async def submit_chapter_test(
        self,
        identity: Identity,
        chapter_id: UUID,
        session_id: UUID,
        answers: Sequence[SubmittedAnswer],
    ) -> ChapterTestResultResponse:
        """Grade a chapter test session and record the attempt.

        Raises:
            InvalidSessionError: Unknown, foreign, expired or finished session
            AnswerValidationError: Malformed answers (the session stays
                Active and no attempt is consumed)
        """
        session = await self._load_active(identity, session_id, chapter_id=chapter_id)
        outline = await self.catalog.get_course_outline(session.target.course_id)
        result, record = await self._grade_and_record(session, outline, answers)

        state = record.state
        return ChapterTestResultResponse(
            **GradeResponse.grade_fields(result),
            session_id=session.id,
            chapter_id=chapter_id,
            test_passed=state.test_passed,
            best_score=state.test_score,
            attempts=state.attempts,
            cooldown_until=state.cooldown_until,
        )

    async def submit_final_exam(
        self,
        identity: Identity,
        course_id: UUID,
        answers: Sequence[SubmittedAnswer],
        session_id: UUID | None = None,
    ) -> ExamResultResponse:
        """Grade the final exam and issue certificates on a pass.

        Without ``session_id`` the exam is started and submitted in one
        call, behind the same gates as ``start_final_exam``.
        """
        outline = await self.catalog.get_course_outline(course_id)

        if session_id is None:
            if not outline.course.exam_question_ids:
                raise NotFoundError("This course has no final exam")
            target = AssessmentTarget.final_exam(course_id)
            questions, _ = await self._resolve_questions(target, outline)
            validate_answers(questions, answers)
            session = await self._start(identity, target, outline)
        else:
            session = await self._load_active(identity, session_id, course_id=course_id)

        result, record = await self._grade_and_record(session, outline, answers)
        progress, exam = record.progress, record.state

        certificates = list(progress.certificates)
        if exam.passed and not progress.certificate_issued:
            certificates = await self.certificate_service.issue(
                identity.user_id,
                course_id,
                result.score if result.passed else exam.best_score,
                outline.course.title,
            )

        return ExamResultResponse(
            **GradeResponse.grade_fields(result),
            session_id=session.id,
            course_id=course_id,
            best_score=exam.best_score,
            attempts=exam.attempt_count,
            cooldown_until=exam.cooldown_until,
            course_completed=progress.course_completed or bool(certificates),
            certificate_issued=bool(certificates),
            certificates=(
                [CertificateResponse.from_record(r) for r in certificates]
                if certificates
                else None
            ),
        )

    async def _grade_and_record(
        self,
        session: AssessmentSession,
        outline: CourseOutline,
        answers: Sequence[SubmittedAnswer],
    ) -> tuple[GradeResult, AttemptRecord]:
        """Grade, record the attempt on progress, then close the session.

        Raises:
            InvalidSessionError: If a concurrent submit recorded first
        """
        validate_answers(session.questions, answers)
        result = grade(session.questions, answers, session.passing_score)

        record = await self._record_attempt(
            session, outline, result.score, result.passed, self.clock()
        )
        if not record.created:
            await self._close(session, SessionStatus.SUBMITTED, record.attempt)
            raise InvalidSessionError(
                "Assessment session was already submitted",
                {"session_id": str(session.id)},
            )
        await self._close(session, SessionStatus.SUBMITTED, record.attempt)

        logger.info(
            "assessment_submitted",
            session_id=str(session.id),
            user_id=str(session.user_id),
            target=session.target.key,
            score=result.score,
            passed=result.passed,
        )
        return result, record

    # ==========================================================================
    # Abandon and inspect
    # ==========================================================================

    async def abandon(
        self,
        identity: Identity,
        session_id: UUID,
        chapter_id: UUID | None = None,
        course_id: UUID | None = None,
    ) -> AbandonResponse:
        """Give up an Active session and free its slot.

        Abandoning does not count as an attempt unless
        ``abandon_counts_as_attempt`` is enabled.
        """
        session = await self._load_active(
            identity, session_id, chapter_id=chapter_id, course_id=course_id
        )
        now = self.clock()

        if self.settings.abandon_counts_as_attempt:
            outline = await self.catalog.get_course_outline(session.target.course_id)
            record = await self._record_attempt(session, outline, 0, False, now)
            session = await self._close(
                session, SessionStatus.ABANDONED, record.attempt
            )
            if not record.created:
                raise InvalidSessionError(
                    "Assessment session is no longer active",
                    {"session_id": str(session.id)},
                )
        else:
            applied = await self.repository.transition(
                session, SessionStatus.ABANDONED, ended_at=now
            )
            if not applied:
                raise InvalidSessionError(
                    "Assessment session is no longer active",
                    {"session_id": str(session.id)},
                )
            await self.repository.release_active_slot(
                session.user_id, session.target, session.id
            )

        logger.info(
            "assessment_abandoned",
            session_id=str(session.id),
            user_id=str(session.user_id),
            target=session.target.key,
        )
        return AbandonResponse(session_id=session.id, status=session.status)

    async def get_session(
        self, identity: Identity, session_id: UUID
    ) -> SessionResponse:
        session = await self._touch(await self._load_owned(identity, session_id))
        return SessionResponse.from_session(session, self.clock())

    # ==========================================================================
    # Helpers
    # ==========================================================================

    async def _load_owned(
        self, identity: Identity, session_id: UUID
    ) -> AssessmentSession:
        session = await self.repository.get_session(session_id)
        if session is None or session.user_id != identity.user_id:
            raise InvalidSessionError(
                "Assessment session not found", {"session_id": str(session_id)}
            )
        return session

    async def _load_active(
        self,
        identity: Identity,
        session_id: UUID,
        chapter_id: UUID | None = None,
        course_id: UUID | None = None,
    ) -> AssessmentSession:
        """Owned, Active, unexpired session for the given chapter or course.

        Raises:
            InvalidSessionError: Otherwise; an overdue session is expired
                (and its failed attempt recorded) before raising
        """
        session = await self._load_owned(identity, session_id)
        if not _belongs_to(session.target, chapter_id, course_id):
            raise InvalidSessionError(
                "Session does not belong to this assessment",
                {"session_id": str(session_id)},
            )

        session = await self._touch(session)
        if session.status is not SessionStatus.ACTIVE:
            raise InvalidSessionError(
                f"Assessment session is {session.status.value}",
                {"session_id": str(session_id), "status": session.status.value},
            )
        return session

    async def _record_attempt(
        self,
        session: AssessmentSession,
        outline: CourseOutline,
        score: int,
        passed: bool,
        attempted_at: datetime,
    ) -> AttemptRecord:
        if session.target.kind is AssessmentKind.CHAPTER_TEST:
            return await self.progress_service.record_chapter_attempt(
                session.user_id,
                outline,
                session.target.chapter_id,
                score,
                passed,
                attempted_at,
                session_id=session.id,
            )
        return await self.progress_service.record_exam_attempt(
            session.user_id,
            outline,
            score,
            passed,
            attempted_at,
            session_id=session.id,
        )

    async def _recorded_attempt(
        self, session: AssessmentSession
    ) -> AssessmentAttempt | None:
        progress = await self.progress_service.get_progress(
            session.user_id, session.target.course_id
        )
        if progress is None:
            return None
        if session.target.kind is AssessmentKind.CHAPTER_TEST:
            state = progress.chapters.get(session.target.chapter_id)
            return state.find_attempt(session.id) if state else None
        return progress.final_exam.find_attempt(session.id)


def _belongs_to(
    target: AssessmentTarget, chapter_id: UUID | None, course_id: UUID | None
) -> bool:
    if chapter_id is not None and target.chapter_id != chapter_id:
        return False
    if course_id is not None:
        return (
            target.kind is AssessmentKind.FINAL_EXAM and target.course_id == course_id
        )
    return True
