"""Retry and cooldown policy.

Decides whether a new attempt may start now and resolves the per-target
thresholds (catalog value when present, configured default otherwise).

A passed gate cannot be retaken: there is no review mode that would create
a new scored attempt on an already-passed chapter test or final exam.
"""

from datetime import datetime, timedelta
from math import ceil

from coursegate.assessments.models import AssessmentKind
from coursegate.catalog.models import Chapter, Course, Lesson
from coursegate.config.settings import Settings
from coursegate.core.exceptions import AlreadyPassedError, CooldownActiveError
from coursegate.progress.models import ChapterState, FinalExamState, LessonState


GateEntry = LessonState | ChapterState | FinalExamState
GateItem = Lesson | Chapter | Course


def gate_state(entry: GateEntry | None) -> tuple[bool, datetime | None]:
    """(passed, cooldown_until) of a progress entry."""
    if entry is None:
        return False, None
    if isinstance(entry, ChapterState):
        return entry.test_passed, entry.cooldown_until
    if isinstance(entry, FinalExamState):
        return entry.passed, entry.cooldown_until
    return entry.completed, entry.cooldown_until


class CooldownPolicy:
    """Retry rules for quizzes, chapter tests and the final exam."""

    def __init__(self, settings: Settings):
        self.settings = settings

    # --------------------------------------------------------------------------
    # Gate decisions
    # --------------------------------------------------------------------------

    def can_start_now(
        self, entry: GateEntry | None, kind: AssessmentKind, now: datetime
    ) -> bool:
        """True iff a new scored attempt may start at ``now``.

        Boundary: allowed exactly at ``cooldown_until``.
        """
        if kind is AssessmentKind.QUIZ and self.settings.unlimited_quiz_retries:
            return True
        passed, cooldown_until = gate_state(entry)
        if passed:
            return False
        return cooldown_until is None or now >= cooldown_until

    def check(
        self, entry: GateEntry | None, kind: AssessmentKind, now: datetime
    ) -> None:
        """Raise when a new attempt may not start at ``now``.

        Raises:
            AlreadyPassedError: The gate is already passed
            CooldownActiveError: The cooldown has not elapsed
        """
        if self.can_start_now(entry, kind, now):
            return
        passed, cooldown_until = gate_state(entry)
        if passed:
            raise AlreadyPassedError
        remaining = ceil((cooldown_until - now).total_seconds())
        raise CooldownActiveError(retry_at=cooldown_until, remaining_seconds=remaining)

    # --------------------------------------------------------------------------
    # Thresholds
    # --------------------------------------------------------------------------

    def passing_score(self, kind: AssessmentKind, item: GateItem) -> int:
        if kind is AssessmentKind.QUIZ:
            value = item.quiz_passing_score
            default = self.settings.default_quiz_passing_score
        elif kind is AssessmentKind.CHAPTER_TEST:
            value = item.passing_score
            default = self.settings.default_test_passing_score
        else:
            value = item.exam_passing_score
            default = self.settings.default_exam_passing_score
        return default if value is None else value

    def cooldown_hours(self, kind: AssessmentKind, item: GateItem) -> float:
        if kind is AssessmentKind.QUIZ:
            if self.settings.unlimited_quiz_retries:
                return 0
            return self.settings.quiz_cooldown_hours
        if kind is AssessmentKind.CHAPTER_TEST:
            value = item.cooldown_hours
            default = self.settings.default_test_cooldown_hours
        else:
            value = item.exam_cooldown_hours
            default = self.settings.default_exam_cooldown_hours
        return default if value is None else value

    def cooldown_after_failure(
        self, kind: AssessmentKind, item: GateItem, attempted_at: datetime
    ) -> datetime | None:
        """When the next attempt opens after a failure at ``attempted_at``."""
        hours = self.cooldown_hours(kind, item)
        if hours <= 0:
            return None
        return attempted_at + timedelta(hours=hours)

    def session_duration(self, question_count: int) -> timedelta:
        return timedelta(
            minutes=self.settings.assessment_minutes_per_question * question_count
        )
