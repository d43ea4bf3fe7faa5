"""Database models for learner progress.

One course_progress row per (user, course). Nested per-lesson and
per-chapter state is stored as JSON text inside map columns so that the
whole record can be replaced in one lightweight transaction guarded by the
row's integer version.

Architecture: partition by user_id so "all my courses" is one partition
read, clustered by course_id for the single-course lookups.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import orjson

from coursegate.certificates.models import CertificateRecord, CertificateType
from coursegate.utils.timeutils import ensure_utc_aware, format_datetime, parse_datetime


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_progress (
    user_id UUID,
    course_id UUID,
    current_chapter INT,
    current_lesson INT,
    lessons MAP<UUID, TEXT>,
    chapters MAP<UUID, TEXT>,
    final_exam TEXT,
    course_completed BOOLEAN,
    certificate_issued BOOLEAN,
    completed_at TIMESTAMP,
    certificates TEXT,
    version INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id), course_id)
)
"""

PROGRESS_TABLES_CQL = [
    COURSE_PROGRESS_TABLE_CQL,
]


def _dumps(value: Any) -> str:
    return orjson.dumps(value).decode()


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class LessonState:
    """Per-lesson completion and quiz state."""

    completed: bool = False
    best_score: int = 0
    attempts: int = 0
    completed_at: datetime | None = None
    last_attempted_at: datetime | None = None
    cooldown_until: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": self.completed,
            "best_score": self.best_score,
            "attempts": self.attempts,
            "completed_at": format_datetime(self.completed_at),
            "last_attempted_at": format_datetime(self.last_attempted_at),
            "cooldown_until": format_datetime(self.cooldown_until),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LessonState":
        return cls(
            completed=bool(data.get("completed", False)),
            best_score=int(data.get("best_score", 0)),
            attempts=int(data.get("attempts", 0)),
            completed_at=parse_datetime(data.get("completed_at")),
            last_attempted_at=parse_datetime(data.get("last_attempted_at")),
            cooldown_until=parse_datetime(data.get("cooldown_until")),
        )


@dataclass
class AssessmentAttempt:
    """One scored chapter test or final exam attempt.

    ``session_id`` ties the attempt to the session that produced it, so
    recording the same session twice is a no-op.
    """

    score: int
    passed: bool
    attempted_at: datetime
    session_id: UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "passed": self.passed,
            "attempted_at": format_datetime(self.attempted_at),
            "session_id": str(self.session_id) if self.session_id else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssessmentAttempt":
        return cls(
            score=int(data["score"]),
            passed=bool(data["passed"]),
            attempted_at=parse_datetime(data["attempted_at"]),
            session_id=UUID(data["session_id"]) if data.get("session_id") else None,
        )


def _find_attempt(
    attempts: list[AssessmentAttempt], session_id: UUID
) -> AssessmentAttempt | None:
    for attempt in attempts:
        if attempt.session_id == session_id:
            return attempt
    return None


@dataclass
class ChapterState:
    """Per-chapter test state. test_passed never goes back to False."""

    test_passed: bool = False
    test_score: int = 0
    attempts: int = 0
    test_attempted_at: datetime | None = None
    cooldown_until: datetime | None = None
    history: list[AssessmentAttempt] = field(default_factory=list)

    def find_attempt(self, session_id: UUID) -> AssessmentAttempt | None:
        return _find_attempt(self.history, session_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "test_passed": self.test_passed,
            "test_score": self.test_score,
            "attempts": self.attempts,
            "test_attempted_at": format_datetime(self.test_attempted_at),
            "cooldown_until": format_datetime(self.cooldown_until),
            "history": [a.to_dict() for a in self.history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChapterState":
        return cls(
            test_passed=bool(data.get("test_passed", False)),
            test_score=int(data.get("test_score", 0)),
            attempts=int(data.get("attempts", 0)),
            test_attempted_at=parse_datetime(data.get("test_attempted_at")),
            cooldown_until=parse_datetime(data.get("cooldown_until")),
            history=[AssessmentAttempt.from_dict(a) for a in data.get("history", [])],
        )


@dataclass
class FinalExamState:
    """Final exam history. passed never goes back to False."""

    attempts: list[AssessmentAttempt] = field(default_factory=list)
    best_score: int = 0
    passed: bool = False
    cooldown_until: datetime | None = None

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def last_attempted_at(self) -> datetime | None:
        return self.attempts[-1].attempted_at if self.attempts else None

    def find_attempt(self, session_id: UUID) -> AssessmentAttempt | None:
        return _find_attempt(self.attempts, session_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempts": [a.to_dict() for a in self.attempts],
            "best_score": self.best_score,
            "passed": self.passed,
            "cooldown_until": format_datetime(self.cooldown_until),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FinalExamState":
        return cls(
            attempts=[
                AssessmentAttempt.from_dict(a) for a in data.get("attempts", [])
            ],
            best_score=int(data.get("best_score", 0)),
            passed=bool(data.get("passed", False)),
            cooldown_until=parse_datetime(data.get("cooldown_until")),
        )


class CourseProgress:
    """Learner progress through one course.

    Attributes:
        user_id: User UUID
        course_id: Course UUID
        current_chapter: Chapter number of the first incomplete lesson
        current_lesson: Lesson number of the first incomplete lesson
        lessons: lesson_id -> LessonState
        chapters: chapter_id -> ChapterState
        final_exam: Final exam attempts and outcome
        course_completed: Set together with certificate_issued
        certificate_issued: Flips false -> true exactly once
        completed_at: Completion timestamp
        certificates: The issued (main, hipaa) pair, empty before issuance
        version: Optimistic concurrency token, 0 for a row not yet stored
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        current_chapter: int = 1,
        current_lesson: int = 1,
        lessons: dict[UUID, LessonState] | None = None,
        chapters: dict[UUID, ChapterState] | None = None,
        final_exam: FinalExamState | None = None,
        course_completed: bool = False,
        certificate_issued: bool = False,
        completed_at: datetime | None = None,
        certificates: list[CertificateRecord] | None = None,
        version: int = 0,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.current_chapter = current_chapter
        self.current_lesson = current_lesson
        self.lessons = lessons or {}
        self.chapters = chapters or {}
        self.final_exam = final_exam or FinalExamState()
        self.course_completed = course_completed
        self.certificate_issued = certificate_issued
        self.completed_at = ensure_utc_aware(completed_at)
        self.certificates = certificates or []
        self.version = version
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at) or self.created_at

    # --------------------------------------------------------------------------
    # State accessors
    # --------------------------------------------------------------------------

    def lesson(self, lesson_id: UUID) -> LessonState:
        """State for a lesson, created empty on first access."""
        return self.lessons.setdefault(lesson_id, LessonState())

    def chapter(self, chapter_id: UUID) -> ChapterState:
        """State for a chapter, created empty on first access."""
        return self.chapters.setdefault(chapter_id, ChapterState())

    def is_lesson_completed(self, lesson_id: UUID) -> bool:
        state = self.lessons.get(lesson_id)
        return bool(state and state.completed)

    def is_chapter_passed(self, chapter_id: UUID) -> bool:
        state = self.chapters.get(chapter_id)
        return bool(state and state.test_passed)

    def certificate(
        self, certificate_type: CertificateType
    ) -> CertificateRecord | None:
        for record in self.certificates:
            if record.certificate_type == certificate_type:
                return record
        return None

    # --------------------------------------------------------------------------
    # Storage mapping
    # --------------------------------------------------------------------------

    @classmethod
    def from_row(cls, row: Any) -> "CourseProgress":
        """Create CourseProgress instance from Cassandra row."""
        final_exam = (
            FinalExamState.from_dict(orjson.loads(row.final_exam))
            if row.final_exam
            else None
        )
        certificates = (
            [CertificateRecord.from_dict(c) for c in orjson.loads(row.certificates)]
            if row.certificates
            else None
        )
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            current_chapter=row.current_chapter or 1,
            current_lesson=row.current_lesson or 1,
            lessons={
                k: LessonState.from_dict(orjson.loads(v))
                for k, v in (row.lessons or {}).items()
            },
            chapters={
                k: ChapterState.from_dict(orjson.loads(v))
                for k, v in (row.chapters or {}).items()
            },
            final_exam=final_exam,
            course_completed=bool(row.course_completed),
            certificate_issued=bool(row.certificate_issued),
            completed_at=row.completed_at,
            certificates=certificates,
            version=row.version or 0,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_columns(self) -> dict[str, Any]:
        """Column values for the course_progress row (without the key)."""
        return {
            "current_chapter": self.current_chapter,
            "current_lesson": self.current_lesson,
            "lessons": {k: _dumps(v.to_dict()) for k, v in self.lessons.items()},
            "chapters": {k: _dumps(v.to_dict()) for k, v in self.chapters.items()},
            "final_exam": _dumps(self.final_exam.to_dict()),
            "course_completed": self.course_completed,
            "certificate_issued": self.certificate_issued,
            "completed_at": self.completed_at,
            "certificates": _dumps([c.to_dict() for c in self.certificates]),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def copy(self) -> "CourseProgress":
        """Deep copy through the storage mapping."""
        clone = CourseProgress(user_id=self.user_id, course_id=self.course_id)
        clone.current_chapter = self.current_chapter
        clone.current_lesson = self.current_lesson
        clone.lessons = {
            k: LessonState.from_dict(v.to_dict()) for k, v in self.lessons.items()
        }
        clone.chapters = {
            k: ChapterState.from_dict(v.to_dict()) for k, v in self.chapters.items()
        }
        clone.final_exam = FinalExamState.from_dict(self.final_exam.to_dict())
        clone.course_completed = self.course_completed
        clone.certificate_issued = self.certificate_issued
        clone.completed_at = self.completed_at
        clone.certificates = list(self.certificates)
        clone.version = self.version
        clone.created_at = self.created_at
        clone.updated_at = self.updated_at
        return clone

    def __repr__(self) -> str:
        return (
            f"<CourseProgress user={self.user_id} course={self.course_id} "
            f"v{self.version} completed={self.course_completed}>"
        )


@dataclass(frozen=True)
class AttemptRecord:
    """Result of recording an assessment attempt on progress.

    ``created`` is False when the session's attempt was already recorded;
    ``attempt`` is then the stored one, not the one just offered.
    """

    progress: CourseProgress
    state: ChapterState | FinalExamState
    attempt: AssessmentAttempt
    created: bool
