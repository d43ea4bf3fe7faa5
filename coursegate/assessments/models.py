"""Assessment session models.

Tables:
- assessment_sessions: every session, keyed by id. Terminal sessions are
  rewritten with a TTL so they age out after the audit retention period.
- active_assessment_sessions: the single Active slot per (user, target),
  claimed with INSERT ... IF NOT EXISTS and released with a conditional
  DELETE. This row is what makes "one Active session per target" hold
  under concurrent starts.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import orjson

from coursegate.catalog.models import Question
from coursegate.utils.timeutils import ensure_utc_aware


class AssessmentKind(str, Enum):
    """What an assessment gates."""

    QUIZ = "quiz"  # Lesson quiz, submitted without a session
    CHAPTER_TEST = "chapter-test"
    FINAL_EXAM = "final-exam"


class SessionStatus(str, Enum):
    """Session lifecycle. NotStarted is never persisted."""

    ACTIVE = "active"
    SUBMITTED = "submitted"
    ABANDONED = "abandoned"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AssessmentTarget:
    """A chapter test or the final exam of a course."""

    kind: AssessmentKind
    course_id: UUID
    chapter_id: UUID | None = None

    @classmethod
    def chapter_test(cls, course_id: UUID, chapter_id: UUID) -> "AssessmentTarget":
        return cls(AssessmentKind.CHAPTER_TEST, course_id, chapter_id)

    @classmethod
    def final_exam(cls, course_id: UUID) -> "AssessmentTarget":
        return cls(AssessmentKind.FINAL_EXAM, course_id)

    @property
    def key(self) -> str:
        """Clustering key of the Active slot."""
        if self.kind is AssessmentKind.CHAPTER_TEST:
            return f"chapter:{self.chapter_id}"
        return f"final-exam:{self.course_id}"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ASSESSMENT_SESSIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.assessment_sessions (
    id UUID PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    chapter_id UUID,
    kind TEXT,
    target TEXT,
    status TEXT,
    question_snapshot TEXT,
    option_order TEXT,
    passing_score INT,
    started_at TIMESTAMP,
    expires_at TIMESTAMP,
    ended_at TIMESTAMP,
    score INT,
    passed BOOLEAN
)
"""

# One row per (user, target) while a session is Active
ACTIVE_ASSESSMENT_SESSIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.active_assessment_sessions (
    user_id UUID,
    target TEXT,
    session_id UUID,
    expires_at TIMESTAMP,
    PRIMARY KEY ((user_id), target)
)
"""

ASSESSMENT_TABLES_CQL = [
    ASSESSMENT_SESSIONS_TABLE_CQL,
    ACTIVE_ASSESSMENT_SESSIONS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class AssessmentSession:
    """A timed attempt bound to a frozen question snapshot.

    ``option_order`` maps question id to the shuffled option list shown to
    the learner; grading always uses the snapshot's answer key.
    """

    user_id: UUID
    target: AssessmentTarget
    questions: list[Question]
    passing_score: int
    started_at: datetime
    expires_at: datetime
    id: UUID = field(default_factory=uuid4)
    status: SessionStatus = SessionStatus.ACTIVE
    option_order: dict[UUID, list[str]] = field(default_factory=dict)
    ended_at: datetime | None = None
    score: int | None = None
    passed: bool | None = None

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def options_for(self, question: Question) -> list[str]:
        return self.option_order.get(question.id, list(question.options))

    @classmethod
    def from_row(cls, row: Any) -> "AssessmentSession":
        """Create instance from Cassandra row."""
        kind = AssessmentKind(row.kind)
        return cls(
            id=row.id,
            user_id=row.user_id,
            target=AssessmentTarget(kind, row.course_id, row.chapter_id),
            questions=[
                Question.from_dict(q) for q in orjson.loads(row.question_snapshot)
            ],
            passing_score=row.passing_score,
            started_at=ensure_utc_aware(row.started_at),
            expires_at=ensure_utc_aware(row.expires_at),
            status=SessionStatus(row.status),
            option_order={
                UUID(k): v for k, v in orjson.loads(row.option_order or "{}").items()
            },
            ended_at=ensure_utc_aware(row.ended_at),
            score=row.score,
            passed=row.passed,
        )

    def snapshot_json(self) -> str:
        return orjson.dumps([q.to_dict() for q in self.questions]).decode()

    def option_order_json(self) -> str:
        return orjson.dumps({str(k): v for k, v in self.option_order.items()}).decode()

    def __repr__(self) -> str:
        return (
            f"<AssessmentSession {self.id} {self.target.key} "
            f"user={self.user_id} {self.status.value}>"
        )
