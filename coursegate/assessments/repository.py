"""Cassandra access for assessment sessions.

Two tables cooperate:
- active_assessment_sessions holds at most one row per (user, target). It is
  claimed with ``IF NOT EXISTS`` and released with ``IF session_id = ?`` so
  a release never removes somebody else's claim.
- assessment_sessions holds the session itself. Leaving the Active state is
  a conditional update ``IF status = 'active'``; only one of two racing
  submit/abandon/expire calls is applied.

Session rows are written with a TTL so terminal sessions age out after the
audit retention period.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from coursegate.assessments.models import (
    AssessmentSession,
    AssessmentTarget,
    SessionStatus,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session


class AssessmentRepository:
    """Session rows and the Active slot per (user, target)."""

    def __init__(self, session: "Session", keyspace: str, retention_days: int = 30):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.ttl_seconds = retention_days * 24 * 3600
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._claim_slot = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.active_assessment_sessions
            (user_id, target, session_id, expires_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._release_slot = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.active_assessment_sessions
            WHERE user_id = ? AND target = ?
            IF session_id = ?
        """)

        self._insert_session = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.assessment_sessions
            (id, user_id, course_id, chapter_id, kind, target, status,
             question_snapshot, option_order, passing_score,
             started_at, expires_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            USING TTL ?
        """)

        self._get_session = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.assessment_sessions
            WHERE id = ?
        """)

        self._transition = self.session.prepare(f"""
            UPDATE {self.keyspace}.assessment_sessions
            USING TTL ?
            SET status = ?, ended_at = ?, score = ?, passed = ?
            WHERE id = ?
            IF status = ?
        """)

    # ==========================================================================
    # Active slot
    # ==========================================================================

    async def claim_active_slot(
        self, session: AssessmentSession
    ) -> tuple[bool, UUID | None]:
        """Claim the Active slot for the session's (user, target).

        Returns:
            (True, None) when claimed, otherwise (False, holder session id)
        """
        result = await self.session.aexecute(
            self._claim_slot,
            [session.user_id, session.target.key, session.id, session.expires_at],
        )
        if result.was_applied:
            return True, None
        row = result.one()
        return False, getattr(row, "session_id", None)

    async def release_active_slot(
        self, user_id: UUID, target: AssessmentTarget, session_id: UUID
    ) -> bool:
        result = await self.session.aexecute(
            self._release_slot, [user_id, target.key, session_id]
        )
        return result.was_applied

    # ==========================================================================
    # Sessions
    # ==========================================================================

    async def insert_session(self, session: AssessmentSession) -> None:
        await self.session.aexecute(
            self._insert_session,
            [
                session.id,
                session.user_id,
                session.target.course_id,
                session.target.chapter_id,
                session.target.kind.value,
                session.target.key,
                session.status.value,
                session.snapshot_json(),
                session.option_order_json(),
                session.passing_score,
                session.started_at,
                session.expires_at,
                self.ttl_seconds,
            ],
        )

    async def get_session(self, session_id: UUID) -> AssessmentSession | None:
        result = await self.session.aexecute(self._get_session, [session_id])
        row = result.one()
        return AssessmentSession.from_row(row) if row else None

    async def transition(
        self,
        session: AssessmentSession,
        status: SessionStatus,
        ended_at: datetime,
        score: int | None = None,
        passed: bool | None = None,
    ) -> bool:
        """Move an Active session to a terminal status.

        Returns:
            True if this call won the transition; ``session`` is updated
        """
        result = await self.session.aexecute(
            self._transition,
            [
                self.ttl_seconds,
                status.value,
                ended_at,
                score,
                passed,
                session.id,
                SessionStatus.ACTIVE.value,
            ],
        )
        if not result.was_applied:
            return False
        session.status = status
        session.ended_at = ended_at
        session.score = score
        session.passed = passed
        return True
