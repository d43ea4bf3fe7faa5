"""Cassandra access for course_progress rows.

Every write is a lightweight transaction: the first write of a row uses
``IF NOT EXISTS`` and later writes use ``IF version = ?``. A write that
returns ``was_applied == False`` lost a race and the caller re-reads.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from coursegate.progress.models import CourseProgress


if TYPE_CHECKING:
    from cassandra.cluster import Session


_COLUMNS = (
    "current_chapter",
    "current_lesson",
    "lessons",
    "chapters",
    "final_exam",
    "course_completed",
    "certificate_issued",
    "completed_at",
    "certificates",
    "created_at",
    "updated_at",
)


class ProgressRepository:
    """Versioned reads and conditional writes of course_progress."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_progress
            WHERE user_id = ? AND course_id = ?
        """)

        self._get_user_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_progress
            WHERE user_id = ?
        """)

        columns = ", ".join(_COLUMNS)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        self._insert_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_progress
            (user_id, course_id, {columns}, version)
            VALUES (?, ?, {placeholders}, ?)
            IF NOT EXISTS
        """)

        assignments = ", ".join(f"{c} = ?" for c in _COLUMNS)
        self._update_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_progress
            SET {assignments}, version = ?
            WHERE user_id = ? AND course_id = ?
            IF version = ?
        """)

    async def get(self, user_id: UUID, course_id: UUID) -> CourseProgress | None:
        result = await self.session.aexecute(self._get_progress, [user_id, course_id])
        row = result.one()
        return CourseProgress.from_row(row) if row else None

    async def list_for_user(self, user_id: UUID) -> list[CourseProgress]:
        rows = await self.session.aexecute(self._get_user_progress, [user_id])
        return [CourseProgress.from_row(row) for row in rows]

    async def save(self, progress: CourseProgress) -> bool:
        """Conditionally persist ``progress``.

        The row's stored version must equal ``progress.version`` (0 meaning
        "no row yet"). On success ``progress.version`` is advanced.

        Returns:
            True if the write was applied, False if another writer won
        """
        values = progress.to_columns()
        new_version = progress.version + 1

        if progress.version == 0:
            result = await self.session.aexecute(
                self._insert_progress,
                [
                    progress.user_id,
                    progress.course_id,
                    *(values[c] for c in _COLUMNS),
                    new_version,
                ],
            )
        else:
            result = await self.session.aexecute(
                self._update_progress,
                [
                    *(values[c] for c in _COLUMNS),
                    new_version,
                    progress.user_id,
                    progress.course_id,
                    progress.version,
                ],
            )

        if not result.was_applied:
            return False
        progress.version = new_version
        return True
