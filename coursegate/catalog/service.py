"""Content catalog read service.

Read-only access to courses, chapters, lessons and the question bank. The
navigation helpers (outline for a lesson or chapter) are shared by every
catalog implementation through ``CatalogReader``.
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from coursegate.catalog.models import (
    Chapter,
    ChapterOutline,
    Course,
    CourseOutline,
    Lesson,
    Question,
)
from coursegate.core.exceptions import NotFoundError


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class CatalogReader:
    """Lookups shared by catalog implementations.

    Subclasses provide the primitive lookups; the outline helpers here raise
    ``NotFoundError`` so callers never deal with missing content.
    """

    async def get_course(self, course_id: UUID) -> Course | None:
        raise NotImplementedError

    async def get_chapter(self, chapter_id: UUID) -> Chapter | None:
        raise NotImplementedError

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        raise NotImplementedError

    async def get_questions(self, question_ids: list[UUID]) -> list[Question]:
        raise NotImplementedError

    async def get_course_outline(self, course_id: UUID) -> CourseOutline:
        raise NotImplementedError

    async def outline_for_lesson(self, lesson_id: UUID) -> tuple[CourseOutline, Lesson]:
        """Outline of the course a lesson belongs to, plus the lesson."""
        lesson = await self.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson not found")
        outline = await self.get_course_outline(lesson.course_id)
        return outline, outline.find_lesson(lesson_id) or lesson

    async def outline_for_chapter(
        self, chapter_id: UUID
    ) -> tuple[CourseOutline, ChapterOutline]:
        """Outline of the course a chapter belongs to, plus the chapter."""
        chapter = await self.get_chapter(chapter_id)
        if chapter is None:
            raise NotFoundError("Chapter not found")
        outline = await self.get_course_outline(chapter.course_id)
        chapter_outline = outline.find_chapter(chapter_id)
        if chapter_outline is None:
            raise NotFoundError("Chapter not found")
        return outline, chapter_outline


class CatalogService(CatalogReader):
    """Cassandra-backed catalog reads."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_course = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._get_chapter = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.chapters WHERE id = ?"
        )
        self._get_lesson = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.lessons WHERE id = ?"
        )
        self._get_questions = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.questions WHERE id IN ?"
        )
        self._get_course_chapters = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.chapters_by_course WHERE course_id = ?"
        )
        self._get_course_lessons = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.lessons_by_course WHERE course_id = ?"
        )

    async def get_course(self, course_id: UUID) -> Course | None:
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def get_chapter(self, chapter_id: UUID) -> Chapter | None:
        result = await self.session.aexecute(self._get_chapter, [chapter_id])
        row = result.one()
        return Chapter.from_row(row) if row else None

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        result = await self.session.aexecute(self._get_lesson, [lesson_id])
        row = result.one()
        return Lesson.from_row(row) if row else None

    async def get_questions(self, question_ids: list[UUID]) -> list[Question]:
        """Questions in the order of ``question_ids``; unknown ids are skipped."""
        if not question_ids:
            return []
        rows = await self.session.aexecute(self._get_questions, [list(question_ids)])
        by_id = {row.id: Question.from_row(row) for row in rows}
        missing = [str(qid) for qid in question_ids if qid not in by_id]
        if missing:
            logger.warning("catalog_questions_missing", question_ids=missing)
        return [by_id[qid] for qid in question_ids if qid in by_id]

    async def get_course_outline(self, course_id: UUID) -> CourseOutline:
        """Course with ordered chapters and lessons.

        Raises:
            NotFoundError: If the course does not exist
        """
        course = await self.get_course(course_id)
        if course is None:
            raise NotFoundError("Course not found")

        chapter_rows = await self.session.aexecute(
            self._get_course_chapters, [course_id]
        )
        chapters = [
            ChapterOutline(chapter=Chapter.from_row(row, course_id=course_id))
            for row in chapter_rows
        ]
        by_number = {ch.chapter_number: ch for ch in chapters}

        lesson_rows = await self.session.aexecute(self._get_course_lessons, [course_id])
        for row in lesson_rows:
            chapter = by_number.get(row.chapter_number)
            if chapter is not None:
                chapter.lessons.append(Lesson.from_row(row, course_id=course_id))

        return CourseOutline(course=course, chapters=chapters)
