"""Content catalog models.

The catalog is authored elsewhere; this engine only reads it. Tables are
created here so that a fresh keyspace is usable, and the by-course tables
are the denormalized views the outline is assembled from.

Architecture: entity tables keyed by id plus ordered lookup tables
partitioned by course_id, so a whole course outline is two partition reads.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID


class ContentType(str, Enum):
    """Lesson content type."""

    TEXT = "text"
    AUDIO_EXERCISE = "audio-exercise"


class QuestionKind(str, Enum):
    """Assessment a question belongs to."""

    QUIZ = "quiz"  # Lesson quiz
    TEST = "test"  # Chapter test
    EXAM = "exam"  # Course final exam


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    is_published BOOLEAN,
    exam_question_ids LIST<UUID>,
    exam_passing_score INT,
    exam_cooldown_hours DOUBLE
)
"""

CHAPTERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.chapters (
    id UUID PRIMARY KEY,
    course_id UUID,
    chapter_number INT,
    title TEXT,
    question_ids LIST<UUID>,
    passing_score INT,
    cooldown_hours DOUBLE
)
"""

# Ordered chapters of a course
CHAPTERS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.chapters_by_course (
    course_id UUID,
    chapter_number INT,
    id UUID,
    title TEXT,
    question_ids LIST<UUID>,
    passing_score INT,
    cooldown_hours DOUBLE,
    PRIMARY KEY ((course_id), chapter_number)
) WITH CLUSTERING ORDER BY (chapter_number ASC)
"""

LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    id UUID PRIMARY KEY,
    chapter_id UUID,
    course_id UUID,
    chapter_number INT,
    lesson_number INT,
    title TEXT,
    content_type TEXT,
    quiz_question_ids LIST<UUID>,
    quiz_passing_score INT
)
"""

# Ordered lessons of a course, chapter by chapter
LESSONS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_course (
    course_id UUID,
    chapter_number INT,
    lesson_number INT,
    id UUID,
    chapter_id UUID,
    title TEXT,
    content_type TEXT,
    quiz_question_ids LIST<UUID>,
    quiz_passing_score INT,
    PRIMARY KEY ((course_id), chapter_number, lesson_number)
) WITH CLUSTERING ORDER BY (chapter_number ASC, lesson_number ASC)
"""

QUESTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.questions (
    id UUID PRIMARY KEY,
    kind TEXT,
    question_text TEXT,
    options LIST<TEXT>,
    correct_answer TEXT,
    explanation TEXT,
    difficulty TEXT
)
"""

CATALOG_TABLES_CQL = [
    COURSES_TABLE_CQL,
    CHAPTERS_TABLE_CQL,
    CHAPTERS_BY_COURSE_TABLE_CQL,
    LESSONS_TABLE_CQL,
    LESSONS_BY_COURSE_TABLE_CQL,
    QUESTIONS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Course:
    """Course with its final exam configuration."""

    id: UUID
    title: str
    description: str = ""
    is_published: bool = True
    exam_question_ids: list[UUID] = field(default_factory=list)
    # None means "use the configured default"
    exam_passing_score: int | None = None
    exam_cooldown_hours: float | None = None

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            description=row.description or "",
            is_published=bool(row.is_published),
            exam_question_ids=list(row.exam_question_ids or []),
            exam_passing_score=row.exam_passing_score,
            exam_cooldown_hours=row.exam_cooldown_hours,
        )


@dataclass
class Chapter:
    """Chapter with its gating test configuration."""

    id: UUID
    course_id: UUID
    chapter_number: int
    title: str
    question_ids: list[UUID] = field(default_factory=list)
    passing_score: int | None = None
    cooldown_hours: float | None = None

    @classmethod
    def from_row(cls, row: Any, course_id: UUID | None = None) -> "Chapter":
        """Create instance from a chapters or chapters_by_course row."""
        return cls(
            id=row.id,
            course_id=course_id or row.course_id,
            chapter_number=row.chapter_number,
            title=row.title or "",
            question_ids=list(row.question_ids or []),
            passing_score=row.passing_score,
            cooldown_hours=row.cooldown_hours,
        )


@dataclass
class Lesson:
    """Lesson, optionally carrying a quiz."""

    id: UUID
    chapter_id: UUID
    course_id: UUID
    chapter_number: int
    lesson_number: int
    title: str
    content_type: ContentType = ContentType.TEXT
    quiz_question_ids: list[UUID] = field(default_factory=list)
    quiz_passing_score: int | None = None

    @property
    def has_quiz(self) -> bool:
        return bool(self.quiz_question_ids)

    @classmethod
    def from_row(cls, row: Any, course_id: UUID | None = None) -> "Lesson":
        """Create instance from a lessons or lessons_by_course row."""
        return cls(
            id=row.id,
            chapter_id=row.chapter_id,
            course_id=course_id or row.course_id,
            chapter_number=row.chapter_number,
            lesson_number=row.lesson_number,
            title=row.title or "",
            content_type=ContentType(row.content_type or ContentType.TEXT.value),
            quiz_question_ids=list(row.quiz_question_ids or []),
            quiz_passing_score=row.quiz_passing_score,
        )


@dataclass
class Question:
    """Multiple-choice question; correct_answer is the text of an option."""

    id: UUID
    kind: QuestionKind
    question_text: str
    options: list[str]
    correct_answer: str
    explanation: str | None = None
    difficulty: Difficulty | None = None

    @classmethod
    def from_row(cls, row: Any) -> "Question":
        """Create instance from Cassandra row."""
        return cls(
            id=row.id,
            kind=QuestionKind(row.kind),
            question_text=row.question_text or "",
            options=list(row.options or []),
            correct_answer=row.correct_answer or "",
            explanation=row.explanation,
            difficulty=Difficulty(row.difficulty) if row.difficulty else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize including the answer key (for frozen session snapshots)."""
        return {
            "id": str(self.id),
            "kind": self.kind.value,
            "question_text": self.question_text,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "difficulty": self.difficulty.value if self.difficulty else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Question":
        return cls(
            id=UUID(data["id"]),
            kind=QuestionKind(data["kind"]),
            question_text=data["question_text"],
            options=list(data["options"]),
            correct_answer=data["correct_answer"],
            explanation=data.get("explanation"),
            difficulty=(
                Difficulty(data["difficulty"]) if data.get("difficulty") else None
            ),
        )


# ==============================================================================
# Course Outline
# ==============================================================================


@dataclass
class ChapterOutline:
    """A chapter with its lessons ordered by lesson_number."""

    chapter: Chapter
    lessons: list[Lesson] = field(default_factory=list)

    @property
    def id(self) -> UUID:
        return self.chapter.id

    @property
    def chapter_number(self) -> int:
        return self.chapter.chapter_number


@dataclass
class CourseOutline:
    """A course with its chapters ordered by chapter_number.

    Navigation helpers assume sequential numbering without gaps, which is
    what the content authoring side guarantees.
    """

    course: Course
    chapters: list[ChapterOutline] = field(default_factory=list)

    @property
    def course_id(self) -> UUID:
        return self.course.id

    def all_lessons(self) -> list[Lesson]:
        """Every lesson in course order."""
        return [lesson for ch in self.chapters for lesson in ch.lessons]

    def last_lesson(self) -> Lesson | None:
        lessons = self.all_lessons()
        return lessons[-1] if lessons else None

    def previous_lesson(self, lesson_id: UUID) -> Lesson | None:
        """The lesson right before this one: same chapter, or the last lesson
        of the previous chapter. None for the very first lesson."""
        previous: Lesson | None = None
        for lesson in self.all_lessons():
            if lesson.id == lesson_id:
                return previous
            previous = lesson
        return None

    def find_lesson(self, lesson_id: UUID) -> Lesson | None:
        for lesson in self.all_lessons():
            if lesson.id == lesson_id:
                return lesson
        return None

    def find_chapter(self, chapter_id: UUID) -> ChapterOutline | None:
        for ch in self.chapters:
            if ch.id == chapter_id:
                return ch
        return None
