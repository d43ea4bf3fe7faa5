"""Read-only content catalog: courses, chapters, lessons and questions."""

from coursegate.catalog.models import (
    CATALOG_TABLES_CQL,
    Chapter,
    ChapterOutline,
    ContentType,
    Course,
    CourseOutline,
    Difficulty,
    Lesson,
    Question,
    QuestionKind,
)
from coursegate.catalog.service import CatalogReader, CatalogService


__all__ = [
    "CATALOG_TABLES_CQL",
    "CatalogReader",
    "CatalogService",
    "Chapter",
    "ChapterOutline",
    "ContentType",
    "Course",
    "CourseOutline",
    "Difficulty",
    "Lesson",
    "Question",
    "QuestionKind",
]
