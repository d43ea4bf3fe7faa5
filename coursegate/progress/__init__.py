"""Learner progress module.

Provides:
- The per-(user, course) progress record with optimistic versioning
- Lesson completion and lesson quiz submission
- Next-action planning and progress views
"""

from .models import (
    PROGRESS_TABLES_CQL,
    AssessmentAttempt,
    AttemptRecord,
    ChapterState,
    CourseProgress,
    FinalExamState,
    LessonState,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "AssessmentAttempt",
    "AttemptRecord",
    "ChapterState",
    "CourseProgress",
    "FinalExamState",
    "LessonState",
]
