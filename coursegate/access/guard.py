"""Access predicates over a course outline and a progress snapshot.

Pure functions: they read the outline and the progress they are given and
never touch storage. ``AccessGuard`` in ``access.service`` loads both and
delegates here; the progress and assessment services call these directly
inside their read-modify-write so the decision and the write see the same
snapshot.

Rules for non-bypass roles:
- a lesson is open if it is the course's first lesson, if it was already
  completed, or if the lesson right before it (same chapter, or the last
  lesson of the previous chapter) is completed;
- a chapter test is open once every lesson of that chapter is completed;
- the final exam is open once every chapter gate is passed.

A chapter without test questions has no test; its gate is passed as soon as
all of its lessons are completed.
"""

from dataclasses import dataclass
from uuid import UUID

from coursegate.auth.permissions import Role
from coursegate.catalog.models import ChapterOutline, CourseOutline, Lesson
from coursegate.core.exceptions import AccessDeniedError, NotFoundError
from coursegate.progress.models import CourseProgress


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str | None = None

    def raise_if_denied(self) -> None:
        if not self.allowed:
            raise AccessDeniedError(self.reason or "Access denied")


ALLOWED = AccessDecision(allowed=True)


def _deny(reason: str) -> AccessDecision:
    return AccessDecision(allowed=False, reason=reason)


def _lesson_label(lesson: Lesson) -> str:
    return f"Lesson {lesson.lesson_number} of Chapter {lesson.chapter_number}"


def completed_lesson_count(chapter: ChapterOutline, progress: CourseProgress) -> int:
    return sum(
        1 for lesson in chapter.lessons if progress.is_lesson_completed(lesson.id)
    )


def chapter_lessons_completed(
    chapter: ChapterOutline, progress: CourseProgress
) -> bool:
    return completed_lesson_count(chapter, progress) == len(chapter.lessons)


def chapter_has_test(chapter: ChapterOutline) -> bool:
    return bool(chapter.chapter.question_ids)


def chapter_gate_passed(chapter: ChapterOutline, progress: CourseProgress) -> bool:
    """True once the chapter no longer blocks the final exam."""
    if chapter_has_test(chapter):
        return progress.is_chapter_passed(chapter.id)
    return chapter_lessons_completed(chapter, progress)


def lesson_access(
    outline: CourseOutline,
    progress: CourseProgress,
    lesson_id: UUID,
    role: Role,
) -> AccessDecision:
    """Decide whether the lesson (and its quiz) may be opened.

    Raises:
        NotFoundError: If the lesson is not part of the outline
    """
    lesson = outline.find_lesson(lesson_id)
    if lesson is None:
        raise NotFoundError("Lesson not found")

    if role.is_bypass_role():
        return ALLOWED

    # Completed lessons stay open for review
    if progress.is_lesson_completed(lesson_id):
        return ALLOWED

    previous = outline.previous_lesson(lesson_id)
    if previous is None:
        return ALLOWED
    if progress.is_lesson_completed(previous.id):
        return ALLOWED
    return _deny(f"Complete {_lesson_label(previous)} first")


def chapter_test_access(
    outline: CourseOutline,
    progress: CourseProgress,
    chapter_id: UUID,
    role: Role,
) -> AccessDecision:
    """Decide whether the chapter test may be started.

    Raises:
        NotFoundError: If the chapter is not part of the outline
    """
    chapter = outline.find_chapter(chapter_id)
    if chapter is None:
        raise NotFoundError("Chapter not found")

    if role.is_bypass_role():
        return ALLOWED

    completed = completed_lesson_count(chapter, progress)
    total = len(chapter.lessons)
    if completed < total:
        return _deny(
            f"Complete all lessons of Chapter {chapter.chapter_number} first "
            f"({completed}/{total} completed)"
        )
    return ALLOWED


def final_exam_access(
    outline: CourseOutline,
    progress: CourseProgress,
    role: Role,
) -> AccessDecision:
    """Decide whether the final exam may be started."""
    if role.is_bypass_role():
        return ALLOWED

    for chapter in outline.chapters:
        if chapter_gate_passed(chapter, progress):
            continue
        if chapter_has_test(chapter):
            return _deny(f"Pass the Chapter {chapter.chapter_number} test first")
        return _deny(
            f"Complete all lessons of Chapter {chapter.chapter_number} first "
            f"({completed_lesson_count(chapter, progress)}/{len(chapter.lessons)} "
            "completed)"
        )
    return ALLOWED
