"""Next-action planner.

``plan_next_action`` is a pure function of the outline and a progress
snapshot; it keeps no state of its own and can be re-derived at any time.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from coursegate.access.guard import chapter_gate_passed, chapter_has_test
from coursegate.catalog.models import CourseOutline
from coursegate.progress.models import CourseProgress


class NextActionType(str, Enum):
    LESSON = "lesson"
    CHAPTER_TEST = "chapter-test"
    FINAL_EXAM = "final-exam"
    COMPLETED = "completed"


@dataclass(frozen=True)
class NextAction:
    type: NextActionType
    message: str
    chapter_id: UUID | None = None
    chapter_number: int | None = None
    lesson_id: UUID | None = None
    lesson_number: int | None = None
    title: str | None = None


def plan_next_action(outline: CourseOutline, progress: CourseProgress) -> NextAction:
    """Single recommended next step.

    Chapters are scanned in order: the first incomplete lesson wins, then a
    chapter whose lessons are done but whose test is not passed, then the
    final exam, otherwise the course is completed.
    """
    for chapter in outline.chapters:
        for lesson in chapter.lessons:
            if not progress.is_lesson_completed(lesson.id):
                return NextAction(
                    type=NextActionType.LESSON,
                    message=(
                        f"Continue with Lesson {lesson.lesson_number} "
                        f"of Chapter {chapter.chapter_number}"
                    ),
                    chapter_id=chapter.id,
                    chapter_number=chapter.chapter_number,
                    lesson_id=lesson.id,
                    lesson_number=lesson.lesson_number,
                    title=lesson.title,
                )
        if chapter_has_test(chapter) and not chapter_gate_passed(chapter, progress):
            return NextAction(
                type=NextActionType.CHAPTER_TEST,
                message=f"Take the Chapter {chapter.chapter_number} test",
                chapter_id=chapter.id,
                chapter_number=chapter.chapter_number,
                title=chapter.chapter.title,
            )

    if not progress.final_exam.passed:
        return NextAction(
            type=NextActionType.FINAL_EXAM,
            message="Take the final exam",
            title=outline.course.title,
        )

    return NextAction(
        type=NextActionType.COMPLETED,
        message="Course completed",
        title=outline.course.title,
    )


def current_position(
    outline: CourseOutline, progress: CourseProgress
) -> tuple[int, int]:
    """(chapter_number, lesson_number) of the first incomplete lesson, or of
    the last lesson once everything is complete."""
    for lesson in outline.all_lessons():
        if not progress.is_lesson_completed(lesson.id):
            return lesson.chapter_number, lesson.lesson_number
    last = outline.last_lesson()
    if last is None:
        return 1, 1
    return last.chapter_number, last.lesson_number


def refresh_position(outline: CourseOutline, progress: CourseProgress) -> None:
    """Point current_chapter/current_lesson at the derived position."""
    progress.current_chapter, progress.current_lesson = current_position(
        outline, progress
    )
