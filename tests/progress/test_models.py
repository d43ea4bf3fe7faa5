"""Tests for progress storage mapping."""

from datetime import UTC, datetime
from unittest.mock import Mock
from uuid import uuid4

from coursegate.certificates.models import CertificateRecord, CertificateType
from coursegate.progress.models import (
    AssessmentAttempt,
    ChapterState,
    CourseProgress,
    LessonState,
)


NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _row_from(progress: CourseProgress) -> Mock:
    """Fake Cassandra row carrying the columns ``to_columns`` produced."""
    columns = progress.to_columns()
    row = Mock()
    row.user_id = progress.user_id
    row.course_id = progress.course_id
    row.version = progress.version
    for name, value in columns.items():
        setattr(row, name, value)
    # Cassandra hands timestamps back naive
    row.created_at = columns["created_at"].replace(tzinfo=None)
    row.updated_at = columns["updated_at"].replace(tzinfo=None)
    row.completed_at = None
    return row


class TestCourseProgressMapping:
    def test_round_trip_through_row(self) -> None:
        lesson_id, chapter_id, session_id = uuid4(), uuid4(), uuid4()
        progress = CourseProgress(
            user_id=uuid4(),
            course_id=uuid4(),
            current_chapter=2,
            current_lesson=3,
            lessons={
                lesson_id: LessonState(
                    completed=True, best_score=90, attempts=2, completed_at=NOW
                )
            },
            chapters={
                chapter_id: ChapterState(
                    test_passed=False,
                    attempts=1,
                    cooldown_until=NOW,
                    history=[AssessmentAttempt(25, False, NOW, session_id)],
                )
            },
            version=4,
            created_at=NOW,
        )
        progress.final_exam.attempts.append(
            AssessmentAttempt(score=60, passed=False, attempted_at=NOW)
        )
        progress.final_exam.best_score = 60

        restored = CourseProgress.from_row(_row_from(progress))

        assert restored.current_chapter == 2
        assert restored.current_lesson == 3
        assert restored.lessons[lesson_id].best_score == 90
        assert restored.lessons[lesson_id].completed_at == NOW
        assert restored.chapters[chapter_id].cooldown_until == NOW
        assert restored.final_exam.attempt_count == 1
        assert restored.final_exam.last_attempted_at == NOW
        assert restored.chapters[chapter_id].find_attempt(session_id) == (
            AssessmentAttempt(25, False, NOW, session_id)
        )
        assert restored.final_exam.attempts[0].session_id is None
        assert restored.version == 4
        assert restored.created_at.tzinfo is not None

    def test_empty_row_defaults(self) -> None:
        row = Mock(
            user_id=uuid4(),
            course_id=uuid4(),
            current_chapter=None,
            current_lesson=None,
            lessons=None,
            chapters=None,
            final_exam=None,
            course_completed=None,
            certificate_issued=None,
            completed_at=None,
            certificates=None,
            version=None,
            created_at=None,
            updated_at=None,
        )

        progress = CourseProgress.from_row(row)

        assert (progress.current_chapter, progress.current_lesson) == (1, 1)
        assert progress.lessons == {}
        assert progress.final_exam.passed is False
        assert progress.certificates == []
        assert progress.version == 0

    def test_certificates_survive_mapping(self) -> None:
        progress = CourseProgress(user_id=uuid4(), course_id=uuid4(), created_at=NOW)
        record = CertificateRecord(
            certificate_number="MIC-2026-000001",
            certificate_type=CertificateType.MAIN,
            user_id=progress.user_id,
            course_id=progress.course_id,
            course_title="Medical Interpreter Certification",
            verification_code="A1B2C3D4",
            final_exam_score=90,
            issued_at=NOW,
        )
        progress.certificates = [record]
        progress.certificate_issued = True

        restored = CourseProgress.from_row(_row_from(progress))

        assert restored.certificate_issued is True
        assert restored.certificate(CertificateType.MAIN) == record
        assert restored.certificate(CertificateType.HIPAA) is None


class TestCopy:
    def test_copy_is_independent(self) -> None:
        lesson_id = uuid4()
        progress = CourseProgress(user_id=uuid4(), course_id=uuid4())
        progress.lesson(lesson_id).attempts = 1

        clone = progress.copy()
        clone.lesson(lesson_id).attempts = 5
        clone.final_exam.passed = True

        assert progress.lessons[lesson_id].attempts == 1
        assert progress.final_exam.passed is False

    def test_accessors_create_empty_state(self) -> None:
        progress = CourseProgress(user_id=uuid4(), course_id=uuid4())
        chapter_id = uuid4()

        assert progress.is_chapter_passed(chapter_id) is False
        assert progress.chapter(chapter_id) is progress.chapters[chapter_id]
