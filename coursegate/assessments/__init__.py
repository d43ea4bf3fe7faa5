"""Chapter tests, final exams and lesson quiz grading.

Provides:
- Scoring against frozen question snapshots
- Retry and cooldown policy
- Timed sessions with a single Active session per user and target
"""

from .models import (
    ASSESSMENT_TABLES_CQL,
    AssessmentKind,
    AssessmentSession,
    AssessmentTarget,
    SessionStatus,
)


__all__ = [
    "ASSESSMENT_TABLES_CQL",
    "AssessmentKind",
    "AssessmentSession",
    "AssessmentTarget",
    "SessionStatus",
]
