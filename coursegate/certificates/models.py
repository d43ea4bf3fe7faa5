"""Certificate models.

The authoritative copy of an issued pair lives on the learner's
course_progress row (written in the same conditional update that flips
certificate_issued). The tables here are lookup views written afterwards:
- certificates: public verification by certificate number
- certificates_by_user: listing a learner's certificates
- certificate_sequence: monotonically increasing number allocator
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from coursegate.utils.timeutils import ensure_utc_aware, format_datetime, parse_datetime


class CertificateType(str, Enum):
    MAIN = "main"
    HIPAA = "hipaa"


# Sequence counter row name
CERTIFICATE_SEQUENCE_NAME = "certificate_number"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    certificate_number TEXT PRIMARY KEY,
    verification_code TEXT,
    user_id UUID,
    course_id UUID,
    certificate_type TEXT,
    course_title TEXT,
    final_exam_score INT,
    issued_at TIMESTAMP
)
"""

CERTIFICATES_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_user (
    user_id UUID,
    course_id UUID,
    certificate_type TEXT,
    certificate_number TEXT,
    verification_code TEXT,
    course_title TEXT,
    final_exam_score INT,
    issued_at TIMESTAMP,
    PRIMARY KEY ((user_id), course_id, certificate_type)
)
"""

# Single-row counters advanced with compare-and-set
CERTIFICATE_SEQUENCE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificate_sequence (
    name TEXT PRIMARY KEY,
    value BIGINT
)
"""

CERTIFICATE_TABLES_CQL = [
    CERTIFICATES_TABLE_CQL,
    CERTIFICATES_BY_USER_TABLE_CQL,
    CERTIFICATE_SEQUENCE_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass(frozen=True)
class CertificateRecord:
    """An issued certificate. Immutable once written."""

    certificate_number: str
    verification_code: str
    user_id: UUID
    course_id: UUID
    certificate_type: CertificateType
    course_title: str
    final_exam_score: int
    issued_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "CertificateRecord":
        """Create instance from a certificates or certificates_by_user row."""
        return cls(
            certificate_number=row.certificate_number,
            verification_code=row.verification_code,
            user_id=row.user_id,
            course_id=row.course_id,
            certificate_type=CertificateType(row.certificate_type),
            course_title=row.course_title or "",
            final_exam_score=row.final_exam_score or 0,
            issued_at=ensure_utc_aware(row.issued_at),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage on the progress row."""
        return {
            "certificate_number": self.certificate_number,
            "verification_code": self.verification_code,
            "user_id": str(self.user_id),
            "course_id": str(self.course_id),
            "certificate_type": self.certificate_type.value,
            "course_title": self.course_title,
            "final_exam_score": self.final_exam_score,
            "issued_at": format_datetime(self.issued_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CertificateRecord":
        return cls(
            certificate_number=data["certificate_number"],
            verification_code=data["verification_code"],
            user_id=UUID(data["user_id"]),
            course_id=UUID(data["course_id"]),
            certificate_type=CertificateType(data["certificate_type"]),
            course_title=data.get("course_title", ""),
            final_exam_score=int(data.get("final_exam_score", 0)),
            issued_at=parse_datetime(data["issued_at"]),
        )

    def __repr__(self) -> str:
        return (
            f"<CertificateRecord {self.certificate_number} "
            f"{self.certificate_type.value} user={self.user_id}>"
        )
