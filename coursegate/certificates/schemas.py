"""Pydantic schemas for certificates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from coursegate.certificates.models import CertificateRecord, CertificateType


class CertificateResponse(BaseModel):
    """Issued certificate as returned to its owner."""

    certificate_number: str
    verification_code: str
    certificate_type: CertificateType
    course_id: UUID
    course_title: str
    final_exam_score: int
    issued_at: datetime

    @classmethod
    def from_record(cls, record: CertificateRecord) -> "CertificateResponse":
        return cls(
            certificate_number=record.certificate_number,
            verification_code=record.verification_code,
            certificate_type=record.certificate_type,
            course_id=record.course_id,
            course_title=record.course_title,
            final_exam_score=record.final_exam_score,
            issued_at=record.issued_at,
        )


class CertificateListResponse(BaseModel):
    course_id: UUID
    certificates: list[CertificateResponse]


class CertificateVerificationResponse(BaseModel):
    """Public verification result; never exposes the verification code."""

    valid: bool
    certificate_number: str
    certificate_type: CertificateType | None = None
    course_title: str | None = None
    issued_at: datetime | None = None
    message: str = Field(default="")

    @classmethod
    def from_record(
        cls, certificate_number: str, record: CertificateRecord | None
    ) -> "CertificateVerificationResponse":
        if record is None:
            return cls(
                valid=False,
                certificate_number=certificate_number,
                message="Certificate not found or verification code mismatch",
            )
        return cls(
            valid=True,
            certificate_number=record.certificate_number,
            certificate_type=record.certificate_type,
            course_title=record.course_title,
            issued_at=record.issued_at,
            message="Certificate is valid",
        )
