"""Certificate issuance service.

Issues the (main, HIPAA) pair exactly once per (user, course):
1. Allocate two sequence numbers and one verification code
2. Store both records and the completion flags on the progress row in a
   single conditional write (the loser of a race adopts the winner's pair)
3. Write the lookup rows used for verification and listing
4. Publish a hand-off event for the external renderer and mailer
"""

import secrets
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

import orjson
import structlog

from coursegate.catalog.service import CatalogReader
from coursegate.certificates.models import CertificateRecord, CertificateType
from coursegate.certificates.repository import CertificateRepository
from coursegate.certificates.schemas import (
    CertificateListResponse,
    CertificateResponse,
    CertificateVerificationResponse,
)
from coursegate.config.settings import Settings
from coursegate.core.exceptions import NotFoundError
from coursegate.core.redis import certificate_user_channel
from coursegate.progress.models import CourseProgress
from coursegate.progress.service import ProgressService
from coursegate.utils.timeutils import Clock, utcnow


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)


def format_certificate_number(prefix: str, year: int, sequence: int) -> str:
    """MIC-2026-000042"""
    return f"{prefix}{year}-{sequence:06d}"


def generate_verification_code() -> str:
    """8 upper-case hex characters."""
    return secrets.token_hex(4).upper()


class CertificateService:
    """Service for certificate issuance, listing and verification."""

    def __init__(
        self,
        repository: CertificateRepository,
        progress_service: ProgressService,
        catalog: CatalogReader,
        settings: Settings,
        redis: "Redis | None" = None,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.progress_service = progress_service
        self.catalog = catalog
        self.settings = settings
        self.redis = redis
        self.clock = clock

    # ==========================================================================
    # Issuance
    # ==========================================================================

    async def issue(
        self,
        user_id: UUID,
        course_id: UUID,
        final_exam_score: int,
        course_title: str,
    ) -> list[CertificateRecord]:
        """Issue the certificate pair, or return the pair already issued.

        Returns:
            The main and HIPAA records, in that order
        """
        existing = await self.progress_service.get_progress(user_id, course_id)
        if existing is not None and existing.certificate_issued:
            await self._ensure_lookup_rows(existing.certificates)
            return list(existing.certificates)

        now = self.clock()
        records = await self._build_records(
            user_id, course_id, final_exam_score, course_title, now
        )

        def apply(progress: CourseProgress) -> bool:
            if progress.certificate_issued:
                return False
            progress.certificates = list(records)
            progress.certificate_issued = True
            progress.course_completed = True
            progress.completed_at = now
            return True

        progress, issued_now = await self.progress_service.mutate(
            user_id, course_id, apply
        )
        if not issued_now:
            logger.info(
                "certificate_issue_superseded",
                user_id=str(user_id),
                course_id=str(course_id),
            )
            await self._ensure_lookup_rows(progress.certificates)
            return list(progress.certificates)

        await self.repository.write_lookup_rows(records)
        logger.info(
            "certificate_issued",
            user_id=str(user_id),
            course_id=str(course_id),
            certificate_numbers=[r.certificate_number for r in records],
            final_exam_score=final_exam_score,
        )
        await self._publish_issued(user_id, course_id, records)
        return records

    async def _build_records(
        self,
        user_id: UUID,
        course_id: UUID,
        final_exam_score: int,
        course_title: str,
        issued_at: datetime,
    ) -> list[CertificateRecord]:
        main_seq, hipaa_seq = await self.repository.allocate_sequence(2)
        code = generate_verification_code()
        prefix = self.settings.certificate_prefix

        def record(
            certificate_type: CertificateType, sequence: int, title: str
        ) -> CertificateRecord:
            return CertificateRecord(
                certificate_number=format_certificate_number(
                    prefix, issued_at.year, sequence
                ),
                verification_code=code,
                user_id=user_id,
                course_id=course_id,
                certificate_type=certificate_type,
                course_title=title,
                final_exam_score=final_exam_score,
                issued_at=issued_at,
            )

        return [
            record(CertificateType.MAIN, main_seq, course_title),
            record(
                CertificateType.HIPAA,
                hipaa_seq,
                self.settings.hipaa_certificate_title,
            ),
        ]

    async def _ensure_lookup_rows(self, records: list[CertificateRecord]) -> None:
        """Rewrite lookup rows that a failed earlier issuance left behind."""
        if not records:
            return
        if await self.repository.get_by_number(records[0].certificate_number):
            return
        logger.warning(
            "certificate_lookup_rows_repaired",
            certificate_numbers=[r.certificate_number for r in records],
        )
        await self.repository.write_lookup_rows(records)

    async def _publish_issued(
        self, user_id: UUID, course_id: UUID, records: list[CertificateRecord]
    ) -> None:
        """Publish the hand-off event to Redis Pub/Sub."""
        if not self.redis:
            return

        message = orjson.dumps(
            {
                "type": "certificate_issued",
                "data": {
                    "user_id": str(user_id),
                    "course_id": str(course_id),
                    "certificates": [r.to_dict() for r in records],
                },
            }
        ).decode()
        channel = self.settings.certificate_events_channel

        # Non-critical: issuance is already durable
        try:
            await self.redis.publish(channel, message)
            await self.redis.publish(
                certificate_user_channel(channel, str(user_id)), message
            )
        except Exception as e:
            logger.warning(
                "certificate_event_publish_failed",
                user_id=str(user_id),
                course_id=str(course_id),
                error=str(e),
            )

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_certificates(
        self, user_id: UUID, course_id: UUID
    ) -> CertificateListResponse:
        """The issued pair for a course.

        A passed final exam whose issuance never completed is issued here.

        Raises:
            NotFoundError: If no certificate was issued for the course
        """
        progress = await self.progress_service.get_progress(user_id, course_id)
        if progress is None:
            raise NotFoundError("No certificates issued for this course")

        records = progress.certificates
        if not progress.certificate_issued:
            if not progress.final_exam.passed:
                raise NotFoundError("No certificates issued for this course")
            course = await self.catalog.get_course(course_id)
            if course is None:
                raise NotFoundError("Course not found")
            logger.warning(
                "certificate_issue_resumed",
                user_id=str(user_id),
                course_id=str(course_id),
            )
            records = await self.issue(
                user_id, course_id, progress.final_exam.best_score, course.title
            )

        return CertificateListResponse(
            course_id=course_id,
            certificates=[CertificateResponse.from_record(r) for r in records],
        )

    async def verify_certificate(
        self, certificate_number: str, verification_code: str
    ) -> CertificateVerificationResponse:
        """Public verification by number and code."""
        record = await self.repository.get_by_number(certificate_number.strip())
        if record is not None and not secrets.compare_digest(
            record.verification_code, verification_code.strip().upper()
        ):
            record = None

        logger.info(
            "certificate_verified",
            certificate_number=certificate_number,
            valid=record is not None,
        )
        return CertificateVerificationResponse.from_record(certificate_number, record)
