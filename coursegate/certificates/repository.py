"""Cassandra access for certificate lookups and number allocation.

The sequence row is advanced with compare-and-set (``IF value = ?``), so two
issuers can never receive the same number. Numbers lost to a failed issuance
are simply skipped: they stay unique and increasing, not contiguous.
"""

from typing import TYPE_CHECKING

import structlog
from cassandra.query import BatchStatement, BatchType

from coursegate.certificates.models import (
    CERTIFICATE_SEQUENCE_NAME,
    CertificateRecord,
)
from coursegate.core.exceptions import StorageUnavailableError


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)

MAX_ALLOCATION_ATTEMPTS = 10


class CertificateRepository:
    """Certificate lookup rows and the number sequence."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_sequence = self.session.prepare(f"""
            SELECT value FROM {self.keyspace}.certificate_sequence
            WHERE name = ?
        """)

        self._init_sequence = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificate_sequence (name, value)
            VALUES (?, ?)
            IF NOT EXISTS
        """)

        self._advance_sequence = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificate_sequence
            SET value = ?
            WHERE name = ?
            IF value = ?
        """)

        self._insert_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates
            (certificate_number, verification_code, user_id, course_id,
             certificate_type, course_title, final_exam_score, issued_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_user
            (user_id, course_id, certificate_type, certificate_number,
             verification_code, course_title, final_exam_score, issued_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_by_number = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates
            WHERE certificate_number = ?
        """)

    # ==========================================================================
    # Sequence
    # ==========================================================================

    async def allocate_sequence(self, count: int) -> list[int]:
        """Reserve ``count`` consecutive sequence numbers.

        Raises:
            StorageUnavailableError: If the counter stayed contended
        """
        for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
            result = await self.session.aexecute(
                self._get_sequence, [CERTIFICATE_SEQUENCE_NAME]
            )
            row = result.one()

            if row is None:
                applied = await self.session.aexecute(
                    self._init_sequence, [CERTIFICATE_SEQUENCE_NAME, count]
                )
                if applied.was_applied:
                    return list(range(1, count + 1))
            else:
                current = row.value or 0
                applied = await self.session.aexecute(
                    self._advance_sequence,
                    [current + count, CERTIFICATE_SEQUENCE_NAME, current],
                )
                if applied.was_applied:
                    return list(range(current + 1, current + count + 1))

            logger.info("certificate_sequence_contended", attempt=attempt)

        raise StorageUnavailableError("Could not allocate a certificate number")

    # ==========================================================================
    # Lookup rows
    # ==========================================================================

    async def write_lookup_rows(self, records: list[CertificateRecord]) -> None:
        """Write the verification and per-user rows in one logged batch."""
        batch = BatchStatement(batch_type=BatchType.LOGGED)
        for record in records:
            batch.add(
                self._insert_certificate,
                [
                    record.certificate_number,
                    record.verification_code,
                    record.user_id,
                    record.course_id,
                    record.certificate_type.value,
                    record.course_title,
                    record.final_exam_score,
                    record.issued_at,
                ],
            )
            batch.add(
                self._insert_by_user,
                [
                    record.user_id,
                    record.course_id,
                    record.certificate_type.value,
                    record.certificate_number,
                    record.verification_code,
                    record.course_title,
                    record.final_exam_score,
                    record.issued_at,
                ],
            )
        await self.session.aexecute(batch)

    async def get_by_number(self, certificate_number: str) -> CertificateRecord | None:
        result = await self.session.aexecute(self._get_by_number, [certificate_number])
        row = result.one()
        return CertificateRecord.from_row(row) if row else None
