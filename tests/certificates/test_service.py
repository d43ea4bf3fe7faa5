"""Tests for certificate issuance and verification."""

from unittest.mock import AsyncMock, patch

import orjson
import pytest

from coursegate.certificates.models import CertificateType
from coursegate.certificates.service import (
    CertificateService,
    format_certificate_number,
    generate_verification_code,
)
from coursegate.core.exceptions import NotFoundError
from tests.fakes import correct_answers, ready_for_exam


TITLE = "Medical Interpreter Certification"


class TestHelpers:
    def test_number_format(self) -> None:
        assert format_certificate_number("MIC-", 2026, 42) == "MIC-2026-000042"

    def test_verification_code_shape(self) -> None:
        code = generate_verification_code()
        assert len(code) == 8
        assert code == code.upper()
        int(code, 16)


class TestIssue:
    @pytest.mark.asyncio
    async def test_issues_pair_once(
        self, certificate_service, certificate_repo, progress_service, student, sample
    ) -> None:
        first = await certificate_service.issue(student.user_id, sample.id, 90, TITLE)
        second = await certificate_service.issue(student.user_id, sample.id, 95, TITLE)

        assert second == first
        assert certificate_repo.sequence == 2
        assert certificate_repo.lookup_writes == 1
        main, hipaa = first
        assert main.certificate_type is CertificateType.MAIN
        assert main.course_title == TITLE
        assert hipaa.certificate_type is CertificateType.HIPAA
        assert main.verification_code == hipaa.verification_code
        assert main.final_exam_score == 90

        progress = await progress_service.get_progress(student.user_id, sample.id)
        assert progress.course_completed is True
        assert progress.certificate_issued is True
        assert progress.completed_at == main.issued_at

    @pytest.mark.asyncio
    async def test_numbers_increase_across_learners(
        self, certificate_service, student, admin, sample
    ) -> None:
        a = await certificate_service.issue(student.user_id, sample.id, 90, TITLE)
        b = await certificate_service.issue(admin.user_id, sample.id, 90, TITLE)

        assert [r.certificate_number for r in a + b] == [
            "MIC-2026-000001",
            "MIC-2026-000002",
            "MIC-2026-000003",
            "MIC-2026-000004",
        ]

    @pytest.mark.asyncio
    async def test_loser_adopts_winner_pair(
        self, certificate_service, certificate_repo, progress_service, student, sample
    ) -> None:
        winner = await certificate_service.issue(student.user_id, sample.id, 90, TITLE)
        # The loser read progress before the winner's write landed
        progress_service.get_progress = AsyncMock(return_value=None)

        loser = await certificate_service.issue(student.user_id, sample.id, 85, TITLE)

        assert loser == winner
        # Numbers were allocated, then skipped
        assert certificate_repo.sequence == 4
        assert certificate_repo.lookup_writes == 1

    @pytest.mark.asyncio
    async def test_missing_lookup_rows_are_repaired(
        self, certificate_service, certificate_repo, student, sample
    ) -> None:
        records = await certificate_service.issue(
            student.user_id, sample.id, 90, TITLE
        )
        certificate_repo.by_number.clear()

        await certificate_service.issue(student.user_id, sample.id, 90, TITLE)

        assert certificate_repo.lookup_writes == 2
        assert set(certificate_repo.by_number) == {
            r.certificate_number for r in records
        }

    @pytest.mark.asyncio
    async def test_publishes_event(
        self,
        certificate_repo,
        progress_service,
        catalog,
        settings,
        clock,
        student,
        sample,
    ) -> None:
        redis = AsyncMock()
        service = CertificateService(
            certificate_repo, progress_service, catalog, settings, redis, clock
        )

        await service.issue(student.user_id, sample.id, 90, TITLE)

        channels = [c.args[0] for c in redis.publish.await_args_list]
        assert channels == [
            "certificates:issued",
            f"certificates:issued:user:{student.user_id}",
        ]
        message = orjson.loads(redis.publish.await_args_list[0].args[1])
        assert message["type"] == "certificate_issued"
        assert len(message["data"]["certificates"]) == 2

    @pytest.mark.asyncio
    async def test_publish_failure_is_logged(
        self,
        certificate_repo,
        progress_service,
        catalog,
        settings,
        clock,
        student,
        sample,
    ) -> None:
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        service = CertificateService(
            certificate_repo, progress_service, catalog, settings, redis, clock
        )

        with patch("coursegate.certificates.service.logger") as logger:
            records = await service.issue(student.user_id, sample.id, 90, TITLE)

        assert len(records) == 2
        logger.warning.assert_called_once_with(
            "certificate_event_publish_failed",
            user_id=str(student.user_id),
            course_id=str(sample.id),
            error="redis down",
        )


class TestGetCertificates:
    @pytest.mark.asyncio
    async def test_no_progress(self, certificate_service, student, sample) -> None:
        with pytest.raises(NotFoundError):
            await certificate_service.get_certificates(student.user_id, sample.id)

    @pytest.mark.asyncio
    async def test_exam_not_passed(
        self, certificate_service, progress_service, student, sample
    ) -> None:
        await progress_service.get_or_create_progress(student.user_id, sample.id)

        with pytest.raises(NotFoundError):
            await certificate_service.get_certificates(student.user_id, sample.id)

    @pytest.mark.asyncio
    async def test_lists_issued_pair(
        self, certificate_service, assessment_service, progress_service, student, sample
    ) -> None:
        await ready_for_exam(assessment_service, progress_service, student, sample)
        await assessment_service.submit_final_exam(
            student, sample.id, correct_answers(sample.exam_questions)
        )

        listing = await certificate_service.get_certificates(
            student.user_id, sample.id
        )

        assert [c.certificate_type for c in listing.certificates] == [
            CertificateType.MAIN,
            CertificateType.HIPAA,
        ]
        assert listing.certificates[0].final_exam_score == 100

    @pytest.mark.asyncio
    async def test_resumes_interrupted_issuance(
        self, certificate_service, progress_service, catalog, student, sample, clock
    ) -> None:
        outline = catalog.outline(sample.id)
        await progress_service.record_exam_attempt(
            student.user_id, outline, 85, True, clock.now
        )

        listing = await certificate_service.get_certificates(
            student.user_id, sample.id
        )

        assert len(listing.certificates) == 2
        assert listing.certificates[0].course_title == TITLE
        assert listing.certificates[0].final_exam_score == 85


class TestVerify:
    @pytest.mark.asyncio
    async def test_valid_code(self, certificate_service, student, sample) -> None:
        main, _ = await certificate_service.issue(
            student.user_id, sample.id, 90, TITLE
        )

        result = await certificate_service.verify_certificate(
            f" {main.certificate_number} ", main.verification_code.lower()
        )

        assert result.valid is True
        assert result.certificate_type is CertificateType.MAIN
        assert result.course_title == TITLE

    @pytest.mark.asyncio
    async def test_wrong_code(self, certificate_service, student, sample) -> None:
        main, _ = await certificate_service.issue(
            student.user_id, sample.id, 90, TITLE
        )

        result = await certificate_service.verify_certificate(
            main.certificate_number, "00000000"
        )

        assert result.valid is False
        assert result.course_title is None

    @pytest.mark.asyncio
    async def test_unknown_number(self, certificate_service) -> None:
        result = await certificate_service.verify_certificate(
            "MIC-2026-999999", "ABCDEF12"
        )
        assert result.valid is False
