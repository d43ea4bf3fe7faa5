"""Certificate API endpoints.

Listing requires the owner's token; verification is public and never
reveals the verification code.
"""

from uuid import UUID

from fastapi import APIRouter, Query

from coursegate.auth.dependencies import LearnerIdentity

from .dependencies import CertificateServiceDep
from .schemas import CertificateListResponse, CertificateVerificationResponse


router = APIRouter(prefix="/v1/courses", tags=["certificates"])
public_router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


@router.get(
    "/{course_id}/certificates",
    response_model=CertificateListResponse,
    summary="Get course certificates",
)
async def get_certificates(
    course_id: UUID,
    certificate_service: CertificateServiceDep,
    identity: LearnerIdentity,
) -> CertificateListResponse:
    """The main and HIPAA certificates issued for the course."""
    return await certificate_service.get_certificates(identity.user_id, course_id)


@public_router.get(
    "/verify",
    response_model=CertificateVerificationResponse,
    summary="Verify certificate",
)
async def verify_certificate(
    certificate_service: CertificateServiceDep,
    certificate_number: str = Query(..., min_length=1, max_length=64),
    verification_code: str = Query(..., min_length=1, max_length=32),
) -> CertificateVerificationResponse:
    """Public endpoint: check a certificate number against its code."""
    return await certificate_service.verify_certificate(
        certificate_number, verification_code
    )
