"""FastAPI dependencies for assessment sessions."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import AssessmentService


async def get_assessment_service(request: Request) -> AssessmentService:
    """Get assessment service from app state."""
    service = getattr(request.app.state, "assessment_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Assessment service unavailable",
        )
    return service


AssessmentServiceDep = Annotated[AssessmentService, Depends(get_assessment_service)]
