"""FastAPI dependencies for access checks."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import AccessGuard


async def get_access_guard(request: Request) -> AccessGuard:
    """Get access guard from app state."""
    guard = getattr(request.app.state, "access_guard", None)
    if guard is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Access service unavailable",
        )
    return guard


AccessGuardDep = Annotated[AccessGuard, Depends(get_access_guard)]
