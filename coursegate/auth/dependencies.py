"""FastAPI dependencies for caller identity.

Provides dependency injection for:
- Identity extraction from the bearer token
- The learner role check
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from coursegate.auth.permissions import Role, is_learner_role
from coursegate.auth.schemas import Identity
from coursegate.auth.security import decode_access_token
from coursegate.core.context import set_user_id, set_user_role


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_current_identity(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> Identity:
    """Get the caller's identity from the JWT access token.

    Raises:
        HTTPException(401): If token is missing, invalid, expired, or names
            an unknown role
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(token)
        identity = Identity(
            user_id=UUID(str(payload["sub"])),
            role=Role(payload["role"]),
            email=payload.get("email"),
        )
    except (JWTError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    # For logging only; services receive the identity explicitly
    set_user_id(identity.user_id)
    set_user_role(identity.role.value)

    return identity


async def require_learner(
    identity: Annotated[Identity, Depends(get_current_identity)],
) -> Identity:
    """Require a role admitted to learner endpoints (Student, SuperVisor, Admin)."""
    if not is_learner_role(identity.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Student access required",
        )
    return identity


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

LearnerIdentity = Annotated[Identity, Depends(require_learner)]
