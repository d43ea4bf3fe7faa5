"""Bearer token verification.

Tokens are minted by the external identity service; this module only
verifies the signature and expiry and extracts the claims the engine needs.
"""

from typing import Any

from jose import JWTError, jwt

from coursegate.config.settings import get_settings


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Validates:
    - JWT signature
    - Expiration time
    - Token type == "access" when the claim is present
    - Presence of the subject and role claims

    Raises:
        JWTError: If token is invalid, expired, or incomplete
    """
    settings = get_settings()

    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )

    token_type = payload.get("type")
    if token_type is not None and token_type != "access":
        msg = "Invalid token type: expected 'access'"
        raise JWTError(msg)

    if not payload.get("sub") or not payload.get("role"):
        msg = "Token is missing subject or role"
        raise JWTError(msg)

    return payload
