"""Error taxonomy shared by every engine component.

Each error carries a stable machine-readable ``code``, a human-readable
message and a ``context`` dict with whatever the caller needs to decide how
to proceed (retry time, conflicting session id, ...). The HTTP layer maps
``status_code`` onto the response; services never build responses.
"""

from datetime import datetime
from typing import Any


class EngineError(Exception):
    """Base exception for progression and assessment failures."""

    status_code: int = 400
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: str = "engine_error",
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an error response body."""
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "context": {
                key: value.isoformat() if isinstance(value, datetime) else value
                for key, value in self.context.items()
            },
        }


class AccessDeniedError(EngineError):
    """A prerequisite is not met yet."""

    status_code = 403

    def __init__(self, reason: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(reason, "access_denied", context)
        self.reason = reason


class CooldownActiveError(EngineError):
    """A new attempt was requested before the cooldown elapsed."""

    status_code = 429

    def __init__(self, retry_at: datetime, remaining_seconds: int) -> None:
        super().__init__(
            f"A new attempt is available in {_format_remaining(remaining_seconds)}",
            "cooldown_active",
            {"retry_at": retry_at, "remaining_seconds": remaining_seconds},
        )
        self.retry_at = retry_at
        self.remaining_seconds = remaining_seconds


class AlreadyPassedError(EngineError):
    """The assessment gate has already been passed."""

    status_code = 409

    def __init__(self, message: str = "This assessment has already been passed"):
        super().__init__(message, "already_passed")


class SessionConflictError(EngineError):
    """An Active session already exists for the same (user, target)."""

    status_code = 409

    def __init__(self, session_id: Any, expires_at: datetime | None = None) -> None:
        super().__init__(
            "An assessment session is already in progress; "
            "submit or abandon it first",
            "session_conflict",
            {"session_id": str(session_id), "expires_at": expires_at},
        )
        self.session_id = session_id


class InvalidSessionError(EngineError):
    """Unknown, foreign, expired or already terminal session."""

    status_code = 410

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, "invalid_session", context)


class AnswerValidationError(EngineError):
    """Malformed answer payload; the attempt is not consumed."""

    status_code = 422

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, "validation_error", context)


class NotFoundError(EngineError):
    """Course, chapter, lesson, progress or certificate not found."""

    status_code = 404

    def __init__(self, message: str) -> None:
        super().__init__(message, "not_found")


class ProgressConflictError(EngineError):
    """Optimistic write on a progress row kept losing to concurrent writers."""

    status_code = 409
    retryable = True

    def __init__(self, message: str = "Progress was modified concurrently") -> None:
        super().__init__(message, "progress_conflict")


class StorageUnavailableError(EngineError):
    """Transient storage failure; nothing was partially written."""

    status_code = 503
    retryable = True

    def __init__(self, message: str = "Storage temporarily unavailable") -> None:
        super().__init__(message, "storage_unavailable")


def _format_remaining(seconds: int) -> str:
    hours, rest = divmod(max(seconds, 0), 3600)
    minutes = -(-rest // 60)
    if minutes == 60:
        hours, minutes = hours + 1, 0
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"
