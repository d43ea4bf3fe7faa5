"""Role model for authorization.

Identity is established by the external identity service; this engine only
authorizes. Roles:
- ADMIN: full access, bypasses every progression gate
- SUPERVISOR: oversight access, bypasses every progression gate
- STUDENT: enrolled learner, subject to every gate
- USER: registered account without student access
"""

from enum import Enum


class Role(str, Enum):
    """Closed set of caller roles.

    Values match the identity service's spelling. Parsing is
    case-insensitive so that "admin", "ADMIN" and "Admin" all resolve.
    """

    USER = "User"
    STUDENT = "Student"
    SUPERVISOR = "SuperVisor"
    ADMIN = "Admin"

    @classmethod
    def _missing_(cls, value: object) -> "Role | None":
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None

    def is_bypass_role(self) -> bool:
        """Admins and supervisors skip progression gating predicates."""
        return self in BYPASS_ROLES


BYPASS_ROLES = frozenset({Role.ADMIN, Role.SUPERVISOR})

# Roles admitted to learner-facing endpoints
LEARNER_ROLES = frozenset({Role.STUDENT, Role.SUPERVISOR, Role.ADMIN})


def parse_role(role: Role | str) -> Role | None:
    """Parse a role, returning None for unknown values."""
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def is_learner_role(role: Role | str) -> bool:
    """Check if the role may use learner-facing endpoints."""
    return parse_role(role) in LEARNER_ROLES
