"""Caller identity passed explicitly into every engine operation."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from coursegate.auth.permissions import Role


class Identity(BaseModel):
    """Authenticated caller as asserted by the identity service."""

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    role: Role
    email: str | None = None

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, v: object) -> object:
        if isinstance(v, str):
            return Role(v)
        return v

    @property
    def is_bypass(self) -> bool:
        return self.role.is_bypass_role()
