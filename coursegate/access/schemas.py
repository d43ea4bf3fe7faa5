"""Pydantic schemas for access checks."""

from pydantic import BaseModel

from coursegate.access.guard import AccessDecision


class AccessDecisionResponse(BaseModel):
    allowed: bool
    reason: str | None = None

    @classmethod
    def from_decision(cls, decision: AccessDecision) -> "AccessDecisionResponse":
        return cls(allowed=decision.allowed, reason=decision.reason)
