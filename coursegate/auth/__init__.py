"""Caller identity and role-based authorization."""

from coursegate.auth.permissions import Role
from coursegate.auth.schemas import Identity


__all__ = ["Identity", "Role"]
