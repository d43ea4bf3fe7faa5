"""Prerequisite gating for lessons, chapter tests and the final exam."""

from .guard import AccessDecision


__all__ = ["AccessDecision"]
