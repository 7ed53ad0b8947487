"""Exceptions raised by the search engine."""

from __future__ import annotations


class InvalidCandidateError(ValueError):
    """A candidate violates the bounds, levels or dependencies of its search space."""


class EvaluationError(RuntimeError):
    """The evaluation collaborator broke its contract for a whole batch."""
