"""SDK error types."""

from __future__ import annotations


class ProblemValidationError(Exception):
    """Raised when a problem YAML fails parsing or validation."""
