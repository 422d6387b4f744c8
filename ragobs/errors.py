"""Exception taxonomy raised by RagObs components.

None of these are transient: every failure is either caller input that can be
corrected and resubmitted, or an identifier that does not exist.
"""

from typing import Optional


class RagObsError(Exception):
    """Base class for all RagObs errors."""


class ValidationError(RagObsError):
    """Raised when a record or argument is malformed. Nothing is mutated."""


class DimensionMismatchError(ValidationError):
    """Raised when an embedding does not have the configured dimension."""

    def __init__(self, expected: int, actual: Optional[int], detail: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        message = detail or f"Embedding dimension mismatch: expected {expected}, got {actual}"
        super().__init__(message)


class NotFoundError(RagObsError):
    """Raised when an error, fix, suggestion or alert id is unknown."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} with id '{identifier}' not found")


class ConfigurationError(RagObsError):
    """Raised at construction time when weights or thresholds are out of range."""
