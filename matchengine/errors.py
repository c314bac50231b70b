"""
Typed errors raised by the match engine.

Every public operation either returns a structured result or raises one of
these. ComputationError is internal to scoring: the scorer catches it and
falls back to the signal's neutral value.
"""

from typing import List, Optional


class MatchEngineError(Exception):
    """Base class for all match engine errors."""
    pass


class ValidationError(MatchEngineError):
    """Raised when input or configuration fails validation.

    Raised before any mutation, so no partial state is ever written.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")


class NotFoundError(MatchEngineError):
    """Raised when a student, listing or company cannot be found."""

    def __init__(self, kind: str, identifier: Optional[str]):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"Unknown {kind}: {identifier}")


class ComputationError(MatchEngineError):
    """A signal could not be computed, even from default-eligible data."""

    def __init__(self, signal: str, message: str):
        self.signal = signal
        super().__init__(f"{signal}: {message}")
