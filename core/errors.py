"""core.errors

Error taxonomy shared by core and engine.
"""

from __future__ import annotations


class LabelSimError(Exception):
    """Base error for the label simulation."""


class ConfigurationError(LabelSimError, ValueError):
    """Balance tables or catalogs are missing or malformed. Fatal for a turn."""


class ValidationError(LabelSimError, ValueError):
    """An action references a missing/ineligible target or exceeds focus slots."""

    def __init__(self, message: str, *, code: str = "invalid_action") -> None:
        super().__init__(message)
        self.code = code


class ReleaseConflictError(ValidationError):
    """A song is already reserved by another planned release."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="release_conflict")


class ConsistencyWarning(LabelSimError):
    """State is inconsistent and no safe forward correction exists."""

    def __init__(self, message: str, *, code: str = "inconsistent_state") -> None:
        super().__init__(message)
        self.code = code


class StaleTurnError(LabelSimError):
    """A week was submitted for a game that has already resolved it."""
