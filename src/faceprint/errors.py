"""Exception taxonomy for template creation and comparison.

Nothing in Faceprint retries: every error propagates to the caller, who
decides what to do with it.
"""

from __future__ import annotations

from typing import Any


class FaceprintError(Exception):
    """Base class for all Faceprint errors."""

    def __init__(self, message: str, details: Any | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class InitializationError(FaceprintError):
    """A model file could not be read or the native engine rejected it."""


class InvalidRegionError(FaceprintError):
    """A face rectangle does not overlap the image after clamping."""


class ExtractionError(FaceprintError):
    """The native layer failed while aligning a face or computing its embedding."""


class DimensionMismatchError(FaceprintError):
    """A candidate template is incompatible with the query template."""

    def __init__(self, index: int, expected: object, actual: object) -> None:
        self.index = index
        self.expected = expected
        self.actual = actual
        super().__init__(f"Candidate {index} is incompatible with the query: expected {expected}, got {actual}")


class ClosedEngineError(FaceprintError):
    """The engine or its extractor handle was used after being closed."""

    def __init__(self, message: str = "Engine is closed") -> None:
        super().__init__(message)
