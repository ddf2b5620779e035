from __future__ import annotations


class EditorError(Exception):
    """Base class for errors surfaced to the user of an editing session."""


class ValidationError(EditorError, ValueError):
    """Raised when an edit is rejected locally and no request is sent.

    Examples: a crop rectangle that degenerates below the minimum size, an unknown
    slider name, or an operation that needs image dimensions that are not known yet.
    """


class ServiceError(EditorError):
    """Raised when the processing or RAW preview service fails or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(EditorError):
    """Raised when a source file cannot be decoded into a previewable image."""
