"""Error hierarchy for the triage pipeline."""
from __future__ import annotations


class TriageError(RuntimeError):
    """Base exception for triage failures."""


class ScanError(TriageError):
    """Raised when the scanned directory itself cannot be opened."""


class ClassificationError(TriageError):
    """Raised when the provider call fails or its reply breaks the response contract.

    ``kind`` is one of ``transport``, ``timeout``, ``status`` or ``contract``.
    """

    def __init__(self, message: str, *, kind: str = "contract", status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class ExecuteError(TriageError):
    """Raised when an approved move cannot be applied."""


class RefineError(TriageError):
    """Raised when a subcategory cannot be produced."""


class FileTooLargeError(RefineError):
    """Raised when a file exceeds the size limit on the refinement path."""


__all__ = [
    "ClassificationError",
    "ExecuteError",
    "FileTooLargeError",
    "RefineError",
    "ScanError",
    "TriageError",
]
