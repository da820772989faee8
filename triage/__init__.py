"""Screenshot triage: scan, classify, propose and move screenshots into categories."""
from __future__ import annotations

from .classifier import ClassifierClient, ClassifierSettings
from .errors import (
    ClassificationError,
    ExecuteError,
    FileTooLargeError,
    RefineError,
    ScanError,
    TriageError,
)
from .events import EventBus, RecordingSink, TriageEvent
from .service import TriageService, TriageSettings
from .types import Candidate, Conflict, FolderEntry, FolderInfo, Proposal, RunConfig, SubcategoryResult

__all__ = [
    "Candidate",
    "ClassificationError",
    "ClassifierClient",
    "ClassifierSettings",
    "Conflict",
    "EventBus",
    "ExecuteError",
    "FileTooLargeError",
    "FolderEntry",
    "FolderInfo",
    "Proposal",
    "RecordingSink",
    "RefineError",
    "RunConfig",
    "ScanError",
    "SubcategoryResult",
    "TriageError",
    "TriageEvent",
    "TriageService",
    "TriageSettings",
]
