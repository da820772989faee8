"""Shared dataclasses for the screenshot triage pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.logging_utils import redact_secret

from .filters import MAX_FILE_SIZE

SKIP_REASON_TOO_LARGE = "exceeds 5MB limit"


@dataclass(slots=True)
class Candidate:
    """A file that passed the name filter and the size check."""

    path: Path
    name: str
    size: int


@dataclass(slots=True)
class SkipRecord:
    """A filtered file that was not dispatched for classification."""

    name: str
    size: int
    reason: str = SKIP_REASON_TOO_LARGE

    def to_json(self) -> Dict[str, Any]:
        return {"name": self.name, "size": self.size, "reason": self.reason}


@dataclass(slots=True)
class ClassificationRequest:
    candidate: Candidate
    credential: str = field(repr=False)
    parent_category: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"ClassificationRequest(candidate={self.candidate.name!r}, "
            f"credential={redact_secret(self.credential)!r}, parent_category={self.parent_category!r})"
        )


@dataclass(slots=True)
class ClassifierReply:
    """Validated answer of the primary classification prompt."""

    new_filename: str
    category: str
    reasoning: str = ""


@dataclass(slots=True)
class Proposal:
    """Suggested rename and category for one candidate, pending approval."""

    id: str
    original_path: str
    original_name: str
    proposed_name: str
    proposed_category: str
    reasoning: str = ""

    @classmethod
    def from_reply(cls, candidate: Candidate, reply: ClassifierReply) -> "Proposal":
        return cls(
            id=candidate.name,
            original_path=str(candidate.path),
            original_name=candidate.name,
            proposed_name=reply.new_filename,
            proposed_category=reply.category,
            reasoning=reply.reasoning,
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "original_path": self.original_path,
            "original_name": self.original_name,
            "proposed_name": self.proposed_name,
            "proposed_category": self.proposed_category,
            "reasoning": self.reasoning,
        }


@dataclass(slots=True)
class SubcategoryResult:
    id: str
    subcategory: str

    def __post_init__(self) -> None:
        if not self.subcategory.strip():
            raise ValueError("subcategory must not be empty")

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "subcategory": self.subcategory}


@dataclass(slots=True)
class FolderEntry:
    """Listing row for a screenshot file; ``is_valid`` means within the size limit."""

    path: str
    name: str
    size: int
    is_valid: bool

    def to_json(self) -> Dict[str, Any]:
        return {"path": self.path, "name": self.name, "size": self.size, "is_valid": self.is_valid}


@dataclass(slots=True)
class FolderInfo:
    path: str
    name: str

    def to_json(self) -> Dict[str, Any]:
        return {"path": self.path, "name": self.name}


@dataclass(slots=True)
class ScanResult:
    directory: Path
    candidates: List[Candidate] = field(default_factory=list)
    skipped: List[SkipRecord] = field(default_factory=list)
    unreadable: int = 0


@dataclass(slots=True)
class Conflict:
    """Proposal whose destination is already taken or shared with another proposal."""

    id: str
    original_name: str
    proposed_name: str
    proposed_category: str
    destination: str
    reasons: List[str] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "original_name": self.original_name,
            "proposed_name": self.proposed_name,
            "proposed_category": self.proposed_category,
            "destination": self.destination,
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Immutable per-run configuration captured when a run starts."""

    credential: str = field(repr=False)
    debounce_s: float = 2.0
    request_timeout_s: float = 30.0
    max_file_size: int = MAX_FILE_SIZE

    def __repr__(self) -> str:
        return (
            f"RunConfig(credential={redact_secret(self.credential)!r}, debounce_s={self.debounce_s}, "
            f"request_timeout_s={self.request_timeout_s}, "
            f"max_file_size={self.max_file_size})"
        )


__all__ = [
    "Candidate",
    "ClassificationRequest",
    "ClassifierReply",
    "Conflict",
    "FolderEntry",
    "FolderInfo",
    "Proposal",
    "RunConfig",
    "SKIP_REASON_TOO_LARGE",
    "ScanResult",
    "SkipRecord",
    "SubcategoryResult",
]
