"""Pydantic schemas for the SmartDump local API."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from triage.types import Proposal


class HealthResponse(BaseModel):
    """Health response summarising server readiness and realtime status."""

    ok: bool = Field(True, description="Indicates the API server is reachable.")
    version: str = Field(..., description="Application version string.")
    time_utc: str = Field(..., description="Current UTC timestamp in ISO8601 format.")
    watching: bool = Field(..., description="True while a live folder watch is active.")
    sse_clients: int = Field(..., description="Active Server-Sent Event subscriber count.")
    ws_clients: int = Field(..., description="Active WebSocket subscriber count.")


class MessageResponse(BaseModel):
    message: str = Field(..., description="Human readable outcome of the operation.")


class StartRunRequest(BaseModel):
    """Start a classification run over one folder."""

    folder: str = Field(..., description="Absolute path of the folder to scan.")
    api_key: str = Field(..., description="Provider credential used for every call of this run.")
    selected_paths: Optional[List[str]] = Field(
        None, description="Restrict dispatch to these candidate paths when given."
    )
    watch: Optional[bool] = Field(
        None, description="Keep watching the folder for new screenshots; defaults to triage.watch.enable."
    )


class FolderEntryModel(BaseModel):
    path: str = Field(..., description="Absolute path of the screenshot.")
    name: str = Field(..., description="File name.")
    size: int = Field(..., ge=0, description="Size in bytes; 0 when metadata could not be read.")
    is_valid: bool = Field(..., description="True when the file is within the size limit.")


class FilesResponse(BaseModel):
    folder: str = Field(..., description="Folder that was listed.")
    files: List[FolderEntryModel] = Field(default_factory=list, description="Screenshots sorted by name.")


class FolderInfoModel(BaseModel):
    path: str = Field(..., description="Absolute path of the subfolder.")
    name: str = Field(..., description="Subfolder name.")


class FoldersResponse(BaseModel):
    folder: str = Field(..., description="Folder that was listed.")
    folders: List[FolderInfoModel] = Field(default_factory=list, description="Visible subfolders sorted by name.")


class ApplyRequest(BaseModel):
    original_path: str = Field(..., description="Current location of the screenshot.")
    new_path: str = Field(..., description="Destination path including the new file name.")


class ProposalModel(BaseModel):
    """Suggested rename and category for one screenshot."""

    id: str = Field(..., description="Identifier of the proposal (the original file name).")
    original_path: str = Field(..., description="Absolute path of the screenshot.")
    original_name: str = Field(..., description="Original file name.")
    proposed_name: str = Field(..., description="Suggested file name.")
    proposed_category: str = Field(..., description="Suggested category, optionally Parent/Sub.")
    reasoning: str = Field("", description="Short justification returned by the classifier.")

    def to_proposal(self) -> Proposal:
        return Proposal(
            id=self.id,
            original_path=self.original_path,
            original_name=self.original_name,
            proposed_name=self.proposed_name,
            proposed_category=self.proposed_category,
            reasoning=self.reasoning,
        )


class SubcategoryRequest(BaseModel):
    file_path: str = Field(..., description="Screenshot to refine.")
    parent_category: str = Field(..., description="Top-level category assigned by the first pass.")
    api_key: str = Field(..., description="Provider credential for this call.")
    proposal: Optional[ProposalModel] = Field(
        None, description="When given, the response also carries this proposal filed under the subcategory."
    )


class SubcategoryResponse(BaseModel):
    id: str = Field(..., description="File name of the refined screenshot.")
    subcategory: str = Field(..., description="Subcategory proposed by the classifier.")
    proposal: Optional[ProposalModel] = Field(
        None, description="The submitted proposal with its category rewritten to Parent/Subcategory."
    )


class ProposalsRequest(BaseModel):
    proposals: List[ProposalModel] = Field(default_factory=list, description="Proposals to inspect.")


class ProposalsResponse(BaseModel):
    proposals: List[ProposalModel] = Field(default_factory=list, description="Rewritten proposals.")


class ConflictModel(BaseModel):
    id: str = Field(..., description="Identifier of the conflicting proposal.")
    original_name: str = Field(..., description="Original file name.")
    proposed_name: str = Field(..., description="Suggested file name.")
    proposed_category: str = Field(..., description="Suggested category.")
    destination: str = Field(..., description="Resolved destination path.")
    reasons: List[str] = Field(
        default_factory=list, description="'destination exists' and/or 'duplicate destination'."
    )


class ConflictsResponse(BaseModel):
    conflicts: List[ConflictModel] = Field(default_factory=list, description="Proposals that would collide.")


__all__ = [
    "ApplyRequest",
    "ConflictModel",
    "ConflictsResponse",
    "FilesResponse",
    "FolderEntryModel",
    "FolderInfoModel",
    "FoldersResponse",
    "HealthResponse",
    "MessageResponse",
    "ProposalModel",
    "ProposalsRequest",
    "ProposalsResponse",
    "StartRunRequest",
    "SubcategoryRequest",
    "SubcategoryResponse",
]
