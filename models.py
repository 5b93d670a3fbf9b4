"""
Data Models for the Upload Binding Engine
==========================================

Pydantic models for pending uploads, stored references and the per-item
states produced while reconciling a submission against persisted values.
"""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PendingUpload(BaseModel):
    """Upload already decoded by the transport layer and spooled to disk."""

    temporary_path: str = Field(..., description="Path of the spooled upload bytes")
    original_filename: str = Field(..., description="Filename provided by the client")
    declared_size: int = Field(default=0, ge=0, description="Size declared by the client in bytes")
    content_type: Optional[str] = Field(default=None, description="MIME type claimed by the client")


class StoredReference(BaseModel):
    """Immutable pointer to a file persisted under the storage root."""

    model_config = ConfigDict(frozen=True)

    storage_path: str = Field(..., min_length=1, description="POSIX path relative to the storage root")


class AttachmentAction(str, Enum):
    """Outcome of reconciling one attachment slot"""
    UNCHANGED = "unchanged"
    CREATE = "create"
    REPLACE = "replace"
    DELETE = "delete"


class AttachmentState(BaseModel):
    """Per-item decision computed from the previous reference and the submitted data."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Position of the item in the collection")
    action: AttachmentAction
    existing: Optional[StoredReference] = None
    upload: Optional[PendingUpload] = None

    @model_validator(mode="after")
    def _check_action_payload(self) -> "AttachmentState":
        if self.action in (AttachmentAction.DELETE, AttachmentAction.REPLACE, AttachmentAction.UNCHANGED):
            if self.existing is None:
                raise ValueError(f"{self.action.value} state requires an existing reference")
        if self.action == AttachmentAction.CREATE and self.existing is not None:
            raise ValueError("create state must not carry an existing reference")
        needs_upload = self.action in (AttachmentAction.CREATE, AttachmentAction.REPLACE)
        if needs_upload and self.upload is None:
            raise ValueError(f"{self.action.value} state requires an upload")
        if not needs_upload and self.upload is not None:
            raise ValueError(f"{self.action.value} state must not carry an upload")
        return self


class SubmittedItem(BaseModel):
    """Raw submitted fields for one attachment slot."""

    file: Optional[PendingUpload] = None
    delete: bool = False


class Effect(BaseModel):
    """Storage action issued during reconciliation."""

    kind: Literal["move", "delete"]
    index: int
    upload: Optional[PendingUpload] = None
    destination: Optional[str] = None
    reference: Optional[StoredReference] = None


class ItemError(BaseModel):
    """Failure attached to a single item of a submission."""

    index: int
    error_type: str
    message: str


class ReconciliationResult(BaseModel):
    """New persisted references plus everything that happened to produce them."""

    references: List[StoredReference] = Field(default_factory=list)
    effects: List[Effect] = Field(default_factory=list)
    states: List[AttachmentState] = Field(default_factory=list)
    errors: List[ItemError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
