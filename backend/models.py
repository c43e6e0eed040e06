"""Shared backend models for Synapse."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class SelectionState(str, Enum):
    """Which strategy produced a context chain."""

    SELECTION_PROVIDED = "selection"
    BRANCH_ACTIVE = "branch"
    NO_SELECTION = "auto"


def _timestamp() -> float:
    return time.time()


@dataclass(frozen=True)
class DocumentHandle:
    """Stable identity of a note. Two handles are equal iff their paths are."""

    path: str
    name: str = field(default="", compare=False)

    @classmethod
    def from_path(cls, path: str) -> "DocumentHandle":
        return cls(path=path, name=PurePosixPath(path).stem)


@dataclass(frozen=True)
class ContextChain:
    """Ordered snapshot of the notes handed to the formatter."""

    notes: Tuple[DocumentHandle, ...]
    state: SelectionState

    def __len__(self) -> int:
        return len(self.notes)

    def __iter__(self) -> Iterator[DocumentHandle]:
        return iter(self.notes)

    def paths(self) -> List[str]:
        return [note.path for note in self.notes]


@dataclass
class NoteRecord:
    """A note as read from the vault."""

    path: str
    name: str
    content: str = ""
    modified_at: float = field(default_factory=_timestamp)

    @property
    def handle(self) -> DocumentHandle:
        return DocumentHandle(path=self.path, name=self.name)


# API payloads

class NoteHandlePayload(BaseModel):
    path: str
    name: str

    @classmethod
    def from_handle(cls, handle: DocumentHandle) -> "NoteHandlePayload":
        return cls(path=handle.path, name=handle.name)


class NotesResponsePayload(BaseModel):
    notes: List[NoteHandlePayload] = Field(default_factory=list)


class NoteContentPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str
    name: str
    content: str
    modified_at: float = Field(default=0.0, alias="modified_at")


class ContextResponsePayload(BaseModel):
    strategy: SelectionState
    notes: List[NoteHandlePayload] = Field(default_factory=list)
    context: str = ""


class BranchResponsePayload(BaseModel):
    notes: List[NoteHandlePayload] = Field(default_factory=list)


class ConfigResponsePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_depth: int = Field(alias="max_depth")
    max_auto_notes: int = Field(alias="max_auto_notes")


class ThoughtResponsePayload(BaseModel):
    success: bool = True
    strategy: SelectionState
    note: NoteHandlePayload
    title: str
    context_notes: List[NoteHandlePayload] = Field(default_factory=list)


# Request payloads

class AutoContextRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    seed_path: str = Field(alias="seed_path")


class NotesContextRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    note_paths: List[str] = Field(default_factory=list, alias="note_paths")


class PreviewContextRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    seed_path: str = Field(alias="seed_path")
    note_paths: Optional[List[str]] = Field(default=None, alias="note_paths")


class OpenVaultRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vault_path: str = Field(alias="vault_path", min_length=1)


class ConfigureRequest(BaseModel):
    """Out-of-range bounds are clamped downstream rather than rejected."""

    model_config = ConfigDict(populate_by_name=True)

    max_depth: int = Field(alias="max_depth")
    max_auto_notes: int = Field(alias="max_auto_notes")


class BranchAddRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str
    index: Optional[int] = Field(default=None, ge=0)


class BranchRemoveRequest(BaseModel):
    path: str


class BranchMoveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    old_index: int = Field(alias="old_index")
    new_index: int = Field(alias="new_index")


class ThoughtRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    active_path: str = Field(alias="active_path")
    selected_paths: Optional[List[str]] = Field(default=None, alias="selected_paths")
