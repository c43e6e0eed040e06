"""Filesystem-backed storage for markdown notes."""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath
from typing import List, Optional

from models import DocumentHandle, NoteRecord

NOTE_SUFFIX = ".md"


def with_note_suffix(path: str) -> str:
    """Append ``.md`` unless present; the check is case-sensitive like the vault scan."""
    return path if path.endswith(NOTE_SUFFIX) else path + NOTE_SUFFIX


class NoteStorage:
    """Markdown vault rooted at a local directory.

    Note paths are vault-relative posix paths that include the ``.md`` suffix,
    e.g. ``"Conversations/First thought.md"``.
    """

    def __init__(self, root: Optional[Path] = None):
        base_dir = Path(root) if root else Path(__file__).resolve().parent / "storage" / "vault"
        base_dir.mkdir(parents=True, exist_ok=True)
        self.root = base_dir.resolve()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def list_handles(self) -> List[DocumentHandle]:
        handles = [
            DocumentHandle.from_path(path.relative_to(self.root).as_posix())
            for path in self.root.rglob(f"*{NOTE_SUFFIX}")
            if path.is_file()
        ]
        handles.sort(key=lambda handle: handle.path)
        return handles

    def exists(self, note_path: str) -> bool:
        try:
            return self._absolute(self.normalize_path(note_path)).is_file()
        except ValueError:
            return False

    def get_handle(self, note_path: str) -> DocumentHandle:
        normalized = self.normalize_path(note_path)
        if not self._absolute(normalized).is_file():
            raise FileNotFoundError(f"Note not found: {note_path}")
        return DocumentHandle.from_path(normalized)

    def read(self, note_path: str) -> str:
        path = self._absolute(self.normalize_path(note_path))
        if not path.is_file():
            raise FileNotFoundError(f"Note not found: {note_path}")
        return path.read_text(encoding="utf-8")

    async def read_document(self, handle: DocumentHandle) -> str:
        return await asyncio.to_thread(self.read, handle.path)

    def get_note(self, note_path: str) -> NoteRecord:
        handle = self.get_handle(note_path)
        path = self._absolute(handle.path)
        return NoteRecord(
            path=handle.path,
            name=handle.name,
            content=path.read_text(encoding="utf-8"),
            modified_at=path.stat().st_mtime,
        )

    def write(self, note_path: str, content: str) -> DocumentHandle:
        normalized = self.normalize_path(note_path)
        path = self._absolute(normalized)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(content)
        return DocumentHandle.from_path(normalized)

    def ensure_folder(self, folder: str) -> str:
        normalized = self.normalize_folder(folder)
        if normalized:
            self._absolute(normalized).mkdir(parents=True, exist_ok=True)
        return normalized

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def normalize_path(self, raw_path: str) -> str:
        normalized = self.normalize_folder(raw_path)
        if not normalized:
            raise ValueError("Note path is empty")
        return with_note_suffix(normalized)

    def normalize_folder(self, raw_folder: str) -> str:
        cleaned = (raw_folder or "").strip().replace("\\", "/").strip("/")
        if not cleaned:
            return ""
        parts = [part for part in PurePosixPath(cleaned).parts if part not in ("", ".")]
        if ".." in parts:
            raise ValueError(f"Path escapes the vault: {raw_folder}")
        return "/".join(parts)

    def _absolute(self, note_path: str) -> Path:
        normalized = self.normalize_folder(note_path)
        return self.root / normalized if normalized else self.root
