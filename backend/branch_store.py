"""Persistent, user-curated branch of notes.

The branch is an ordered list of notes that overrides automatic traversal when
it is non-empty. It is persisted as a plain ordered JSON list; UI surfaces
subscribe to ``branch-updated`` to stay in sync.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from models import DocumentHandle

logger = logging.getLogger(__name__)

BRANCH_UPDATED = "branch-updated"

BranchListener = Callable[[List[DocumentHandle]], None]


class BranchStore:
    """Ordered branch of notes, unique by path."""

    def __init__(self, state_path: Optional[Path] = None):
        self._lock = threading.RLock()
        self._entries: List[DocumentHandle] = []
        self._listeners: List[BranchListener] = []
        self.state_path = Path(state_path) if state_path else None
        self._load()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def on(self, event: str, callback: BranchListener) -> None:
        self._check_event(event)
        with self._lock:
            self._listeners.append(callback)

    def off(self, event: str, callback: BranchListener) -> None:
        self._check_event(event)
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def snapshot(self) -> List[DocumentHandle]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def has(self, path: str) -> bool:
        with self._lock:
            return any(entry.path == path for entry in self._entries)

    def add(self, handle: DocumentHandle, index: Optional[int] = None) -> bool:
        with self._lock:
            if self.has(handle.path):
                return False
            position = len(self._entries) if index is None else index
            self._entries.insert(position, handle)
            self._emit_change()
            return True

    def remove(self, path: str) -> bool:
        with self._lock:
            before = len(self._entries)
            self._entries = [entry for entry in self._entries if entry.path != path]
            if len(self._entries) == before:
                return False
            self._emit_change()
            return True

    def clear(self) -> None:
        with self._lock:
            if not self._entries:
                return
            self._entries = []
            self._emit_change()

    def move(self, old_index: int, new_index: int) -> bool:
        with self._lock:
            size = len(self._entries)
            if old_index == new_index:
                return False
            if not (0 <= old_index < size and 0 <= new_index < size):
                return False
            entry = self._entries.pop(old_index)
            self._entries.insert(new_index, entry)
            self._emit_change()
            return True

    def prune(self, existing_paths: Iterable[str]) -> List[str]:
        """Drop entries whose note no longer exists; returns the removed paths."""
        existing = set(existing_paths)
        with self._lock:
            removed = [entry.path for entry in self._entries if entry.path not in existing]
            if removed:
                self._entries = [entry for entry in self._entries if entry.path in existing]
                self._emit_change()
            return removed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _check_event(self, event: str) -> None:
        if event != BRANCH_UPDATED:
            raise ValueError(f"Unknown branch event: {event}")

    def _emit_change(self) -> None:
        self._persist()
        snapshot = list(self._entries)
        for listener in list(self._listeners):
            listener(snapshot)

    def _load(self) -> None:
        if self.state_path is None or not self.state_path.exists():
            return
        try:
            with open(self.state_path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable branch state %s: %s", self.state_path, exc)
            return

        entries: List[DocumentHandle] = []
        for item in raw if isinstance(raw, list) else []:
            if not isinstance(item, dict) or not item.get("path"):
                continue
            handle = DocumentHandle(path=item["path"], name=item.get("name") or "")
            if not handle.name:
                handle = DocumentHandle.from_path(handle.path)
            if all(entry.path != handle.path for entry in entries):
                entries.append(handle)
        self._entries = entries

    def _persist(self) -> None:
        if self.state_path is None:
            return
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        payload = [{"path": entry.path, "name": entry.name} for entry in self._entries]
        with open(self.state_path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
