"""Wikilink index over the note vault.

Links are ``[[Target]]`` spans in note content, optionally with an alias
(``[[Target|Alias]]``) or a heading/block suffix (``[[Target#Heading]]``).
Nothing is cached: every query re-reads the vault so results reflect the
notes as they are at call time.
"""

from __future__ import annotations

import logging
import posixpath
import re
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Sequence

from models import DocumentHandle
from storage import NoteStorage, with_note_suffix

logger = logging.getLogger(__name__)

WIKILINK_PATTERN = re.compile(r"\[\[(.*?)\]\]")


def clean_link_target(raw_target: str) -> str:
    """Drop the alias and heading/block parts of a raw link target."""
    target = raw_target.split("|", 1)[0]
    target = re.split(r"[#^]", target, maxsplit=1)[0]
    return target.strip().replace("\\", "/")


def extract_link_targets(content: str) -> List[str]:
    targets: List[str] = []
    for match in WIKILINK_PATTERN.finditer(content):
        target = clean_link_target(match.group(1))
        if target:
            targets.append(target)
    return targets


class LinkIndex:
    """Resolves outgoing links and backlinks between notes of a vault."""

    def __init__(self, storage: NoteStorage):
        self.storage = storage

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def outgoing_links(self, handle: DocumentHandle) -> List[DocumentHandle]:
        return self._outgoing(handle, self.storage.list_handles())

    def incoming_links(self, handle: DocumentHandle) -> List[DocumentHandle]:
        handles = self.storage.list_handles()
        by_path = {known.path: known for known in handles}
        incoming: List[DocumentHandle] = []
        for source_path, targets in self._resolved_links(handles).items():
            if handle.path in targets and source_path != handle.path:
                incoming.append(by_path[source_path])
        return incoming

    def resolved_links(self) -> Dict[str, List[str]]:
        """Map every note path to the paths it links to."""
        return self._resolved_links(self.storage.list_handles())

    def resolve_link_reference(
        self,
        raw_target: str,
        context_handle: DocumentHandle,
        handles: Optional[Sequence[DocumentHandle]] = None,
    ) -> Optional[DocumentHandle]:
        target = clean_link_target(raw_target)
        if not target:
            return None

        known = list(handles) if handles is not None else self.storage.list_handles()
        by_path = {candidate.path: candidate for candidate in known}

        candidate = with_note_suffix(target)
        context_folder = self._folder_of(context_handle.path)

        if context_folder:
            relative = posixpath.normpath(f"{context_folder}/{candidate}")
            if relative in by_path:
                return by_path[relative]

        absolute = posixpath.normpath(candidate).lstrip("/")
        if absolute in by_path:
            return by_path[absolute]

        # Obsidian-style shortest-path links: "[[Note]]" matches "any/folder/Note.md".
        suffix = "/" + absolute
        matches = [known_handle for known_handle in known if known_handle.path.endswith(suffix)]
        if not matches:
            return None
        matches.sort(
            key=lambda match: (
                self._folder_of(match.path) != context_folder,
                match.path.count("/"),
                match.path,
            )
        )
        return matches[0]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _outgoing(
        self, handle: DocumentHandle, handles: Sequence[DocumentHandle]
    ) -> List[DocumentHandle]:
        try:
            content = self.storage.read(handle.path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping unreadable link source %s: %s", handle.path, exc)
            return []

        outgoing: List[DocumentHandle] = []
        seen = set()
        for raw_target in extract_link_targets(content):
            resolved = self.resolve_link_reference(raw_target, handle, handles)
            if resolved is None or resolved.path in seen:
                continue
            seen.add(resolved.path)
            outgoing.append(resolved)
        return outgoing

    def _resolved_links(self, handles: Sequence[DocumentHandle]) -> Dict[str, List[str]]:
        return {
            source.path: [target.path for target in self._outgoing(source, handles)]
            for source in handles
        }

    @staticmethod
    def _folder_of(note_path: str) -> str:
        parent = PurePosixPath(note_path).parent.as_posix()
        return "" if parent == "." else parent
