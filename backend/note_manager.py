"""Creation of generated notes and their links back to the source note."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Dict, Optional, Tuple

import yaml

from models import DocumentHandle
from storage import NOTE_SUFFIX, NoteStorage

logger = logging.getLogger(__name__)

LINKS_KEY = "synapse-links"

FRONTMATTER_PATTERN = re.compile(r"^---\n(.*?)\n---\n?(.*)", re.DOTALL)


def sanitize_title(title: str) -> str:
    cleaned = re.sub(r"[\\/:]", "", title)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned or "Untitled"


def split_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return {}, content
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed frontmatter: %s", exc)
        data = {}
    if not isinstance(data, dict):
        data = {}
    return data, match.group(2)


class NoteManager:
    """Writes generated notes into the vault."""

    def __init__(self, storage: NoteStorage):
        self.storage = storage

    def create_note(
        self,
        title: str,
        content: str,
        base_folder: str = "",
        source: Optional[DocumentHandle] = None,
    ) -> DocumentHandle:
        """Create a note; the folder defaults to the source note's folder.

        A name clash gets an ISO timestamp suffix instead of overwriting.
        """
        safe_title = sanitize_title(title)
        folder = base_folder
        if not folder and source is not None:
            parent = PurePosixPath(source.path).parent.as_posix()
            folder = "" if parent == "." else parent
        folder = self.storage.ensure_folder(folder)

        prefix = f"{folder}/" if folder else ""
        note_path = f"{prefix}{safe_title}{NOTE_SUFFIX}"
        if self.storage.exists(note_path):
            stamp = datetime.now(timezone.utc).isoformat().replace(":", "-").replace(".", "-")
            note_path = f"{prefix}{safe_title}-{stamp}{NOTE_SUFFIX}"

        handle = self.storage.write(note_path, content)
        logger.info("Created note %s", handle.path)
        return handle

    def add_link_to_frontmatter(self, new_note: DocumentHandle, source: DocumentHandle) -> bool:
        """Record ``[[new note]]`` in the source note's ``synapse-links`` list."""
        current = self.storage.read(source.path)
        frontmatter, body = split_frontmatter(current)

        link_text = f"[[{new_note.name}]]"
        links = frontmatter.get(LINKS_KEY)
        if not isinstance(links, list):
            links = []
        if link_text in links:
            return False
        links.append(link_text)
        frontmatter[LINKS_KEY] = links

        header = yaml.safe_dump(frontmatter, sort_keys=False, allow_unicode=True)
        self.storage.write(source.path, f"---\n{header}---\n{body}")
        return True
