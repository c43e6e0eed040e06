"""Context-chain builder.

Turns the link graph of a vault into a bounded, ordered, deduplicated chain of
notes and formats that chain as plain text for a language model.

Two strategies feed one formatter:
- automatic traversal: breadth-first over links and backlinks from a seed note,
  bounded by hop depth and by note count;
- manual chain: a caller-ordered list of notes, used verbatim.

The builder only depends on the small capability interfaces below, so tests can
drive it with an in-memory graph.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections import deque
from typing import Awaitable, Deque, Iterable, List, Protocol, Sequence, Set, Tuple

from models import ContextChain, DocumentHandle, SelectionState

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5
DEFAULT_MAX_AUTO_NOTES = 10

# Non-greedy, so "[[A]] text [[B|b]]" removes both spans but keeps " text ".
LINK_MARKUP_PATTERN = re.compile(r"\[\[.*?\]\]")


class DocumentStore(Protocol):
    def read_document(self, handle: DocumentHandle) -> Awaitable[str]:
        ...


class LinkGraph(Protocol):
    def outgoing_links(self, handle: DocumentHandle) -> Sequence[DocumentHandle]:
        ...

    def incoming_links(self, handle: DocumentHandle) -> Sequence[DocumentHandle]:
        ...


class DocumentUnavailable(FileNotFoundError):
    """A note in the chain could not be read while formatting."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        message = f"Document unavailable: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


def strip_links(content: str) -> str:
    return LINK_MARKUP_PATTERN.sub("", content)


def format_note_block(name: str, content: str) -> str:
    return f"--- [Note: {name}] ---\n{content}\n\n"


def undirected_neighbors(handle: DocumentHandle, links: LinkGraph) -> List[DocumentHandle]:
    """Neighbors of ``handle`` in the undirected view of the link graph.

    The link graph is directed (A references B), but for conversation context a
    link and a backlink are the same adjacency. Outgoing links come first, then
    backlinks, each in link-index order; duplicates and the note itself are
    dropped.
    """
    neighbors: List[DocumentHandle] = []
    seen: Set[str] = {handle.path}
    for candidate in list(links.outgoing_links(handle)) + list(links.incoming_links(handle)):
        if candidate.path in seen:
            continue
        seen.add(candidate.path)
        neighbors.append(candidate)
    return neighbors


def clamp_bounds(max_depth: int, max_auto_notes: int) -> Tuple[int, int]:
    """A zero-size chain is meaningless, so the note cap never drops below 1."""
    return max(0, int(max_depth)), max(1, int(max_auto_notes))


class ContextBuilder:
    """Builds context chains and formats them for the language model."""

    def __init__(
        self,
        store: DocumentStore,
        links: LinkGraph,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_auto_notes: int = DEFAULT_MAX_AUTO_NOTES,
    ):
        self.store = store
        self.links = links
        self.max_depth, self.max_auto_notes = clamp_bounds(max_depth, max_auto_notes)

    def configure(self, max_depth: int, max_auto_notes: int) -> None:
        """Update the bounds used by subsequent automatic builds."""
        self.max_depth, self.max_auto_notes = clamp_bounds(max_depth, max_auto_notes)

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------
    def build_auto_chain(self, seed: DocumentHandle) -> ContextChain:
        """Breadth-first chain around ``seed``, seed first.

        A note is accepted when it is dequeued, not when it is queued, so the
        same note may sit in the queue several times and the first dequeue
        wins. Its recorded depth is the depth of that first discovery; there is
        no relaxation if a shorter route turns up later. Notes at exactly
        ``max_depth`` are accepted but not expanded.
        """
        max_depth, max_notes = self.max_depth, self.max_auto_notes
        frontier: Deque[Tuple[DocumentHandle, int]] = deque([(seed, 0)])
        visited: Set[str] = set()
        chain: List[DocumentHandle] = []

        while frontier and len(chain) < max_notes:
            handle, depth = frontier.popleft()
            if handle.path in visited:
                continue
            visited.add(handle.path)
            chain.append(handle)

            if depth >= max_depth:
                continue
            for neighbor in undirected_neighbors(handle, self.links):
                if neighbor.path not in visited:
                    frontier.append((neighbor, depth + 1))

        logger.debug(
            "Auto chain from %s: %d notes (max_depth=%d, max_auto_notes=%d)",
            seed.path,
            len(chain),
            max_depth,
            max_notes,
        )
        return ContextChain(notes=tuple(chain), state=SelectionState.NO_SELECTION)

    def build_manual_chain(
        self,
        notes: Iterable[DocumentHandle],
        state: SelectionState = SelectionState.SELECTION_PROVIDED,
    ) -> ContextChain:
        """Wrap a caller-curated list as a chain: no reordering, dedup or bounds."""
        return ContextChain(notes=tuple(notes), state=state)

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------
    async def format_chain(self, chain: Iterable[DocumentHandle]) -> str:
        blocks: List[str] = []
        for handle in chain:
            try:
                content = await self.store.read_document(handle)
            except (OSError, UnicodeDecodeError) as exc:
                raise DocumentUnavailable(handle.path, str(exc)) from exc
            blocks.append(format_note_block(handle.name, strip_links(content)))
        return "".join(blocks)

    async def build_auto_context(self, seed: DocumentHandle) -> str:
        # Link lookups are blocking reads; keep them off the event loop.
        chain = await asyncio.to_thread(self.build_auto_chain, seed)
        return await self.format_chain(chain)

    async def build_context_from_notes(self, notes: Sequence[DocumentHandle]) -> str:
        return await self.format_chain(self.build_manual_chain(notes))
