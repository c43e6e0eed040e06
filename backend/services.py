"""Service layer coordinating the vault, the branch and context building."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from branch_store import BranchStore
from context_builder import ContextBuilder
from link_index import LinkIndex
from llm_service import LLMService
from models import ContextChain, DocumentHandle, SelectionState
from note_manager import NoteManager
from settings import SynapseSettings, save_settings
from storage import NoteStorage

logger = logging.getLogger(__name__)


@dataclass
class ContextPreview:
    state: SelectionState
    chain: ContextChain
    text: str


@dataclass
class ThoughtResult:
    note: DocumentHandle
    title: str
    preview: ContextPreview


class SynapseService:
    """Chooses a context strategy per call and runs the thought workflow."""

    def __init__(
        self,
        storage: NoteStorage,
        branch: BranchStore,
        settings: SynapseSettings,
        links: LinkIndex | None = None,
        builder: ContextBuilder | None = None,
        notes: NoteManager | None = None,
        llm: LLMService | None = None,
        settings_path: Path | None = None,
    ):
        self.storage = storage
        self.branch = branch
        self.settings = settings
        self.links = links or LinkIndex(storage)
        self.builder = builder or ContextBuilder(
            storage,
            self.links,
            max_depth=settings.context_depth,
            max_auto_notes=settings.max_auto_notes,
        )
        self.notes = notes or NoteManager(storage)
        self.llm = llm or LLMService(settings)
        self.settings_path = settings_path

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def configure(self, max_depth: int, max_auto_notes: int) -> SynapseSettings:
        self.builder.configure(max_depth, max_auto_notes)
        self.settings = self.settings.model_copy(
            update={
                "context_depth": self.builder.max_depth,
                "max_auto_notes": self.builder.max_auto_notes,
            }
        )
        self.llm.update_settings(self.settings)
        if self.settings_path is not None:
            save_settings(self.settings, self.settings_path)
            logger.info("Saved context bounds to %s", self.settings_path)
        return self.settings

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------
    def resolve_notes(self, paths: Sequence[str]) -> List[DocumentHandle]:
        return [self.storage.get_handle(path) for path in paths]

    def select_strategy(self, selected: Optional[Sequence[DocumentHandle]] = None) -> SelectionState:
        if selected:
            return SelectionState.SELECTION_PROVIDED
        if len(self.branch) > 0:
            return SelectionState.BRANCH_ACTIVE
        return SelectionState.NO_SELECTION

    def build_chain(
        self,
        seed: DocumentHandle,
        selected: Optional[Sequence[DocumentHandle]] = None,
    ) -> ContextChain:
        state = self.select_strategy(selected)
        if state is SelectionState.SELECTION_PROVIDED:
            return self.builder.build_manual_chain(selected, state)
        if state is SelectionState.BRANCH_ACTIVE:
            return self.builder.build_manual_chain(self.branch.snapshot(), state)
        return self.builder.build_auto_chain(seed)

    async def build_context(
        self,
        seed: DocumentHandle,
        selected: Optional[Sequence[DocumentHandle]] = None,
    ) -> ContextPreview:
        chain = await asyncio.to_thread(self.build_chain, seed, selected)
        text = await self.builder.format_chain(chain)
        logger.info("Built %s context with %d notes", chain.state.value, len(chain))
        return ContextPreview(state=chain.state, chain=chain, text=text)

    # ------------------------------------------------------------------
    # Thoughts
    # ------------------------------------------------------------------
    async def process_thought(
        self,
        prompt: str,
        active_path: str,
        selected_paths: Optional[Sequence[str]] = None,
    ) -> ThoughtResult:
        if not prompt.strip():
            raise ValueError("Prompt is empty")

        active = self.storage.get_handle(active_path)
        selected = self.resolve_notes(selected_paths or [])
        preview = await self.build_context(active, selected)

        generated = await asyncio.to_thread(self.llm.generate_response, prompt, preview.text)
        new_note = self.notes.create_note(
            generated.title,
            generated.content,
            self.settings.new_note_folder,
            active,
        )
        self.notes.add_link_to_frontmatter(new_note, active)
        self.branch.add(new_note)
        return ThoughtResult(note=new_note, title=generated.title, preview=preview)
