"""FastAPI entrypoint for the Synapse backend."""

from __future__ import annotations

import asyncio
import logging
from typing import List

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from app_state import SynapseAppState
from llm_service import LLMServiceError
from models import (
    AutoContextRequest,
    BranchAddRequest,
    BranchMoveRequest,
    BranchRemoveRequest,
    BranchResponsePayload,
    ConfigResponsePayload,
    ConfigureRequest,
    ContextResponsePayload,
    DocumentHandle,
    NoteContentPayload,
    NoteHandlePayload,
    NotesContextRequest,
    NotesResponsePayload,
    OpenVaultRequest,
    PreviewContextRequest,
    SelectionState,
    ThoughtRequest,
    ThoughtResponsePayload,
)
from services import ContextPreview

logger = logging.getLogger(__name__)

app = FastAPI(title="Synapse Backend", description="Linked-note context backend API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

state = SynapseAppState()


def _handles(handles: List[DocumentHandle]) -> List[NoteHandlePayload]:
    return [NoteHandlePayload.from_handle(handle) for handle in handles]


def _context_payload(preview: ContextPreview) -> ContextResponsePayload:
    return ContextResponsePayload(
        strategy=preview.state,
        notes=_handles(list(preview.chain)),
        context=preview.text,
    )


def _branch_payload() -> BranchResponsePayload:
    return BranchResponsePayload(notes=_handles(state.current().branch.snapshot()))


@app.get("/", tags=["health"])
async def root():
    return {"status": "ok", "message": "Synapse backend is running"}


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok", "message": "Synapse backend is running"}


@app.get("/notes", response_model=NotesResponsePayload, tags=["notes"])
async def notes():
    try:
        return NotesResponsePayload(notes=_handles(state.current().storage.list_handles()))
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@app.post("/vault/open", response_model=NotesResponsePayload, tags=["notes"])
async def open_vault(request: OpenVaultRequest):
    try:
        services = state.open_vault(request.vault_path)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return NotesResponsePayload(notes=_handles(services.storage.list_handles()))


@app.get("/note/{note_path:path}", response_model=NoteContentPayload, tags=["notes"])
async def get_note(note_path: str):
    try:
        record = state.current().storage.get_note(note_path)
        return NoteContentPayload(
            path=record.path,
            name=record.name,
            content=record.content,
            modified_at=record.modified_at,
        )
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Note not found")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.post("/context/auto", response_model=ContextResponsePayload, tags=["context"])
async def auto_context(request: AutoContextRequest):
    synapse = state.current().synapse
    try:
        seed = synapse.storage.get_handle(request.seed_path)
        chain = await asyncio.to_thread(synapse.builder.build_auto_chain, seed)
        text = await synapse.builder.format_chain(chain)
        return ContextResponsePayload(strategy=chain.state, notes=_handles(list(chain)), context=text)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.post("/context/notes", response_model=ContextResponsePayload, tags=["context"])
async def notes_context(request: NotesContextRequest):
    synapse = state.current().synapse
    try:
        selected = synapse.resolve_notes(request.note_paths)
        text = await synapse.builder.build_context_from_notes(selected)
        return ContextResponsePayload(
            strategy=SelectionState.SELECTION_PROVIDED,
            notes=_handles(selected),
            context=text,
        )
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.post("/context/preview", response_model=ContextResponsePayload, tags=["context"])
async def preview_context(request: PreviewContextRequest):
    synapse = state.current().synapse
    try:
        seed = synapse.storage.get_handle(request.seed_path)
        selected = synapse.resolve_notes(request.note_paths or [])
        return _context_payload(await synapse.build_context(seed, selected))
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/config", response_model=ConfigResponsePayload, tags=["config"])
async def get_config():
    builder = state.current().synapse.builder
    return ConfigResponsePayload(max_depth=builder.max_depth, max_auto_notes=builder.max_auto_notes)


@app.post("/config", response_model=ConfigResponsePayload, tags=["config"])
async def configure(request: ConfigureRequest):
    settings = state.current().synapse.configure(request.max_depth, request.max_auto_notes)
    return ConfigResponsePayload(
        max_depth=settings.context_depth,
        max_auto_notes=settings.max_auto_notes,
    )


@app.get("/branch", response_model=BranchResponsePayload, tags=["branch"])
async def get_branch():
    return _branch_payload()


@app.post("/branch/add", response_model=BranchResponsePayload, tags=["branch"])
async def add_to_branch(request: BranchAddRequest):
    services = state.current()
    try:
        services.branch.add(services.storage.get_handle(request.path), request.index)
        return _branch_payload()
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Note not found")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.post("/branch/remove", response_model=BranchResponsePayload, tags=["branch"])
async def remove_from_branch(request: BranchRemoveRequest):
    services = state.current()
    try:
        path = services.storage.normalize_path(request.path)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    services.branch.remove(path)
    return _branch_payload()


@app.post("/branch/move", response_model=BranchResponsePayload, tags=["branch"])
async def move_in_branch(request: BranchMoveRequest):
    state.current().branch.move(request.old_index, request.new_index)
    return _branch_payload()


@app.post("/branch/clear", response_model=BranchResponsePayload, tags=["branch"])
async def clear_branch():
    state.current().branch.clear()
    return _branch_payload()


@app.post("/thought", response_model=ThoughtResponsePayload, tags=["thought"])
async def thought(request: ThoughtRequest):
    synapse = state.current().synapse
    try:
        result = await synapse.process_thought(
            request.prompt,
            request.active_path,
            request.selected_paths,
        )
        return ThoughtResponsePayload(
            strategy=result.preview.state,
            note=NoteHandlePayload.from_handle(result.note),
            title=result.title,
            context_notes=_handles(list(result.preview.chain)),
        )
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except LLMServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    except Exception as exc:
        logger.exception("Thought processing failed")
        raise HTTPException(status_code=500, detail=str(exc))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="127.0.0.1", port=8000)
