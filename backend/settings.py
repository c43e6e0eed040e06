"""User settings for the Synapse backend.

Settings live in a JSON file merged over the defaults below; ``SYNAPSE_*``
environment variables override both. A named profile replaces the stored
sampling values with its preset; ``"custom"`` keeps them as stored.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from context_builder import DEFAULT_MAX_AUTO_NOTES, DEFAULT_MAX_DEPTH
from llm_profiles import CUSTOM_PROFILE, LLMTuning, get_profile

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parent / "storage" / "settings.json"

DEFAULT_SYSTEM_PROMPT = (
    "You are a thinking partner inside a personal knowledge base. "
    "Continue the conversation captured in the notes below. "
    "Answer with a short title on the first line, followed by the note body."
)

_ENV_OVERRIDES = {
    "SYNAPSE_VAULT_PATH": "vault_path",
    "SYNAPSE_OLLAMA_ENDPOINT": "ollama_endpoint",
    "SYNAPSE_MODEL": "model",
    "SYNAPSE_CONTEXT_DEPTH": "context_depth",
    "SYNAPSE_MAX_AUTO_NOTES": "max_auto_notes",
    "SYNAPSE_PROFILE": "profile",
}


class SynapseSettings(BaseModel):
    vault_path: str = str(Path(__file__).resolve().parent / "storage" / "vault")
    api_provider: str = "Ollama"
    ollama_endpoint: str = "http://localhost:11434"
    model: str = "llama3"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    new_note_folder: str = ""
    context_depth: int = DEFAULT_MAX_DEPTH
    max_auto_notes: int = DEFAULT_MAX_AUTO_NOTES
    request_timeout: float = 120.0
    profile: str = "default"
    tuning: LLMTuning = Field(default_factory=LLMTuning)

    @field_validator("context_depth")
    @classmethod
    def _clamp_depth(cls, value: int) -> int:
        return max(0, value)

    @field_validator("max_auto_notes")
    @classmethod
    def _clamp_max_notes(cls, value: int) -> int:
        return max(1, value)

    @property
    def branch_state_path(self) -> Path:
        return Path(self.vault_path) / ".synapse" / "branch.json"


def load_settings(path: Optional[Path] = None) -> SynapseSettings:
    target = Path(path) if path else DEFAULT_SETTINGS_PATH
    data = {}
    if target.exists():
        try:
            with open(target, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Falling back to default settings, %s is unreadable: %s", target, exc)
            data = {}

    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            data[field_name] = value

    settings = SynapseSettings.model_validate(data)
    if settings.profile != CUSTOM_PROFILE:
        try:
            settings.tuning = get_profile(settings.profile)
        except ValueError:
            logger.warning("Unknown profile %r, keeping stored tuning", settings.profile)
    return settings


def save_settings(settings: SynapseSettings, path: Optional[Path] = None) -> Path:
    target = Path(path) if path else DEFAULT_SETTINGS_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as handle:
        json.dump(settings.model_dump(), handle, indent=2)
    return target
