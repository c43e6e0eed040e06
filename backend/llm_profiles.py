"""Sampling presets for the generation model."""

from __future__ import annotations

from typing import Dict

from pydantic import BaseModel

CUSTOM_PROFILE = "custom"


class LLMTuning(BaseModel):
    temperature: float = 0.7
    top_p: float = 0.9
    top_k: int = 40
    repeat_penalty: float = 1.1
    repeat_last_n: int = 64
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    penalty_alpha: float = 0.0
    min_p: float = 0.0
    typical_p: float = 1.0
    mirostat: int = 0
    mirostat_tau: float = 5.0
    mirostat_eta: float = 0.1
    num_predict: int = 512
    num_ctx: int = 2048

    def to_ollama_options(self) -> Dict[str, float]:
        # Field names already follow Ollama's option names.
        return self.model_dump()


LLM_PROFILES: Dict[str, LLMTuning] = {
    "default": LLMTuning(),
    "creative-writer": LLMTuning(
        temperature=0.9,
        top_p=0.95,
        top_k=80,
        repeat_penalty=1.0,
        repeat_last_n=128,
        frequency_penalty=-0.2,
        presence_penalty=0.2,
        typical_p=0.98,
        num_predict=768,
        num_ctx=3072,
    ),
    "coding-assistant": LLMTuning(
        temperature=0.2,
        top_p=0.65,
        top_k=32,
        repeat_penalty=1.2,
        repeat_last_n=256,
        frequency_penalty=0.5,
        presence_penalty=-0.2,
        num_predict=512,
        num_ctx=4096,
    ),
    "precise-research": LLMTuning(
        temperature=0.35,
        top_p=0.8,
        top_k=40,
        repeat_penalty=1.15,
        repeat_last_n=128,
        frequency_penalty=0.2,
        presence_penalty=-0.1,
        typical_p=0.95,
        num_predict=600,
        num_ctx=3072,
    ),
    "brainstormer": LLMTuning(
        temperature=1.05,
        top_p=0.97,
        top_k=100,
        repeat_penalty=0.95,
        repeat_last_n=64,
        frequency_penalty=-0.3,
        presence_penalty=0.35,
        typical_p=0.92,
        mirostat=1,
        mirostat_tau=6.0,
        mirostat_eta=0.2,
        num_predict=900,
        num_ctx=3072,
    ),
    "story-weaver": LLMTuning(
        temperature=0.85,
        top_p=0.93,
        top_k=60,
        repeat_penalty=1.05,
        repeat_last_n=160,
        frequency_penalty=-0.1,
        presence_penalty=0.25,
        typical_p=0.97,
        mirostat=2,
        mirostat_eta=0.15,
        num_predict=900,
        num_ctx=4096,
    ),
    "technical-summary": LLMTuning(
        temperature=0.25,
        top_p=0.7,
        top_k=40,
        repeat_penalty=1.18,
        repeat_last_n=192,
        frequency_penalty=0.35,
        presence_penalty=-0.15,
        penalty_alpha=0.4,
        min_p=0.01,
        typical_p=0.9,
        num_predict=480,
        num_ctx=4096,
    ),
}


def get_profile(profile_id: str) -> LLMTuning:
    if profile_id not in LLM_PROFILES:
        raise ValueError(f"Unknown LLM profile: {profile_id}")
    return LLM_PROFILES[profile_id].model_copy()


def match_profile(values: LLMTuning, epsilon: float = 1e-4) -> str:
    """Name of the preset ``values`` corresponds to, or ``"custom"``."""
    current = values.model_dump()
    for profile_id, preset in LLM_PROFILES.items():
        if all(abs(value - current[key]) <= epsilon for key, value in preset.model_dump().items()):
            return profile_id
    return CUSTOM_PROFILE
