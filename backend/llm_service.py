"""Generation client for the configured language model provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

import requests

from settings import SynapseSettings

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100


class LLMServiceError(RuntimeError):
    """The provider could not produce a usable response."""


@dataclass
class GeneratedNote:
    title: str
    content: str


def build_prompt(system_prompt: str, context: str, prompt: str) -> str:
    return (
        f"{system_prompt}\n\n[CONTEXT HISTORY START]\n{context}\n[CONTEXT HISTORY END]"
        f"\n\n[USER PROMPT]\n{prompt}"
    )


def split_response(text: str) -> GeneratedNote:
    """First line is the title; without a newline the first 100 chars are."""
    text = text.strip()
    newline = text.find("\n")
    if newline == -1:
        title = text[:MAX_TITLE_LENGTH].strip()
        content = text[MAX_TITLE_LENGTH:].strip()
    else:
        title = text[:newline].strip()
        content = text[newline + 1 :].strip()
    if len(title) > MAX_TITLE_LENGTH:
        title = title[:MAX_TITLE_LENGTH].strip()
    return GeneratedNote(title=title, content=content)


class LLMService:
    def __init__(self, settings: SynapseSettings, session: requests.Session | None = None):
        self.settings = settings
        self.session = session or requests.Session()

    def update_settings(self, settings: SynapseSettings) -> None:
        self.settings = settings

    def generate_response(self, prompt: str, context: str) -> GeneratedNote:
        if self.settings.api_provider != "Ollama":
            raise LLMServiceError(f"Unsupported API provider: {self.settings.api_provider}")

        full_prompt = build_prompt(self.settings.system_prompt, context, prompt)
        data = self._call_ollama(full_prompt, self.settings.model)
        response_text = str(data.get("response") or "").strip()
        if not response_text:
            raise LLMServiceError("No content returned from model")
        return split_response(response_text)

    def _call_ollama(self, prompt: str, model: str) -> Dict[str, Any]:
        endpoint = self.settings.ollama_endpoint.rstrip("/")
        if not endpoint:
            raise LLMServiceError("Ollama endpoint is not set in the settings.")

        payload = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": self.settings.tuning.to_ollama_options(),
        }
        try:
            response = self.session.post(
                f"{endpoint}/api/generate",
                json=payload,
                timeout=self.settings.request_timeout,
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("Error calling Ollama API: %s", exc)
            raise LLMServiceError(f"Failed to call Ollama API. {exc}") from exc
