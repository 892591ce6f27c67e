"""Google Gemini provider hooks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import google.generativeai as genai

from app.core.config import Settings
from app.errors import UpstreamUnavailableError
from app.services.ai.analysis import extract_json_object

_DEFAULT_TEMPERATURE = 0.3


@dataclass(slots=True)
class GeminiProvider:
    api_key: str
    model: str
    name: str = "gemini"
    temperature: float = _DEFAULT_TEMPERATURE

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiProvider":
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is not configured")
        return cls(api_key=settings.gemini_api_key, model=settings.gemini_model)

    def complete_json(self, *, system_prompt: str, user_prompt: str) -> Mapping[str, Any]:
        genai.configure(api_key=self.api_key)
        model = genai.GenerativeModel(self.model, system_instruction=system_prompt)
        # ResourceExhausted (429) propagates unchanged for the request queue.
        response = model.generate_content(
            user_prompt,
            generation_config={
                "temperature": self.temperature,
                "response_mime_type": "application/json",
            },
        )
        text = getattr(response, "text", None)
        if not text:
            raise UpstreamUnavailableError("Gemini returned an empty response")
        return extract_json_object(text)


__all__ = ["GeminiProvider"]
