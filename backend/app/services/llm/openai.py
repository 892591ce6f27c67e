"""OpenAI provider hooks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from loguru import logger
from openai import APIStatusError, OpenAI

from app.core.config import Settings
from app.errors import RateLimitedError, UpstreamUnavailableError
from app.services.ai.analysis import extract_json_object
from app.services.openai_client import get_openai_client

_DEFAULT_TEMPERATURE = 0.3
_DEFAULT_MAX_TOKENS = 2000


@dataclass(slots=True)
class OpenAIProvider:
    client: OpenAI
    model: str
    name: str = "openai"
    temperature: float = _DEFAULT_TEMPERATURE
    max_tokens: int = _DEFAULT_MAX_TOKENS

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIProvider":
        return cls(client=get_openai_client(settings), model=settings.openai_model)

    def complete_json(self, *, system_prompt: str, user_prompt: str) -> Mapping[str, Any]:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except APIStatusError as exc:
            if exc.status_code == 429:
                raise RateLimitedError(f"OpenAI rate limit: {exc}") from exc
            raise UpstreamUnavailableError(
                f"OpenAI request failed with status {exc.status_code}"
            ) from exc

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(
                "OpenAI usage model={} prompt_tokens={} completion_tokens={}",
                self.model,
                getattr(usage, "prompt_tokens", None),
                getattr(usage, "completion_tokens", None),
            )
        content = response.choices[0].message.content if response.choices else None
        return extract_json_object(content or "")


__all__ = ["OpenAIProvider"]
