"""Helpers for constructing OpenAI API clients."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from openai import OpenAI

from app.core.config import Settings


@lru_cache(maxsize=4)
def _client_cache(api_key: str, base_url: str | None, timeout: float) -> OpenAI:
    # Retries are owned by the AI request queue.
    kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": 0, "timeout": timeout}
    if base_url:
        kwargs["base_url"] = base_url
    return OpenAI(**kwargs)


def get_openai_client(settings: Settings) -> OpenAI:
    """Build or reuse an OpenAI client for the supplied settings."""

    if not settings.openai_api_key:
        raise ValueError("OPENAI_API_KEY is not configured")
    base_url = str(settings.openai_api_base) if settings.openai_api_base else None
    return _client_cache(settings.openai_api_key, base_url, settings.http_timeout_seconds * 3)


__all__ = ["get_openai_client"]
