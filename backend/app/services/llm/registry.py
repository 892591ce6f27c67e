"""Runtime registry for LLM providers."""

from __future__ import annotations

from typing import Callable, Dict

from app.core.config import Settings

from .base import LLMProvider

ProviderFactory = Callable[[Settings], LLMProvider]


class UnknownLLMProviderError(LookupError):
    """Raised when settings request an unregistered provider."""


_PROVIDERS: Dict[str, ProviderFactory] = {}


def register_provider(name: str, factory: ProviderFactory) -> None:
    """Register or replace the factory for ``name``."""

    _PROVIDERS[name.lower()] = factory


def get_provider(name: str, settings: Settings) -> LLMProvider:
    """Build the provider registered under ``name`` for ``settings``."""

    try:
        factory = _PROVIDERS[name.lower()]
    except KeyError as exc:
        raise UnknownLLMProviderError(f"LLM provider '{name}' is not registered") from exc
    return factory(settings)


def available_providers() -> tuple[str, ...]:
    """Return the tuple of registered provider names."""

    return tuple(sorted(_PROVIDERS))


# Register built-in providers at import time.
from .openai import OpenAIProvider  # noqa: E402  (lazy import for registration)
from .gemini import GeminiProvider  # noqa: E402

register_provider("openai", OpenAIProvider.from_settings)
register_provider("gemini", GeminiProvider.from_settings)


__all__ = [
    "ProviderFactory",
    "UnknownLLMProviderError",
    "available_providers",
    "get_provider",
    "register_provider",
]
