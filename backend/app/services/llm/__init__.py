"""LLM provider registry used by the AI market analyzer."""

from .registry import (
    UnknownLLMProviderError,
    available_providers,
    get_provider,
    register_provider,
)
from .base import LLMProvider

__all__ = [
    "LLMProvider",
    "UnknownLLMProviderError",
    "available_providers",
    "get_provider",
    "register_provider",
]
