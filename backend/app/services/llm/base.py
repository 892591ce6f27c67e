"""Provider contract for AI market analysis."""

from __future__ import annotations

from typing import Any, Mapping, Protocol


class LLMProvider(Protocol):
    """Interface implemented by provider adapters."""

    name: str

    def complete_json(self, *, system_prompt: str, user_prompt: str) -> Mapping[str, Any]:
        """Return the JSON object produced by the model for ``user_prompt``.

        Rate-limit failures must propagate so the request queue can back off.
        """


__all__ = ["LLMProvider"]
