from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest
from openai import APIStatusError

from app.errors import AnalysisParseError, RateLimitedError, UpstreamUnavailableError
from app.services.llm import UnknownLLMProviderError, available_providers, get_provider
from app.services.llm import registry
from app.services.llm.gemini import GeminiProvider
from app.services.llm.openai import OpenAIProvider


def test_builtin_providers_are_registered() -> None:
    assert {"openai", "gemini"} <= set(available_providers())


def test_unknown_provider_is_a_lookup_error(test_settings) -> None:
    with pytest.raises(UnknownLLMProviderError):
        get_provider("claude-in-a-box", test_settings)
    with pytest.raises(LookupError):
        get_provider("claude-in-a-box", test_settings)


def test_missing_api_key_is_reported(test_settings) -> None:
    with pytest.raises(ValueError, match="OPENAI_API_KEY"):
        get_provider("openai", test_settings)
    with pytest.raises(ValueError, match="GEMINI_API_KEY"):
        get_provider("gemini", test_settings)


def test_register_provider_is_case_insensitive(monkeypatch, test_settings) -> None:
    sentinel = object()
    monkeypatch.setitem(registry._PROVIDERS, "stub", lambda settings: sentinel)

    assert get_provider("STUB", test_settings) is sentinel


def test_gemini_provider_built_from_settings(test_settings) -> None:
    settings = test_settings.model_copy(update={"gemini_api_key": "g-key"})

    provider = get_provider("gemini", settings)

    assert isinstance(provider, GeminiProvider)
    assert provider.model == settings.gemini_model


class _Completions:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.kwargs: dict[str, object] = {}

    def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, Exception):
            raise self.outcome
        message = SimpleNamespace(content=self.outcome)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)


def _openai(outcome) -> tuple[OpenAIProvider, _Completions]:
    completions = _Completions(outcome)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIProvider(client=client, model="gpt-4o-mini"), completions  # type: ignore[arg-type]


def _status_error(status: int) -> APIStatusError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return APIStatusError("boom", response=httpx.Response(status, request=request), body=None)


def test_openai_provider_requests_json_and_parses_reply() -> None:
    provider, completions = _openai('```json\n{"shouldTrade": true}\n```')

    payload = provider.complete_json(system_prompt="sys", user_prompt="user")

    assert payload == {"shouldTrade": True}
    assert completions.kwargs["response_format"] == {"type": "json_object"}
    assert completions.kwargs["messages"][0] == {"role": "system", "content": "sys"}


def test_openai_provider_maps_status_errors() -> None:
    limited, _ = _openai(_status_error(429))
    broken, _ = _openai(_status_error(500))

    with pytest.raises(RateLimitedError):
        limited.complete_json(system_prompt="sys", user_prompt="user")
    with pytest.raises(UpstreamUnavailableError):
        broken.complete_json(system_prompt="sys", user_prompt="user")


def test_openai_provider_rejects_non_json_reply() -> None:
    provider, _ = _openai("I would not trade this market.")

    with pytest.raises(AnalysisParseError):
        provider.complete_json(system_prompt="sys", user_prompt="user")
