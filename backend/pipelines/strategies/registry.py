"""Code-first registry mapping strategy names to builders.

Builders receive the process settings plus optional collaborators (``clock``,
``controller``, ``provider``, ``order_books``) and return a ready strategy.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Final

from loguru import logger

from app.core.config import Settings
from app.errors import UnknownStrategyError
from app.services.ai import AIController, MarketAnalyzer, RequestQueue
from app.services.ai.cache import utc_now
from app.services.llm import LLMProvider, get_provider

from .ai_driven import AIDrivenStrategy
from .base import BaseStrategy
from .endgame import EndgameStrategy
from .high_confidence import HighConfidenceStrategy

StrategyBuilder = Callable[..., BaseStrategy]


def build_request_queue(settings: Settings) -> RequestQueue:
    return RequestQueue(
        max_concurrent=settings.ai_max_concurrent,
        delay_ms=settings.ai_request_delay_ms,
        max_retries=settings.ai_max_retries,
        retry_base_ms=settings.ai_retry_base_ms,
    )


def build_ai_controller(
    settings: Settings,
    *,
    provider: LLMProvider | None = None,
    clock=utc_now,
    order_books=None,
    sleep: Callable[[float], None] = time.sleep,
) -> AIController:
    """Wire the analyzer and controller; AI stays disabled when no provider is available."""

    config = settings.ai_config()
    analyzer: MarketAnalyzer | None = None
    if config.use_ai:
        if provider is None:
            try:
                provider = get_provider(settings.ai_provider, settings)
            except (LookupError, ValueError) as exc:
                logger.warning("AI provider unavailable ({}); using rule-based filtering", exc)
        if provider is not None:
            analyzer = MarketAnalyzer(provider, queue=build_request_queue(settings))
    return AIController(
        config,
        analyzer,
        clock=clock,
        order_books=order_books,
        lookup_batch_size=settings.lookup_batch_size,
        lookup_batch_delay_seconds=settings.lookup_batch_delay_seconds,
        sleep=sleep,
    )


def _market_making(settings: Settings, **deps: Any) -> BaseStrategy:
    return BaseStrategy(settings.strategy_config(), clock=deps.get("clock") or utc_now)


def _high_confidence(settings: Settings, **deps: Any) -> BaseStrategy:
    return HighConfidenceStrategy(settings.strategy_config(), clock=deps.get("clock") or utc_now)


def _endgame(settings: Settings, **deps: Any) -> BaseStrategy:
    return EndgameStrategy(settings.endgame_config(), clock=deps.get("clock") or utc_now)


def _ai(settings: Settings, **deps: Any) -> BaseStrategy:
    clock = deps.get("clock") or utc_now
    controller = deps.get("controller") or build_ai_controller(
        settings,
        provider=deps.get("provider"),
        clock=clock,
        order_books=deps.get("order_books"),
    )
    return AIDrivenStrategy(settings.ai_config(), controller, clock=clock)


REGISTERED_STRATEGIES: Final[dict[str, StrategyBuilder]] = {
    "market_making": _market_making,
    "high_confidence": _high_confidence,
    "endgame": _endgame,
    "ai": _ai,
}


def available_strategies() -> tuple[str, ...]:
    return tuple(REGISTERED_STRATEGIES)


def get_strategy(name: str, settings: Settings, **deps: Any) -> BaseStrategy:
    """Instantiate the strategy registered under ``name``."""

    key = name.strip().lower()
    try:
        builder = REGISTERED_STRATEGIES[key]
    except KeyError as exc:
        raise UnknownStrategyError(
            f"Unknown strategy '{name}'. Available: {', '.join(available_strategies())}"
        ) from exc
    strategy = builder(settings, **deps)
    logger.info("Using strategy {}", strategy.name)
    return strategy


__all__ = [
    "REGISTERED_STRATEGIES",
    "available_strategies",
    "build_ai_controller",
    "build_request_queue",
    "get_strategy",
]
