"""AI-driven entries gated by estimated edge over the market price."""

from __future__ import annotations

import math
from typing import Sequence

from loguru import logger

from app.core.config import AIStrategyConfig
from app.domain import (
    AIAnalysis,
    Market,
    OrderSide,
    Position,
    RecommendedAction,
    RiskLevel,
    TradeSignal,
)
from app.services.ai import AIController
from app.services.ai.cache import Clock, utc_now

from .base import BaseStrategy, held_size, round_to_tick

FULL_EDGE = 0.20
MIN_SIZE_MULTIPLIER = 0.5
MAX_SIZE_MULTIPLIER = 6.0
RISK_MULTIPLIERS = {
    RiskLevel.LOW: 1.5,
    RiskLevel.MEDIUM: 1.0,
    RiskLevel.HIGH: 0.5,
}
REASONING_PREVIEW = 50


def calculate_order_size(
    base_size: float,
    analysis: AIAnalysis,
    edge: float,
    *,
    max_position: float,
    held: float = 0.0,
) -> int:
    """Scale ``base_size`` by attractiveness, confidence, edge and risk."""

    attractiveness_mult = 1.0 + analysis.attractiveness
    confidence_mult = 0.5 + analysis.confidence
    edge_mult = 1.0 + min(max(edge, 0.0) / FULL_EDGE, 1.0)
    risk_mult = RISK_MULTIPLIERS.get(analysis.risk_level, 1.0)

    size = base_size * attractiveness_mult * confidence_mult * edge_mult * risk_mult
    size = min(max(size, base_size * MIN_SIZE_MULTIPLIER), base_size * MAX_SIZE_MULTIPLIER)
    size = min(size, max(max_position - held, 0.0))
    return math.floor(size + 1e-9)


class AIDrivenStrategy(BaseStrategy):
    name = "ai"
    buy_only = True

    def __init__(
        self,
        config: AIStrategyConfig,
        controller: AIController,
        *,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(config, clock=clock)
        self.config: AIStrategyConfig = config
        self.controller = controller

    def begin_cycle(self) -> None:
        self.controller.begin_cycle()

    def filter_markets(self, markets: Sequence[Market]) -> list[Market]:
        return self.controller.filter_markets(markets)

    def basic_signals(self, market: Market, current_price: float) -> list[TradeSignal]:
        token = market.yes_token
        if token is None:
            return []
        if not self.config.min_price <= current_price <= self.config.max_price:
            return []
        return [
            TradeSignal(
                market=market,
                token_id=token.token_id,
                side=OrderSide.BUY,
                price=round_to_tick(current_price, market.minimum_tick_size),
                size=self.config.order_size,
                reason="Basic signal (no AI analysis available)",
            )
        ]

    def generate_signals(
        self, market: Market, current_price: float, position: Position | None = None
    ) -> list[TradeSignal]:
        if held_size(position) > 0:
            return []
        if not self.controller.enabled:
            return self.basic_signals(market, current_price)
        analysis = self.controller.get_analysis(market)
        if analysis is None:
            logger.debug("No AI analysis for {}; skipping entry", market.condition_id)
            return []

        decision = self.controller.evaluate(analysis, current_price)
        if not decision.accepted or decision.edge is None:
            logger.debug("No AI entry for {}: {}", market.condition_id, decision.reason)
            return []

        if decision.action is RecommendedAction.BUY_YES:
            token = market.yes_token
            price = current_price
        else:
            token = market.no_token
            price = 1 - current_price
        if token is None:
            return []

        size = calculate_order_size(
            self.config.order_size,
            analysis,
            decision.edge,
            max_position=self.config.max_position,
        )
        if size <= 0:
            return []
        preview = analysis.reasoning[:REASONING_PREVIEW]
        return [
            TradeSignal(
                market=market,
                token_id=token.token_id,
                side=OrderSide.BUY,
                price=round_to_tick(price, market.minimum_tick_size),
                size=size,
                reason=(
                    f"AI {decision.action.value}: {decision.reason} | {preview} "
                    f"(attractiveness {analysis.attractiveness * 100:.0f}%)"
                ),
            )
        ]

    def should_close_position(
        self, market: Market, position: Position, current_price: float
    ) -> bool:
        """Exit on a relative gain or loss against the entry price of the held token."""

        if position.avg_price <= 0:
            return False
        change = (current_price - position.avg_price) / position.avg_price
        if change >= self.config.profit_threshold:
            return True
        return self.config.stop_loss is not None and -change >= self.config.stop_loss


__all__ = ["AIDrivenStrategy", "calculate_order_size"]
