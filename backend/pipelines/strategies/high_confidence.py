from __future__ import annotations

import math

from app.domain import Market, OrderSide, Position, TradeSignal
from app.services.market_filter import MarketFilterConfig

from .base import BaseStrategy, held_size, round_to_tick, yes_equivalent_price

CONFIDENCE_THRESHOLD = 0.80
EXIT_BELOW_PRICE = 0.75
EXIT_BEFORE_END_HOURS = 12.0
YES_SHARE = 0.90
NO_SHARE = 0.10


class HighConfidenceStrategy(BaseStrategy):
    """Buy likely outcomes and carry a small NO hedge alongside."""

    name = "high_confidence"
    buy_only = True

    def _filter_config(self) -> MarketFilterConfig:
        return MarketFilterConfig(
            min_price=max(self.config.min_price, CONFIDENCE_THRESHOLD),
            max_price=self.config.max_price,
            exclude_neg_risk=self.config.exclude_neg_risk,
            min_volume=self.config.min_volume,
        )

    def generate_signals(
        self, market: Market, current_price: float, position: Position | None = None
    ) -> list[TradeSignal]:
        if held_size(position) > 0 or current_price < CONFIDENCE_THRESHOLD:
            return []
        yes_token, no_token = market.yes_token, market.no_token
        if yes_token is None or no_token is None:
            return []

        yes_size = math.floor(self.config.order_size * YES_SHARE)
        no_size = math.floor(self.config.order_size * NO_SHARE)
        no_price = round_to_tick(1 - current_price, market.minimum_tick_size)
        signals: list[TradeSignal] = []
        if yes_size > 0:
            signals.append(
                TradeSignal(
                    market=market,
                    token_id=yes_token.token_id,
                    side=OrderSide.BUY,
                    price=round_to_tick(current_price, market.minimum_tick_size),
                    size=yes_size,
                    reason=f"High confidence YES at {current_price * 100:.1f}%",
                )
            )
        if no_size > 0:
            signals.append(
                TradeSignal(
                    market=market,
                    token_id=no_token.token_id,
                    side=OrderSide.BUY,
                    price=no_price,
                    size=no_size,
                    reason=f"NO hedge at {no_price * 100:.1f}%",
                )
            )
        return signals

    def should_close_position(
        self, market: Market, position: Position, current_price: float
    ) -> bool:
        price = yes_equivalent_price(market, position.token_id, current_price)
        if price >= self.config.profit_threshold:
            return True
        if price < EXIT_BELOW_PRICE:
            return True
        if self.config.stop_loss is not None and price <= self.config.stop_loss:
            return True
        hours = self.hours_to_end(market)
        return hours is not None and hours < EXIT_BEFORE_END_HOURS


__all__ = [
    "CONFIDENCE_THRESHOLD",
    "EXIT_BEFORE_END_HOURS",
    "EXIT_BELOW_PRICE",
    "HighConfidenceStrategy",
]
