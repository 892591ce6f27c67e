"""Endgame sweep: near-certain markets close to resolution, hedged with NO.

Entries are sized by :func:`app.services.hedging.analyze_trade_setup`, so
a wrong outcome loses roughly ``max_acceptable_loss`` of the YES cost.
"""

from __future__ import annotations

from typing import Sequence

from loguru import logger

from app.core.config import EndgameConfig
from app.domain import Market, OrderSide, Position, TradeSetupAnalysis, TradeSignal
from app.services.ai.cache import Clock, utc_now
from app.services.hedging import analyze_trade_setup
from app.services.market_filter import MarketFilterConfig, filter_with_config

from .base import BaseStrategy, held_size, round_to_tick, yes_equivalent_price

EXIT_BEFORE_END_HOURS = 24.0


class EndgameStrategy(BaseStrategy):
    name = "endgame"
    buy_only = True

    def __init__(self, config: EndgameConfig, *, clock: Clock = utc_now) -> None:
        super().__init__(config, clock=clock)
        self.config: EndgameConfig = config

    def _filter_config(self) -> MarketFilterConfig:
        return MarketFilterConfig(
            min_price=self.config.min_probability,
            max_price=self.config.max_probability,
            exclude_neg_risk=self.config.exclude_neg_risk,
            min_days_to_resolution=0.0,
            max_days_to_resolution=self.config.max_days_to_resolution,
            min_volume=self.config.min_volume,
        )

    def filter_markets(self, markets: Sequence[Market]) -> list[Market]:
        filtered = filter_with_config(markets, self._filter_config(), now=self.clock())
        logger.info(
            "Endgame filter: {} markets between {:.0%} and {:.0%} resolving within {} days",
            len(filtered),
            self.config.min_probability,
            self.config.max_probability,
            self.config.max_days_to_resolution,
        )
        return filtered[: self.config.max_markets]

    def in_window(self, price: float) -> bool:
        return self.config.min_probability <= price <= self.config.max_probability

    def analyze_setup(self, current_price: float) -> TradeSetupAnalysis:
        return analyze_trade_setup(
            self.config.order_size, current_price, self.config.max_acceptable_loss
        )

    def generate_signals(
        self, market: Market, current_price: float, position: Position | None = None
    ) -> list[TradeSignal]:
        if held_size(position) > 0 or not self.in_window(current_price):
            return []
        yes_token, no_token = market.yes_token, market.no_token
        if yes_token is None or no_token is None:
            return []

        setup = self.analyze_setup(current_price)
        hedge = setup.hedge
        for warning in setup.warnings:
            logger.warning("Endgame setup for {}: {}", market.condition_id, warning)
        if not setup.is_valid:
            return []

        signals = [
            TradeSignal(
                market=market,
                token_id=yes_token.token_id,
                side=OrderSide.BUY,
                price=round_to_tick(current_price, market.minimum_tick_size),
                size=hedge.main_position_size,
                reason=(
                    f"Endgame YES at {current_price * 100:.1f}% "
                    f"(profit if win {hedge.net_profit_if_win:.2f})"
                ),
            )
        ]
        if hedge.hedge_position_size > 0:
            signals.append(
                TradeSignal(
                    market=market,
                    token_id=no_token.token_id,
                    side=OrderSide.BUY,
                    price=round_to_tick(hedge.no_price, market.minimum_tick_size),
                    size=hedge.hedge_position_size,
                    reason=(
                        f"Endgame NO hedge capping loss at {hedge.max_loss:.2f} "
                        f"({self.config.max_acceptable_loss:.0%})"
                    ),
                )
            )
        return signals

    def should_close_position(
        self, market: Market, position: Position, current_price: float
    ) -> bool:
        price = yes_equivalent_price(market, position.token_id, current_price)
        if price >= self.config.early_exit_threshold:
            return True
        if price < self.config.min_probability:
            return True
        hours = self.hours_to_end(market)
        return hours is not None and hours < EXIT_BEFORE_END_HOURS


__all__ = ["EXIT_BEFORE_END_HOURS", "EndgameStrategy"]
