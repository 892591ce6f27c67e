from __future__ import annotations

from typing import Protocol, Sequence

from loguru import logger

from app.core.config import StrategyConfig
from app.domain import MAX_PRICE, MIN_PRICE, Market, OrderSide, Position, TradeSignal
from app.errors import InvalidSignalError
from app.services.ai.cache import Clock, utc_now
from app.services.market_filter import MarketFilterConfig, filter_with_config

CLOSE_BEFORE_END_HOURS = 1.0


class TradingStrategy(Protocol):
    """Interface implemented by every signal generator."""

    name: str

    def filter_markets(self, markets: Sequence[Market]) -> list[Market]:
        """Select the markets worth evaluating this cycle."""
        raise NotImplementedError

    def generate_signals(
        self, market: Market, current_price: float, position: Position | None = None
    ) -> list[TradeSignal]:
        """Turn a market snapshot and the held position into order intents."""
        raise NotImplementedError

    def should_close_position(
        self, market: Market, position: Position, current_price: float
    ) -> bool:
        raise NotImplementedError

    def validate_signal(self, signal: TradeSignal, *, closing: bool = False) -> bool:
        raise NotImplementedError


def round_to_tick(price: float, tick: float) -> float:
    if tick <= 0:
        return round(price, 4)
    return round(round(price / tick) * tick, 4)


def held_size(position: Position | None) -> float:
    return position.size if position is not None else 0.0


def yes_equivalent_price(market: Market, token_id: str, price: float) -> float:
    """Express a token price on the YES scale; NO tokens trade at ``1 - p``."""

    no_token = market.no_token
    if no_token is not None and no_token.token_id == token_id and market.yes_token is not no_token:
        return 1 - price
    return price


class BaseStrategy:
    """Symmetric market making around the current YES price."""

    name = "market_making"
    # Hedge-style strategies open positions with BUY orders only.
    buy_only = False

    def __init__(self, config: StrategyConfig, *, clock: Clock = utc_now) -> None:
        self.config = config
        self.clock = clock

    def begin_cycle(self) -> None:
        """Hook called once at the start of every trading cycle."""

    def _filter_config(self) -> MarketFilterConfig:
        return MarketFilterConfig(
            min_price=self.config.min_price,
            max_price=self.config.max_price,
            exclude_neg_risk=self.config.exclude_neg_risk,
            min_volume=self.config.min_volume,
        )

    def filter_markets(self, markets: Sequence[Market]) -> list[Market]:
        filtered = filter_with_config(markets, self._filter_config(), now=self.clock())
        return filtered[: self.config.max_markets]

    def generate_signals(
        self, market: Market, current_price: float, position: Position | None = None
    ) -> list[TradeSignal]:
        token = market.yes_token
        if token is None:
            return []
        half_spread = self.config.spread / 2
        bid = round_to_tick(max(MIN_PRICE, current_price - half_spread), market.minimum_tick_size)
        ask = round_to_tick(min(MAX_PRICE, current_price + half_spread), market.minimum_tick_size)
        size = held_size(position)

        signals: list[TradeSignal] = []
        if size < self.config.max_position:
            signals.append(
                TradeSignal(
                    market=market,
                    token_id=token.token_id,
                    side=OrderSide.BUY,
                    price=bid,
                    size=min(self.config.order_size, self.config.max_position - size),
                    reason=f"Market making bid at {bid:.4f}",
                )
            )
        if size > 0:
            signals.append(
                TradeSignal(
                    market=market,
                    token_id=token.token_id,
                    side=OrderSide.SELL,
                    price=ask,
                    size=min(self.config.order_size, size),
                    reason=f"Market making ask at {ask:.4f}",
                )
            )
        return signals

    def hours_to_end(self, market: Market) -> float | None:
        return market.hours_to_end(self.clock())

    def should_close_position(
        self, market: Market, position: Position, current_price: float
    ) -> bool:
        """``current_price`` is the held token's price; thresholds apply on the YES scale."""

        price = yes_equivalent_price(market, position.token_id, current_price)
        if price >= self.config.profit_threshold:
            return True
        if self.config.stop_loss is not None and price <= self.config.stop_loss:
            return True
        hours = self.hours_to_end(market)
        return hours is not None and hours < CLOSE_BEFORE_END_HOURS

    def close_signal(
        self, market: Market, position: Position, current_price: float
    ) -> TradeSignal:
        return TradeSignal(
            market=market,
            token_id=position.token_id,
            side=OrderSide.SELL,
            price=round_to_tick(
                min(MAX_PRICE, max(MIN_PRICE, current_price)), market.minimum_tick_size
            ),
            size=position.size,
            reason=f"Closing position at {current_price:.4f}",
        )

    def check_signal(self, signal: TradeSignal, *, closing: bool = False) -> None:
        """Raise :class:`InvalidSignalError` when ``signal`` cannot be submitted."""

        if not MIN_PRICE <= signal.price <= MAX_PRICE:
            raise InvalidSignalError(
                f"price {signal.price} outside [{MIN_PRICE}, {MAX_PRICE}]"
            )
        if signal.size < signal.market.minimum_order_size:
            raise InvalidSignalError(
                f"size {signal.size} below minimum order size {signal.market.minimum_order_size}"
            )
        if self.buy_only and not closing and signal.side is not OrderSide.BUY:
            raise InvalidSignalError(f"{self.name} only opens positions with BUY orders")

    def validate_signal(self, signal: TradeSignal, *, closing: bool = False) -> bool:
        try:
            self.check_signal(signal, closing=closing)
        except InvalidSignalError as exc:
            logger.warning(
                "Dropping {} signal for {}: {}", signal.side.value, signal.token_id, exc
            )
            return False
        return True


__all__ = [
    "BaseStrategy",
    "CLOSE_BEFORE_END_HOURS",
    "TradingStrategy",
    "held_size",
    "round_to_tick",
    "yes_equivalent_price",
]
