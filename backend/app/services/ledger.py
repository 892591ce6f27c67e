"""Fold a trade history into per-token position state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Mapping

from app.domain import OrderSide, Position, PositionType, Trade

MIN_POSITION_SIZE = 0.01
_ZERO_TOLERANCE = 1e-9


class SideRule(str, Enum):
    """How LONG/SHORT is derived when projecting a running position."""

    NET_SIGN = "net_sign"
    LAST_TRADE = "last_trade"


@dataclass(slots=True)
class RunningPosition:
    """Signed quantity and blended cost basis for one token."""

    token_id: str
    signed_size: float = 0.0
    avg_price: float = 0.0
    last_side: OrderSide | None = None
    trade_count: int = 0
    condition_id: str | None = None

    def apply(self, trade: Trade) -> None:
        signed_qty = trade.size if trade.side is OrderSide.BUY else -trade.size
        new_size = self.signed_size + signed_qty
        if abs(new_size) < _ZERO_TOLERANCE:
            new_size = 0.0
            self.avg_price = trade.price
        else:
            cost = self.signed_size * self.avg_price + signed_qty * trade.price
            self.avg_price = cost / new_size
        self.signed_size = new_size
        self.last_side = trade.side
        self.trade_count += 1
        if trade.condition_id and not self.condition_id:
            self.condition_id = trade.condition_id

    def position_type(self, rule: SideRule = SideRule.NET_SIGN) -> PositionType:
        if rule is SideRule.NET_SIGN and self.signed_size != 0:
            return PositionType.LONG if self.signed_size > 0 else PositionType.SHORT
        return PositionType.LONG if self.last_side is OrderSide.BUY else PositionType.SHORT

    def to_position(self, rule: SideRule = SideRule.NET_SIGN) -> Position:
        return Position(
            token_id=self.token_id,
            position_type=self.position_type(rule),
            size=abs(self.signed_size),
            avg_price=self.avg_price,
            condition_id=self.condition_id,
            trade_count=self.trade_count,
        )


def _chronological(trades: Iterable[Trade]) -> list[Trade]:
    """Sort by timestamp; input order is kept when any trade lacks one."""

    ordered = list(trades)
    keyed: list[tuple[datetime, int, Trade]] = []
    for index, trade in enumerate(ordered):
        if trade.timestamp is None:
            return ordered
        keyed.append((_as_utc(trade.timestamp), index, trade))
    keyed.sort(key=lambda item: item[:2])
    return [trade for _, _, trade in keyed]


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class PositionLedger:
    """Mutable per-token ledger fed trade by trade."""

    def __init__(self, *, side_rule: SideRule = SideRule.NET_SIGN) -> None:
        self.side_rule = side_rule
        self._running: dict[str, RunningPosition] = {}

    @classmethod
    def from_trades(
        cls, trades: Iterable[Trade], *, side_rule: SideRule = SideRule.NET_SIGN
    ) -> "PositionLedger":
        ledger = cls(side_rule=side_rule)
        for trade in _chronological(trades):
            ledger.record(trade)
        return ledger

    def record(self, trade: Trade) -> RunningPosition:
        running = self._running.get(trade.token_id)
        if running is None:
            running = RunningPosition(token_id=trade.token_id)
            self._running[trade.token_id] = running
        running.apply(trade)
        return running

    def running(self) -> Mapping[str, RunningPosition]:
        return dict(self._running)

    def position(self, token_id: str) -> Position | None:
        running = self._running.get(token_id)
        return running.to_position(self.side_rule) if running else None

    def positions(self) -> dict[str, Position]:
        return {
            token_id: running.to_position(self.side_rule)
            for token_id, running in self._running.items()
        }

    def held_size(self, token_id: str) -> float:
        position = self.position(token_id)
        return position.size if position else 0.0

    def __contains__(self, token_id: object) -> bool:
        return token_id in self._running

    def __len__(self) -> int:
        return len(self._running)


def aggregate_positions(
    trades: Iterable[Trade], *, side_rule: SideRule = SideRule.NET_SIGN
) -> dict[str, Position]:
    """Return the public position per token for a trade history."""

    return PositionLedger.from_trades(trades, side_rule=side_rule).positions()


def active_positions(positions: Mapping[str, Position]) -> dict[str, Position]:
    return {
        token_id: position
        for token_id, position in positions.items()
        if position.size >= MIN_POSITION_SIZE
    }


__all__ = [
    "MIN_POSITION_SIZE",
    "PositionLedger",
    "RunningPosition",
    "SideRule",
    "active_positions",
    "aggregate_positions",
]
