"""Typed domain representations shared by accounting, strategies, and the AI gate."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

MIN_PRICE = 0.01
MAX_PRICE = 0.99


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class PositionType(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class PositionResult(str, Enum):
    WIN = "win"
    LOSS = "loss"
    PENDING = "pending"
    UNKNOWN = "unknown"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]


_RISK_RANK = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


class RecommendedAction(str, Enum):
    BUY_YES = "BUY_YES"
    BUY_NO = "BUY_NO"
    AVOID = "AVOID"


@dataclass(slots=True, frozen=True)
class Trade:
    """A fill reported by the exchange."""

    token_id: str
    side: OrderSide
    size: float
    price: float
    timestamp: datetime | None = None
    trade_id: str | None = None
    condition_id: str | None = None


@dataclass(slots=True)
class MarketToken:
    token_id: str
    outcome: str
    price: float | None = None


@dataclass(slots=True)
class Market:
    """Read-only snapshot of a binary market."""

    condition_id: str
    question: str
    tokens: list[MarketToken] = field(default_factory=list)
    end_date: datetime | None = None
    neg_risk: bool = False
    minimum_order_size: float = 5.0
    minimum_tick_size: float = 0.01
    active: bool = True
    closed: bool = False
    accepting_orders: bool = True
    category: str | None = None
    volume: float | None = None
    liquidity: float | None = None
    description: str | None = None
    slug: str | None = None

    def token(self, token_id: str) -> MarketToken | None:
        return next((token for token in self.tokens if token.token_id == token_id), None)

    @property
    def yes_token(self) -> MarketToken | None:
        for token in self.tokens:
            if token.outcome.lower() == "yes":
                return token
        return self.tokens[0] if self.tokens else None

    @property
    def no_token(self) -> MarketToken | None:
        for token in self.tokens:
            if token.outcome.lower() == "no":
                return token
        return self.tokens[1] if len(self.tokens) > 1 else None

    @property
    def yes_price(self) -> float | None:
        token = self.yes_token
        return token.price if token else None

    def hours_to_end(self, now: datetime) -> float | None:
        if self.end_date is None:
            return None
        end = self.end_date
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return (end - now).total_seconds() / 3600.0

    def days_to_end(self, now: datetime) -> float | None:
        hours = self.hours_to_end(now)
        return None if hours is None else hours / 24.0


@dataclass(slots=True)
class Position:
    """Per-token holding derived from the trade history."""

    token_id: str
    position_type: PositionType
    size: float
    avg_price: float
    current_price: float | None = None
    is_resolved: bool = False
    winner: str | None = None
    result: PositionResult = PositionResult.UNKNOWN
    pnl: float | None = None
    pnl_percent: float | None = None
    outcome: str | None = None
    condition_id: str | None = None
    market_question: str | None = None
    market_url: str | None = None
    trade_count: int = 0


@dataclass(slots=True)
class MarketResolution:
    condition_id: str
    resolved: bool
    winner: str | None = None
    resolution_source: str | None = None


@dataclass(slots=True)
class PositionPnL:
    pnl: float
    pnl_percent: float
    current_price: float


@dataclass(slots=True)
class TradeSignal:
    """Order intent produced by a strategy within a single cycle."""

    market: Market
    token_id: str
    side: OrderSide
    price: float
    size: float
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "market": self.market.condition_id,
            "question": self.market.question,
            "token_id": self.token_id,
            "side": self.side.value,
            "price": self.price,
            "size": self.size,
            "reason": self.reason,
        }


@dataclass(slots=True)
class AIAnalysis:
    """Validated view over an AI provider's market assessment."""

    should_trade: bool
    confidence: float
    attractiveness: float
    risk_level: RiskLevel
    reasoning: str
    estimated_probability: float | None = None
    recommended_action: RecommendedAction | None = None
    sources: list[str] = field(default_factory=list)
    market_id: str | None = None


@dataclass(slots=True)
class HedgeResult:
    main_position_size: int
    hedge_position_size: int
    yes_cost: float
    no_cost: float
    max_loss: float
    hedge_payout_needed: float
    no_price: float
    net_profit_if_win: float
    net_loss_if_lose: float

    @property
    def total_cost(self) -> float:
        return self.yes_cost + self.no_cost


@dataclass(slots=True)
class TradeSetupAnalysis:
    hedge: HedgeResult
    is_valid: bool
    warnings: list[str] = field(default_factory=list)
    insurance_percent: float = 0.0
    roi_percent: float = 0.0


@dataclass(slots=True)
class OrderBook:
    token_id: str
    bids: list[tuple[float, float]] = field(default_factory=list)
    asks: list[tuple[float, float]] = field(default_factory=list)

    def depth_usd(self) -> float:
        """Notional resting on both sides of the book."""

        return sum(price * size for price, size in (*self.bids, *self.asks))
