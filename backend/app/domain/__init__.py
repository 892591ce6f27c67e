"""Domain models for positions, markets, signals, and AI analyses."""

from .models import (
    MAX_PRICE,
    MIN_PRICE,
    AIAnalysis,
    HedgeResult,
    Market,
    MarketResolution,
    MarketToken,
    OrderBook,
    OrderSide,
    Position,
    PositionPnL,
    PositionResult,
    PositionType,
    RecommendedAction,
    RiskLevel,
    Trade,
    TradeSetupAnalysis,
    TradeSignal,
)

__all__ = [
    "MAX_PRICE",
    "MIN_PRICE",
    "AIAnalysis",
    "HedgeResult",
    "Market",
    "MarketResolution",
    "MarketToken",
    "OrderBook",
    "OrderSide",
    "Position",
    "PositionPnL",
    "PositionResult",
    "PositionType",
    "RecommendedAction",
    "RiskLevel",
    "Trade",
    "TradeSetupAnalysis",
    "TradeSignal",
]
