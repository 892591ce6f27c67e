"""Contracts for the external collaborators the trading core consumes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from app.domain import Market, MarketResolution, OrderBook, Trade, TradeSignal


@dataclass(slots=True)
class OrderAck:
    """Exchange acknowledgment for a submitted order."""

    success: bool
    order_id: str | None = None
    error_message: str | None = None


class ExchangeClient(Protocol):
    """Subset of the exchange API used by the trading loop."""

    def get_trades(self) -> Sequence[Trade]:
        """Return the wallet's fills in chronological order."""

    def get_markets(self) -> Sequence[Market]:
        """Return the current market snapshot."""

    def get_midpoint(self, token_id: str) -> float | None:
        """Return the midpoint price for ``token_id``."""

    def get_order_book(self, token_id: str) -> OrderBook:
        """Return resting bids and asks for ``token_id``."""

    def submit_order(self, signal: TradeSignal) -> OrderAck:
        """Place a limit order described by ``signal``."""


class ResolutionLookup(Protocol):
    def get_market_resolution(self, condition_id: str) -> MarketResolution | None:
        """Return resolution data for ``condition_id`` or ``None`` when unknown."""


class MarketLookup(Protocol):
    def get_market_by_token_id(self, token_id: str) -> Market | None:
        """Return the market that lists ``token_id`` or ``None`` when unknown."""


__all__ = ["ExchangeClient", "MarketLookup", "OrderAck", "ResolutionLookup"]
