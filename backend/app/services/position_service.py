"""Wallet-level position view built from trades, markets, and resolutions."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Sequence

from loguru import logger

from app.core.config import Settings, get_settings
from app.domain import (
    Market,
    MarketResolution,
    MarketToken,
    Position,
    PositionResult,
    PositionType,
)
from app.schemas import (
    MarketTokenView,
    MarketView,
    PositionFilters,
    PositionSummaryStats,
    PositionView,
    WalletPositionsSummary,
)
from app.services.batching import run_in_batches
from app.services.exchange import ExchangeClient, MarketLookup, ResolutionLookup
from app.services.ledger import SideRule, active_positions, aggregate_positions
from app.services.resolver import resolve_position

MARKET_URL_TEMPLATE = "https://polymarket.com/event/{condition_id}"
WINNING_TOKEN_PRICE = 0.99

_RESULT_ORDER = {
    PositionResult.WIN: 0,
    PositionResult.LOSS: 1,
    PositionResult.PENDING: 2,
    PositionResult.UNKNOWN: 3,
}


@dataclass(slots=True)
class _TokenRef:
    market: Market
    token: MarketToken


def market_url(condition_id: str) -> str:
    return MARKET_URL_TEMPLATE.format(condition_id=condition_id)


def build_token_index(markets: Iterable[Market]) -> dict[str, _TokenRef]:
    index: dict[str, _TokenRef] = {}
    for market in markets:
        for token in market.tokens:
            index[token.token_id] = _TokenRef(market=market, token=token)
    return index


def sort_positions(positions: Iterable[Position]) -> list[Position]:
    """Order by result (win, loss, pending, unknown), then by PnL descending."""

    return sorted(
        positions,
        key=lambda position: (_RESULT_ORDER[position.result], -(position.pnl or 0.0)),
    )


def filter_positions(
    positions: Iterable[Position],
    *,
    position_type: PositionType | None = None,
    result: PositionResult | None = None,
    resolved: bool | None = None,
) -> list[Position]:
    kept = list(positions)
    if position_type is not None:
        kept = [position for position in kept if position.position_type is position_type]
    if result is not None:
        kept = [position for position in kept if position.result is result]
    if resolved is not None:
        kept = [position for position in kept if position.is_resolved == resolved]
    return kept


def calculate_summary(positions: Sequence[Position]) -> PositionSummaryStats:
    stats = PositionSummaryStats(total_positions=len(positions))
    pnl_percents: list[float] = []
    for position in positions:
        if position.result is PositionResult.WIN:
            stats.winning_positions += 1
        elif position.result is PositionResult.LOSS:
            stats.losing_positions += 1
        else:
            stats.pending_positions += 1

        if position.position_type is PositionType.LONG:
            stats.long_positions += 1
        else:
            stats.short_positions += 1

        if position.pnl is not None:
            stats.total_pnl += position.pnl
            if position.is_resolved:
                stats.resolved_pnl += position.pnl
            else:
                stats.unrealized_pnl += position.pnl
        if position.pnl_percent is not None:
            pnl_percents.append(position.pnl_percent)

    if pnl_percents:
        stats.total_pnl_percent = sum(pnl_percents) / len(pnl_percents)
    return stats


class PositionService:
    """Join the trade ledger with market snapshots and resolution data."""

    def __init__(
        self,
        exchange: ExchangeClient,
        resolutions: ResolutionLookup,
        *,
        settings: Settings | None = None,
        side_rule: SideRule = SideRule.NET_SIGN,
        market_lookup: MarketLookup | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.exchange = exchange
        self.resolutions = resolutions
        self.market_lookup = market_lookup
        self.side_rule = side_rule
        self._sleep = sleep

    def get_wallet_positions(
        self,
        *,
        position_type: PositionType | None = None,
        result: PositionResult | None = None,
        resolved: bool | None = None,
    ) -> WalletPositionsSummary:
        trades = self.exchange.get_trades()
        positions = active_positions(aggregate_positions(trades, side_rule=self.side_rule))
        token_index = build_token_index(self.exchange.get_markets())
        resolution_map = self.enrich_positions(list(positions.values()), token_index)

        selected = filter_positions(
            positions.values(),
            position_type=position_type,
            result=result,
            resolved=resolved,
        )
        ordered = sort_positions(selected)
        logger.info(
            "Wallet positions: {} active, {} after filters", len(positions), len(ordered)
        )

        filters = None
        if position_type is not None or result is not None or resolved is not None:
            filters = PositionFilters(
                position_type=position_type.value if position_type else None,
                result=result.value if result else None,
                resolved=resolved,
            )
        return WalletPositionsSummary(
            positions=[PositionView.model_validate(position) for position in ordered],
            markets=self.unique_markets(ordered, token_index, resolution_map),
            summary=calculate_summary(ordered),
            filters=filters,
        )

    def get_position(self, token_id: str) -> Position | None:
        trades = [trade for trade in self.exchange.get_trades() if trade.token_id == token_id]
        if not trades:
            return None
        position = aggregate_positions(trades, side_rule=self.side_rule)[token_id]
        self.enrich_positions([position], build_token_index(self.exchange.get_markets()))
        return position

    def enrich_positions(
        self,
        positions: Sequence[Position],
        token_index: dict[str, _TokenRef],
    ) -> dict[str, MarketResolution | None]:
        """Attach market data, resolutions, and prices to ``positions`` in place.

        Markets missing from ``token_index`` are fetched through the market
        lookup and added to it. Positions that still have no market but carry
        a condition id get their resolution without outcome or midpoint data.
        """

        self._recover_missing_markets(positions, token_index)
        for position in positions:
            ref = token_index.get(position.token_id)
            if ref is None:
                if position.condition_id:
                    position.market_url = market_url(position.condition_id)
                continue
            position.condition_id = ref.market.condition_id
            position.market_question = ref.market.question
            position.outcome = ref.token.outcome
            position.is_resolved = ref.market.closed
            position.market_url = market_url(ref.market.condition_id)

        known = [
            position
            for position in positions
            if position.condition_id and position.token_id in token_index
        ]
        orphans = [
            position
            for position in positions
            if position.condition_id and position.token_id not in token_index
        ]
        condition_ids = dict.fromkeys(
            position.condition_id for position in known + orphans if position.condition_id
        )
        resolution_map = run_in_batches(
            list(condition_ids),
            self.resolutions.get_market_resolution,
            batch_size=self.settings.lookup_batch_size,
            delay_seconds=self.settings.lookup_batch_delay_seconds,
            label="Resolution lookup",
            sleep=self._sleep,
        )

        def _still_open(position: Position) -> bool:
            resolution = resolution_map.get(position.condition_id or "")
            if resolution is not None:
                return not resolution.resolved
            return not position.is_resolved

        price_map = run_in_batches(
            [position.token_id for position in known if _still_open(position)],
            self.exchange.get_midpoint,
            batch_size=self.settings.lookup_batch_size,
            delay_seconds=self.settings.lookup_batch_delay_seconds,
            label="Midpoint lookup",
            sleep=self._sleep,
        )

        for position in known:
            resolve_position(
                position,
                resolution_map.get(position.condition_id or ""),
                current_price=price_map.get(position.token_id),
            )
        for position in orphans:
            resolve_position(position, resolution_map.get(position.condition_id or ""))
        return resolution_map

    def _recover_missing_markets(
        self, positions: Sequence[Position], token_index: dict[str, _TokenRef]
    ) -> None:
        if self.market_lookup is None:
            return
        missing = list(
            dict.fromkeys(
                position.token_id for position in positions if position.token_id not in token_index
            )
        )
        if not missing:
            return
        found = run_in_batches(
            missing,
            self.market_lookup.get_market_by_token_id,
            batch_size=self.settings.lookup_batch_size,
            delay_seconds=self.settings.lookup_batch_delay_seconds,
            label="Market lookup",
            sleep=self._sleep,
        )
        markets = [market for market in found.values() if market is not None]
        for token_id, ref in build_token_index(markets).items():
            token_index.setdefault(token_id, ref)
        logger.info(
            "Recovered {} of {} markets missing from the snapshot", len(markets), len(missing)
        )

    @staticmethod
    def unique_markets(
        positions: Iterable[Position],
        token_index: Mapping[str, _TokenRef],
        resolution_map: Mapping[str, MarketResolution | None],
    ) -> list[MarketView]:
        views: dict[str, MarketView] = {}
        for position in positions:
            ref = token_index.get(position.token_id)
            if ref is None or ref.market.condition_id in views:
                continue
            market = ref.market
            resolution = resolution_map.get(market.condition_id)
            views[market.condition_id] = MarketView(
                condition_id=market.condition_id,
                question=market.question,
                is_resolved=resolution.resolved if resolution else market.closed,
                winner=resolution.winner if resolution else None,
                tokens=[
                    MarketTokenView(
                        token_id=token.token_id,
                        outcome=token.outcome,
                        price=token.price,
                        winner=token.price is not None and token.price >= WINNING_TOKEN_PRICE,
                    )
                    for token in market.tokens
                ],
                market_url=market_url(market.condition_id),
            )
        return list(views.values())


__all__ = [
    "PositionService",
    "build_token_index",
    "calculate_summary",
    "filter_positions",
    "market_url",
    "sort_positions",
]
