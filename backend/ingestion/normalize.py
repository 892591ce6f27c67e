from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Mapping

from dateutil import parser as date_parser
from loguru import logger

from app.domain import (
    Market,
    MarketResolution,
    MarketToken,
    OrderBook,
    OrderSide,
    Trade,
)

WINNING_PRICE = 0.99


def _as_list(value: Any) -> list[Any]:
    """Return value as a list when possible, decoding JSON strings."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
        seconds = float(value)
        # Millisecond epochs show up in some trade payloads.
        if seconds > 1e11:
            seconds /= 1000.0
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    try:
        parsed = date_parser.isoparse(str(value))
    except (ValueError, TypeError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


def normalize_trade(raw_trade: Mapping[str, Any]) -> Trade | None:
    """Convert an exchange fill into a :class:`Trade`; malformed fills yield ``None``."""

    token_id = raw_trade.get("asset_id") or raw_trade.get("token_id") or raw_trade.get("asset")
    side_raw = str(raw_trade.get("side") or "").upper()
    size = parse_float(raw_trade.get("size"))
    price = parse_float(raw_trade.get("price"))
    if not token_id or side_raw not in OrderSide.__members__ or not size or size <= 0:
        logger.warning("Skipping malformed trade payload: {}", raw_trade.get("id"))
        return None
    if price is None:
        logger.warning("Skipping trade {} without a price", raw_trade.get("id"))
        return None
    timestamp = _parse_datetime(
        raw_trade.get("match_time") or raw_trade.get("timestamp") or raw_trade.get("created_at")
    )
    return Trade(
        token_id=str(token_id),
        side=OrderSide(side_raw),
        size=size,
        price=price,
        timestamp=timestamp,
        trade_id=str(raw_trade["id"]) if raw_trade.get("id") is not None else None,
        condition_id=raw_trade.get("market") or raw_trade.get("condition_id"),
    )


def normalize_trades(raw_trades: list[Mapping[str, Any]]) -> list[Trade]:
    trades = [normalize_trade(raw) for raw in raw_trades]
    return [trade for trade in trades if trade is not None]


def _build_tokens(raw_market: Mapping[str, Any]) -> list[MarketToken]:
    raw_tokens = raw_market.get("tokens")
    if isinstance(raw_tokens, list) and raw_tokens:
        tokens: list[MarketToken] = []
        for raw_token in raw_tokens:
            if not isinstance(raw_token, Mapping):
                continue
            token_id = raw_token.get("token_id") or raw_token.get("tokenId")
            if not token_id:
                continue
            tokens.append(
                MarketToken(
                    token_id=str(token_id),
                    outcome=str(raw_token.get("outcome") or ""),
                    price=parse_float(raw_token.get("price")),
                )
            )
        return tokens

    outcomes = _as_list(raw_market.get("outcomes"))
    prices = _as_list(raw_market.get("outcomePrices"))
    token_ids = _as_list(raw_market.get("clobTokenIds"))
    tokens = []
    for index, token_id in enumerate(token_ids):
        outcome = outcomes[index] if index < len(outcomes) else ""
        price = parse_float(prices[index]) if index < len(prices) else None
        tokens.append(MarketToken(token_id=str(token_id), outcome=str(outcome), price=price))
    return tokens


def _category(raw_market: Mapping[str, Any]) -> str | None:
    category = raw_market.get("category")
    if category:
        return str(category)
    tags = _as_list(raw_market.get("tags"))
    for tag in tags:
        if isinstance(tag, str) and tag:
            return tag
        if isinstance(tag, Mapping) and tag.get("label"):
            return str(tag["label"])
    return None


def normalize_market(raw_market: Mapping[str, Any]) -> Market:
    """Normalize a CLOB (snake_case) or Gamma (camelCase) market payload."""

    condition_id = raw_market.get("condition_id") or raw_market.get("conditionId") or ""
    min_order = parse_float(
        raw_market.get("minimum_order_size") or raw_market.get("orderMinSize")
    )
    min_tick = parse_float(
        raw_market.get("minimum_tick_size") or raw_market.get("orderPriceMinTickSize")
    )
    return Market(
        condition_id=str(condition_id),
        question=str(raw_market.get("question") or raw_market.get("title") or ""),
        tokens=_build_tokens(raw_market),
        end_date=_parse_datetime(
            raw_market.get("end_date_iso") or raw_market.get("endDateIso") or raw_market.get("endDate")
        ),
        neg_risk=_parse_bool(raw_market.get("neg_risk", raw_market.get("negRisk"))),
        minimum_order_size=min_order if min_order is not None else 5.0,
        minimum_tick_size=min_tick if min_tick is not None else 0.01,
        active=_parse_bool(raw_market.get("active"), default=True),
        closed=_parse_bool(raw_market.get("closed")),
        accepting_orders=_parse_bool(
            raw_market.get("accepting_orders", raw_market.get("acceptingOrders")), default=True
        ),
        category=_category(raw_market),
        volume=parse_float(raw_market.get("volume") or raw_market.get("volumeNum")),
        liquidity=parse_float(raw_market.get("liquidity") or raw_market.get("liquidityNum")),
        description=raw_market.get("description"),
        slug=raw_market.get("market_slug") or raw_market.get("slug"),
    )


def normalize_gamma_resolution(raw_market: Mapping[str, Any]) -> MarketResolution:
    """Derive the winner from settlement prices; ``resolved`` mirrors ``closed``."""

    outcomes = _as_list(raw_market.get("outcomes")) or ["Yes", "No"]
    prices = [parse_float(price) for price in _as_list(raw_market.get("outcomePrices"))]
    winner: str | None = None
    if len(prices) >= 2:
        for index, price in enumerate(prices):
            if price is not None and price >= WINNING_PRICE and index < len(outcomes):
                winner = str(outcomes[index])
                break
    return MarketResolution(
        condition_id=str(raw_market.get("conditionId") or raw_market.get("condition_id") or ""),
        resolved=_parse_bool(raw_market.get("closed")),
        winner=winner,
        resolution_source=raw_market.get("resolutionSource") or None,
    )


def _levels(raw_levels: Any) -> list[tuple[float, float]]:
    levels: list[tuple[float, float]] = []
    for level in _as_list(raw_levels):
        if not isinstance(level, Mapping):
            continue
        price = parse_float(level.get("price"))
        size = parse_float(level.get("size"))
        if price is None or size is None:
            continue
        levels.append((price, size))
    return levels


def normalize_orderbook(raw_book: Mapping[str, Any], token_id: str | None = None) -> OrderBook:
    return OrderBook(
        token_id=str(token_id or raw_book.get("asset_id") or ""),
        bids=_levels(raw_book.get("bids")),
        asks=_levels(raw_book.get("asks")),
    )


__all__ = [
    "normalize_gamma_resolution",
    "normalize_market",
    "normalize_orderbook",
    "normalize_trade",
    "normalize_trades",
    "parse_float",
]
