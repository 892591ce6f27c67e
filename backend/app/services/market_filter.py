"""Reusable market filters shared by all strategies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Sequence

from loguru import logger

from app.domain import Market

NO_END_DATE_DAYS = 999.0
PREFERRED_CATEGORY_BONUS = 2.0


@dataclass(slots=True)
class MarketFilterConfig:
    min_price: float | None = None
    max_price: float | None = None
    exclude_neg_risk: bool = False
    min_days_to_resolution: float | None = None
    max_days_to_resolution: float | None = None
    included_categories: list[str] = field(default_factory=list)
    excluded_categories: list[str] = field(default_factory=list)
    min_volume: float | None = None


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def filter_basic(markets: Iterable[Market]) -> list[Market]:
    """Keep markets that are open, accepting orders, and carry tokens."""

    return [
        market
        for market in markets
        if market.active and not market.closed and market.accepting_orders and market.tokens
    ]


def filter_by_price(
    markets: Iterable[Market], min_price: float | None, max_price: float | None
) -> list[Market]:
    kept: list[Market] = []
    for market in markets:
        price = market.yes_price
        if price is None:
            continue
        if min_price is not None and price < min_price:
            continue
        if max_price is not None and price > max_price:
            continue
        kept.append(market)
    return kept


def filter_by_probability(
    markets: Iterable[Market], min_probability: float, max_probability: float
) -> list[Market]:
    return filter_by_price(markets, min_probability, max_probability)


def filter_by_resolution_date(
    markets: Iterable[Market],
    min_days: float | None,
    max_days: float | None,
    *,
    now: datetime | None = None,
) -> list[Market]:
    markets = list(markets)
    if min_days is None and max_days is None:
        return markets
    current = _now(now)
    kept: list[Market] = []
    for market in markets:
        days = market.days_to_end(current)
        if days is None:
            continue
        if min_days is not None and days < min_days:
            continue
        if max_days is not None and days > max_days:
            continue
        kept.append(market)
    return kept


def _matches_any(category: str, candidates: Sequence[str]) -> bool:
    lowered = category.lower()
    return any(candidate.lower() in lowered for candidate in candidates if candidate)


def filter_by_category(
    markets: Iterable[Market],
    included: Sequence[str] | None = None,
    excluded: Sequence[str] | None = None,
) -> list[Market]:
    included = list(included or ())
    excluded = list(excluded or ())
    kept: list[Market] = []
    for market in markets:
        if not market.category:
            if not included:
                kept.append(market)
            continue
        if included and not _matches_any(market.category, included):
            continue
        if excluded and _matches_any(market.category, excluded):
            continue
        kept.append(market)
    return kept


def filter_neg_risk(markets: Iterable[Market], exclude: bool = True) -> list[Market]:
    if not exclude:
        return list(markets)
    return [market for market in markets if not market.neg_risk]


def filter_by_volume(markets: Iterable[Market], min_volume: float | None) -> list[Market]:
    if not min_volume:
        return list(markets)
    return [market for market in markets if (market.volume or 0.0) >= min_volume]


def filter_with_config(
    markets: Iterable[Market],
    config: MarketFilterConfig,
    *,
    now: datetime | None = None,
) -> list[Market]:
    """Apply every configured filter in a fixed order."""

    markets = list(markets)
    initial = len(markets)
    filtered = filter_basic(markets)
    filtered = filter_by_price(filtered, config.min_price, config.max_price)
    filtered = filter_by_resolution_date(
        filtered, config.min_days_to_resolution, config.max_days_to_resolution, now=now
    )
    filtered = filter_by_category(
        filtered, config.included_categories, config.excluded_categories
    )
    filtered = filter_by_volume(filtered, config.min_volume)
    if config.exclude_neg_risk:
        filtered = filter_neg_risk(filtered, True)
    logger.debug("Market filter kept {} of {} markets", len(filtered), initial)
    return filtered


def ai_priority_score(
    market: Market,
    *,
    preferred_categories: Sequence[str] = (),
    now: datetime | None = None,
) -> float:
    """Favour likely, soon-resolving markets in preferred categories."""

    yes_price = market.yes_price or 0.0
    bonus = 1.0
    if market.category and preferred_categories and _matches_any(
        market.category, preferred_categories
    ):
        bonus = PREFERRED_CATEGORY_BONUS
    days = market.days_to_end(_now(now))
    if days is None:
        days = NO_END_DATE_DAYS
    days = max(days, 0.0)
    return (yes_price * bonus) / (days + 1)


def sort_for_ai(
    markets: Iterable[Market],
    *,
    preferred_categories: Sequence[str] = (),
    now: datetime | None = None,
) -> list[Market]:
    current = _now(now)
    return sorted(
        markets,
        key=lambda market: ai_priority_score(
            market, preferred_categories=preferred_categories, now=current
        ),
        reverse=True,
    )


__all__ = [
    "MarketFilterConfig",
    "ai_priority_score",
    "filter_basic",
    "filter_by_category",
    "filter_by_price",
    "filter_by_probability",
    "filter_by_resolution_date",
    "filter_by_volume",
    "filter_neg_risk",
    "filter_with_config",
    "sort_for_ai",
]
