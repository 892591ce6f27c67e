"""Budget-gated, cached AI market selection and analysis."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Callable, Sequence

from loguru import logger

from app.core.config import AIStrategyConfig
from app.domain import AIAnalysis, Market, OrderBook, RiskLevel
from app.services.batching import run_in_batches
from app.services.market_filter import MarketFilterConfig, filter_with_config, sort_for_ai

from .analyzer import MarketAnalyzer, select_markets
from .budget import AIBudget, cost_per_market
from .cache import AnalysisCache, Clock, utc_now
from .edge import EdgeDecision, evaluate_edge

LIQUIDITY_CHECK_LIMIT = 50

OrderBookSource = Callable[[str], OrderBook]


class AIController:
    """Owns the analysis cache and spend counters for one trading process.

    Cycles are sequential, so the cache and budget are only touched by the
    active cycle.
    """

    def __init__(
        self,
        config: AIStrategyConfig,
        analyzer: MarketAnalyzer | None,
        *,
        clock: Clock = utc_now,
        order_books: OrderBookSource | None = None,
        cache: AnalysisCache | None = None,
        budget: AIBudget | None = None,
        lookup_batch_size: int = 10,
        lookup_batch_delay_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.analyzer = analyzer
        self.clock = clock
        self.order_books = order_books
        self.cache = cache or AnalysisCache(
            ttl_seconds=config.ai_cache_ttl_seconds,
            max_entries=config.ai_cache_max_entries,
            clock=clock,
        )
        self.budget = budget or AIBudget(
            daily_limit=config.max_ai_budget_per_day,
            cycle_limit=config.max_ai_budget_per_cycle,
            clock=clock,
        )
        self.max_risk = RiskLevel(config.max_ai_risk)
        self._batch_size = lookup_batch_size
        self._batch_delay = lookup_batch_delay_seconds
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return self.config.use_ai and self.analyzer is not None

    @property
    def cost_per_market(self) -> float:
        uses_news = self.config.use_news or bool(self.analyzer and self.analyzer.uses_news)
        return cost_per_market(uses_news)

    def begin_cycle(self) -> None:
        self.budget.begin_cycle()

    def basic_filter(self, markets: Sequence[Market], *, now: datetime | None = None) -> list[Market]:
        config = MarketFilterConfig(
            min_price=self.config.min_price,
            max_price=self.config.max_price,
            exclude_neg_risk=self.config.exclude_neg_risk,
            excluded_categories=list(self.config.excluded_categories),
            min_volume=self.config.min_volume,
        )
        return filter_with_config(markets, config, now=now or self.clock())

    def _check_liquidity(self, markets: Sequence[Market]) -> list[Market]:
        if self.order_books is None or self.config.min_liquidity <= 0:
            return list(markets)
        candidates = [market for market in markets[:LIQUIDITY_CHECK_LIMIT] if market.yes_token]
        books = run_in_batches(
            [market.yes_token.token_id for market in candidates if market.yes_token],
            self.order_books,
            batch_size=self._batch_size,
            delay_seconds=self._batch_delay,
            label="Order book lookup",
            sleep=self._sleep,
        )
        liquid: list[Market] = []
        for market in candidates:
            token = market.yes_token
            book = books.get(token.token_id) if token else None
            if book is not None and book.depth_usd() >= self.config.min_liquidity:
                liquid.append(market)
        logger.info("Liquidity check kept {} of {} markets", len(liquid), len(candidates))
        return liquid

    def filter_markets(self, markets: Sequence[Market]) -> list[Market]:
        """Select markets for this cycle, using AI analysis while budget allows."""

        now = self.clock()
        self.cache.sweep()
        candidates = self.basic_filter(markets, now=now)
        if self.config.check_liquidity:
            candidates = self._check_liquidity(candidates)
        fallback = candidates[: self.config.max_markets]

        if not self.enabled or self.analyzer is None:
            return fallback

        try:
            if self.budget.is_exhausted:
                logger.warning(
                    "Daily AI budget exhausted ({:.4f} / {:.2f}); using rule-based filtering",
                    self.budget.total_spent_today,
                    self.budget.daily_limit,
                )
                return fallback

            cost = self.cost_per_market
            affordable = self.budget.markets_affordable(cost)
            if affordable <= 0:
                logger.warning(
                    "Remaining AI budget {:.4f} below per-market cost {:.3f}; skipping AI",
                    self.budget.remaining(),
                    cost,
                )
                return fallback

            limit = min(self.config.max_markets_for_ai, affordable, len(candidates))
            if limit <= 0:
                return fallback
            ranked = sort_for_ai(
                candidates, preferred_categories=self.config.preferred_categories, now=now
            )[:limit]
            logger.info(
                "Analyzing {} of {} markets with AI (budget remaining {:.4f})",
                len(ranked),
                len(candidates),
                self.budget.remaining(),
            )
            analyzed = self.analyzer.analyze_many(ranked)
            for market, analysis in analyzed:
                self.cache.put(market.condition_id, analysis)
            self.budget.record(len(analyzed), cost)

            selected = select_markets(
                analyzed,
                min_attractiveness=self.config.min_ai_attractiveness,
                max_risk=self.max_risk,
            )
            return [market for market, _ in selected][: self.config.max_markets]
        except Exception:  # noqa: BLE001 - AI filtering degrades to rule-based filtering
            logger.exception("AI market filtering failed; using rule-based filtering")
            return fallback

    def cached_analysis(self, market: Market) -> AIAnalysis | None:
        return self.cache.get(market.condition_id)

    def get_analysis(self, market: Market) -> AIAnalysis | None:
        """Serve a fresh cached analysis, or analyze ``market`` if budget allows."""

        cached = self.cache.get(market.condition_id)
        if cached is not None:
            return cached
        if not self.enabled or self.analyzer is None:
            return None
        cost = self.cost_per_market
        if self.budget.markets_affordable(cost) < 1:
            logger.info("AI budget does not cover {}; no analysis", market.condition_id)
            return None
        analysis = self.analyzer.analyze(market)
        self.cache.put(market.condition_id, analysis)
        self.budget.record(1, cost)
        return analysis

    def evaluate(self, analysis: AIAnalysis, market_price: float) -> EdgeDecision:
        return evaluate_edge(
            analysis,
            market_price,
            min_edge=self.config.min_edge,
            max_risk=self.max_risk,
        )


__all__ = ["AIController", "LIQUIDITY_CHECK_LIMIT", "OrderBookSource"]
