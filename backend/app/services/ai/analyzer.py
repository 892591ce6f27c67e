"""Prompt construction and provider calls for per-market AI analysis."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, Mapping, Protocol, Sequence

from loguru import logger

from app.domain import AIAnalysis, Market, RiskLevel
from app.errors import AnalysisParseError

from .analysis import conservative_analysis, parse_analysis
from .request_queue import RequestQueue

if TYPE_CHECKING:
    from app.services.llm.base import LLMProvider

SYSTEM_PROMPT = """You are an expert prediction market analyst.
Assess whether a Polymarket binary market is suitable for trading. Consider
market quality (clear question and resolution criteria), pricing efficiency,
risk factors such as manipulation or ambiguous resolution, and timing.

Respond with a single JSON object:
{
  "shouldTrade": true or false,
  "confidence": 0.0-1.0,
  "reasoning": "short explanation",
  "attractiveness": 0.0-1.0,
  "estimatedProbability": 0.0-1.0,
  "riskLevel": "low" | "medium" | "high"
}

"estimatedProbability" is mandatory: your own probability that the market
resolves YES. It is compared with the market price to find an edge, so give
your best estimate even when uncertain. Do not include a recommended action;
it is derived from your estimate."""

NEWS_RESULTS = 5


class NewsProvider(Protocol):
    def search(self, query: str, *, limit: int = NEWS_RESULTS) -> Sequence[Mapping[str, str]]:
        """Return recent articles with ``title``, ``url`` and ``snippet`` keys."""


def _format_news(articles: Sequence[Mapping[str, str]]) -> str:
    lines = ["**Recent News:**"]
    for index, article in enumerate(articles, start=1):
        title = article.get("title") or "Untitled"
        snippet = article.get("snippet") or ""
        lines.append(f"{index}. {title}: {snippet}".rstrip(": "))
    return "\n".join(lines)


def build_prompt(
    market: Market,
    *,
    now: datetime | None = None,
    news: Sequence[Mapping[str, str]] = (),
    strategy_type: str = "ai",
) -> str:
    current = now or datetime.now(timezone.utc)
    yes_price = market.yes_price or 0.0
    no_token = market.no_token
    no_price = no_token.price if no_token and no_token.price is not None else 1 - yes_price

    lines = [
        "Analyze this Polymarket prediction market and decide whether it is suitable for trading.",
        "",
        "**Market Information:**",
        f'Question: "{market.question}"',
    ]
    if market.description:
        lines.append(f"Description: {market.description}")
    lines += [
        "",
        "**Current Market Data:**",
        f"- YES Token Price: {yes_price * 100:.2f}% ({yes_price:.4f})",
        f"- NO Token Price: {no_price * 100:.2f}% ({no_price:.4f})",
        f"- NegRisk Market: {market.neg_risk}",
    ]
    days = market.days_to_end(current)
    if days is not None and market.end_date is not None:
        lines.append(f"- Days to Resolution: {max(days, 0):.1f}")
        lines.append(f"- Resolution Date: {market.end_date.date().isoformat()}")
    if market.category:
        lines.append(f"- Category: {market.category}")
    if market.volume is not None:
        lines.append(f"- Volume: {market.volume:,.0f} USD")
    lines += ["", "**Trading Context:**", f"- Strategy Type: {strategy_type}"]
    if news:
        lines += ["", _format_news(news)]
    lines += [
        "",
        "Compare YOUR estimatedProbability with the YES price above; a large gap is an edge.",
    ]
    return "\n".join(lines)


class MarketAnalyzer:
    """Run provider analyses through the request queue and parse the replies."""

    def __init__(
        self,
        provider: "LLMProvider",
        *,
        queue: RequestQueue,
        news: NewsProvider | None = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.provider = provider
        self.queue = queue
        self.news = news
        self.system_prompt = system_prompt

    @property
    def uses_news(self) -> bool:
        return self.news is not None

    def _news_for(self, market: Market) -> list[Mapping[str, str]]:
        if self.news is None:
            return []
        try:
            return list(self.news.search(market.question, limit=NEWS_RESULTS))
        except Exception:  # noqa: BLE001 - news is optional context
            logger.exception("News lookup failed for {}; continuing without", market.condition_id)
            return []

    def _prepare(self, market: Market) -> tuple[str, list[Mapping[str, str]]]:
        news = self._news_for(market)
        return build_prompt(market, news=news), news

    def _complete(self, prompt: str) -> Mapping[str, object]:
        return self.provider.complete_json(system_prompt=self.system_prompt, user_prompt=prompt)

    @staticmethod
    def _finish(
        market: Market, payload: object, news: Sequence[Mapping[str, str]]
    ) -> AIAnalysis:
        analysis = parse_analysis(payload, market_id=market.condition_id)
        for article in news:
            url = article.get("url")
            if url and url not in analysis.sources:
                analysis.sources.append(url)
        return analysis

    def analyze(self, market: Market) -> AIAnalysis:
        try:
            prompt, news = self._prepare(market)
            payload = self.queue.run(self._complete, prompt)
            return self._finish(market, payload, news)
        except Exception as exc:  # noqa: BLE001 - degrade to a non-tradable analysis
            logger.exception("AI analysis failed for {}", market.condition_id)
            return conservative_analysis(
                f"AI analysis failed: {exc}", market_id=market.condition_id
            )

    def analyze_many(self, markets: Sequence[Market]) -> list[tuple[Market, AIAnalysis]]:
        prepared = [(market, *self._prepare(market)) for market in markets]
        settled = self.queue.map_settled(lambda item: self._complete(item[1]), prepared)
        results: list[tuple[Market, AIAnalysis]] = []
        for (market, _prompt, news), payload, error in settled:
            analysis: AIAnalysis | None = None
            if error is None:
                try:
                    analysis = self._finish(market, payload, news)
                except AnalysisParseError as exc:
                    error = exc
            if analysis is None:
                logger.error("AI analysis failed for {}: {}", market.condition_id, error)
                analysis = conservative_analysis(
                    f"AI analysis failed: {error}", market_id=market.condition_id
                )
            results.append((market, analysis))
        return results


def select_markets(
    analyzed: Iterable[tuple[Market, AIAnalysis]],
    *,
    min_attractiveness: float,
    max_risk: RiskLevel,
) -> list[tuple[Market, AIAnalysis]]:
    """Keep tradable analyses within the risk ceiling, most attractive first."""

    kept = [
        (market, analysis)
        for market, analysis in analyzed
        if analysis.should_trade
        and analysis.attractiveness >= min_attractiveness
        and analysis.risk_level.rank <= max_risk.rank
    ]
    kept.sort(key=lambda pair: pair[1].attractiveness, reverse=True)
    return kept


__all__ = ["MarketAnalyzer", "NewsProvider", "SYSTEM_PROMPT", "build_prompt", "select_markets"]
