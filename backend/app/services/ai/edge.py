"""Accept or reject an AI recommendation against the market price."""

from __future__ import annotations

from dataclasses import dataclass

from app.domain import AIAnalysis, RecommendedAction, RiskLevel

_EDGE_TOLERANCE = 1e-9


@dataclass(slots=True)
class EdgeDecision:
    action: RecommendedAction | None
    edge: float | None
    reason: str
    estimated_probability: float | None = None

    @property
    def accepted(self) -> bool:
        return self.action in (RecommendedAction.BUY_YES, RecommendedAction.BUY_NO)


def _reject(reason: str, edge: float | None = None) -> EdgeDecision:
    return EdgeDecision(action=None, edge=edge, reason=reason)


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def direction_from_estimate(estimate: float, market_price: float) -> RecommendedAction | None:
    """BUY_YES when the estimate is above the market, BUY_NO when below."""

    if estimate > market_price:
        return RecommendedAction.BUY_YES
    if estimate < market_price:
        return RecommendedAction.BUY_NO
    return None


def evaluate_edge(
    analysis: AIAnalysis,
    market_price: float,
    *,
    min_edge: float,
    max_risk: RiskLevel = RiskLevel.HIGH,
) -> EdgeDecision:
    """Return the accepted action, or a rejection explaining why none applies."""

    if not analysis.should_trade:
        return _reject("AI advises against trading")
    if analysis.recommended_action is RecommendedAction.AVOID:
        return _reject("AI recommends AVOID")
    if analysis.risk_level.rank > max_risk.rank:
        return _reject(f"risk {analysis.risk_level.value} above ceiling {max_risk.value}")

    estimate = analysis.estimated_probability
    if estimate is None:
        return _reject("no probability estimate; no edge available")

    action = analysis.recommended_action or direction_from_estimate(estimate, market_price)
    if action is None:
        return _reject("estimate equals market price", 0.0)

    if action is RecommendedAction.BUY_YES:
        edge = abs(estimate - market_price)
        if edge + _EDGE_TOLERANCE < min_edge:
            return _reject(f"edge {_pct(edge)} below minimum {_pct(min_edge)}", edge)
        if estimate <= market_price:
            return _reject(
                f"estimate {_pct(estimate)} not above market {_pct(market_price)}", edge
            )
        return EdgeDecision(
            action=action,
            edge=edge,
            reason=f"AI {_pct(estimate)} > Market {_pct(market_price)} (edge: +{edge * 100:.1f} pp)",
            estimated_probability=estimate,
        )

    no_price = 1 - market_price
    no_probability = 1 - estimate
    edge = abs(no_probability - no_price)
    if edge + _EDGE_TOLERANCE < min_edge:
        return _reject(f"NO edge {_pct(edge)} below minimum {_pct(min_edge)}", edge)
    if no_probability <= no_price:
        return _reject(
            f"NO estimate {_pct(no_probability)} not above NO market {_pct(no_price)}", edge
        )
    return EdgeDecision(
        action=action,
        edge=edge,
        reason=(
            f"AI NO {_pct(no_probability)} > Market NO {_pct(no_price)} "
            f"(edge: +{edge * 100:.1f} pp)"
        ),
        estimated_probability=estimate,
    )


__all__ = ["EdgeDecision", "direction_from_estimate", "evaluate_edge"]
