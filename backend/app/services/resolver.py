"""Classify positions against market resolutions and compute profit/loss."""

from __future__ import annotations

from app.domain import (
    MarketResolution,
    Position,
    PositionPnL,
    PositionResult,
    PositionType,
)


def _same_outcome(left: str | None, right: str | None) -> bool:
    if left is None or right is None:
        return False
    return left.strip().lower() == right.strip().lower()


def classify_result(
    position_type: PositionType,
    outcome: str | None,
    *,
    resolved: bool,
    winner: str | None,
) -> PositionResult:
    """Return win/loss once a winner is known, pending otherwise.

    A SHORT is a bet against ``outcome`` and therefore wins when another
    outcome takes the market.
    """

    if not resolved or not winner:
        return PositionResult.PENDING
    if outcome is None:
        return PositionResult.UNKNOWN
    matches = _same_outcome(winner, outcome)
    if position_type is PositionType.SHORT:
        return PositionResult.LOSS if matches else PositionResult.WIN
    return PositionResult.WIN if matches else PositionResult.LOSS


def _pnl_at(position: Position, price: float) -> tuple[float, float]:
    if position.position_type is PositionType.SHORT:
        pnl = (position.avg_price - price) * position.size
    else:
        pnl = (price - position.avg_price) * position.size
    basis = position.avg_price * position.size
    pnl_percent = pnl / basis * 100.0 if basis > 0 else 0.0
    return pnl, pnl_percent


def compute_pnl(
    position: Position,
    *,
    resolved: bool,
    winner: str | None,
    current_price: float | None,
) -> PositionPnL | None:
    """Profit/loss at the settlement price, or marked to ``current_price``."""

    if resolved and winner:
        result = classify_result(
            position.position_type, position.outcome, resolved=True, winner=winner
        )
        if result is PositionResult.UNKNOWN:
            return None
        final_price = 1.0 if result is PositionResult.WIN else 0.0
        pnl, pnl_percent = _pnl_at(position, final_price)
        return PositionPnL(pnl=pnl, pnl_percent=pnl_percent, current_price=final_price)

    if current_price is not None and position.size > 0:
        pnl, pnl_percent = _pnl_at(position, current_price)
        return PositionPnL(pnl=pnl, pnl_percent=pnl_percent, current_price=current_price)

    return None


def resolve_position(
    position: Position,
    resolution: MarketResolution | None,
    *,
    current_price: float | None = None,
) -> Position:
    """Apply resolution data and pricing to ``position`` in place and return it."""

    if resolution is not None:
        position.is_resolved = resolution.resolved
        position.winner = resolution.winner
    position.result = classify_result(
        position.position_type,
        position.outcome,
        resolved=position.is_resolved,
        winner=position.winner,
    )
    pnl = compute_pnl(
        position,
        resolved=position.is_resolved,
        winner=position.winner,
        current_price=current_price,
    )
    if pnl is not None:
        position.pnl = pnl.pnl
        position.pnl_percent = pnl.pnl_percent
        position.current_price = pnl.current_price
    return position


__all__ = ["classify_result", "compute_pnl", "resolve_position"]
