"""Tail-risk hedge sizing for near-certain binary markets.

The primary YES leg is floored so it never spends more than the supplied
capital; the NO leg is ceiled so it never under-insures. Together they allow the
realised loss to exceed ``max_loss`` by at most the price of one NO share.
"""

from __future__ import annotations

import math

from app.domain import HedgeResult, TradeSetupAnalysis

# Absorbs binary float noise such as 1 / 0.1 == 9.999999999999998.
_ROUNDING_TOLERANCE = 1e-9

EXPENSIVE_INSURANCE_FRACTION = 0.10
HIGH_RISK_NO_PRICE = 0.10


def _validate_inputs(capital: float, yes_price: float, max_loss_fraction: float) -> None:
    if capital <= 0:
        raise ValueError(f"capital must be positive (got {capital})")
    if not 0 < yes_price < 1:
        raise ValueError(f"yes_price must lie strictly inside (0, 1) (got {yes_price})")
    if not 0 < max_loss_fraction < 1:
        raise ValueError(
            f"max_loss_fraction must lie strictly inside (0, 1) (got {max_loss_fraction})"
        )


def calculate_hedge_position(
    capital: float, yes_price: float, max_loss_fraction: float
) -> HedgeResult:
    """Size a YES position plus the NO hedge that caps its downside."""

    _validate_inputs(capital, yes_price, max_loss_fraction)

    yes_size = math.floor(capital / yes_price + _ROUNDING_TOLERANCE)
    yes_cost = yes_size * yes_price
    max_loss = yes_cost * max_loss_fraction
    hedge_payout_needed = yes_cost - max_loss

    no_price = 1 - yes_price
    no_profit_per_share = 1 - no_price
    no_size = max(math.ceil(hedge_payout_needed / no_profit_per_share - _ROUNDING_TOLERANCE), 0)
    no_cost = no_size * no_price

    return HedgeResult(
        main_position_size=yes_size,
        hedge_position_size=no_size,
        yes_cost=yes_cost,
        no_cost=no_cost,
        max_loss=max_loss,
        hedge_payout_needed=hedge_payout_needed,
        no_price=no_price,
        net_profit_if_win=yes_size * (1 - yes_price) - no_cost,
        net_loss_if_lose=-yes_cost + no_size * (1 - no_price),
    )


def analyze_trade_setup(
    order_size: float, yes_price: float, max_loss_fraction: float
) -> TradeSetupAnalysis:
    """Evaluate the economics of a hedged entry before committing to it."""

    hedge = calculate_hedge_position(order_size, yes_price, max_loss_fraction)
    total_cost = hedge.total_cost
    insurance_percent = hedge.no_cost / total_cost * 100 if total_cost > 0 else 0.0
    roi_percent = hedge.net_profit_if_win / total_cost * 100 if total_cost > 0 else 0.0

    warnings: list[str] = []
    is_valid = True
    if hedge.no_cost > total_cost * EXPENSIVE_INSURANCE_FRACTION:
        warnings.append(f"Insurance is expensive: {insurance_percent:.1f}% of total cost")
    if hedge.net_profit_if_win < 0:
        warnings.append("Expected profit is negative")
        is_valid = False
    if hedge.no_price > HIGH_RISK_NO_PRICE:
        warnings.append(f"High risk: NO trades at {hedge.no_price * 100:.1f}%")

    return TradeSetupAnalysis(
        hedge=hedge,
        is_valid=is_valid,
        warnings=warnings,
        insurance_percent=insurance_percent,
        roi_percent=roi_percent,
    )


__all__ = ["analyze_trade_setup", "calculate_hedge_position"]
