from __future__ import annotations

import pytest

from app.services.hedging import analyze_trade_setup, calculate_hedge_position


def test_hedge_for_near_certain_market():
    hedge = calculate_hedge_position(1000, 0.97, 0.03)

    assert hedge.main_position_size == 1030
    assert hedge.yes_cost == pytest.approx(999.1)
    assert hedge.max_loss == pytest.approx(29.973)
    assert hedge.hedge_payout_needed == pytest.approx(969.127)
    assert hedge.no_price == pytest.approx(0.03)
    # ceil(969.127 / 0.97) == 1000
    assert hedge.hedge_position_size == 1000
    assert hedge.no_cost == pytest.approx(30.0)
    assert hedge.net_profit_if_win == pytest.approx(1030 * 0.03 - 30.0)
    assert hedge.net_loss_if_lose == pytest.approx(-999.1 + 1000 * 0.97)


@pytest.mark.parametrize(
    "capital, price, loss",
    [(10, 0.90, 0.03), (10, 0.95, 0.05), (250, 0.93, 0.02), (1000, 0.99, 0.01), (57, 0.915, 0.03)],
)
def test_loss_exceeds_cap_by_at_most_one_no_share(capital, price, loss):
    hedge = calculate_hedge_position(capital, price, loss)

    assert hedge.yes_cost <= capital + 1e-9
    assert hedge.hedge_position_size * (1 - hedge.no_price) >= hedge.hedge_payout_needed - 1e-9
    assert -hedge.net_loss_if_lose <= hedge.max_loss + hedge.no_price + 1e-9


@pytest.mark.parametrize(
    "capital, price, loss",
    [(0, 0.95, 0.03), (-5, 0.95, 0.03), (10, 0.0, 0.03), (10, 1.0, 0.03), (10, 0.95, 0.0), (10, 0.95, 1.0)],
)
def test_invalid_inputs_are_rejected(capital, price, loss):
    with pytest.raises(ValueError):
        calculate_hedge_position(capital, price, loss)


def test_setup_analysis_flags_expensive_insurance():
    setup = analyze_trade_setup(10, 0.88, 0.03)

    assert setup.hedge.main_position_size == 11
    assert setup.hedge.hedge_position_size == 11
    assert any("expensive" in warning for warning in setup.warnings)
    assert any("High risk" in warning for warning in setup.warnings)
    assert setup.insurance_percent > 0


def test_setup_analysis_accepts_cheap_hedge():
    setup = analyze_trade_setup(1000, 0.99, 0.50)

    assert setup.is_valid is True
    assert setup.roi_percent > 0
