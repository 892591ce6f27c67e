from __future__ import annotations

import pytest

from app.services.ai import AIBudget, BudgetState, cost_per_market


def test_cost_tiers():
    assert cost_per_market(False) == 0.008
    assert cost_per_market(True) == 0.015


def test_daily_limit_bounds_affordable_markets(clock):
    budget = AIBudget(daily_limit=0.02, cycle_limit=0.5, clock=clock)

    assert budget.markets_affordable(0.008) == 2
    budget.record(2, 0.008)
    assert budget.markets_affordable(0.008) == 0
    assert budget.state is BudgetState.OK

    budget.record(1, 0.008)
    assert budget.is_exhausted
    assert budget.remaining() == 0.0


def test_exact_multiples_are_not_lost_to_float_noise(clock):
    budget = AIBudget(daily_limit=0.08, cycle_limit=1.0, clock=clock)

    assert budget.markets_affordable(0.008) == 10


def test_cycle_limit_resets_each_cycle(clock):
    budget = AIBudget(daily_limit=1.0, cycle_limit=0.016, clock=clock)
    budget.record(2, 0.008)
    assert budget.markets_affordable(0.008) == 0

    budget.begin_cycle()

    assert budget.markets_affordable(0.008) == 2
    assert budget.total_spent_today == pytest.approx(0.016)


def test_spend_resets_on_calendar_day_rollover(clock):
    budget = AIBudget(daily_limit=0.01, cycle_limit=1.0, clock=clock)
    budget.record(2, 0.008)
    assert budget.is_exhausted

    clock.advance(days=1)

    assert budget.state is BudgetState.OK
    assert budget.total_spent_today == 0.0
    assert budget.to_dict()["state"] == "BUDGET_OK"


def test_cost_must_be_positive(clock):
    budget = AIBudget(daily_limit=1.0, cycle_limit=1.0, clock=clock)

    with pytest.raises(ValueError):
        budget.markets_affordable(0)
