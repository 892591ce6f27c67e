"""Daily and per-cycle spend limits for AI analysis."""

from __future__ import annotations

import math
from datetime import date
from enum import Enum

from loguru import logger

from .cache import Clock, utc_now

COST_PER_MARKET_WITHOUT_NEWS = 0.008
COST_PER_MARKET_WITH_NEWS = 0.015


class BudgetState(str, Enum):
    OK = "BUDGET_OK"
    EXHAUSTED = "BUDGET_EXHAUSTED"


def cost_per_market(use_news: bool) -> float:
    return COST_PER_MARKET_WITH_NEWS if use_news else COST_PER_MARKET_WITHOUT_NEWS


class AIBudget:
    """Tracks today's spend; the counter resets when the calendar day changes."""

    def __init__(
        self,
        *,
        daily_limit: float,
        cycle_limit: float,
        clock: Clock = utc_now,
    ) -> None:
        self.daily_limit = daily_limit
        self.cycle_limit = cycle_limit
        self._clock = clock
        self.total_spent_today = 0.0
        self.cycle_spent = 0.0
        self.current_day: date = clock().date()

    def roll_over(self) -> bool:
        today = self._clock().date()
        if today == self.current_day:
            return False
        logger.info(
            "AI budget reset for {} (spent {:.4f} on {})",
            today,
            self.total_spent_today,
            self.current_day,
        )
        self.current_day = today
        self.total_spent_today = 0.0
        return True

    @property
    def state(self) -> BudgetState:
        self.roll_over()
        if self.total_spent_today >= self.daily_limit:
            return BudgetState.EXHAUSTED
        return BudgetState.OK

    @property
    def is_exhausted(self) -> bool:
        return self.state is BudgetState.EXHAUSTED

    def begin_cycle(self) -> None:
        self.cycle_spent = 0.0

    def remaining(self) -> float:
        self.roll_over()
        return max(
            min(
                self.daily_limit - self.total_spent_today,
                self.cycle_limit - self.cycle_spent,
            ),
            0.0,
        )

    def markets_affordable(self, cost: float) -> int:
        if cost <= 0:
            raise ValueError("cost per market must be positive")
        if self.is_exhausted:
            return 0
        # Tolerance keeps e.g. 0.08 / 0.008 from flooring to 9.
        return max(math.floor(self.remaining() / cost + 1e-9), 0)

    def record(self, markets_analyzed: int, cost: float) -> float:
        spent = markets_analyzed * cost
        self.total_spent_today += spent
        self.cycle_spent += spent
        logger.info(
            "AI spend recorded: {} markets, {:.4f} USD (today {:.4f} / {:.2f})",
            markets_analyzed,
            spent,
            self.total_spent_today,
            self.daily_limit,
        )
        return spent

    def to_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "total_spent_today": self.total_spent_today,
            "cycle_spent": self.cycle_spent,
            "daily_limit": self.daily_limit,
            "cycle_limit": self.cycle_limit,
            "remaining": self.remaining(),
        }


__all__ = [
    "AIBudget",
    "BudgetState",
    "COST_PER_MARKET_WITHOUT_NEWS",
    "COST_PER_MARKET_WITH_NEWS",
    "cost_per_market",
]
