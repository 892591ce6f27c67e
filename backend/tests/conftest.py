from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from app.core.config import Settings
from app.domain import Market, MarketToken

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


def make_market(
    condition_id: str = "0xabc",
    *,
    yes_price: float = 0.5,
    days_to_end: float | None = 10.0,
    neg_risk: bool = False,
    category: str | None = None,
    volume: float | None = None,
    minimum_order_size: float = 5.0,
    now: datetime = NOW,
) -> Market:
    return Market(
        condition_id=condition_id,
        question=f"Will {condition_id} happen?",
        tokens=[
            MarketToken(token_id=f"{condition_id}-yes", outcome="Yes", price=yes_price),
            MarketToken(token_id=f"{condition_id}-no", outcome="No", price=round(1 - yes_price, 4)),
        ],
        end_date=now + timedelta(days=days_to_end) if days_to_end is not None else None,
        neg_risk=neg_risk,
        minimum_order_size=minimum_order_size,
        category=category,
        volume=volume,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def sample_market_payload() -> dict[str, object]:
    path = Path(__file__).parent / "data" / "sample_market.json"
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def sample_gamma_payload() -> dict[str, object]:
    path = Path(__file__).parent / "data" / "sample_gamma_market.json"
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def test_settings(monkeypatch) -> Settings:
    settings = Settings(
        _env_file=None,
        openai_api_key=None,
        gemini_api_key=None,
        dry_run=True,
        lookup_batch_delay_seconds=0,
        min_liquidity=0,
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings
