from __future__ import annotations

import pytest

from app.domain import AIAnalysis, RiskLevel
from app.services.ai import AnalysisCache


def analysis(market_id: str) -> AIAnalysis:
    return AIAnalysis(
        should_trade=True,
        confidence=0.7,
        attractiveness=0.7,
        risk_level=RiskLevel.LOW,
        reasoning="ok",
        estimated_probability=0.6,
        market_id=market_id,
    )


def test_entries_expire_after_ttl(clock):
    cache = AnalysisCache(ttl_seconds=300, max_entries=10, clock=clock)
    cache.put("m1", analysis("m1"))

    clock.advance(seconds=299)
    assert cache.get("m1") is not None
    clock.advance(seconds=1)
    assert cache.get("m1") is None


def test_inserting_beyond_capacity_evicts_only_the_oldest(clock):
    cache = AnalysisCache(ttl_seconds=300, max_entries=3, clock=clock)
    for market_id in ("m1", "m2", "m3"):
        cache.put(market_id, analysis(market_id))
        clock.advance(seconds=1)

    cache.put("m4", analysis("m4"))

    assert len(cache) == 3
    assert "m1" not in cache
    assert all(market_id in cache for market_id in ("m2", "m3", "m4"))


def test_refreshing_an_entry_moves_it_to_the_back(clock):
    cache = AnalysisCache(ttl_seconds=300, max_entries=2, clock=clock)
    cache.put("m1", analysis("m1"))
    cache.put("m2", analysis("m2"))
    cache.put("m1", analysis("m1"))

    cache.put("m3", analysis("m3"))

    assert "m1" in cache
    assert "m2" not in cache


def test_sweep_removes_only_expired_entries(clock):
    cache = AnalysisCache(ttl_seconds=60, max_entries=10, clock=clock)
    cache.put("old", analysis("old"))
    clock.advance(seconds=90)
    cache.put("new", analysis("new"))

    assert cache.sweep() == 1
    assert "old" not in cache
    assert cache.get("new") is not None


def test_capacity_must_be_positive(clock):
    with pytest.raises(ValueError):
        AnalysisCache(ttl_seconds=60, max_entries=0, clock=clock)
