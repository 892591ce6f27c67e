from __future__ import annotations

from dataclasses import replace

import pytest

from conftest import make_market

from app.core.config import AIStrategyConfig, EndgameConfig, StrategyConfig
from app.domain import (
    AIAnalysis,
    OrderSide,
    Position,
    PositionType,
    RiskLevel,
    TradeSignal,
)
from app.errors import UnknownStrategyError
from app.services.ai import AIController, MarketAnalyzer, RequestQueue
from pipelines.strategies import (
    AIDrivenStrategy,
    BaseStrategy,
    EndgameStrategy,
    HighConfidenceStrategy,
    calculate_order_size,
    get_strategy,
)


def held(token_id: str, size: float = 10, avg_price: float = 0.5) -> Position:
    return Position(token_id=token_id, position_type=PositionType.LONG, size=size, avg_price=avg_price)


class TestMarketMaking:
    def test_quotes_both_sides_around_price(self, clock):
        strategy = BaseStrategy(StrategyConfig(spread=0.04), clock=clock)
        market = make_market("m")

        signals = strategy.generate_signals(market, 0.5, held("m-yes", size=20))

        assert [(s.side, s.price, s.size) for s in signals] == [
            (OrderSide.BUY, 0.48, 10),
            (OrderSide.SELL, 0.52, 10),
        ]

    def test_no_buy_at_max_position_and_no_sell_when_flat(self, clock):
        strategy = BaseStrategy(StrategyConfig(max_position=20), clock=clock)
        market = make_market("m")

        at_max = strategy.generate_signals(market, 0.5, held("m-yes", size=20))
        flat = strategy.generate_signals(market, 0.5, None)

        assert [s.side for s in at_max] == [OrderSide.SELL]
        assert [s.side for s in flat] == [OrderSide.BUY]

    def test_quotes_are_clamped_to_the_price_range(self, clock):
        strategy = BaseStrategy(StrategyConfig(spread=0.1), clock=clock)

        bid, ask = strategy.generate_signals(make_market("m"), 0.98, held("m-yes"))

        assert bid.price == pytest.approx(0.93)
        assert ask.price == pytest.approx(0.99)

    def test_close_conditions(self, clock):
        strategy = BaseStrategy(StrategyConfig(profit_threshold=0.95, stop_loss=0.2), clock=clock)
        position = held("m-yes")

        assert strategy.should_close_position(make_market("m"), position, 0.96)
        assert strategy.should_close_position(make_market("m"), position, 0.2)
        assert strategy.should_close_position(make_market("m", days_to_end=0.5 / 24), position, 0.5)
        assert not strategy.should_close_position(make_market("m"), position, 0.5)

    def test_validation_enforces_price_and_size_bounds(self, clock):
        strategy = BaseStrategy(StrategyConfig(), clock=clock)
        market = make_market("m", minimum_order_size=5)

        def signal(price: float, size: float) -> TradeSignal:
            return TradeSignal(market=market, token_id="m-yes", side=OrderSide.SELL, price=price, size=size, reason="t")

        assert strategy.validate_signal(signal(0.5, 5))
        assert not strategy.validate_signal(signal(0.995, 5))
        assert not strategy.validate_signal(signal(0.005, 5))
        assert not strategy.validate_signal(signal(0.5, 4))

    def test_filter_respects_window_neg_risk_and_limit(self, clock):
        strategy = BaseStrategy(StrategyConfig(min_price=0.2, max_price=0.8, max_markets=2), clock=clock)
        markets = [
            make_market("a", yes_price=0.5),
            make_market("b", yes_price=0.9),
            make_market("c", yes_price=0.5, neg_risk=True),
            make_market("d", yes_price=0.3),
            make_market("e", yes_price=0.4),
        ]

        assert [m.condition_id for m in strategy.filter_markets(markets)] == ["a", "d"]


class TestHighConfidence:
    def test_pairs_yes_entry_with_small_no_hedge(self, clock):
        strategy = HighConfidenceStrategy(StrategyConfig(order_size=20), clock=clock)

        yes, no = strategy.generate_signals(make_market("m"), 0.85, None)

        assert (yes.token_id, yes.side, yes.size, yes.price) == ("m-yes", OrderSide.BUY, 18, 0.85)
        assert (no.token_id, no.side, no.size, no.price) == ("m-no", OrderSide.BUY, 2, 0.15)

    def test_hedge_below_minimum_order_size_is_dropped_at_validation(self, clock):
        strategy = HighConfidenceStrategy(StrategyConfig(order_size=20), clock=clock)

        yes, no = strategy.generate_signals(make_market("m", minimum_order_size=5), 0.85, None)

        assert strategy.validate_signal(yes)
        assert not strategy.validate_signal(no)

    def test_requires_high_price_and_no_position(self, clock):
        strategy = HighConfidenceStrategy(StrategyConfig(), clock=clock)

        assert strategy.generate_signals(make_market("m"), 0.79, None) == []
        assert strategy.generate_signals(make_market("m"), 0.9, held("m-yes")) == []

    def test_opening_sells_are_rejected(self, clock):
        strategy = HighConfidenceStrategy(StrategyConfig(), clock=clock)
        market = make_market("m")
        sell = TradeSignal(market=market, token_id="m-yes", side=OrderSide.SELL, price=0.9, size=10, reason="t")

        assert not strategy.validate_signal(sell)
        assert strategy.validate_signal(sell, closing=True)

    def test_close_conditions(self, clock):
        strategy = HighConfidenceStrategy(StrategyConfig(profit_threshold=0.99), clock=clock)
        market = make_market("m")

        assert strategy.should_close_position(market, held("m-yes"), 0.74)
        assert strategy.should_close_position(market, held("m-yes"), 0.995)
        assert strategy.should_close_position(make_market("m", days_to_end=0.25), held("m-yes"), 0.9)
        assert not strategy.should_close_position(market, held("m-yes"), 0.9)
        # The NO hedge is judged on the YES scale: NO at 0.1 means YES at 0.9.
        assert not strategy.should_close_position(market, held("m-no"), 0.1)


class TestEndgame:
    def test_entry_uses_hedge_sizing(self, clock):
        strategy = EndgameStrategy(EndgameConfig(order_size=10, max_acceptable_loss=0.03), clock=clock)

        yes, no = strategy.generate_signals(make_market("m", days_to_end=3), 0.95, None)

        assert (yes.token_id, yes.size, yes.price) == ("m-yes", 10, 0.95)
        assert (no.token_id, no.size, no.price) == ("m-no", 10, 0.05)
        assert all(signal.side is OrderSide.BUY for signal in (yes, no))

    def test_price_outside_window_or_held_position_skips(self, clock):
        strategy = EndgameStrategy(EndgameConfig(), clock=clock)
        market = make_market("m", days_to_end=3)

        assert strategy.generate_signals(market, 0.85, None) == []
        assert strategy.generate_signals(market, 0.995, None) == []
        assert strategy.generate_signals(market, 0.95, held("m-yes")) == []

    def test_filter_keeps_near_certain_markets_resolving_soon(self, clock):
        strategy = EndgameStrategy(EndgameConfig(max_days_to_resolution=7), clock=clock)
        markets = [
            make_market("soon", yes_price=0.95, days_to_end=2),
            make_market("late", yes_price=0.95, days_to_end=20),
            make_market("unsure", yes_price=0.6, days_to_end=2),
            make_market("past", yes_price=0.95, days_to_end=-1),
        ]

        assert [m.condition_id for m in strategy.filter_markets(markets)] == ["soon"]

    def test_close_conditions(self, clock):
        strategy = EndgameStrategy(EndgameConfig(), clock=clock)
        market = make_market("m", days_to_end=3)

        assert strategy.should_close_position(market, held("m-yes"), 0.996)
        assert strategy.should_close_position(market, held("m-yes"), 0.89)
        assert strategy.should_close_position(make_market("m", days_to_end=0.5), held("m-yes"), 0.95)
        assert not strategy.should_close_position(market, held("m-yes"), 0.95)
        assert not strategy.should_close_position(market, held("m-no"), 0.05)


def ai_analysis(**overrides) -> AIAnalysis:
    values = dict(
        should_trade=True,
        confidence=0.7,
        attractiveness=0.8,
        risk_level=RiskLevel.MEDIUM,
        reasoning="Strong polling lead with little time left",
        estimated_probability=0.8,
    )
    values.update(overrides)
    return AIAnalysis(**values)


class FixedProvider:
    name = "fixed"

    def __init__(self, payload: dict) -> None:
        self.payload = payload
        self.calls = 0

    def complete_json(self, *, system_prompt: str, user_prompt: str):
        self.calls += 1
        return self.payload


def ai_strategy(clock, provider=None, **config) -> AIDrivenStrategy:
    options = {"max_ai_budget_per_cycle": 1.0, "max_ai_budget_per_day": 5.0}
    options.update(config)
    settings = AIStrategyConfig(**options)
    analyzer = None
    if provider is not None:
        analyzer = MarketAnalyzer(provider, queue=RequestQueue(delay_ms=0, sleep=lambda _: None))
    controller = AIController(settings, analyzer, clock=clock)
    return AIDrivenStrategy(settings, controller, clock=clock)


class TestAIDriven:
    def test_order_size_scales_with_conviction(self):
        assert calculate_order_size(10, ai_analysis(), 0.15, max_position=100) == 37

    def test_order_size_is_clamped(self):
        strong = ai_analysis(attractiveness=1.0, confidence=1.0, risk_level=RiskLevel.LOW)
        weak = ai_analysis(attractiveness=0.0, confidence=0.0, risk_level=RiskLevel.HIGH)

        assert calculate_order_size(10, strong, 0.3, max_position=100) == 60
        assert calculate_order_size(10, weak, 0.1, max_position=100) == 5
        assert calculate_order_size(10, strong, 0.3, max_position=25, held=10) == 15

    def test_buy_yes_when_estimate_beats_price(self, clock):
        provider = FixedProvider(
            {
                "shouldTrade": True,
                "confidence": 0.7,
                "attractiveness": 0.8,
                "estimatedProbability": 0.8,
                "riskLevel": "medium",
                "reasoning": "Strong polling lead",
            }
        )
        strategy = ai_strategy(clock, provider)

        (signal,) = strategy.generate_signals(make_market("m"), 0.65, None)

        assert signal.token_id == "m-yes"
        assert signal.side is OrderSide.BUY
        assert signal.price == 0.65
        assert signal.size == 37
        assert "BUY_YES" in signal.reason

    def test_buy_no_when_estimate_is_below_price(self, clock):
        provider = FixedProvider({"shouldTrade": True, "estimatedProbability": 0.3, "riskLevel": "low"})
        strategy = ai_strategy(clock, provider)

        (signal,) = strategy.generate_signals(make_market("m"), 0.5, None)

        assert signal.token_id == "m-no"
        assert signal.price == 0.5

    def test_cached_analysis_gives_identical_signals(self, clock):
        provider = FixedProvider({"shouldTrade": True, "estimatedProbability": 0.8, "riskLevel": "low"})
        strategy = ai_strategy(clock, provider)
        market = make_market("m")

        first = strategy.generate_signals(market, 0.6, None)
        second = strategy.generate_signals(market, 0.6, None)

        assert [s.to_dict() for s in first] == [s.to_dict() for s in second]
        assert provider.calls == 1

    def test_rejected_edge_emits_nothing(self, clock):
        provider = FixedProvider({"shouldTrade": True, "estimatedProbability": 0.62, "riskLevel": "low"})
        strategy = ai_strategy(clock, provider)

        assert strategy.generate_signals(make_market("m"), 0.6, None) == []

    def test_without_ai_falls_back_to_basic_signal(self, clock):
        strategy = ai_strategy(clock, None, order_size=7)

        (signal,) = strategy.generate_signals(make_market("m"), 0.4, None)

        assert (signal.token_id, signal.size, signal.price) == ("m-yes", 7, 0.4)

    def test_exhausted_budget_emits_no_entries(self, clock):
        provider = FixedProvider({"shouldTrade": True, "estimatedProbability": 0.9})
        strategy = ai_strategy(clock, provider, max_ai_budget_per_day=0.01)
        strategy.controller.budget.record(2, 0.008)

        assert strategy.controller.enabled
        assert strategy.controller.budget.is_exhausted
        assert strategy.generate_signals(make_market("m1"), 0.5, None) == []
        assert provider.calls == 0

    def test_existing_position_suppresses_entry(self, clock):
        provider = FixedProvider({"shouldTrade": True, "estimatedProbability": 0.9})
        strategy = ai_strategy(clock, provider)

        assert strategy.generate_signals(make_market("m"), 0.5, held("m-yes")) == []
        assert provider.calls == 0

    def test_close_on_relative_gain_or_loss(self, clock):
        strategy = ai_strategy(clock, None, profit_threshold=0.15, stop_loss=0.10)
        market = make_market("m")
        position = held("m-yes", avg_price=0.5)

        assert strategy.should_close_position(market, position, 0.58)
        assert strategy.should_close_position(market, position, 0.44)
        assert not strategy.should_close_position(market, position, 0.52)
        assert not strategy.should_close_position(market, replace(position, avg_price=0.0), 0.9)


class TestRegistry:
    def test_unknown_strategy_is_rejected(self, test_settings):
        with pytest.raises(UnknownStrategyError):
            get_strategy("momentum", test_settings)

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("market_making", BaseStrategy),
            ("High_Confidence", HighConfidenceStrategy),
            ("endgame", EndgameStrategy),
        ],
    )
    def test_builds_registered_strategies(self, test_settings, clock, name, expected):
        strategy = get_strategy(name, test_settings, clock=clock)

        assert type(strategy) is expected

    def test_ai_without_provider_keys_runs_rule_based(self, test_settings, clock):
        strategy = get_strategy("ai", test_settings, clock=clock)

        assert isinstance(strategy, AIDrivenStrategy)
        assert not strategy.controller.enabled
        assert strategy.config.min_edge == pytest.approx(0.10)

    def test_ai_uses_supplied_provider(self, test_settings, clock):
        provider = FixedProvider({"shouldTrade": False})

        strategy = get_strategy("ai", test_settings, clock=clock, provider=provider)

        assert strategy.controller.enabled
        assert strategy.controller.analyzer.provider is provider
