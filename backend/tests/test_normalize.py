from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.domain import OrderSide
from ingestion.normalize import (
    normalize_gamma_resolution,
    normalize_market,
    normalize_orderbook,
    normalize_trade,
    normalize_trades,
)


def test_normalize_clob_market(sample_market_payload):
    market = normalize_market(sample_market_payload)

    assert market.condition_id == sample_market_payload["condition_id"]
    assert market.question.startswith("Will the Fed")
    assert [token.outcome for token in market.tokens] == ["Yes", "No"]
    assert market.yes_price == 0.915
    assert market.end_date == datetime(2026, 3, 18, tzinfo=timezone.utc)
    assert market.minimum_order_size == 5
    assert market.category == "Economy"
    assert market.neg_risk is False
    assert market.accepting_orders is True


def test_normalize_gamma_market_decodes_json_string_lists(sample_gamma_payload):
    market = normalize_market(sample_gamma_payload)

    assert market.condition_id == sample_gamma_payload["conditionId"]
    assert len(market.tokens) == 2
    assert market.yes_token.price == 1.0
    assert market.no_token.price == 0.0
    assert market.closed is True
    assert market.volume == 1843250.77


def test_gamma_resolution_picks_winner_from_settlement_prices(sample_gamma_payload):
    resolution = normalize_gamma_resolution(sample_gamma_payload)

    assert resolution.resolved is True
    assert resolution.winner == "Yes"
    assert resolution.resolution_source == "https://www.federalreserve.gov"


def test_open_gamma_market_has_no_winner(sample_gamma_payload):
    payload = dict(sample_gamma_payload, closed=False, outcomePrices='["0.62", "0.38"]')

    resolution = normalize_gamma_resolution(payload)
    assert resolution.resolved is False
    assert resolution.winner is None


def test_normalize_trade_accepts_clob_fields():
    trade = normalize_trade(
        {
            "id": "t-1",
            "asset_id": "123",
            "market": "0xabc",
            "side": "buy",
            "size": "12.5",
            "price": "0.41",
            "match_time": "1767225600",
        }
    )

    assert trade is not None
    assert trade.side is OrderSide.BUY
    assert trade.size == 12.5
    assert trade.price == 0.41
    assert trade.timestamp == datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_malformed_trades_are_skipped():
    trades = normalize_trades(
        [
            {"asset_id": "1", "side": "BUY", "size": "1", "price": "0.5"},
            {"asset_id": "2", "side": "HOLD", "size": "1", "price": "0.5"},
            {"side": "SELL", "size": "1", "price": "0.5"},
            {"asset_id": "3", "side": "SELL", "size": "0", "price": "0.5"},
        ]
    )

    assert [trade.token_id for trade in trades] == ["1"]


def test_orderbook_depth():
    book = normalize_orderbook(
        {"bids": [{"price": "0.45", "size": "100"}], "asks": [{"price": "0.55", "size": "200"}, {"price": "x"}]},
        "123",
    )

    assert book.token_id == "123"
    assert book.asks == [(0.55, 200.0)]
    assert book.depth_usd() == pytest.approx(0.45 * 100 + 0.55 * 200)
