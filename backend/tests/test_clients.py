from __future__ import annotations

import httpx
import pytest

from app.errors import RateLimitedError, UpstreamUnavailableError, is_rate_limit_error
from ingestion.client import END_CURSOR, ClobClient, GammaClient


def gamma_client(handler) -> GammaClient:
    return GammaClient(base_url="https://gamma.test", timeout=1, transport=httpx.MockTransport(handler))


def clob_client(handler) -> ClobClient:
    return ClobClient(base_url="https://clob.test", timeout=1, transport=httpx.MockTransport(handler))


def test_gamma_resolution_lookup(sample_gamma_payload):
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, json=[sample_gamma_payload])

    with gamma_client(handler) as client:
        resolution = client.get_market_resolution(sample_gamma_payload["conditionId"])

    assert seen == {"condition_ids": sample_gamma_payload["conditionId"], "limit": "1"}
    assert resolution is not None
    assert resolution.resolved is True
    assert resolution.winner == "Yes"


def test_gamma_unknown_market_returns_none():
    with gamma_client(lambda request: httpx.Response(200, json=[])) as client:
        assert client.get_market_resolution("0xmissing") is None
        assert client.get_market_by_token_id("42") is None


def test_gamma_rate_limit_is_typed():
    with gamma_client(lambda request: httpx.Response(429, json={"error": "slow down"})) as client:
        with pytest.raises(RateLimitedError) as excinfo:
            client.get_market_resolution("0xabc")

    assert is_rate_limit_error(excinfo.value)


def test_gamma_server_error_is_upstream_unavailable():
    with gamma_client(lambda request: httpx.Response(503)) as client:
        with pytest.raises(UpstreamUnavailableError) as excinfo:
            client.get_market_by_condition_id("0xabc")

    assert not isinstance(excinfo.value, RateLimitedError)


def test_clob_markets_follow_cursor_until_end(sample_market_payload):
    pages = {
        None: {"data": [sample_market_payload], "next_cursor": "MTA="},
        "MTA=": {"data": [dict(sample_market_payload, condition_id="0xsecond")], "next_cursor": END_CURSOR},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=pages[request.url.params.get("next_cursor")])

    with clob_client(handler) as client:
        markets = client.get_markets()

    assert [market.condition_id for market in markets] == [
        sample_market_payload["condition_id"],
        "0xsecond",
    ]


def test_clob_midpoint_and_book():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/midpoint":
            return httpx.Response(200, json={"mid": "0.615"})
        return httpx.Response(
            200,
            json={"asset_id": "1", "bids": [{"price": "0.6", "size": "10"}], "asks": []},
        )

    with clob_client(handler) as client:
        assert client.get_midpoint("1") == 0.615
        book = client.get_order_book("1")

    assert book.bids == [(0.6, 10.0)]


def test_transport_errors_become_upstream_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with clob_client(handler) as client:
        with pytest.raises(UpstreamUnavailableError):
            client.get_midpoint("1")
