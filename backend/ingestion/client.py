from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from app.core.config import settings
from app.domain import Market, MarketResolution, OrderBook
from app.errors import RateLimitedError, UpstreamUnavailableError

from .normalize import (
    normalize_gamma_resolution,
    normalize_market,
    normalize_orderbook,
    parse_float,
)

# Cursor returned by the CLOB API once the last page has been served.
END_CURSOR = "LTE="


def _request_json(
    client: httpx.Client, path: str, params: dict[str, Any], *, upstream: str
) -> Any:
    logger.debug("{} GET {} params={}", upstream, path, params)
    try:
        response = client.get(path, params=params)
    except httpx.HTTPError as exc:
        raise UpstreamUnavailableError(f"{upstream} request failed: {exc}") from exc
    if response.status_code == 429:
        raise RateLimitedError(f"{upstream} API returned 429")
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise UpstreamUnavailableError(
            f"{upstream} API returned {response.status_code}"
        ) from exc
    return response.json()


class GammaClient:
    """Thin wrapper around the Gamma markets endpoint used for resolutions."""

    markets_path = "/markets"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or str(settings.gamma_base_url)
        self.timeout = timeout or settings.http_timeout_seconds
        self.client = httpx.Client(
            base_url=self.base_url, timeout=self.timeout, transport=transport
        )

    def _get_markets(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        payload = _request_json(self.client, self.markets_path, params, upstream="Gamma")
        if isinstance(payload, list):
            return [item for item in payload if isinstance(item, dict)]
        if isinstance(payload, dict):
            markets = payload.get("markets") or payload.get("data")
            if isinstance(markets, list):
                return [item for item in markets if isinstance(item, dict)]
        return []

    def fetch_raw_market(self, condition_id: str) -> dict[str, Any] | None:
        markets = self._get_markets({"condition_ids": condition_id, "limit": 1})
        return markets[0] if markets else None

    def get_market_by_condition_id(self, condition_id: str) -> Market | None:
        raw = self.fetch_raw_market(condition_id)
        return normalize_market(raw) if raw else None

    def get_market_by_token_id(self, token_id: str) -> Market | None:
        markets = self._get_markets({"clob_token_ids": token_id, "limit": 1})
        return normalize_market(markets[0]) if markets else None

    def get_market_resolution(self, condition_id: str) -> MarketResolution | None:
        raw = self.fetch_raw_market(condition_id)
        if raw is None:
            logger.info("No Gamma market found for condition {}", condition_id)
            return None
        resolution = normalize_gamma_resolution(raw)
        if not resolution.condition_id:
            resolution.condition_id = condition_id
        return resolution

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "GammaClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ClobClient:
    """Read-only access to the public CLOB endpoints (markets, midpoints, books)."""

    sampling_markets_path = "/sampling-markets"
    midpoint_path = "/midpoint"
    book_path = "/book"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
        max_pages: int = 5,
    ) -> None:
        self.base_url = base_url or str(settings.clob_base_url)
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_pages = max_pages
        self.client = httpx.Client(
            base_url=self.base_url, timeout=self.timeout, transport=transport
        )

    def get_markets(self) -> list[Market]:
        markets: list[Market] = []
        cursor: str | None = None
        for _ in range(self.max_pages):
            params = {"next_cursor": cursor} if cursor else {}
            payload = _request_json(
                self.client, self.sampling_markets_path, params, upstream="CLOB"
            )
            if not isinstance(payload, dict):
                break
            for raw in payload.get("data") or []:
                if isinstance(raw, dict):
                    markets.append(normalize_market(raw))
            cursor = payload.get("next_cursor")
            if not cursor or cursor == END_CURSOR:
                break
        logger.info("Fetched {} sampling markets", len(markets))
        return markets

    def get_midpoint(self, token_id: str) -> float | None:
        payload = _request_json(
            self.client, self.midpoint_path, {"token_id": token_id}, upstream="CLOB"
        )
        if isinstance(payload, dict):
            return parse_float(payload.get("mid") or payload.get("midpoint") or payload.get("price"))
        return parse_float(payload)

    def get_order_book(self, token_id: str) -> OrderBook:
        payload = _request_json(
            self.client, self.book_path, {"token_id": token_id}, upstream="CLOB"
        )
        if not isinstance(payload, dict):
            raise UpstreamUnavailableError(f"Unexpected order book payload for {token_id}")
        return normalize_orderbook(payload, token_id)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "ClobClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["ClobClient", "END_CURSOR", "GammaClient"]
