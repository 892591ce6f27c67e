"""Bounded TTL cache for AI analyses keyed by market id."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from loguru import logger

from app.domain import AIAnalysis

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class CacheEntry:
    analysis: AIAnalysis
    timestamp: datetime


class AnalysisCache:
    """Entries expire after ``ttl_seconds``; inserts beyond ``max_entries`` evict the oldest."""

    def __init__(
        self,
        *,
        ttl_seconds: float,
        max_entries: int,
        clock: Clock = utc_now,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def _is_fresh(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.timestamp < self.ttl

    def get(self, market_id: str) -> AIAnalysis | None:
        entry = self._entries.get(market_id)
        if entry is None:
            return None
        if not self._is_fresh(entry, self._clock()):
            return None
        return entry.analysis

    def put(self, market_id: str, analysis: AIAnalysis) -> None:
        if market_id in self._entries:
            del self._entries[market_id]
        elif len(self._entries) >= self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("AI cache full; evicted analysis for {}", evicted)
        self._entries[market_id] = CacheEntry(analysis=analysis, timestamp=self._clock())

    def sweep(self) -> int:
        """Drop expired entries and return how many were removed."""

        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not self._is_fresh(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("AI cache sweep removed {} expired analyses", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, market_id: object) -> bool:
        return market_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["AnalysisCache", "CacheEntry", "Clock", "utc_now"]
