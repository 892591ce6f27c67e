"""Bounded-concurrency queue for AI provider calls with rate-limit backoff."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

from loguru import logger

from app.errors import is_rate_limit_error

T = TypeVar("T")
R = TypeVar("R")


@dataclass(slots=True)
class QueueStats:
    processed: int = 0
    failed: int = 0
    retried: int = 0
    rate_limit_hits: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "retried": self.retried,
            "rate_limit_hits": self.rate_limit_hits,
        }


class RequestQueue:
    """Run tasks on at most ``max_concurrent`` workers.

    Task starts are spaced by ``delay_ms``. Rate-limited tasks are retried after
    ``retry_base_ms * 2 ** (attempt - 1)`` milliseconds, up to ``max_retries``
    times; any other error reaches the caller immediately.
    """

    def __init__(
        self,
        *,
        max_concurrent: int = 3,
        delay_ms: int = 150,
        max_retries: int = 3,
        retry_base_ms: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.delay_seconds = delay_ms / 1000.0
        self.max_retries = max_retries
        self.retry_base_seconds = retry_base_ms / 1000.0
        self.stats = QueueStats()
        self._sleep = sleep
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._pacing_lock = threading.Lock()
        self._next_start = 0.0
        self._executor: ThreadPoolExecutor | None = None

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_concurrent, thread_name_prefix="ai-queue"
            )
        return self._executor

    def _pace(self) -> None:
        with self._pacing_lock:
            now = self._monotonic()
            wait = self._next_start - now
            if wait > 0:
                self._sleep(wait)
                now += wait
            self._next_start = now + self.delay_seconds

    def retry_delay(self, attempt: int) -> float:
        return self.retry_base_seconds * (2 ** max(attempt - 1, 0))

    def _execute(self, fn: Callable[..., R], args: tuple[Any, ...], kwargs: dict[str, Any]) -> R:
        attempt = 0
        while True:
            self._pace()
            try:
                result = fn(*args, **kwargs)
            except Exception as exc:
                if not is_rate_limit_error(exc):
                    with self._lock:
                        self.stats.failed += 1
                    raise
                with self._lock:
                    self.stats.rate_limit_hits += 1
                if attempt >= self.max_retries:
                    with self._lock:
                        self.stats.failed += 1
                    logger.error(
                        "AI request still rate limited after {} retries; giving up", attempt
                    )
                    raise
                attempt += 1
                delay = self.retry_delay(attempt)
                logger.warning(
                    "AI request rate limited; retry {}/{} in {:.2f}s",
                    attempt,
                    self.max_retries,
                    delay,
                )
                with self._lock:
                    self.stats.retried += 1
                self._sleep(delay)
                continue
            with self._lock:
                self.stats.processed += 1
            return result

    def submit(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> "Future[R]":
        return self._pool().submit(self._execute, fn, args, kwargs)

    def run(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        return self.submit(fn, *args, **kwargs).result()

    def map_settled(
        self, fn: Callable[[T], R], items: Iterable[T]
    ) -> list[tuple[T, R | None, BaseException | None]]:
        """Run ``fn`` over ``items``; each entry carries either a result or the error."""

        pending = [(item, self.submit(fn, item)) for item in items]
        settled: list[tuple[T, R | None, BaseException | None]] = []
        for item, future in pending:
            error = future.exception()
            settled.append((item, None if error else future.result(), error))
        return settled

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "RequestQueue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["QueueStats", "RequestQueue"]
