"""Fixed-size concurrent batches for independent per-market lookups."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Hashable, Iterable, Sequence, TypeVar

from loguru import logger

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def chunked(items: Sequence[K], size: int) -> Iterable[Sequence[K]]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    for index in range(0, len(items), size):
        yield items[index : index + size]


def run_in_batches(
    items: Iterable[K],
    fn: Callable[[K], V],
    *,
    batch_size: int,
    delay_seconds: float = 0.0,
    label: str = "lookup",
    sleep: Callable[[float], None] = time.sleep,
) -> dict[K, V | None]:
    """Call ``fn`` for each distinct item, ``batch_size`` at a time.

    A failing item maps to ``None``; the rest of the batch is unaffected.
    """

    unique = list(dict.fromkeys(items))
    results: dict[K, V | None] = {}
    batches = list(chunked(unique, batch_size))
    for batch_index, batch in enumerate(batches):
        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            futures = {executor.submit(fn, item): item for item in batch}
            for future in as_completed(futures):
                item = futures[future]
                try:
                    results[item] = future.result()
                except Exception:  # noqa: BLE001 - degrade a single item to no data
                    logger.exception("{} failed for {}; treating as no data", label, item)
                    results[item] = None
        if delay_seconds > 0 and batch_index < len(batches) - 1:
            sleep(delay_seconds)
    return results


__all__ = ["chunked", "run_in_batches"]
