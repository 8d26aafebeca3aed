from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
import time
from typing import Callable, Sequence, TypeVar

LOGGER = logging.getLogger("uniswapex_keeper")

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_RETRY_ATTEMPTS = 10
DEFAULT_BACKOFF_SECONDS = 0.5


def retry_call(
    operation: Callable[[], R],
    attempts: int = DEFAULT_RETRY_ATTEMPTS,
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    label: str = "",
) -> R:
    """Call ``operation`` until it returns, at most ``attempts`` times.

    ``operation`` must start a fresh unit of work on every call. The last
    error is re-raised once the attempts are used up.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    last_exc: Exception | None = None
    for attempt in range(attempts):
        try:
            return operation()
        except Exception as exc:
            last_exc = exc
            LOGGER.debug(
                "retry label=%s attempt=%s/%s error=%s",
                label or getattr(operation, "__name__", "operation"),
                attempt + 1,
                attempts,
                exc,
            )
            if attempt < attempts - 1 and backoff_seconds > 0:
                time.sleep(backoff_seconds * (attempt + 1))
    assert last_exc is not None
    raise last_exc


def retry_or_none(
    operation: Callable[[], R],
    attempts: int = DEFAULT_RETRY_ATTEMPTS,
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    label: str = "",
) -> R | None:
    try:
        return retry_call(operation, attempts=attempts, backoff_seconds=backoff_seconds, label=label)
    except Exception as exc:
        LOGGER.warning(
            "retry_exhausted label=%s attempts=%s error=%s",
            label or getattr(operation, "__name__", "operation"),
            attempts,
            exc,
        )
        return None


def _run_batch(batch: Sequence[T], callback: Callable[[T], object]) -> None:
    # leaving the pool context joins every worker, failed or not
    with ThreadPoolExecutor(max_workers=len(batch)) as pool:
        futures = [pool.submit(callback, element) for element in batch]
    for future in futures:
        future.result()


def run_batched(
    elements: Sequence[T],
    callback: Callable[[T], object],
    batch_size: int,
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    backoff_seconds: float = 0.0,
) -> None:
    """Run ``callback`` for every element, ``batch_size`` elements at a time.

    Elements of a batch run concurrently; batches run one after the other in
    input order. A batch with any failing element is re-run as a whole, up to
    ``retry_attempts`` attempts, after which the error aborts the run.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    items = list(elements)
    total_batches = (len(items) + batch_size - 1) // batch_size
    for number, start in enumerate(range(0, len(items), batch_size), start=1):
        batch = items[start : start + batch_size]
        retry_call(
            lambda: _run_batch(batch, callback),
            attempts=retry_attempts,
            backoff_seconds=backoff_seconds,
            label=f"batch {number}/{total_batches}",
        )
