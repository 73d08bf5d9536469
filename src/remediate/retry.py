"""Retry helper with increasing backoff for external invocations."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from remediate.log import logger

__all__ = ("with_retry",)

T = TypeVar("T")


def with_retry(
    fn: Callable[[int], T],
    *,
    attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable: tuple[type[BaseException], ...] = (Exception,),
    label: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call *fn* until it succeeds or *attempts* calls have failed.

    *fn* receives the zero-based attempt number so callers can widen their
    own timeouts on each retry.

    Parameters
    ----------
    fn : callable taking the attempt number
    attempts : total number of calls (1 = no retries)
    base_delay : initial delay in seconds (doubles each attempt)
    max_delay : ceiling for the delay
    retryable : exception types that trigger a retry
    label : human-readable name for log messages
    sleep : injected for tests
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    last_exc: BaseException | None = None
    tag = label or getattr(fn, "__name__", "unknown")

    for attempt in range(attempts):
        try:
            return fn(attempt)
        except retryable as exc:
            last_exc = exc
            if attempt == attempts - 1:
                break
            delay = min(base_delay * (2**attempt), max_delay)
            logger.warning(
                f"{tag}: attempt {attempt + 1}/{attempts} failed "
                f"({type(exc).__name__}: {exc}), retrying in {delay:.1f}s"
            )
            if delay > 0:
                sleep(delay)

    raise last_exc  # type: ignore[misc]
