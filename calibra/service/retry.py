# caller-side retry for commitment submission

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import bittensor as bt

from calibra.config.core import RetrySettings
from calibra.protocol.models.v1.results import CommitResult
from calibra.shared.errors import ErrorCategory

from .commitment import CommitmentService

# AMBIGUOUS is safe to retry only because the next commit of the same
# intent reconciles against ledger history before submitting.
RETRYABLE_CATEGORIES = frozenset({
    ErrorCategory.LEDGER_UNREACHABLE,
    ErrorCategory.NETWORK_FAILURE,
    ErrorCategory.AMBIGUOUS,
})


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    factor: float = 2.0

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            initial_delay=settings.initial_delay_seconds,
            max_delay=settings.max_delay_seconds,
            factor=settings.backoff_multiplier,
        )


def next_backoff_delay(current: float, *, factor: float, max_delay: float) -> float:
    """Compute next backoff delay with a cap."""
    if current <= 0:
        return max_delay
    return min(max_delay, current * factor)


def should_retry(result: CommitResult) -> bool:
    return result.failure is not None and result.failure.category in RETRYABLE_CATEGORIES


async def retry_commit_result(
    attempt_fn: Callable[[], Awaitable[CommitResult]],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> CommitResult:
    """Call attempt_fn until it succeeds, fails permanently, or attempts run out."""
    policy = policy or RetryPolicy()
    delay = min(policy.initial_delay, policy.max_delay)
    attempt = 1
    while True:
        result = await attempt_fn()
        if not should_retry(result) or attempt >= policy.max_attempts:
            return result
        bt.logging.info({
            "commit_retry": {
                "attempt": attempt,
                "category": result.failure.category.value,
                "delay": delay,
            }
        })
        await sleep(delay)
        delay = next_backoff_delay(delay, factor=policy.factor, max_delay=policy.max_delay)
        attempt += 1


async def commit_with_retry(
    service: CommitmentService,
    account: Any,
    market_ticker: str,
    probability: float,
    direction: Any,
    policy: Optional[RetryPolicy] = None,
    *,
    timeout: Optional[float] = None,
    reconcile_first: bool = False,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> CommitResult:
    """CommitmentService.commit with exponential backoff on transient failures.

    Affordability is re-read on each attempt (through the service cache).
    reconcile_first applies to the first attempt only; later attempts rely
    on the service's own attempt tracking.
    """
    policy = policy or RetryPolicy.from_settings(service.settings.retry)
    pending_reconcile = reconcile_first

    async def attempt() -> CommitResult:
        nonlocal pending_reconcile
        reconcile, pending_reconcile = pending_reconcile, False
        return await service.commit(
            account, market_ticker, probability, direction, timeout=timeout, reconcile_first=reconcile
        )

    return await retry_commit_result(attempt, policy, sleep=sleep)


__all__ = [
    "RETRYABLE_CATEGORIES",
    "RetryPolicy",
    "next_backoff_delay",
    "should_retry",
    "retry_commit_result",
    "commit_with_retry",
]
