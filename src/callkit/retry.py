"""Retry policies and the attempt loop.

A call runs through :func:`run_with_retries`, which invokes one attempt at a
time and consults a strategy after each failure:

- **Default strategy**: transport failures and 5xx statuses are retried with
  exponential (or fixed) backoff; everything else stops the loop.
- **Custom strategies**: a factory on the policy builds one stateful strategy
  per call, which decides ``Stop()`` or ``Wait(seconds)`` for every failure.
- **Bounds**: ``max_attempts``, ``max_duration`` and the caller's
  cancellation token apply whatever the strategy says.

Example:
    >>> policy = RetryPolicy(enabled=True, max_attempts=5, backoff=FixedDelay(0.2))
    >>> run_with_retries(policy, lambda attempt: send_once())  # doctest: +SKIP
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol, TypeVar, Union

from .cancellation import CancellationToken
from .exceptions import CallkitError, HTTPStatusError, RequestCancelledError, TransportError
from .security import parse_retry_after

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Stop:
    """End the retry loop and surface the last failure."""


@dataclass(frozen=True)
class Wait:
    """Sleep for ``seconds`` and try again."""

    seconds: float

    def __post_init__(self) -> None:
        if self.seconds < 0:
            raise ValueError("Wait.seconds must be >= 0")


RetryDecision = Union[Stop, Wait]


class RetryStrategy(Protocol):
    def __call__(self, failure: CallkitError) -> RetryDecision: ...


@dataclass(frozen=True)
class ExponentialBackoff:
    initial: float = 0.1
    maximum: float = 10.0
    multiplier: float = 2.0
    jitter: float = 0.1

    def __post_init__(self) -> None:
        if self.initial < 0 or self.maximum < 0:
            raise ValueError("backoff durations must be >= 0")
        if self.multiplier < 1:
            raise ValueError("backoff multiplier must be >= 1")
        if not 0 <= self.jitter <= 1:
            raise ValueError("backoff jitter must be between 0 and 1")

    def delay(self, attempt: int) -> float:
        base = min(self.initial * (self.multiplier ** max(0, attempt - 1)), self.maximum)
        spread = base * self.jitter
        return max(0.0, base + random.uniform(-spread, spread))


@dataclass(frozen=True)
class FixedDelay:
    seconds: float

    def __post_init__(self) -> None:
        if self.seconds < 0:
            raise ValueError("fixed delay must be >= 0")

    def delay(self, attempt: int) -> float:
        return self.seconds


Backoff = Union[ExponentialBackoff, FixedDelay]
StrategyFactory = Callable[["RetryPolicy"], RetryStrategy]


@dataclass(frozen=True)
class RetryPolicy:
    enabled: bool = False
    max_attempts: int = 3
    max_duration: float = 15.0
    backoff: Backoff = field(default_factory=ExponentialBackoff)
    speedup: float = 1.0
    strategy_factory: StrategyFactory | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.max_duration < 0:
            raise ValueError("max_duration must be >= 0")
        if self.speedup <= 0:
            raise ValueError("speedup must be > 0")

    def new_strategy(self) -> RetryStrategy:
        if self.strategy_factory is not None:
            return self.strategy_factory(self)
        return DefaultStrategy(self)


def is_retryable(failure: BaseException) -> bool:
    """Default classification: transport failures and 5xx statuses."""
    if isinstance(failure, TransportError):
        return True
    if isinstance(failure, HTTPStatusError):
        return failure.status_code >= 500
    return False


class DefaultStrategy:
    def __init__(self, policy: RetryPolicy) -> None:
        self._backoff = policy.backoff
        self._failures = 0

    def __call__(self, failure: CallkitError) -> RetryDecision:
        self._failures += 1
        if not is_retryable(failure):
            return Stop()
        return Wait(self._backoff.delay(self._failures))


class RetryAfterStrategy:
    """Honour ``Retry-After`` on 429 and 503 responses.

    Other failures fall back to the default classification and backoff.
    """

    retry_after_statuses = frozenset({429, 503})

    def __init__(self, policy: RetryPolicy, max_wait: float = 60.0) -> None:
        self._fallback = DefaultStrategy(policy)
        self._max_wait = max_wait

    def __call__(self, failure: CallkitError) -> RetryDecision:
        if isinstance(failure, HTTPStatusError) and failure.status_code in self.retry_after_statuses:
            retry_after = parse_retry_after(failure.headers.get("Retry-After"))
            if retry_after is not None:
                return Wait(min(retry_after, self._max_wait))
        return self._fallback(failure)


def _release(failure: CallkitError) -> None:
    if isinstance(failure, HTTPStatusError):
        failure.response.close()


def run_with_retries(
    policy: RetryPolicy,
    attempt: Callable[[int], T],
    *,
    cancel: CancellationToken | None = None,
) -> T:
    """Run ``attempt`` until it succeeds or the policy says to stop.

    ``attempt`` receives the 1-based attempt number. Only ``CallkitError``
    failures are considered; the final failure is re-raised unchanged.
    """
    token = cancel or CancellationToken()
    max_attempts = policy.max_attempts if policy.enabled else 1
    strategy = policy.new_strategy() if policy.enabled else None
    started = time.monotonic()
    number = 0

    while True:
        if token.is_cancelled():
            raise RequestCancelledError(f"call cancelled before attempt {number + 1}")
        number += 1
        try:
            return attempt(number)
        except RequestCancelledError:
            raise
        except CallkitError as failure:
            if strategy is None:
                raise
            if number >= max_attempts:
                logger.info("giving up after %d attempts: %s", number, failure)
                raise
            decision = strategy(failure)
            if isinstance(decision, Stop):
                raise
            delay = decision.seconds / policy.speedup
            elapsed = time.monotonic() - started
            # the next attempt must start inside the budget
            if elapsed + delay >= policy.max_duration:
                logger.info("giving up after %.3fs and %d attempts: %s", elapsed, number, failure)
                raise

            logger.warning("attempt %d failed (%s), retrying in %.3fs", number, failure, delay)
            _release(failure)
            if token.wait(delay):
                raise RequestCancelledError(f"call cancelled while waiting to retry attempt {number}") from failure
