"""Minimal async retry with explicit error contracts.

Design goals:
- Small API surface
- Explicit state (policy + attempt counters)
- Only transient transport failures are retried; no substring matching
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import random
from typing import TYPE_CHECKING, TypeVar

import httpx

from switchboard.errors import NetworkError, _walk_exception_chain

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from switchboard.cancellation import CancellationBridge

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy with exponential backoff.

    ``max_retries`` counts retries, so an operation runs at most
    ``max_retries + 1`` times.
    """

    max_retries: int = 2
    initial_delay_s: float = 0.5
    backoff_multiplier: float = 2.0
    max_delay_s: float | None = None
    jitter: bool = False  # "full jitter" when enabled

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_retries < 0:
            raise ValueError("RetryPolicy.max_retries must be >= 0")
        if self.initial_delay_s < 0:
            raise ValueError("RetryPolicy.initial_delay_s must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("RetryPolicy.backoff_multiplier must be >= 1")
        if self.max_delay_s is not None and self.max_delay_s < 0:
            raise ValueError("RetryPolicy.max_delay_s must be >= 0 or None")

    @property
    def max_attempts(self) -> int:
        """Total number of invocations the policy allows."""
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Return the sleep before the retry that follows *attempt* (0-based)."""
        base = self.initial_delay_s * (self.backoff_multiplier ** max(0, attempt))
        if self.max_delay_s is not None:
            base = min(self.max_delay_s, base)
        if base <= 0:
            return 0.0
        if not self.jitter:
            return base
        # Full jitter: random in [0, base] to avoid thundering herd.
        return random.random() * base  # noqa: S311


NO_RETRY = RetryPolicy(max_retries=0)


def is_transient_error(exc: BaseException) -> bool:
    """Return True when *exc* is a transient transport failure.

    Contract:
    - Cancellation is never retried.
    - ``NetworkError`` is retried when marked retryable.
    - Raw connection-refused / timeout exceptions anywhere in the chain are
      retried as a pragmatic fallback for transports that do not wrap errors.
    - Everything else (HTTP application errors, parse errors) is terminal.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False

    if isinstance(exc, NetworkError):
        return exc.retryable

    for e in _walk_exception_chain(exc):
        if isinstance(e, (httpx.ConnectError, httpx.TimeoutException)):
            return True
        if isinstance(e, (ConnectionRefusedError, TimeoutError, asyncio.TimeoutError)):
            return True
    return False


async def retry_async(
    factory: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    should_retry: Callable[[BaseException], bool] = is_transient_error,
    bridge: CancellationBridge | None = None,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> T:
    """Run an async factory with bounded retries.

    When a *bridge* is given, cancellation is checked before every attempt
    and interrupts the backoff sleep; it raises ``CancellationError`` no
    matter how much retry budget remains.
    """
    for attempt in range(policy.max_attempts):
        if bridge is not None:
            bridge.check()
        try:
            return await factory()
        except Exception as exc:
            if not should_retry(exc) or attempt + 1 >= policy.max_attempts:
                raise

            delay = policy.delay_for(attempt)
            logger.debug(
                "Retry attempt %d/%d after %.3fs: %s",
                attempt + 1,
                policy.max_retries,
                delay,
                exc,
            )
            if on_retry is not None:
                on_retry(attempt, exc, delay)

            if bridge is not None:
                await bridge.sleep(delay)
            elif delay > 0:
                await asyncio.sleep(delay)

    # Unreachable: every attempt returns or raises.
    raise RuntimeError("retry_async exhausted without an exception")  # pragma: no cover
