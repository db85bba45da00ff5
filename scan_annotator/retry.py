"""Bounded exponential backoff for rate-limited GitHub calls.

The retry state is an immutable value: each retry derives a new state from
the previous one, so the schedule can be inspected without running calls::

    >>> backoff_schedule(RetryState())
    [3.0, 6.0, 12.0, 24.0, 48.0]
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import TypeVar

from .errors import GitHubAPIError, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class RetryState:
    """Position in the backoff schedule of one posting operation.

    ``attempt`` counts retries already made; the delay before the next
    retry is ``base_delay_ms * 2 ** attempt``.
    """

    attempt: int = 0
    max_attempts: int = 5
    base_delay_ms: int = 3000

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    @property
    def delay_seconds(self) -> float:
        return self.base_delay_ms * (2 ** self.attempt) / 1000

    def next(self) -> RetryState:
        return replace(self, attempt=self.attempt + 1)


def backoff_schedule(state: RetryState) -> list[float]:
    """Delays (seconds) a run of consecutive rate-limit errors would wait."""
    delays = []
    while not state.exhausted:
        delays.append(state.delay_seconds)
        state = state.next()
    return delays


def next_retry(exc: GitHubAPIError, state: RetryState, description: str) -> RetryState | None:
    """Record a rate-limit hit and return the state to retry with.

    The caller waits ``state.delay_seconds`` before retrying. Returns None
    once the schedule is exhausted.
    """
    if state.exhausted:
        logger.error(
            "%s: still rate limited after %d retries, giving up",
            description,
            state.attempt,
        )
        return None
    logger.warning(
        "%s: rate limited (HTTP %d), retry %d/%d in %.0fs",
        description,
        exc.status_code,
        state.attempt + 1,
        state.max_attempts,
        state.delay_seconds,
    )
    return state.next()


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    state: RetryState,
    description: str,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Await ``operation``, retrying rate-limit errors on the backoff schedule.

    Raises:
        GitHubAPIError: Non-rate-limit errors immediately, and the last
            rate-limit error once the schedule is exhausted.
    """
    while True:
        try:
            return await operation()
        except GitHubAPIError as exc:
            if classify_error(exc) != "rate_limit":
                raise
            retry = next_retry(exc, state, description)
            if retry is None:
                raise
            await sleep(state.delay_seconds)
            state = retry
