"""Bounded retry policy for eventually consistent lookups."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from .base import Attempt, Outcome

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Fixed-delay retry: at most max_attempts calls, delay seconds apart.
    Waits are cooperative (asyncio.sleep), other tasks keep running.
    STRUCTURAL and FOUND end the loop immediately.
    """

    max_attempts: int = 5
    delay: float = 0.3
    retry_on: frozenset[Outcome] = frozenset({Outcome.NOT_FOUND, Outcome.TRANSIENT})
    sleep: Sleep = field(default=asyncio.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")

    async def run(self, operation: Callable[[], Awaitable[Attempt]], *, label: str = "") -> Attempt:
        """Call operation until it yields a non-retryable outcome or attempts run out."""
        result = await operation()
        attempts = 1
        while result.outcome in self.retry_on and attempts < self.max_attempts:
            logger.debug(
                "%s attempt %d/%d: %s (%s); retrying in %.2fs",
                label or "lookup",
                attempts,
                self.max_attempts,
                result.outcome.value,
                result.detail,
                self.delay,
            )
            await self.sleep(self.delay)
            result = await operation()
            attempts += 1
        return result


NO_RETRY = RetryPolicy(max_attempts=1, delay=0)
