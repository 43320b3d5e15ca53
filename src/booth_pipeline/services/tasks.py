"""Bounded retry for background delivery tasks."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from booth_pipeline.domain.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Delay before retry number `attempt` (1-based): base, 2*base, ... up to cap."""
    return min(cap, base * (2 ** (attempt - 1)))


@dataclass
class TaskRunner:
    """Runs keyed tasks with exponential backoff on retryable errors.

    A key that is still in flight is not started a second time.
    """

    max_attempts: int = 3
    backoff_base: float = 30.0
    backoff_cap: float = 300.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    _in_flight: set[str] = field(default_factory=set, init=False)

    async def run(
        self, key: str, handler: Callable[[int], Awaitable[T]]
    ) -> T | None:
        """Call `handler(attempt)` until it succeeds or the budget is spent.

        Non-retryable errors and the last retryable one propagate.
        """
        if key in self._in_flight:
            logger.info("Skipping duplicate task", extra={"task_key": key})
            return None
        self._in_flight.add(key)
        try:
            return await self._attempt_all(key, handler)
        finally:
            self._in_flight.discard(key)

    async def _attempt_all(
        self, key: str, handler: Callable[[int], Awaitable[T]]
    ) -> T:
        attempt = 1
        while True:
            try:
                return await handler(attempt)
            except Exception as exc:
                if not is_retryable(exc) or attempt >= self.max_attempts:
                    logger.warning(
                        "Task failed",
                        extra={"task_key": key, "attempt": attempt},
                    )
                    raise
                delay = backoff_delay(attempt, self.backoff_base, self.backoff_cap)
                logger.warning(
                    "Retrying task",
                    extra={"task_key": key, "attempt": attempt, "delay": delay},
                )
                await self.sleep(delay)
                attempt += 1
