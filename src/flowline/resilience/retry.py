"""Retry and timeout helpers for awaitable operations."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry/backoff policy."""

    max_attempts: int
    backoff_seconds: float
    jitter_seconds: float = 0.2


class RetryExecutor:
    """Await operations with retries, exponential backoff and optional timeout."""

    def __init__(
        self,
        policy: RetryPolicy,
        *,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter_fn: Callable[[float, float], float] = random.uniform,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
    ) -> None:
        self.policy = policy
        self._sleep = sleep_fn
        self._jitter = jitter_fn
        self._retry_on = retry_on

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        stage_name: str,
        timeout_seconds: float | None = None,
    ) -> T:
        """Run operation with retries/backoff/jitter and optional timeout.

        Exceptions outside ``retry_on`` propagate immediately and unchanged.
        """
        if self.policy.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        last_error: BaseException | None = None
        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                return await self._run_once(operation, timeout_seconds=timeout_seconds)
            except self._retry_on as exc:
                last_error = exc
                if attempt >= self.policy.max_attempts:
                    break
                delay = self._backoff_delay(attempt)
                LOGGER.debug(
                    "%s attempt %d failed (%s); retrying in %.2fs",
                    stage_name,
                    attempt,
                    exc,
                    delay,
                )
                await self._sleep(delay)

        assert last_error is not None
        raise RuntimeError(
            f"{stage_name} failed after {self.policy.max_attempts} attempt(s): {last_error}"
        ) from last_error

    async def _run_once(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        timeout_seconds: float | None,
    ) -> T:
        if timeout_seconds is None:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), timeout=timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise TimeoutError(
                f"Operation timed out after {timeout_seconds} second(s)"
            ) from exc

    def _backoff_delay(self, attempt: int) -> float:
        base_delay = self.policy.backoff_seconds * (2 ** (attempt - 1))
        jitter = self._jitter(0.0, self.policy.jitter_seconds)
        return max(0.0, base_delay + jitter)
