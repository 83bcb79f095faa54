from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ai_gateway.constants import (
    RETRY_BACKOFF_MULTIPLIER,
    RETRY_INITIAL_DELAY_SECONDS,
    RETRY_MAX_DELAY_SECONDS,
    RETRY_MAX_RETRIES,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = RETRY_MAX_RETRIES
    initial_delay: float = RETRY_INITIAL_DELAY_SECONDS
    max_delay: float = RETRY_MAX_DELAY_SECONDS
    backoff_multiplier: float = RETRY_BACKOFF_MULTIPLIER

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Sleep before retry number ``attempt + 1`` (``attempt`` is zero-based)."""
        return min(self.max_delay, self.initial_delay * self.backoff_multiplier**attempt)


def is_retryable(exc: BaseException) -> bool:
    return bool(getattr(exc, "retryable", False))


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    policy = policy or RetryPolicy()
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait_exponential(
            multiplier=policy.initial_delay,
            exp_base=policy.backoff_multiplier,
            max=policy.max_delay,
        ),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
        sleep=sleep,
    )
    async def _attempt() -> T:
        return await operation()

    return await retrying(_attempt)


class RetryExecutor:
    def __init__(self, policy: RetryPolicy | None = None, sleep: SleepFn = asyncio.sleep) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def execute_with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await execute_with_retry(operation, self.policy, sleep=self._sleep)
