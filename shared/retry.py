"""
Timeout and bounded retry around a single upstream call.
"""

import asyncio
import functools
import random
from typing import Any, Optional, Callable, Awaitable, Tuple, Type

from shared.errors import UpstreamTimeoutError
from shared.logging import get_logger


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_attempts: int = 2,
                 base_delay: float = 0.2,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0,
                 jitter: bool = False,
                 backoff_strategy: str = "fixed",
                 timeout: Optional[float] = 3.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy
        self.timeout = timeout


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""
    def __init__(self, message: str, last_exception: BaseException, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def _calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay between retry attempts."""
    if config.backoff_strategy == "exponential":
        delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    elif config.backoff_strategy == "linear":
        delay = config.base_delay * attempt
    else:
        delay = config.base_delay

    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)


class ResilientCall:
    """
    Run one upstream operation under a deadline with a bounded number of attempts.

    Each attempt is awaited through ``asyncio.wait_for``; when the deadline
    passes, the attempt is cancelled, counted as a failure, and its result (if
    any) is discarded. Between attempts the caller-configured delay is slept;
    there is no sleep after the final attempt. When every attempt fails a
    ``RetryError`` carrying the last observed exception is raised. No fallback
    values are produced here.

    At most ``attempts`` invocations happen, so the wall clock is bounded by
    ``attempts * timeout + (attempts - 1) * delay``.
    """

    def __init__(self,
                 config: Optional[RetryConfig] = None,
                 name: str = "upstream",
                 retry_on: Tuple[Type[BaseException], ...] = (Exception,),
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.config = config or RetryConfig()
        self.name = name
        # missed deadlines are always retryable
        self.retry_on = tuple(retry_on) + (UpstreamTimeoutError,)
        self._sleep = sleep
        self.logger = get_logger(f"retry.{name}")

    async def invoke(self,
                     operation: Callable[[], Awaitable[Any]],
                     timeout: Optional[float] = None,
                     attempts: Optional[int] = None,
                     delay: Optional[float] = None) -> Any:
        """Invoke ``operation`` until it succeeds or the attempts run out."""
        timeout = self.config.timeout if timeout is None else timeout
        max_attempts = self.config.max_attempts if attempts is None else attempts
        if max_attempts < 1:
            raise ValueError("attempts must be at least 1")

        last_exception: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            try:
                self.logger.debug(
                    "Upstream attempt",
                    attempt=attempt,
                    max_attempts=max_attempts,
                    timeout=timeout
                )
                result = await self._run_once(operation, timeout)

                if attempt > 1:
                    self.logger.info("Retry succeeded", attempt=attempt)

                return result

            except self.retry_on as e:
                last_exception = e

                if attempt == max_attempts:
                    self.logger.warning(
                        "All retry attempts exhausted",
                        attempt=attempt,
                        max_attempts=max_attempts,
                        error=str(e)
                    )
                    break

                wait = delay if delay is not None else _calculate_delay(attempt, self.config)
                self.logger.info(
                    "Upstream attempt failed, waiting before next attempt",
                    attempt=attempt,
                    delay=wait,
                    error=str(e)
                )
                await self._sleep(wait)

        raise RetryError(
            f"{self.name} failed after {max_attempts} attempts",
            last_exception=last_exception,
            attempts=max_attempts
        ) from last_exception

    async def _run_once(self, operation: Callable[[], Awaitable[Any]], timeout: Optional[float]) -> Any:
        """Await a single attempt, converting a missed deadline into an upstream timeout."""
        if timeout is None:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeoutError(self.name, timeout) from exc


def retry_on_exception(exceptions: tuple = (Exception,),
                       config: Optional[RetryConfig] = None) -> Callable:
    """Decorator running an async function through ``ResilientCall``."""

    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            call = ResilientCall(config, name=func.__name__, retry_on=exceptions)
            return await call.invoke(lambda: func(*args, **kwargs))

        return wrapper

    return decorator
