"""
Retry mechanism for resilient operations.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True,
                 backoff_strategy: str = "exponential"):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy


async def retry_async(func: Callable[[], Awaitable[Any]],
                      *,
                      exceptions: Tuple[Type[BaseException], ...] = (Exception,),
                      config: Optional[RetryConfig] = None,
                      name: Optional[str] = None) -> Any:
    """Await ``func()`` until it succeeds or the attempts run out.

    The last exception is re-raised unchanged once every attempt has failed.
    """
    if config is None:
        config = RetryConfig()

    name = name or getattr(func, "__name__", "operation")
    logger = get_logger(f"retry.{name}")

    attempt = 1
    while True:
        try:
            result = await func()
        except exceptions as e:
            if attempt >= config.max_attempts:
                if config.max_attempts > 1:
                    logger.error(
                        "All retry attempts exhausted",
                        attempt=attempt,
                        max_attempts=config.max_attempts,
                        function=name,
                        error=str(e)
                    )
                raise

            delay = _calculate_delay(attempt, config)

            logger.warning(
                "Retry attempt failed, waiting before next attempt",
                attempt=attempt,
                delay=delay,
                function=name,
                error=str(e)
            )

            await asyncio.sleep(delay)
            attempt += 1
            continue

        if attempt > 1:
            logger.info("Retry succeeded", attempt=attempt, function=name)

        return result


def _calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay between retry attempts."""
    if config.backoff_strategy == "exponential":
        delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    elif config.backoff_strategy == "linear":
        delay = config.base_delay * attempt
    else:
        delay = config.base_delay

    # Apply max delay cap
    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)
