"""
Retry utility for status requests.

Implements exponential backoff with jitter for transient transport
failures. The monitor itself never retries; this only applies when a
status client is configured with more than one attempt.
"""

import asyncio
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar
import structlog

from compliance_console.processing.config import RetryConfig

logger = structlog.get_logger()

T = TypeVar("T")


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Backoff delay in seconds before retry number ``attempt + 1``."""
    delay = min(
        config.initial_delay * (config.exponential_base**attempt),
        config.max_delay,
    )
    if config.jitter:
        delay = delay * (0.5 + random.random() * 0.5)
    return delay


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig,
    operation_name: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Execute an async function with exponential backoff retry.

    Args:
        func: Async function to execute
        config: Retry configuration
        operation_name: Name for logging
        retry_on: Exception types that trigger another attempt; anything
            else propagates immediately

    Returns:
        Function result

    Raises:
        Exception: Last exception if all retries exhausted
    """
    attempt = 0
    while True:
        try:
            return await func()
        except retry_on as e:
            attempt_num = attempt + 1

            if attempt_num >= config.max_attempts:
                if config.max_attempts > 1:
                    logger.error(
                        "retry.exhausted",
                        operation=operation_name,
                        attempts=attempt_num,
                        error=str(e),
                    )
                raise

            delay = compute_delay(config, attempt)
            logger.warning(
                "retry.attempt",
                operation=operation_name,
                attempt=attempt_num,
                max_attempts=config.max_attempts,
                delay_seconds=delay,
                error=str(e),
            )

            await asyncio.sleep(delay)
            attempt += 1
