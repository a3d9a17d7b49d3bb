"""Retry utilities with exponential backoff."""

import logging

import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from memory.models import MemoryUnavailable

logger = structlog.stdlib.get_logger(__name__)


def write_retry(
    max_attempts: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 5.0,
    exceptions: tuple = (MemoryUnavailable,),
) -> AsyncRetrying:
    """Retry controller for background memory writes.

    Use as ``async for attempt in write_retry(): with attempt: ...``.

    Args:
        max_attempts: Max attempts including the first
        min_wait: Min wait between retries (seconds)
        max_wait: Max wait between retries (seconds)
        exceptions: Exception types to retry on
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
