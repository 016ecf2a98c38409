"""Retry utilities with exponential backoff"""

from tenacity import (
    AsyncRetrying,
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)
import logging
import httpx

logger = logging.getLogger(__name__)


def _log_retry(retry_state):
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(f"🔁 Retrying after attempt {retry_state.attempt_number} failed: {exc}")


def retry_with_backoff(max_attempts=3, multiplier=1, min_wait=1, max_wait=10, exceptions=(Exception,)):
    """
    Generic retry decorator with exponential backoff

    Args:
        max_attempts: Maximum number of retry attempts
        multiplier: Exponential multiplier
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)
        exceptions: Tuple of exceptions to retry on
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=_log_retry,
        reraise=True
    )


def retrying_api_call(max_attempts=3, multiplier=1, min_wait=1, max_wait=10):
    """
    Async retry controller for outbound HTTP calls

    Only transport failures (connection refused, timeouts) are retried;
    HTTP error statuses are answers from the server and are returned as-is.

    Usage:
        async for attempt in retrying_api_call(3):
            with attempt:
                response = await client.get(url)
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(httpx.TransportError),
        before_sleep=_log_retry,
        reraise=True
    )


# Convenience wrapper for the messaging gateway
retry_api_call = lambda max_attempts=3: retry_with_backoff(
    max_attempts=max_attempts,
    exceptions=(httpx.TransportError,)
)
