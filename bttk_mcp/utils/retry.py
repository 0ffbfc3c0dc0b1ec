"""
Retry logic with exponential backoff for Google API calls.
Uses tenacity library for robust retry handling.
"""

from typing import Callable
from functools import wraps
import inspect
import logging

from googleapiclient.errors import HttpError
from google.auth.exceptions import TransportError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_sleep_log,
)

logger = logging.getLogger(__name__)

# Status codes worth another attempt
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def is_transient_error(exc: BaseException) -> bool:
    """
    Decide whether a failure is worth retrying.
    
    Args:
        exc: Raised exception
        
    Returns:
        True for network-level failures and throttling/5xx API responses
    """
    if isinstance(exc, TransportError):
        return True
    if isinstance(exc, HttpError):
        return exc.resp.status in RETRYABLE_STATUS_CODES
    return False


def retry_on_transient_error(
    max_attempts: int = 3,
    initial_wait: float = 1.0,
    max_wait: float = 10.0,
    predicate: Callable[[BaseException], bool] = is_transient_error
):
    """
    Decorator for retrying transient Google API failures with exponential backoff.
    
    Args:
        max_attempts: Maximum number of attempts
        initial_wait: Initial wait time in seconds
        max_wait: Maximum wait time in seconds
        predicate: Decides which exceptions are retried
        
    Returns:
        Decorated function
    """
    def decorator(func: Callable) -> Callable:
        retrying = retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(
                multiplier=2.0,
                min=initial_wait,
                max=max_wait
            ),
            retry=retry_if_exception(predicate),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )
        
        @retrying
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            return await func(*args, **kwargs)
        
        @retrying
        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            return func(*args, **kwargs)
        
        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper
    
    return decorator
