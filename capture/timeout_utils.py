"""Bounded waits and retries for opening and releasing video devices.

Camera drivers can hang on open or release (busy device, revoked permission),
so those calls run on a throwaway worker thread with a deadline, and opens are
retried with exponential backoff before the coach reports "no source".
"""

from __future__ import annotations

import functools
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from exceptions import SourceUnavailableError
from log_config.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def run_with_timeout(
    func: Callable[..., T],
    timeout_seconds: float,
    error_message: str = "Operation timed out",
    *args: Any,
    **kwargs: Any,
) -> T:
    """Call ``func(*args, **kwargs)``; raise SourceUnavailableError after ``timeout_seconds``.

    Exceptions raised by ``func`` itself propagate unchanged.
    """
    worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="source-call")
    try:
        return worker.submit(func, *args, **kwargs).result(timeout=timeout_seconds)
    except FutureTimeoutError:
        message = f"{error_message} after {timeout_seconds}s (timed out)"
        logger.error(message)
        raise SourceUnavailableError(message)
    finally:
        # Never join: the hung driver call keeps the worker thread.
        worker.shutdown(wait=False)


def exponential_backoff(attempt: int, base_delay: float = 0.5, max_delay: float = 5.0) -> float:
    """Delay before retry ``attempt`` (0-indexed), doubling up to ``max_delay``."""
    return min(base_delay * (2**attempt), max_delay)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0
    retry_on: Tuple[Type[Exception], ...] = (SourceUnavailableError,)

    def should_retry(self, attempt: int, exception: Exception) -> bool:
        return attempt + 1 < self.max_attempts and isinstance(exception, self.retry_on)

    def get_delay(self, attempt: int) -> float:
        return exponential_backoff(attempt, self.base_delay, self.max_delay)


def retry_on_failure(
    policy: Optional[RetryPolicy] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorate a device call so retryable failures are attempted again.

    Example:
        @retry_on_failure(RetryPolicy(max_attempts=2))
        def open(self) -> None:
            ...
    """
    policy = policy or RetryPolicy()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not policy.should_retry(attempt, e):
                        if isinstance(e, policy.retry_on):
                            logger.error(f"{func.__name__} gave up after {attempt + 1} attempt(s): {e}")
                        raise
                    delay = policy.get_delay(attempt)
                    logger.warning(
                        f"{func.__name__} failed ({attempt + 1}/{policy.max_attempts}): {e}; "
                        f"retrying in {delay:.2f}s"
                    )
                    time.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator


__all__ = [
    "run_with_timeout",
    "exponential_backoff",
    "RetryPolicy",
    "retry_on_failure",
]
