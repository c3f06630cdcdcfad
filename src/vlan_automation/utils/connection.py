"""Retry helpers and the per-command result type."""
import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
    retry_if_exception_type,
    before_sleep_log,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Common network exceptions to retry on
RETRYABLE_EXCEPTIONS = (
    ConnectionRefusedError,
    ConnectionResetError,
    TimeoutError,
    OSError,
    EOFError,
)


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
    fixed_wait: Optional[float] = None,
) -> Callable:
    """Decorator factory for retry logic.

    Waits grow exponentially between min_wait and max_wait unless
    fixed_wait is given, in which case every retry sleeps that long.

    Args:
        max_attempts: Maximum number of attempts (including the first)
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)
        exceptions: Tuple of exception types to retry on
        fixed_wait: Constant wait between retries (seconds)
    """
    if fixed_wait is not None:
        wait = wait_fixed(fixed_wait)
    else:
        wait = wait_exponential(multiplier=1, min=min_wait, max=max_wait)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait,
            retry=retry_if_exception_type(exceptions),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            return await func(*args, **kwargs)  # type: ignore[misc]

        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait,
            retry=retry_if_exception_type(exceptions),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            return func(*args, **kwargs)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore[return-value]
        return sync_wrapper

    return decorator


class CommandResult:
    """Result of a single command sent through a device session."""

    def __init__(
        self,
        success: bool,
        output: str = "",
        error: str = "",
        device_id: str = "",
        command: str = "",
    ):
        self.success = success
        self.output = output
        self.error = error
        self.device_id = device_id
        self.command = command

    @property
    def failed(self) -> bool:
        """A result with an error message counts as failed even if flagged ok."""
        return not self.success or bool(self.error)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "device_id": self.device_id,
            "command": self.command,
        }

    def __repr__(self) -> str:
        status = "FAILED" if self.failed else "OK"
        return f"CommandResult({status}, device={self.device_id})"
