"""Bounded retry with exponential backoff for transient store failures."""

from __future__ import annotations

import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, TypeVar

import structlog

from ecertify.errors import TransientStoreError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry a store call."""

    max_attempts: int = 3
    base_delay: float = 0.05
    max_delay: float = 1.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (1-based)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


NO_RETRY = RetryPolicy(max_attempts=1)


def retry_call(policy: RetryPolicy, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Call ``func`` and retry it on TransientStoreError.

    Args:
        policy: Retry policy to apply
        func: Callable to invoke
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Whatever func returns

    Raises:
        TransientStoreError: After max_attempts failures
    """
    attempts = max(policy.max_attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except TransientStoreError as e:
            if attempt >= attempts:
                logger.error(
                    "store.retry_exhausted",
                    operation=e.operation,
                    attempts=attempts,
                    error=str(e),
                )
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "store.retrying",
                operation=e.operation,
                attempt=attempt,
                max_attempts=attempts,
                delay=delay,
            )
            time.sleep(delay)

    raise AssertionError("unreachable")


def with_store_retry(func: Callable[..., T]) -> Callable[..., T]:
    """Retry a repository method using its database's policy.

    Calls that run inside a caller-owned connection (``conn=...``) are not
    retried here; the owner of the transaction retries it as a whole.
    """

    @wraps(func)
    def wrapper(self, *args: Any, **kwargs: Any) -> T:
        if kwargs.get("conn") is not None:
            return func(self, *args, **kwargs)
        return retry_call(self._db.retry_policy, func, self, *args, **kwargs)

    return wrapper
