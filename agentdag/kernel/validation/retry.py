"""Retry strategies with exponential backoff for node execution.

The primary interface is ``execute_with_retry`` which wraps an async callable
with configurable exponential backoff and an optional retryability predicate.

Examples
--------
Basic usage with default config::

    config = RetryConfig(max_retries=3)
    result = await execute_with_retry(my_async_fn, config)

Only retry transient errors::

    result = await execute_with_retry(
        my_async_fn,
        RetryConfig(max_retries=5, delay=0.5),
        should_retry=lambda exc: isinstance(exc, ConnectionError),
    )
"""

from __future__ import annotations

import asyncio
import inspect
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from agentdag.kernel.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Configuration for retry behavior with exponential backoff.

    Parameters
    ----------
    max_retries : int
        Total number of attempts. 1 means no retries (single attempt).
    delay : float
        Initial delay in seconds before the first retry.
    backoff : float
        Multiplier applied to the delay after each retry.
    max_delay : float
        Maximum delay cap in seconds.
    jitter : float
        Upper bound in seconds of a random amount added to each delay.
    """

    max_retries: int = 1
    delay: float = 1.0
    backoff: float = 2.0
    max_delay: float = 60.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ConfigurationError("retry", f"max_retries must be >= 1, got {self.max_retries}")
        if self.delay < 0 or self.max_delay < 0 or self.jitter < 0:
            raise ConfigurationError("retry", "delays must be non-negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetryConfig:
        """Build a RetryConfig from a plain mapping, ignoring ``None`` values.

        Examples
        --------
        >>> RetryConfig.from_dict({"max_retries": 3, "delay": None}).delay
        1.0
        """
        return cls(**{k: v for k, v in data.items() if v is not None})

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form, the inverse of ``from_dict``."""
        return {
            "max_retries": self.max_retries,
            "delay": self.delay,
            "backoff": self.backoff,
            "max_delay": self.max_delay,
            "jitter": self.jitter,
        }

    @property
    def has_retries(self) -> bool:
        """Whether this config enables retries (max_retries > 1)."""
        return self.max_retries > 1

    def compute_delay(self, attempt: int) -> float:
        """Compute the backoff delay for a given attempt number (1-indexed).

        Jitter is not included; it is added by ``execute_with_retry``.

        Examples
        --------
        >>> cfg = RetryConfig(delay=1.0, backoff=2.0, max_delay=10.0)
        >>> cfg.compute_delay(1)
        1.0
        >>> cfg.compute_delay(3)
        4.0
        >>> cfg.compute_delay(10)
        10.0
        """
        return min(self.delay * (self.backoff ** (attempt - 1)), self.max_delay)


class RetryExhaustedError(Exception):
    """Carries the last error and the number of attempts made.

    Raised by ``execute_with_retry`` so callers can report attempt counts;
    ``__cause__`` is the last underlying error.
    """

    def __init__(self, last_error: Exception, attempts: int) -> None:
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"{last_error} (after {attempts} attempt(s))")


async def execute_with_retry(
    fn: Callable[[], Awaitable[Any]],
    config: RetryConfig,
    *,
    should_retry: Callable[[Exception], bool] | None = None,
    on_retry: Callable[[int, int, Exception, float], Any] | None = None,
) -> Any:
    """Execute an async callable with retry and exponential backoff.

    Parameters
    ----------
    fn : Callable[[], Awaitable[Any]]
        Zero-argument async callable to execute. Use ``functools.partial`` or a
        closure to bind arguments.
    config : RetryConfig
        Retry configuration.
    should_retry : callable, optional
        Predicate deciding whether an error is worth another attempt.
        Defaults to retrying every ``Exception``.
    on_retry : callable, optional
        Invoked before each retry sleep with
        ``(attempt, max_retries, error, delay)``; may be async.

    Returns
    -------
    Any
        The return value of *fn*.

    Raises
    ------
    RetryExhaustedError
        When the final attempt fails or the error is not retryable.

    Examples
    --------
    >>> import asyncio
    >>> async def ok(): return 42
    >>> asyncio.run(execute_with_retry(ok, RetryConfig()))
    42
    """
    for attempt in range(1, config.max_retries + 1):
        try:
            return await fn()
        except Exception as exc:
            retryable = should_retry is None or should_retry(exc)
            if attempt < config.max_retries and retryable:
                delay = config.compute_delay(attempt)
                if config.jitter:
                    delay += random.uniform(0, config.jitter)
                if on_retry is not None:
                    result = on_retry(attempt, config.max_retries, exc, delay)
                    if inspect.isawaitable(result):
                        await result
                await asyncio.sleep(delay)
                continue
            raise RetryExhaustedError(exc, attempt) from exc

    raise AssertionError("unreachable")  # pragma: no cover
