"""Retry policies for node execution."""

from agentdag.kernel.validation.retry import RetryConfig, RetryExhaustedError, execute_with_retry

__all__ = ["RetryConfig", "RetryExhaustedError", "execute_with_retry"]
