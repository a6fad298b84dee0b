"""Resilience helpers."""

from flowline.resilience.retry import RetryExecutor, RetryPolicy

__all__ = ["RetryExecutor", "RetryPolicy"]
