"""Shared infrastructure helpers."""

from .retry_policy import RetryConfig, retry_async

__all__ = [
    "RetryConfig",
    "retry_async",
]
