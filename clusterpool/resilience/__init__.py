from __future__ import annotations

from .config import RetryConfig
from .retry import build_retry_decorator, retry
from .types import BeforeSleepCallback, RetryCallback

__all__ = [
    "BeforeSleepCallback",
    "RetryCallback",
    "RetryConfig",
    "build_retry_decorator",
    "retry",
]
