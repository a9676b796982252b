from __future__ import annotations

from collections.abc import Callable

from tenacity import RetryCallState

type RetryCallback = Callable[[RetryCallState], None]
type BeforeSleepCallback = Callable[[RetryCallState], None]
