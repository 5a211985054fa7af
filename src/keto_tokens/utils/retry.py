# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


class RetryError(RuntimeError):
    def __init__(self, message: str, *, attempts: int, last_error: Optional[Exception]):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry for idempotent operations.

    attempts: total number of calls, including the first
    delay: seconds between attempts
    retry_on: exception types worth another attempt; anything else propagates
    """

    attempts: int = 5
    delay: float = 0.0
    retry_on: tuple[type[Exception], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retry_on)

    def call(
        self,
        fn: Callable[..., Any],
        *args: Any,
        on_retry: Callable[[int, Exception], None] | None = None,
        **kwargs: Any,
    ) -> Any:
        last_exc: Optional[Exception] = None
        for attempt in range(1, self.attempts + 1):
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                if not self.is_retryable(exc):
                    raise
                last_exc = exc
                if on_retry:
                    on_retry(attempt, exc)
                if attempt == self.attempts:
                    break
                if self.delay:
                    time.sleep(self.delay)
        name = getattr(fn, "__name__", repr(fn))
        raise RetryError(
            f"{name} failed after {self.attempts} attempts",
            attempts=self.attempts,
            last_error=last_exc,
        ) from last_exc
