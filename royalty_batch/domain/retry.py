"""
RetryPolicy -- explicit transient-failure retry with capped exponential backoff.

Contract:
    ``run(fn)`` calls ``fn`` once, then up to ``max_retries`` more times
    while it raises TransientStoreError, sleeping ``delay_for(attempt)``
    between attempts.  Any other exception (PermanentStoreError included)
    propagates immediately.  After the last attempt the final
    TransientStoreError propagates.

The sleep function is injectable so tests run without real delays.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from royalty_kernel.exceptions import TransientStoreError
from royalty_kernel.logging_config import get_logger

from royalty_batch.domain.types import BatchConfig

logger = get_logger("batch.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")

    @classmethod
    def from_config(
        cls,
        config: BatchConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> RetryPolicy:
        return cls(
            max_retries=config.retry_attempts,
            base_delay=config.backoff_base,
            max_delay=config.backoff_cap,
            sleep=sleep,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (0-indexed)."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def run(self, fn: Callable[[], T], operation: str = "operation") -> T:
        attempt = 0
        while True:
            try:
                return fn()
            except TransientStoreError as exc:
                if attempt >= self.max_retries:
                    logger.warning(
                        "retry_exhausted",
                        extra={
                            "operation": operation,
                            "attempts": attempt + 1,
                            "error": str(exc),
                        },
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.info(
                    "retry_scheduled",
                    extra={
                        "operation": operation,
                        "attempt": attempt + 1,
                        "delay_seconds": delay,
                        "error": str(exc),
                    },
                )
                self.sleep(delay)
                attempt += 1
