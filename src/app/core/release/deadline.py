"""Operation time budget."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import TypeVar

from src.app.core.errors import OperationTimeoutError

T = TypeVar("T")


@dataclass
class Deadline:
    """Absolute point in time by which an operation must finish.

    Every cluster call and wait made on behalf of one operation is bounded by
    ``remaining()``, so hooks, apply and readiness polling share one budget.
    """

    timeout: float
    started_at: float = field(default_factory=lambda: time.monotonic())

    @property
    def expires_at(self) -> float:
        return self.started_at + self.timeout

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return self.remaining() <= 0.0

    async def bound(self, call: Awaitable[T], what: str) -> T:
        """Await one cluster call within the remaining budget.

        Raises:
            OperationTimeoutError: If the budget is spent before or during the call
        """
        if self.expired():
            if asyncio.iscoroutine(call):
                call.close()
            raise OperationTimeoutError(f"timed out before {what}")
        try:
            return await asyncio.wait_for(call, timeout=self.remaining())
        except TimeoutError:
            raise OperationTimeoutError(f"timed out during {what}") from None
