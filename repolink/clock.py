"""Time source used for rate-limit windows, backoff sleeps and session expiry."""

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Wall-clock time plus an awaitable sleep."""

    def now(self) -> float:
        """Current time as epoch seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for ``seconds``."""
        ...


class SystemClock:
    """Clock backed by ``time.time`` and ``asyncio.sleep``."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
