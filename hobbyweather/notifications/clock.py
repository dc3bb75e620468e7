"""
Time source for the scheduler

All waiting in the notification engine goes through `Clock.sleep`, so a
test can substitute a manual clock and drive time explicitly.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime

# Longest single wait, matching the 2^31-1 ms ceiling of platform timers.
# Longer delays are waited out in chunks.
MAX_TIMER_DELAY_SECONDS = 2_147_483.647


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime: ...

    @abstractmethod
    async def sleep(self, seconds: float) -> None: ...


class SystemClock(Clock):
    """Wall clock in naive local time."""

    def now(self) -> datetime:
        return datetime.now()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))
