"""
Clock: the time source every stage machine runs on.

Machines never call ``time`` or ``asyncio.sleep`` directly. They read
``now_ms()`` and await ``sleep(ms)`` on an injected clock so simulated
time can drive them deterministically.
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Millisecond clock with a cooperative sleep."""

    def now_ms(self) -> float:
        ...

    async def sleep(self, ms: float) -> None:
        ...


class MonotonicClock:
    """
    Wall-clock implementation backed by ``time.monotonic``.

    ``speed`` scales time for demos: at ``speed=4`` a 1000ms sleep takes
    250ms of real time and ``now_ms`` advances four times as fast.
    """

    def __init__(self, speed: float = 1.0):
        if speed <= 0:
            raise ValueError("speed must be positive")
        self.speed = speed
        self._origin = time.monotonic()

    def now_ms(self) -> float:
        return (time.monotonic() - self._origin) * 1000 * self.speed

    async def sleep(self, ms: float) -> None:
        await asyncio.sleep(max(0, ms) / 1000 / self.speed)
