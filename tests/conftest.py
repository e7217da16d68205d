"""
Shared fixtures for alert machine tests.

``ManualClock`` replaces wall time: sleeps only finish when a test calls
``advance``, so every countdown step and active tick happens at an exact
simulated millisecond.
"""

from __future__ import annotations

import asyncio
import heapq
from typing import List, Tuple

import pytest

from glyph_alerts.drivers.animation import MockAnimationDriver
from glyph_alerts.engine.machine import AlertStageMachine, MachineOptions
from glyph_alerts.models.modes import STANDARD
from glyph_alerts.observability.metrics import metrics
from glyph_alerts.resources.wake_lock import (
    ProcessWakeLock,
    WakeLock,
    WakeLockError,
    WakeLockHandle,
)


class ManualClock:
    """Clock whose time only moves when ``advance`` is awaited."""

    def __init__(self):
        self._now = 0.0
        self._seq = 0
        self._sleepers: List[Tuple[float, int, asyncio.Future]] = []

    def now_ms(self) -> float:
        return self._now

    async def sleep(self, ms: float) -> None:
        future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self._now + max(0, ms), self._seq, future))
        self._seq += 1
        await future

    async def settle(self) -> None:
        """Let every ready task run until nothing is left to do."""
        for _ in range(25):
            await asyncio.sleep(0)

    async def advance(self, ms: float) -> None:
        """Move time forward, waking sleepers in deadline order."""
        target = self._now + ms
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            self._now = max(self._now, deadline)
            if not future.done():
                future.set_result(None)
            await self.settle()
        self._now = target
        await self.settle()


class RecordingWakeLock(WakeLock):
    """Wake-lock that counts calls and can be told to fail."""

    def __init__(self, fail_acquire: bool = False, fail_release: bool = False):
        self.fail_acquire = fail_acquire
        self.fail_release = fail_release
        self.acquire_calls = 0
        self.release_calls = 0
        self._held = set()

    def acquire(self, tag: str, max_hold_ms: int) -> WakeLockHandle:
        self.acquire_calls += 1
        if self.fail_acquire:
            raise WakeLockError("acquire denied")
        handle = WakeLockHandle(tag=tag, max_hold_ms=max_hold_ms, acquired_at=0.0)
        self._held.add(handle.handle_id)
        return handle

    def release(self, handle: WakeLockHandle) -> None:
        self.release_calls += 1
        if self.fail_release:
            raise WakeLockError("release denied")
        self._held.discard(handle.handle_id)

    def is_held(self, handle: WakeLockHandle) -> bool:
        return handle.handle_id in self._held

    @property
    def held_count(self) -> int:
        return len(self._held)


@pytest.fixture(autouse=True)
def reset_globals():
    """Start every test with zeroed metrics and a free process wake-lock."""
    metrics.reset()
    ProcessWakeLock.reset()
    yield
    ProcessWakeLock.reset()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def wake_lock() -> RecordingWakeLock:
    return RecordingWakeLock()


@pytest.fixture
def driver() -> MockAnimationDriver:
    return MockAnimationDriver()


@pytest.fixture
async def make_machine(clock, wake_lock, driver):
    """
    Factory for machines wired to the manual clock and recording fakes.

    Every machine built here is disposed after the test.
    """
    built: List[AlertStageMachine] = []

    def factory(**kwargs) -> AlertStageMachine:
        options = kwargs.pop("options", None) or MachineOptions(
            pattern_id=kwargs.pop("pattern_id", "guard_blink"),
            test_mode=kwargs.pop("test_mode", False),
            skip_confirmation=kwargs.pop("skip_confirmation", False),
        )
        kwargs.setdefault("mode", STANDARD)
        kwargs.setdefault("driver", driver)
        kwargs.setdefault("wake_lock", wake_lock)
        machine = AlertStageMachine(clock=clock, options=options, **kwargs)
        built.append(machine)
        return machine

    yield factory

    for machine in built:
        machine.dispose()
    await clock.settle()
