"""
Animation Drivers: the hardware side of an alert.

A driver plays a named light pattern for a duration and can be stopped
early. Machines only ever call ``start`` and ``stop``; failures are
reported as ``AnimationDriverError`` or any other exception and never stop
the alert timing.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

logger = logging.getLogger(__name__)


class AnimationDriverError(Exception):
    """The animation hardware rejected a command."""


class AnimationDriver(ABC):
    """
    Abstract base class for animation drivers.

    Implementations talk to the glyph hardware (or pretend to).
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The driver identifier."""
        pass

    @abstractmethod
    def start(self, pattern_id: str, duration_ms: int) -> None:
        """
        Start playing a pattern.

        Args:
            pattern_id: Identifier of the light pattern
            duration_ms: How long the pattern should run
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop whatever is playing. Stopping an idle driver is allowed."""
        pass


@dataclass
class MockAnimationDriver(AnimationDriver):
    """
    Driver that logs and records calls without touching hardware.

    ``fail_on`` names operations ("start", "stop") that should raise.
    """

    driver_name: str = "mock"
    fail_on: Tuple[str, ...] = ()
    calls: List[Tuple[Any, ...]] = field(default_factory=list)
    playing: Optional[str] = None

    @property
    def name(self) -> str:
        return self.driver_name

    def start(self, pattern_id: str, duration_ms: int) -> None:
        self.calls.append(("start", pattern_id, duration_ms))
        if "start" in self.fail_on:
            raise AnimationDriverError(f"Pattern {pattern_id} failed to start")
        self.playing = pattern_id
        logger.info(f"[MOCK:{self.driver_name}] Would play '{pattern_id}' for {duration_ms}ms")

    def stop(self) -> None:
        self.calls.append(("stop",))
        if "stop" in self.fail_on:
            raise AnimationDriverError("Stop command failed")
        if self.playing:
            logger.info(f"[MOCK:{self.driver_name}] Would stop '{self.playing}'")
        self.playing = None

    @property
    def start_count(self) -> int:
        return sum(1 for call in self.calls if call[0] == "start")

    @property
    def stop_count(self) -> int:
        return sum(1 for call in self.calls if call[0] == "stop")
