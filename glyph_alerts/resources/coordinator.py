"""
Feature Coordinator: at most one feature drives the glyph lights at a time.

A machine claims the coordinator when it enters the active stage and gives
the claim back on every exit path. A feature that cannot claim it still
runs its timing, it just does not start an animation.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class GlyphFeature(str, Enum):
    """Features that can drive the glyph lights."""
    GLYPH_GUARD = "glyph_guard"
    LOW_BATTERY = "low_battery"
    PULSE_LOCK = "pulse_lock"
    POWER_PEEK = "power_peek"
    BATTERY_STORY = "battery_story"
    MANUAL_DEMO = "manual_demo"


class FeatureCoordinator:
    """Single-owner claim on the glyph lights."""

    def __init__(self):
        self._lock = threading.Lock()
        self._owner: Optional[GlyphFeature] = None

    @property
    def current_owner(self) -> Optional[GlyphFeature]:
        return self._owner

    def try_acquire(self, owner: GlyphFeature) -> bool:
        """Claim the lights. Re-acquiring by the current owner succeeds."""
        with self._lock:
            if self._owner is None or self._owner == owner:
                self._owner = owner
                logger.debug(f"Glyph lights claimed by {owner.value}")
                return True
            logger.info(f"{owner.value} blocked: lights owned by {self._owner.value}")
            return False

    def release(self, owner: GlyphFeature) -> bool:
        """Give the lights back. Only the current owner can release."""
        with self._lock:
            if self._owner != owner:
                logger.debug(f"{owner.value} does not own the lights, release ignored")
                return False
            self._owner = None
            logger.debug(f"Glyph lights released by {owner.value}")
            return True
