"""
Alert Modes: named intensity profiles for glyph alerts.

A mode bundles the blink interval, the total alert duration and whether a
sound accompanies the alert. The set of named presets is closed; callers
that read a duration from per-feature settings derive a copy of a preset
with ``with_duration`` instead of inventing a new variant.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, field_validator

from ..engine.timing import (
    MIN_BLINK_INTERVAL_MS,
    MIN_TOTAL_DURATION_MS,
    sanitize_blink_interval,
    sanitize_duration,
)

logger = logging.getLogger(__name__)


class AlertModeConfig(BaseModel):
    """Immutable alert intensity profile."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    blink_interval_ms: int
    total_duration_ms: int
    has_sound: bool = False

    @field_validator("blink_interval_ms")
    @classmethod
    def _clamp_blink_interval(cls, value: int) -> int:
        if value <= 0:
            logger.warning(
                f"Invalid blink interval {value}ms, using {MIN_BLINK_INTERVAL_MS}ms"
            )
        return int(sanitize_blink_interval(value))

    @field_validator("total_duration_ms")
    @classmethod
    def _clamp_total_duration(cls, value: int) -> int:
        if value <= 0:
            logger.warning(
                f"Invalid alert duration {value}ms, using {MIN_TOTAL_DURATION_MS}ms"
            )
        return int(sanitize_duration(value))

    def with_duration(self, total_duration_ms: int) -> "AlertModeConfig":
        """Same profile, with a duration taken from feature settings."""
        return AlertModeConfig(
            name=self.name,
            description=self.description,
            blink_interval_ms=self.blink_interval_ms,
            total_duration_ms=total_duration_ms,
            has_sound=self.has_sound,
        )


STEALTH = AlertModeConfig(
    name="Stealth",
    description="Silent glyph alerts only, no sound - perfect for discreet monitoring",
    blink_interval_ms=500,
    total_duration_ms=20000,
    has_sound=False,
)

STANDARD = AlertModeConfig(
    name="Standard",
    description="Rapid glyph blinking with system notification sound",
    blink_interval_ms=200,
    total_duration_ms=30000,
    has_sound=True,
)

INTENSE = AlertModeConfig(
    name="Intense",
    description="Very rapid blinking with loud alarm sound - maximum security",
    blink_interval_ms=100,
    total_duration_ms=45000,
    has_sound=True,
)

PRESETS: Dict[str, AlertModeConfig] = {
    mode.name.lower(): mode for mode in (STEALTH, STANDARD, INTENSE)
}


def get_mode(name: str) -> AlertModeConfig:
    """
    Look up a preset by name (case-insensitive).

    Unknown names fall back to Standard, matching how stored settings
    are read.
    """
    mode = PRESETS.get((name or "").strip().lower())
    if mode is None:
        logger.debug(f"Unknown alert mode '{name}', falling back to Standard")
        return STANDARD
    return mode


def list_modes() -> List[AlertModeConfig]:
    """All presets, ordered from least to most intense."""
    return [STEALTH, STANDARD, INTENSE]
