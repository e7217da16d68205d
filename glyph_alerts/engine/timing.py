"""
Guard Timing: pure functions mapping elapsed time to alert progress.

Every function here is total: it never raises and never touches state.
Given the same ``(mode, elapsed_ms)`` the result is always the same, so
the stage machine can recompute a snapshot on every tick without history.

## Usage

    from glyph_alerts.engine.timing import progress, should_blink, remaining_seconds

    progress(15000, 30000)          # 0.5
    should_blink(250, 200)          # False (second half of the 400ms cycle)
    remaining_seconds(15500, 30000) # 14
"""

from __future__ import annotations

import math

# Safe floors for invalid configuration coming from the settings store
MIN_TOTAL_DURATION_MS = 1000
MIN_BLINK_INTERVAL_MS = 100


def sanitize_duration(total_duration_ms: float) -> float:
    """Replace a non-positive total duration with the safe minimum."""
    if total_duration_ms is None or total_duration_ms <= 0:
        return MIN_TOTAL_DURATION_MS
    return total_duration_ms


def sanitize_blink_interval(blink_interval_ms: float) -> float:
    """Replace a non-positive blink interval with the safe minimum."""
    if blink_interval_ms is None or blink_interval_ms <= 0:
        return MIN_BLINK_INTERVAL_MS
    return blink_interval_ms


def progress(elapsed_ms: float, total_duration_ms: float) -> float:
    """
    Fraction of the alert that has elapsed.

    Saturates at exactly 1.0 once ``elapsed_ms >= total_duration_ms``.

    Args:
        elapsed_ms: Time since the Active stage began
        total_duration_ms: Total time the Active stage may run

    Returns:
        Progress in [0.0, 1.0]
    """
    total = sanitize_duration(total_duration_ms)
    elapsed = max(0, elapsed_ms)
    if elapsed >= total:
        return 1.0
    return min(1.0, max(0.0, elapsed / total))


def should_blink(elapsed_ms: float, blink_interval_ms: float) -> bool:
    """
    Phase of the blink square wave.

    The wave has period ``2 * blink_interval_ms``: lit for the first half,
    dark for the second. It keeps oscillating past the alert duration.
    """
    interval = sanitize_blink_interval(blink_interval_ms)
    elapsed = max(0, elapsed_ms)
    return (elapsed % (2 * interval)) < interval


def remaining_seconds(elapsed_ms: float, total_duration_ms: float) -> int:
    """Whole seconds left in the alert, floored and never negative."""
    total = sanitize_duration(total_duration_ms)
    elapsed = max(0, elapsed_ms)
    return max(0, int(math.floor((total - elapsed) / 1000)))
