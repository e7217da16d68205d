"""
Progress Sink: how a confirm-action reports progress to its machine.

A confirm-action is an async callable taking a ``ProgressSink``. It calls
``sink.report(fraction)`` as its feature-specific work advances; the
machine treats any value >= 1.0 as completion. Reports after the sink is
closed (machine cancelled or completed) are dropped.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ProgressSink:
    """Typed receiver for confirm-action progress values."""

    def __init__(self, on_report: Callable[[float], None], name: str = "alert"):
        self.name = name
        self._on_report: Optional[Callable[[float], None]] = on_report
        self._last = 0.0

    @property
    def last_value(self) -> float:
        return self._last

    @property
    def closed(self) -> bool:
        return self._on_report is None

    def report(self, fraction: float) -> None:
        """Report progress in [0, 1]; out-of-range values are clamped."""
        if self._on_report is None:
            logger.debug(f"[{self.name}] Progress {fraction} after close ignored")
            return
        value = min(1.0, max(0.0, float(fraction)))
        self._last = value
        self._on_report(value)

    def close(self) -> None:
        self._on_report = None


ConfirmAction = Callable[[ProgressSink], Awaitable[None]]
