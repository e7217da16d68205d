"""
Guard State: immutable snapshot of an alert in progress.

``progress``, ``remaining_seconds`` and ``should_blink`` are derived values.
They are only ever produced by ``update_from_elapsed``, which is a pure
function of ``(mode, elapsed_ms)``. A new snapshot replaces the old one on
every tick; no history is kept.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..engine import timing
from .modes import AlertModeConfig


class GuardState(BaseModel):
    """Snapshot of the alert timing for the presentation layer."""

    model_config = ConfigDict(frozen=True)

    mode: AlertModeConfig
    is_active: bool = False
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    remaining_seconds: int = Field(default=0, ge=0)
    should_blink: bool = False

    def update_from_elapsed(self, elapsed_ms: float) -> "GuardState":
        """
        Produce the snapshot for the given elapsed time.

        Args:
            elapsed_ms: Time since the Active stage began

        Returns:
            New GuardState; ``mode`` and ``is_active`` are carried forward
        """
        return self.model_copy(
            update={
                "progress": timing.progress(elapsed_ms, self.mode.total_duration_ms),
                "remaining_seconds": timing.remaining_seconds(
                    elapsed_ms, self.mode.total_duration_ms
                ),
                "should_blink": timing.should_blink(
                    elapsed_ms, self.mode.blink_interval_ms
                ),
            }
        )

    @property
    def status_text(self) -> str:
        """Human-readable status label."""
        if not self.is_active:
            return "Ready"
        if self.remaining_seconds > 0:
            return f"Alert Active — {self.remaining_seconds}s remaining"
        return "Alert Complete"
