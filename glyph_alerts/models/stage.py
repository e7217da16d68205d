"""
Stage Models: machine stages and the observable snapshot.

The snapshot is everything the presentation layer may see. It carries no
presentation state of its own (dialog visibility, press animations); the
presentation layer owns that separately.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .guard_state import GuardState


class Stage(str, Enum):
    """Stages of an alert life-cycle."""
    CONFIRMATION = "confirmation"
    COUNTDOWN = "countdown"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.COMPLETED, Stage.CANCELLED)


class AlertSnapshot(BaseModel):
    """Observable state emitted by the stage machine."""

    model_config = ConfigDict(frozen=True)

    stage: Stage
    countdown_remaining: int = 0
    guard_state: GuardState
    # Last value reported by the confirm-action
    action_progress: float = Field(default=0.0, ge=0.0, le=1.0)
    # Completion reported, grace period running
    is_complete: bool = False

    @property
    def status_text(self) -> str:
        return self.guard_state.status_text
