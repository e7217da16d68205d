"""
Alert Stage Machine: confirm, count down, run the alert, finish.

Stages:

    CONFIRMATION --confirm--> COUNTDOWN --reaches 0--> ACTIVE --progress 1.0--> COMPLETED
         |                        |                       |
         +--------cancel----------+--------stop-----------+-------------------> CANCELLED

In test mode the countdown reaching zero completes the machine directly:
no wake-lock, no confirm-action and no animation.

All timing runs as tasks in the machine's ``TimerGroup`` on an injected
``Clock``. Every timer re-checks the stage after each await, so a tick
that fires after a cancellation does nothing.

## Usage

    machine = AlertStageMachine(
        mode=get_mode("standard"),
        confirm_action=timed_progress_action(30000, clock),
        driver=MockAnimationDriver(),
        wake_lock=ProcessWakeLock(),
        clock=clock,
        options=MachineOptions(pattern_id="guard_blink"),
    )
    machine.confirm_and_proceed()
    final_stage = await machine.wait_closed()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from ..config.loader import ControllerConfig
from ..drivers.animation import AnimationDriver
from ..models.guard_state import GuardState
from ..models.modes import AlertModeConfig
from ..models.stage import AlertSnapshot, Stage
from ..observability.metrics import metrics
from ..resources.coordinator import FeatureCoordinator, GlyphFeature
from ..resources.wake_lock import WakeLock, WakeLockSlot
from .clock import Clock, MonotonicClock
from .progress import ConfirmAction, ProgressSink
from .timers import TimerGroup

logger = logging.getLogger(__name__)

Listener = Callable[[AlertSnapshot], None]


@dataclass(frozen=True)
class MachineOptions:
    """Per-machine behaviour flags and timing constants."""

    # Behaviour
    test_mode: bool = False
    skip_confirmation: bool = False
    pattern_id: Optional[str] = None

    # Timing
    countdown_start: int = 5
    countdown_step_ms: int = 1000
    tick_ms: int = 100
    completion_grace_ms: int = 1500

    # Wake-lock
    wake_lock_tag: str = "GlyphAlerts:AnimationWakelock"
    wake_lock_max_hold_ms: int = 10 * 60 * 1000

    @classmethod
    def from_config(cls, config: ControllerConfig, **overrides) -> "MachineOptions":
        """Build options from controller config, with per-machine overrides."""
        base = cls(
            countdown_start=config.countdown_start,
            countdown_step_ms=config.countdown_step_ms,
            tick_ms=config.tick_ms,
            completion_grace_ms=config.completion_grace_ms,
            wake_lock_tag=config.wake_lock_tag,
            wake_lock_max_hold_ms=config.wake_lock_max_hold_ms,
        )
        return replace(base, **overrides)


class AlertStageMachine:
    """
    One alert life-cycle for one feature invocation.

    Construct inside a running event loop when ``skip_confirmation`` is set,
    since the machine starts its timers immediately.
    """

    def __init__(
        self,
        mode: AlertModeConfig,
        confirm_action: Optional[ConfirmAction] = None,
        driver: Optional[AnimationDriver] = None,
        wake_lock: Optional[WakeLock] = None,
        clock: Optional[Clock] = None,
        options: Optional[MachineOptions] = None,
        coordinator: Optional[FeatureCoordinator] = None,
        feature: Optional[GlyphFeature] = None,
        on_dismiss: Optional[Callable[[Stage], None]] = None,
        name: Optional[str] = None,
    ):
        self.mode = mode
        self.confirm_action = confirm_action
        self.driver = driver
        self.clock: Clock = clock or MonotonicClock()
        self.options = options or MachineOptions()
        if self.options.skip_confirmation:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                raise RuntimeError(
                    "skip_confirmation starts timers immediately and needs a running event loop"
                ) from None
        self.coordinator = coordinator
        self.feature = feature
        self.on_dismiss = on_dismiss
        self.name = name or (feature.value if feature else "alert")

        self._wake_lock: Optional[WakeLockSlot] = None
        if wake_lock is not None:
            self._wake_lock = WakeLockSlot(
                wake_lock,
                tag=self.options.wake_lock_tag,
                max_hold_ms=self.options.wake_lock_max_hold_ms,
            )

        self._timers = TimerGroup(owner=self.name)
        self._listeners: List[Listener] = []
        self._closed = asyncio.Event()

        self._stage = Stage.CONFIRMATION
        self._countdown = 0
        self._guard_state = GuardState(mode=mode)
        self._action_progress = 0.0
        self._completing = False
        self._sink: Optional[ProgressSink] = None
        self._owns_lights = False
        self._active_started_ms: Optional[float] = None
        self._ended_ms: Optional[float] = None
        self._disposed = False

        metrics.gauge("machines_active").inc()
        self._log(logging.INFO, f"Created in {self._stage.value} ({mode.name})")

        if self.options.skip_confirmation:
            if self.options.test_mode:
                self._enter_countdown()
            else:
                self._enter_active()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def countdown_remaining(self) -> int:
        return self._countdown

    @property
    def guard_state(self) -> GuardState:
        return self._guard_state

    @property
    def wake_lock_held(self) -> bool:
        return self._wake_lock is not None and self._wake_lock.held

    @property
    def elapsed_ms(self) -> float:
        """Time since the Active stage began, frozen once the machine ends."""
        if self._active_started_ms is None:
            return 0.0
        end = self._ended_ms if self._ended_ms is not None else self.clock.now_ms()
        return max(0.0, end - self._active_started_ms)

    def snapshot(self) -> AlertSnapshot:
        return AlertSnapshot(
            stage=self._stage,
            countdown_remaining=self._countdown,
            guard_state=self._guard_state,
            action_progress=self._action_progress,
            is_complete=self._completing,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for snapshots.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait_closed(self) -> Stage:
        """Wait for a terminal stage and return it."""
        await self._closed.wait()
        return self._stage

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def confirm_and_proceed(self) -> None:
        """User accepted the confirmation prompt; start the countdown."""
        if self._stage is not Stage.CONFIRMATION:
            self._log(logging.DEBUG, f"confirm ignored in {self._stage.value}")
            return
        self._enter_countdown()

    def cancel(self) -> None:
        """Abort from any non-terminal stage."""
        if self._stage.is_terminal:
            self._log(logging.DEBUG, f"cancel ignored in {self._stage.value}")
            return
        self._terminate(Stage.CANCELLED, reason="cancelled")

    def stop(self) -> None:
        """Stop a running alert. Outside ACTIVE this behaves like ``cancel``."""
        if self._stage.is_terminal:
            self._log(logging.DEBUG, f"stop ignored in {self._stage.value}")
            return
        self._terminate(Stage.CANCELLED, reason="stopped")

    def dispose(self) -> None:
        """
        Tear the machine down, whatever its stage.

        Safe to call more than once.
        """
        if not self._stage.is_terminal:
            self._terminate(Stage.CANCELLED, reason="disposed")
        if self._wake_lock is not None:
            self._wake_lock.release()
        self._release_lights()
        self._timers.cancel_all()
        self._listeners.clear()
        if not self._disposed:
            self._disposed = True
            self._log(logging.DEBUG, "Disposed")

    # ------------------------------------------------------------------
    # Countdown
    # ------------------------------------------------------------------

    def _enter_countdown(self) -> None:
        self._countdown = self.options.countdown_start
        self._set_stage(Stage.COUNTDOWN)
        if self._stage is not Stage.COUNTDOWN:
            return
        self._timers.start("countdown", self._run_countdown())

    async def _run_countdown(self) -> None:
        while self._stage is Stage.COUNTDOWN:
            await self.clock.sleep(self.options.countdown_step_ms)
            if self._stage is not Stage.COUNTDOWN:
                return

            self._countdown = max(0, self._countdown - 1)
            if self._countdown > 0:
                self._emit()
                continue

            if self.options.test_mode:
                self._log(logging.INFO, "Test mode: completing without alert")
                self._terminate(Stage.COMPLETED, reason="test mode")
            else:
                self._enter_active()
            return

    # ------------------------------------------------------------------
    # Active
    # ------------------------------------------------------------------

    def _enter_active(self) -> None:
        self._countdown = 0
        self._active_started_ms = self.clock.now_ms()
        self._guard_state = GuardState(mode=self.mode, is_active=True).update_from_elapsed(0)

        if self._wake_lock is not None and not self._wake_lock.acquire():
            self._log(logging.WARNING, "Running without wake-lock")

        self._owns_lights = self._claim_lights()
        self._start_driver()

        self._set_stage(Stage.ACTIVE)
        # A listener may have stopped the machine on the Active snapshot
        if self._stage is not Stage.ACTIVE:
            return

        self._timers.start("tick", self._run_active_ticks())
        if self.confirm_action is not None:
            self._sink = ProgressSink(self._on_progress, name=self.name)
            self._timers.start("action", self._run_confirm_action(self._sink))

    def _claim_lights(self) -> bool:
        if self.coordinator is None or self.feature is None:
            return True
        if self.coordinator.try_acquire(self.feature):
            return True
        owner = self.coordinator.current_owner
        self._log(
            logging.WARNING,
            f"Lights owned by {owner.value if owner else 'another feature'}, animation skipped",
        )
        return False

    def _release_lights(self) -> None:
        if self._owns_lights and self.coordinator is not None and self.feature is not None:
            self.coordinator.release(self.feature)
        self._owns_lights = False

    def _start_driver(self) -> None:
        pattern_id = self.options.pattern_id
        if self.driver is None or not pattern_id or not self._owns_lights:
            return
        try:
            self.driver.start(pattern_id, self.mode.total_duration_ms)
        except Exception as e:
            metrics.increment("driver_failures_total", labels={"operation": "start"})
            self._log(logging.WARNING, f"Animation '{pattern_id}' failed to start: {e}")

    def _stop_driver(self) -> None:
        if self.driver is None or not self._owns_lights:
            return
        try:
            self.driver.stop()
        except Exception as e:
            metrics.increment("driver_failures_total", labels={"operation": "stop"})
            self._log(logging.WARNING, f"Animation stop failed: {e}")

    async def _run_active_ticks(self) -> None:
        while self._stage is Stage.ACTIVE:
            await self.clock.sleep(self.options.tick_ms)
            if self._stage is not Stage.ACTIVE:
                return
            self._guard_state = self._guard_state.update_from_elapsed(self.elapsed_ms)
            # Without a confirm-action the alert duration itself is the work
            if self.confirm_action is None and self._guard_state.progress >= 1.0:
                self._on_progress(1.0)
            self._emit()

    async def _run_confirm_action(self, sink: ProgressSink) -> None:
        try:
            await self.confirm_action(sink)
        except Exception as e:
            if self._stage is not Stage.ACTIVE or self._completing:
                self._log(logging.DEBUG, f"Confirm-action error after completion ignored: {e}")
                return
            metrics.increment("confirm_action_failures_total")
            self._log(logging.ERROR, f"Confirm-action failed: {e}", exc_info=True)
            self._terminate(Stage.CANCELLED, reason="confirm-action failed")
            return

        if self._stage is Stage.ACTIVE and not self._completing:
            self._log(logging.DEBUG, "Confirm-action returned, treating as complete")
            self._on_progress(1.0)

    def _on_progress(self, value: float) -> None:
        if self._stage is not Stage.ACTIVE or self._completing:
            return
        self._action_progress = value
        if value >= 1.0:
            self._completing = True
            if self._sink is not None:
                self._sink.close()
            self._log(logging.INFO, f"Complete, closing in {self.options.completion_grace_ms}ms")
            self._timers.start("grace", self._complete_after_grace())
        self._emit()

    async def _complete_after_grace(self) -> None:
        await self.clock.sleep(self.options.completion_grace_ms)
        if self._stage is Stage.ACTIVE:
            self._terminate(Stage.COMPLETED, reason="complete")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _terminate(self, stage: Stage, reason: str) -> None:
        if self._stage.is_terminal:
            return

        if stage is Stage.CANCELLED and self._stage is Stage.ACTIVE:
            self._stop_driver()
        if self._wake_lock is not None:
            self._wake_lock.release()
        self._release_lights()
        self._timers.cancel_all()
        if self._sink is not None:
            self._sink.close()

        if self._active_started_ms is not None:
            self._ended_ms = self.clock.now_ms()
        self._log(logging.DEBUG, f"Terminating: {reason}")
        self._set_stage(stage)

        metrics.gauge("machines_active").dec()
        self._closed.set()

        if self.on_dismiss is not None:
            try:
                self.on_dismiss(stage)
            except Exception:
                self._log(logging.ERROR, "on_dismiss callback failed", exc_info=True)

    def _set_stage(self, stage: Stage) -> None:
        previous, self._stage = self._stage, stage
        metrics.increment("stage_transitions_total", labels={"stage": stage.value})
        self._log(logging.INFO, f"{previous.value} -> {stage.value}")
        self._emit()

    def _emit(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                self._log(logging.ERROR, "Snapshot listener failed", exc_info=True)

    def _log(self, level: int, message: str, exc_info: bool = False) -> None:
        logger.log(
            level,
            f"[{self.name}] {message}",
            exc_info=exc_info,
            extra={"feature": self.name, "stage": self._stage.value},
        )

    def __repr__(self) -> str:
        return f"AlertStageMachine(name={self.name!r}, stage={self._stage.value})"
