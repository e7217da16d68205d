"""
Feature Catalog: builds a stage machine for each alert feature.

Each feature reads its settings once, when its machine is built:

| Feature     | Mode                        | Pattern                    | Confirmation |
|-------------|-----------------------------|----------------------------|--------------|
| GLYPH_GUARD | configured preset+duration  | guard_blink                | yes          |
| LOW_BATTERY | Standard, configured length | configured animation id    | no           |
| PULSE_LOCK  | Standard, configured length | configured animation id    | no           |
| POWER_PEEK  | Stealth, display duration   | battery_peek               | no           |

BATTERY_STORY and MANUAL_DEMO only take part in light coordination; they
have no alert life-cycle of their own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..config.loader import ControllerConfig, get_config
from ..drivers.animation import AnimationDriver
from ..engine import timing
from ..engine.clock import Clock, MonotonicClock
from ..engine.machine import AlertStageMachine, MachineOptions
from ..engine.progress import ConfirmAction, ProgressSink
from ..models.modes import STANDARD, STEALTH, AlertModeConfig
from ..models.stage import Stage
from ..resources.coordinator import FeatureCoordinator, GlyphFeature
from ..resources.wake_lock import WakeLock
from ..settings.store import SettingsStore

logger = logging.getLogger(__name__)

GUARD_PATTERN = "guard_blink"
PEEK_PATTERN = "battery_peek"


@dataclass(frozen=True)
class FeatureProfile:
    """What a feature contributes to its machine."""

    mode: AlertModeConfig
    pattern_id: Optional[str]
    needs_confirmation: bool


def timed_progress_action(duration_ms: int, clock: Clock, tick_ms: int = 100) -> ConfirmAction:
    """
    Confirm-action that reports elapsed/duration until the duration has passed.

    Reports 0.0 straight away and 1.0 once ``duration_ms`` of clock time
    has elapsed.
    """
    duration_ms = int(timing.sanitize_duration(duration_ms))

    async def action(sink: ProgressSink) -> None:
        started = clock.now_ms()
        while True:
            value = timing.progress(clock.now_ms() - started, duration_ms)
            sink.report(value)
            if value >= 1.0 or sink.closed:
                return
            await clock.sleep(tick_ms)

    return action


def _guard_profile(settings: SettingsStore) -> FeatureProfile:
    mode = settings.glyph_guard_mode()
    if mode.has_sound and not settings.glyph_guard_sound_enabled():
        mode = mode.model_copy(update={"has_sound": False})
    return FeatureProfile(mode=mode, pattern_id=GUARD_PATTERN, needs_confirmation=True)


def _low_battery_profile(settings: SettingsStore) -> FeatureProfile:
    mode = STANDARD.with_duration(settings.low_battery_duration()).model_copy(
        update={"has_sound": settings.low_battery_audio_enabled()}
    )
    return FeatureProfile(
        mode=mode,
        pattern_id=settings.low_battery_animation_id(),
        needs_confirmation=False,
    )


def _pulse_lock_profile(settings: SettingsStore) -> FeatureProfile:
    mode = STANDARD.with_duration(settings.pulse_lock_duration()).model_copy(
        update={"has_sound": settings.pulse_lock_audio_enabled()}
    )
    return FeatureProfile(
        mode=mode,
        pattern_id=settings.pulse_lock_animation_id(),
        needs_confirmation=False,
    )


def _power_peek_profile(settings: SettingsStore) -> FeatureProfile:
    return FeatureProfile(
        mode=STEALTH.with_duration(settings.display_duration()),
        pattern_id=PEEK_PATTERN,
        needs_confirmation=False,
    )


PROFILES: Dict[GlyphFeature, Callable[[SettingsStore], FeatureProfile]] = {
    GlyphFeature.GLYPH_GUARD: _guard_profile,
    GlyphFeature.LOW_BATTERY: _low_battery_profile,
    GlyphFeature.PULSE_LOCK: _pulse_lock_profile,
    GlyphFeature.POWER_PEEK: _power_peek_profile,
}


def alert_features() -> List[GlyphFeature]:
    """Features that can build an alert machine."""
    return list(PROFILES)


def feature_profile(feature: GlyphFeature, settings: SettingsStore) -> FeatureProfile:
    """
    Read a feature's profile from settings.

    Raises:
        ValueError: if the feature has no alert life-cycle
    """
    try:
        builder = PROFILES[feature]
    except KeyError:
        raise ValueError(f"{feature.value} has no alert profile") from None
    return builder(settings)


def build_machine(
    feature: GlyphFeature,
    settings: SettingsStore,
    driver: Optional[AnimationDriver] = None,
    wake_lock: Optional[WakeLock] = None,
    clock: Optional[Clock] = None,
    config: Optional[ControllerConfig] = None,
    coordinator: Optional[FeatureCoordinator] = None,
    test_mode: bool = False,
    skip_confirmation: Optional[bool] = None,
    mode_override: Optional[AlertModeConfig] = None,
    on_dismiss: Optional[Callable[[Stage], None]] = None,
) -> AlertStageMachine:
    """
    Build the stage machine for one feature invocation.

    Args:
        feature: Which feature is alerting
        settings: Store read once, here
        skip_confirmation: Defaults to the feature's own behaviour
        mode_override: Replace the configured mode (duration included)

    Returns:
        A machine in CONFIRMATION, or already past it when confirmation is skipped
    """
    profile = feature_profile(feature, settings)
    mode = mode_override or profile.mode
    clock = clock or MonotonicClock()
    config = config or get_config()

    if skip_confirmation is None:
        skip_confirmation = not profile.needs_confirmation

    options = MachineOptions.from_config(
        config,
        test_mode=test_mode,
        skip_confirmation=skip_confirmation,
        pattern_id=profile.pattern_id,
    )

    logger.debug(
        f"Building {feature.value}: mode={mode.name} duration={mode.total_duration_ms}ms "
        f"pattern={profile.pattern_id} skip_confirmation={skip_confirmation}"
    )

    return AlertStageMachine(
        mode=mode,
        confirm_action=timed_progress_action(mode.total_duration_ms, clock, config.tick_ms),
        driver=driver,
        wake_lock=wake_lock,
        clock=clock,
        options=options,
        coordinator=coordinator,
        feature=feature,
        on_dismiss=on_dismiss,
    )
