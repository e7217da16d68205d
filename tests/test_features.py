"""
Tests for the feature catalog and the timed confirm-action.
"""

import asyncio

import pytest

from glyph_alerts.config.loader import ControllerConfig
from glyph_alerts.engine.progress import ProgressSink
from glyph_alerts.features.catalog import (
    GUARD_PATTERN,
    PEEK_PATTERN,
    alert_features,
    build_machine,
    feature_profile,
    timed_progress_action,
)
from glyph_alerts.models.modes import INTENSE
from glyph_alerts.models.stage import Stage
from glyph_alerts.resources.coordinator import FeatureCoordinator, GlyphFeature
from glyph_alerts.settings.store import InMemorySettingsStore


@pytest.fixture
def settings():
    return InMemorySettingsStore()


@pytest.fixture
async def build(clock, wake_lock, driver, settings):
    built = []

    def factory(feature, **kwargs):
        kwargs.setdefault("driver", driver)
        kwargs.setdefault("wake_lock", wake_lock)
        machine = build_machine(
            feature, kwargs.pop("settings", settings), clock=clock, config=ControllerConfig(), **kwargs
        )
        built.append(machine)
        return machine

    yield factory

    for machine in built:
        machine.dispose()
    await clock.settle()


class TestFeatureProfiles:
    """Settings are mapped onto each feature's mode and pattern."""

    def test_guard_profile(self, settings):
        profile = feature_profile(GlyphFeature.GLYPH_GUARD, settings)

        assert profile.mode.name == "Standard"
        assert profile.mode.total_duration_ms == 30000
        assert profile.pattern_id == GUARD_PATTERN
        assert profile.needs_confirmation

    def test_guard_sound_disabled(self):
        settings = InMemorySettingsStore({"glyph_guard_sound_enabled": False})

        assert feature_profile(GlyphFeature.GLYPH_GUARD, settings).mode.has_sound is False

    def test_low_battery_profile(self):
        settings = InMemorySettingsStore({"low_battery_duration": 8000, "low_battery_animation_id": "C4"})

        profile = feature_profile(GlyphFeature.LOW_BATTERY, settings)

        assert profile.mode.total_duration_ms == 8000
        assert profile.pattern_id == "C4"
        assert not profile.needs_confirmation

    def test_pulse_lock_profile(self, settings):
        profile = feature_profile(GlyphFeature.PULSE_LOCK, settings)

        assert profile.mode.total_duration_ms == 5000
        assert profile.pattern_id == "C1"

    def test_power_peek_profile(self, settings):
        profile = feature_profile(GlyphFeature.POWER_PEEK, settings)

        assert profile.mode.total_duration_ms == 3000
        assert profile.mode.has_sound is False
        assert profile.pattern_id == PEEK_PATTERN

    def test_alert_features(self):
        assert alert_features() == [
            GlyphFeature.GLYPH_GUARD,
            GlyphFeature.LOW_BATTERY,
            GlyphFeature.PULSE_LOCK,
            GlyphFeature.POWER_PEEK,
        ]

    @pytest.mark.parametrize("feature", [GlyphFeature.BATTERY_STORY, GlyphFeature.MANUAL_DEMO])
    def test_features_without_alerts(self, feature, settings):
        assert feature not in alert_features()
        with pytest.raises(ValueError):
            feature_profile(feature, settings)


class TestTimedProgressAction:
    """Tests for the clock-driven confirm-action."""

    async def test_reports_until_duration(self, clock):
        values = []
        action = timed_progress_action(1000, clock, tick_ms=250)
        task = asyncio.ensure_future(action(ProgressSink(values.append)))

        await clock.advance(1000)

        assert task.done()
        assert values == [0.0, 0.25, 0.5, 0.75, 1.0]

    async def test_stops_when_sink_closed(self, clock):
        values = []
        sink = ProgressSink(values.append)
        task = asyncio.ensure_future(timed_progress_action(1000, clock, tick_ms=100)(sink))

        await clock.advance(200)
        sink.close()
        await clock.advance(100)

        assert task.done()
        assert values == [0.0, 0.1, 0.2]


class TestBuildMachine:
    """Machines built per feature."""

    async def test_guard_waits_for_confirmation(self, build):
        machine = build(GlyphFeature.GLYPH_GUARD)

        assert machine.stage is Stage.CONFIRMATION
        assert machine.feature is GlyphFeature.GLYPH_GUARD
        assert machine.options.pattern_id == GUARD_PATTERN

    async def test_guard_full_cycle(self, build, clock, wake_lock, driver):
        machine = build(GlyphFeature.GLYPH_GUARD, mode_override=INTENSE.with_duration(2000))
        machine.confirm_and_proceed()

        await clock.advance(5000)
        assert machine.stage is Stage.ACTIVE
        assert driver.calls == [("start", GUARD_PATTERN, 2000)]

        await clock.advance(2000)
        assert machine.snapshot().is_complete

        await clock.advance(1500)
        assert machine.stage is Stage.COMPLETED
        assert (wake_lock.acquire_calls, wake_lock.release_calls) == (1, 1)

    async def test_low_battery_starts_active(self, build, clock, driver):
        machine = build(GlyphFeature.LOW_BATTERY)

        assert machine.stage is Stage.ACTIVE
        assert driver.calls == [("start", "C1", 10000)]

        await clock.advance(11500)
        assert machine.stage is Stage.COMPLETED

    async def test_explicit_confirmation(self, build):
        machine = build(GlyphFeature.POWER_PEEK, skip_confirmation=False)

        assert machine.stage is Stage.CONFIRMATION

    async def test_test_mode(self, build, clock, driver, wake_lock):
        machine = build(GlyphFeature.PULSE_LOCK, test_mode=True)

        assert machine.stage is Stage.COUNTDOWN

        await clock.advance(5000)
        assert machine.stage is Stage.COMPLETED
        assert driver.calls == []
        assert wake_lock.acquire_calls == 0

    async def test_settings_read_once(self, build, settings, clock):
        machine = build(GlyphFeature.POWER_PEEK)
        settings.set("display_duration", 60000)

        await clock.advance(4500)

        assert machine.mode.total_duration_ms == 3000
        assert machine.stage is Stage.COMPLETED

    async def test_coordinated_features(self, build, clock, driver):
        coordinator = FeatureCoordinator()
        battery = build(GlyphFeature.LOW_BATTERY, coordinator=coordinator)
        peek = build(GlyphFeature.POWER_PEEK, coordinator=coordinator, wake_lock=None)

        assert battery.stage is Stage.ACTIVE and peek.stage is Stage.ACTIVE
        assert driver.start_count == 1
        assert coordinator.current_owner is GlyphFeature.LOW_BATTERY

    async def test_on_dismiss(self, build, clock):
        dismissed = []
        machine = build(GlyphFeature.POWER_PEEK, on_dismiss=dismissed.append)

        machine.stop()

        assert dismissed == [Stage.CANCELLED]
