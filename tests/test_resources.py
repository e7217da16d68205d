"""
Tests for the wake-lock resource, the machine-side wake-lock slot and the
feature coordinator.
"""

import pytest

from glyph_alerts.observability.metrics import metrics
from glyph_alerts.resources.coordinator import FeatureCoordinator, GlyphFeature
from glyph_alerts.resources.wake_lock import (
    ProcessWakeLock,
    WakeLockError,
    WakeLockSlot,
    WakeLockUnavailable,
)

from .conftest import RecordingWakeLock


class FakeTime:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestProcessWakeLock:
    """Tests for the process-wide wake-lock."""

    def test_acquire_and_release(self):
        lock = ProcessWakeLock()
        handle = lock.acquire("test", 1000)

        assert lock.is_held(handle)

        lock.release(handle)

        assert not lock.is_held(handle)

    def test_exclusive_across_instances(self):
        first = ProcessWakeLock()
        second = ProcessWakeLock()
        first.acquire("a", 60000)

        with pytest.raises(WakeLockUnavailable):
            second.acquire("b", 60000)

    def test_handle_lapses_after_max_hold(self):
        now = FakeTime()
        lock = ProcessWakeLock(time_source=now)
        handle = lock.acquire("test", 1000)

        now.now += 0.999
        assert lock.is_held(handle)

        now.now += 0.002
        assert not lock.is_held(handle)

        # A lapsed holder no longer blocks others
        other = lock.acquire("other", 1000)
        assert lock.is_held(other)

    def test_release_with_stale_handle_raises(self):
        lock = ProcessWakeLock()
        handle = lock.acquire("test", 1000)
        lock.release(handle)

        with pytest.raises(WakeLockError):
            lock.release(handle)


class TestWakeLockSlot:
    """Tests for the pairing guard used by machines."""

    def test_double_acquire_is_noop(self):
        resource = RecordingWakeLock()
        slot = WakeLockSlot(resource)

        assert slot.acquire()
        assert slot.acquire()

        assert resource.acquire_calls == 1
        assert slot.held

    def test_double_release_is_noop(self):
        resource = RecordingWakeLock()
        slot = WakeLockSlot(resource)
        slot.acquire()

        assert slot.release() is True
        assert slot.release() is False

        assert resource.release_calls == 1
        assert not slot.held

    def test_release_without_acquire(self):
        resource = RecordingWakeLock()

        assert WakeLockSlot(resource).release() is False
        assert resource.release_calls == 0

    def test_acquire_failure_is_absorbed(self):
        resource = RecordingWakeLock(fail_acquire=True)
        slot = WakeLockSlot(resource)

        assert slot.acquire() is False
        assert not slot.held
        assert metrics.counter("wake_lock_failures_total").get() == 1

    def test_release_failure_is_absorbed(self):
        resource = RecordingWakeLock(fail_release=True)
        slot = WakeLockSlot(resource)
        slot.acquire()

        assert slot.release() is False
        assert not slot.held
        assert metrics.counter("wake_lock_failures_total").get() == 1

    def test_lapsed_lock_is_not_released(self):
        now = FakeTime()
        slot = WakeLockSlot(ProcessWakeLock(time_source=now), max_hold_ms=500)
        slot.acquire()
        now.now += 1

        assert slot.held is False
        assert slot.release() is False

    def test_metrics(self):
        slot = WakeLockSlot(RecordingWakeLock())
        slot.acquire()
        slot.release()

        assert metrics.counter("wake_lock_acquired_total").get() == 1
        assert metrics.counter("wake_lock_released_total").get() == 1

    def test_uses_tag_and_max_hold(self):
        slot = WakeLockSlot(ProcessWakeLock(), tag="Custom:Tag", max_hold_ms=1234)
        slot.acquire()

        assert slot._handle.tag == "Custom:Tag"
        assert slot._handle.max_hold_ms == 1234


class TestFeatureCoordinator:
    """Tests for single-active-animation coordination."""

    def test_first_claim_wins(self):
        coordinator = FeatureCoordinator()

        assert coordinator.try_acquire(GlyphFeature.GLYPH_GUARD)
        assert not coordinator.try_acquire(GlyphFeature.POWER_PEEK)
        assert coordinator.current_owner is GlyphFeature.GLYPH_GUARD

    def test_owner_can_reacquire(self):
        coordinator = FeatureCoordinator()
        coordinator.try_acquire(GlyphFeature.LOW_BATTERY)

        assert coordinator.try_acquire(GlyphFeature.LOW_BATTERY)

    def test_only_owner_releases(self):
        coordinator = FeatureCoordinator()
        coordinator.try_acquire(GlyphFeature.PULSE_LOCK)

        assert coordinator.release(GlyphFeature.GLYPH_GUARD) is False
        assert coordinator.current_owner is GlyphFeature.PULSE_LOCK

        assert coordinator.release(GlyphFeature.PULSE_LOCK) is True
        assert coordinator.current_owner is None

    def test_free_after_release(self):
        coordinator = FeatureCoordinator()
        coordinator.try_acquire(GlyphFeature.BATTERY_STORY)
        coordinator.release(GlyphFeature.BATTERY_STORY)

        assert coordinator.try_acquire(GlyphFeature.MANUAL_DEMO)
