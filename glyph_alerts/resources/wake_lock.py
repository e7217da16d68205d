"""
Wake Lock: exclusive handle keeping the display awake during an alert.

Two layers live here:

- ``WakeLock`` is the OS-facing interface (acquire/release/is_held).
  ``ProcessWakeLock`` is the in-process implementation: one holder at a
  time across the whole process, with a maximum hold time after which the
  handle lapses, like the platform lock it stands in for.
- ``WakeLockSlot`` is what a stage machine owns. It pairs every acquire
  with a release, makes double-acquire and double-release no-ops, and
  absorbs resource failures as warnings.

## Usage

    slot = WakeLockSlot(ProcessWakeLock(), tag="GlyphAlerts:AnimationWakelock")
    slot.acquire()
    ...
    slot.release()
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional
from uuid import uuid4

from ..observability.metrics import metrics

logger = logging.getLogger(__name__)

DEFAULT_TAG = "GlyphAlerts:AnimationWakelock"
DEFAULT_MAX_HOLD_MS = 10 * 60 * 1000


class WakeLockError(Exception):
    """The wake-lock resource failed."""


class WakeLockUnavailable(WakeLockError):
    """Another holder owns the wake-lock."""


@dataclass(frozen=True)
class WakeLockHandle:
    """Proof of ownership returned by ``acquire``."""

    tag: str
    max_hold_ms: int
    acquired_at: float
    handle_id: str = field(default_factory=lambda: uuid4().hex[:8])


class WakeLock(ABC):
    """OS-provided exclusive wake-lock resource."""

    @abstractmethod
    def acquire(self, tag: str, max_hold_ms: int) -> WakeLockHandle:
        """Acquire the lock or raise ``WakeLockError``."""
        pass

    @abstractmethod
    def release(self, handle: WakeLockHandle) -> None:
        pass

    @abstractmethod
    def is_held(self, handle: WakeLockHandle) -> bool:
        pass


class ProcessWakeLock(WakeLock):
    """
    Process-wide exclusive wake-lock.

    All instances share one owner slot, so two machines on different
    feature cards cannot both hold it.
    """

    _lock = threading.Lock()
    _holder: Optional[WakeLockHandle] = None

    def __init__(self, time_source: Callable[[], float] = time.monotonic):
        self._time = time_source

    def acquire(self, tag: str, max_hold_ms: int = DEFAULT_MAX_HOLD_MS) -> WakeLockHandle:
        with ProcessWakeLock._lock:
            holder = ProcessWakeLock._holder
            if holder is not None and self._is_live(holder):
                raise WakeLockUnavailable(f"Wake-lock held by {holder.tag}")
            handle = WakeLockHandle(tag=tag, max_hold_ms=max_hold_ms, acquired_at=self._time())
            ProcessWakeLock._holder = handle
            return handle

    def release(self, handle: WakeLockHandle) -> None:
        with ProcessWakeLock._lock:
            if ProcessWakeLock._holder is None or ProcessWakeLock._holder.handle_id != handle.handle_id:
                raise WakeLockError(f"Handle {handle.handle_id} does not hold the wake-lock")
            ProcessWakeLock._holder = None

    def is_held(self, handle: WakeLockHandle) -> bool:
        with ProcessWakeLock._lock:
            holder = ProcessWakeLock._holder
            return (
                holder is not None
                and holder.handle_id == handle.handle_id
                and self._is_live(holder)
            )

    def _is_live(self, handle: WakeLockHandle) -> bool:
        return (self._time() - handle.acquired_at) * 1000 < handle.max_hold_ms

    @classmethod
    def reset(cls) -> None:
        """Drop any holder. Test helper."""
        with cls._lock:
            cls._holder = None


class WakeLockSlot:
    """
    One machine's claim on the wake-lock.

    Never raises: acquisition failures degrade to running without the wake
    guarantee, release failures are logged and the slot is cleared anyway.
    """

    def __init__(
        self,
        resource: WakeLock,
        tag: str = DEFAULT_TAG,
        max_hold_ms: int = DEFAULT_MAX_HOLD_MS,
    ):
        self.resource = resource
        self.tag = tag
        self.max_hold_ms = max_hold_ms
        self._handle: Optional[WakeLockHandle] = None

    @property
    def held(self) -> bool:
        if self._handle is None:
            return False
        try:
            return self.resource.is_held(self._handle)
        except Exception as e:
            logger.warning(f"Wake-lock state check failed for {self.tag}: {e}")
            return False

    def acquire(self) -> bool:
        """Acquire unless already held. Returns True if the lock is held afterwards."""
        if self.held:
            return True
        try:
            self._handle = self.resource.acquire(self.tag, self.max_hold_ms)
        except Exception as e:
            self._handle = None
            metrics.increment("wake_lock_failures_total")
            logger.warning(f"Failed to acquire wake-lock {self.tag}: {e}")
            return False
        metrics.increment("wake_lock_acquired_total")
        logger.debug(f"Wake-lock acquired: {self.tag} (max {self.max_hold_ms}ms)")
        return True

    def release(self) -> bool:
        """Release if held. Returns True if a release was performed."""
        handle, self._handle = self._handle, None
        if handle is None:
            return False
        try:
            if not self.resource.is_held(handle):
                logger.debug(f"Wake-lock {self.tag} already lapsed")
                return False
            self.resource.release(handle)
        except Exception as e:
            metrics.increment("wake_lock_failures_total")
            logger.warning(f"Failed to release wake-lock {self.tag}: {e}")
            return False
        metrics.increment("wake_lock_released_total")
        logger.debug(f"Wake-lock released: {self.tag}")
        return True
