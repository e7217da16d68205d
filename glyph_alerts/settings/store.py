"""
Settings Store: per-feature alert preferences.

The store is a flat key/value mapping. Typed getters apply the defaults the
features ship with and coerce whatever the backing mapping holds; a value
that cannot be coerced falls back to the default with a warning.

Settings can be seeded from a YAML mapping:

    glyph_guard_duration: 45000
    glyph_guard_mode: intense
    low_battery_animation_id: C2
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar

import yaml

from ..models.modes import AlertModeConfig, get_mode

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Keys
GLYPH_GUARD_DURATION = "glyph_guard_duration"
GLYPH_GUARD_MODE = "glyph_guard_mode"
GLYPH_GUARD_SOUND_ENABLED = "glyph_guard_sound_enabled"
LOW_BATTERY_DURATION = "low_battery_duration"
LOW_BATTERY_ANIMATION_ID = "low_battery_animation_id"
LOW_BATTERY_AUDIO_ENABLED = "low_battery_audio_enabled"
PULSE_LOCK_DURATION = "pulse_lock_duration"
PULSE_LOCK_ANIMATION_ID = "pulse_lock_animation_id"
PULSE_LOCK_AUDIO_ENABLED = "pulse_lock_audio_enabled"
DISPLAY_DURATION = "display_duration"

DEFAULTS: Dict[str, Any] = {
    GLYPH_GUARD_DURATION: 30000,
    GLYPH_GUARD_MODE: "standard",
    GLYPH_GUARD_SOUND_ENABLED: True,
    LOW_BATTERY_DURATION: 10000,
    LOW_BATTERY_ANIMATION_ID: "C1",
    LOW_BATTERY_AUDIO_ENABLED: False,
    PULSE_LOCK_DURATION: 5000,
    PULSE_LOCK_ANIMATION_ID: "C1",
    PULSE_LOCK_AUDIO_ENABLED: False,
    DISPLAY_DURATION: 3000,
}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "on", "1"):
            return True
        if lowered in ("false", "no", "off", "0"):
            return False
        raise ValueError(f"not a boolean: {value!r}")
    return bool(value)


class SettingsStore(ABC):
    """Key/value preference storage with typed feature getters."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    def _typed(self, key: str, convert: Callable[[Any], T]) -> T:
        default = DEFAULTS[key]
        raw = self.get(key, default)
        try:
            return convert(raw)
        except (TypeError, ValueError):
            logger.warning(f"Invalid setting {key}={raw!r}, using {default!r}")
            return convert(default)

    # Glyph Guard
    def glyph_guard_duration(self) -> int:
        return self._typed(GLYPH_GUARD_DURATION, int)

    def glyph_guard_mode(self) -> AlertModeConfig:
        """Configured mode preset, carrying the configured duration."""
        mode = get_mode(self._typed(GLYPH_GUARD_MODE, str))
        return mode.with_duration(self.glyph_guard_duration())

    def glyph_guard_sound_enabled(self) -> bool:
        return self._typed(GLYPH_GUARD_SOUND_ENABLED, _to_bool)

    # Low Battery
    def low_battery_duration(self) -> int:
        return self._typed(LOW_BATTERY_DURATION, int)

    def low_battery_animation_id(self) -> str:
        return self._typed(LOW_BATTERY_ANIMATION_ID, str)

    def low_battery_audio_enabled(self) -> bool:
        return self._typed(LOW_BATTERY_AUDIO_ENABLED, _to_bool)

    # Pulse Lock
    def pulse_lock_duration(self) -> int:
        return self._typed(PULSE_LOCK_DURATION, int)

    def pulse_lock_animation_id(self) -> str:
        return self._typed(PULSE_LOCK_ANIMATION_ID, str)

    def pulse_lock_audio_enabled(self) -> bool:
        return self._typed(PULSE_LOCK_AUDIO_ENABLED, _to_bool)

    # Power Peek
    def display_duration(self) -> int:
        return self._typed(DISPLAY_DURATION, int)


class InMemorySettingsStore(SettingsStore):
    """Settings held in a dict."""

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)


def load_settings_file(path: Path) -> InMemorySettingsStore:
    """
    Read a YAML mapping into an in-memory store.

    Raises:
        ValueError: if the document is not a mapping
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")

    unknown = sorted(set(data) - set(DEFAULTS))
    if unknown:
        logger.warning(f"Unknown settings in {path}: {', '.join(map(str, unknown))}")

    logger.info(f"Loaded {len(data)} settings from {path}")
    return InMemorySettingsStore(data)
