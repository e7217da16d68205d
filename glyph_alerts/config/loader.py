"""
Config Loader: controller timing and wake-lock settings from the environment.

Supports two modes:
1. Master JSON key: a single GLYPH_ALERTS_CONFIG env var with any of the fields
2. Individual keys: one GLYPH_ALERTS_* env var per field (fills what the master omits)

## Usage

    export GLYPH_ALERTS_CONFIG='{"countdown_start": 3, "completion_grace_ms": 500}'
    export GLYPH_ALERTS_TICK_MS=50

Values that do not parse are logged and the default is kept.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

MASTER_ENV_VAR = "GLYPH_ALERTS_CONFIG"
ENV_PREFIX = "GLYPH_ALERTS_"


@dataclass(frozen=True)
class ControllerConfig:
    """Timing constants shared by every stage machine."""

    # Countdown
    countdown_start: int = 5
    countdown_step_ms: int = 1000

    # Active stage
    tick_ms: int = 100
    completion_grace_ms: int = 1500

    # Wake-lock
    wake_lock_tag: str = "GlyphAlerts:AnimationWakelock"
    wake_lock_max_hold_ms: int = 10 * 60 * 1000

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config() -> ControllerConfig:
    """
    Load configuration from the master key, then individual env vars.

    Returns:
        ControllerConfig with defaults for anything not configured
    """
    values: Dict[str, Any] = {}

    master_config = os.environ.get(MASTER_ENV_VAR)
    if master_config:
        try:
            data = json.loads(master_config)
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            values.update(_coerce_all(data, source=MASTER_ENV_VAR))
            logger.info(f"Loaded configuration from {MASTER_ENV_VAR}")
        except json.JSONDecodeError as e:
            logger.error(f"Invalid {MASTER_ENV_VAR} JSON: {e}")
        except ValueError as e:
            logger.error(f"Failed to parse {MASTER_ENV_VAR}: {e}")

    for f in fields(ControllerConfig):
        if f.name in values:
            continue
        env_name = ENV_PREFIX + f.name.upper()
        raw = os.environ.get(env_name)
        if raw is None:
            continue
        coerced = _coerce(f.name, raw, source=env_name)
        if coerced is not None:
            values[f.name] = coerced

    return ControllerConfig(**values)


def _coerce_all(data: Dict[str, Any], source: str) -> Dict[str, Any]:
    result = {}
    known = {f.name for f in fields(ControllerConfig)}
    for key, raw in data.items():
        name = key.lower()
        if name not in known:
            logger.warning(f"Unknown key '{key}' in {source}")
            continue
        coerced = _coerce(name, raw, source=source)
        if coerced is not None:
            result[name] = coerced
    return result


def _coerce(name: str, raw: Any, source: str) -> Optional[Any]:
    if name == "wake_lock_tag":
        return str(raw)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-integer {name}={raw!r} from {source}")
        return None
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}={value} from {source}")
        return None
    return value


# Global config instance (loaded on first access)
_config: Optional[ControllerConfig] = None


def get_config() -> ControllerConfig:
    """Get the global configuration (loads on first access)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next access reloads it."""
    global _config
    _config = None
