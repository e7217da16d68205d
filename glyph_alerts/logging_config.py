"""
Logging Configuration: structured logging setup for the CLI.

- JSON lines for machine consumption
- Colored single-line output for a terminal

Machines attach ``feature`` and ``stage`` as log record extras; the JSON
formatter emits them as fields.

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: json, text (default: text)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict

EXTRA_FIELDS = ("feature", "stage")


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record:
    {"ts": "...", "level": "...", "logger": "...", "message": "...", "stage": "..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = str(getattr(value, "value", value))

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class HumanFormatter(logging.Formatter):
    """
    12:34:56 INFO    [machine        ] Message
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.now().strftime("%H:%M:%S")

        level = f"{record.levelname:7}"
        if sys.stderr.isatty():
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        module = record.name.split(".")[-1][:15]
        line = f"{time_str} {level} [{module:15}] {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name. Defaults to LOG_LEVEL or INFO.
        format_type: ``json`` or ``text``. Defaults to LOG_FORMAT or text.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = (format_type or os.environ.get("LOG_FORMAT", "text")).lower()
    numeric_level = getattr(logging, log_level, logging.INFO)

    formatter: logging.Formatter = JSONFormatter() if log_format == "json" else HumanFormatter()

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(numeric_level)
    root.addHandler(handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured: level={log_level}, format={log_format}"
    )
