"""Log formatting for budget runs.

Library modules log through ``logging.getLogger(__name__)`` and never
attach handlers. An application (or the CLI) calls configure_logging()
once; it installs a single stderr handler on the ``prompt_budget`` logger
that stamps each record with the active run and renders it as a JSON line
or as a short console line.

Usage:
    configure_logging(level="DEBUG", style="human")

    with budget_run_context(session_id="campaign-42"):
        report = apply_budget(sections, 6000)  # log lines carry run/session
"""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Optional, TextIO, Union

from prompt_budget.core.context import get_run_id, get_session_id, get_start_time

__all__ = [
    "LOG_STYLES",
    "ROOT_LOGGER_NAME",
    "ConsoleFormatter",
    "JsonLineFormatter",
    "RunContextFilter",
    "configure_logging",
    "get_logger",
]

ROOT_LOGGER_NAME = "prompt_budget"

LOG_STYLES = ("json", "human")

# Placeholder for run/session fields outside a run
NO_RUN = "-"

_HANDLER_NAME = "prompt_budget.stderr"

_RUN_FIELDS = ("run_id", "session_id", "elapsed_ms")

# Attributes every LogRecord has; anything else came in through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
    *_RUN_FIELDS,
}


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Fields passed via ``extra=``, coerced to JSON-safe values."""
    extras = {}
    for key, value in vars(record).items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        if not isinstance(value, (str, int, float, bool, type(None), list, dict)):
            value = str(value)
        extras[key] = value
    return extras


class RunContextFilter(logging.Filter):
    """Copy the active run's IDs and elapsed time onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        start = get_start_time()
        record.run_id = get_run_id() or NO_RUN
        record.session_id = get_session_id() or NO_RUN
        record.elapsed_ms = round((time.time() - start) * 1000, 2) if start else 0.0
        return True


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record.

    Example:
        {"ts":"2024-01-15T10:30:45.123+00:00","level":"INFO",
         "logger":"prompt_budget.core.engine","msg":"Budget applied: ...",
         "run":{"id":"run_a1b2c3d4e5f6","session":"campaign-42","elapsed_ms":1.5},
         "fields":{"tokens_before":1200,"tokens_after":800,"mode":"normal"}}
    """

    def __init__(self, *, timestamps: str = "iso"):
        super().__init__()
        if timestamps not in ("iso", "unix"):
            raise ValueError(f"timestamps must be 'iso' or 'unix', got {timestamps!r}")
        self.timestamps = timestamps

    def _timestamp(self, record: logging.LogRecord) -> Union[str, float]:
        if self.timestamps == "unix":
            return record.created
        moment = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds")

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self._timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "run": {
                "id": getattr(record, "run_id", NO_RUN),
                "session": getattr(record, "session_id", NO_RUN),
                "elapsed_ms": getattr(record, "elapsed_ms", 0.0),
            },
        }
        fields = record_extras(record)
        if fields:
            entry["fields"] = fields
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short single-line format for terminals.

    ``10:30:45 WARNING run_a1b2c3d4e5f6 core.engine: Budget unsatisfiable ...``
    """

    def __init__(self, *, show_time: bool = True):
        super().__init__()
        self.show_time = show_time

    def format(self, record: logging.LogRecord) -> str:
        name = record.name.removeprefix(f"{ROOT_LOGGER_NAME}.")
        run_id = getattr(record, "run_id", NO_RUN)

        head = [record.levelname]
        if self.show_time:
            head.insert(0, time.strftime("%H:%M:%S", time.localtime(record.created)))
        if run_id != NO_RUN:
            head.append(run_id)

        line = f"{' '.join(head)} {name}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    *,
    level: Union[int, str] = logging.INFO,
    style: str = "json",
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Install the package log handler, replacing an earlier one.

    Args:
        level: Level name or number
        style: "json" for JSON lines, "human" for console lines
        stream: Destination (default: sys.stderr at call time)

    Returns:
        The ``prompt_budget`` logger
    """
    if style not in LOG_STYLES:
        raise ValueError(f"style must be one of {', '.join(LOG_STYLES)}, got {style!r}")
    if isinstance(level, str):
        level = level.upper()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.addFilter(RunContextFilter())
    handler.setFormatter(JsonLineFormatter() if style == "json" else ConsoleFormatter())

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``prompt_budget`` namespace."""
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
