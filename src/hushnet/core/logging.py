# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Log output for registry processes.

Two renderings of the same records: JSON lines for collectors and files,
and a compact coloured line for a developer terminal. Both tag each line
with the correlation id of the request (or monitor cycle) that produced it.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Fields callers attach with ``extra=`` that end up as top-level JSON keys
CONTEXT_FIELDS = ("host", "status", "latency_ms", "nonce")

# Loggers that drown registry output at INFO
QUIET_LOGGERS = ("aiohttp.access", "asyncio", "uvicorn.access")

_ANSI_LEVEL = {
    logging.DEBUG: "36",
    logging.INFO: "32",
    logging.WARNING: "33",
    logging.ERROR: "31",
    logging.CRITICAL: "35",
}
_ANSI_DIM = "90"


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def generate_correlation_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str, None, None]:
    """Tag every log line emitted inside the block with one id.

    Scopes nest; leaving a scope restores the enclosing id. A fresh id is
    generated when none is given.
    """
    cid = correlation_id or generate_correlation_id()
    token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(token)


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Registry context passed via ``extra`` (see CONTEXT_FIELDS) is lifted into
    the object, so a node's history can be filtered by ``host``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cid = get_correlation_id()
        if cid:
            entry["correlation_id"] = cid

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.levelno >= logging.WARNING:
            entry["source"] = f"{record.module}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class StandardFormatter(logging.Formatter):
    """``time LEVEL logger [cid] message`` for reading in a terminal."""

    def __init__(self, use_colors: bool = True):
        super().__init__(datefmt="%H:%M:%S")
        self.use_colors = use_colors and sys.stderr.isatty()

    def _paint(self, text: str, code: str) -> str:
        if not self.use_colors:
            return text
        return f"\033[{code}m{text}\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        level = self._paint(f"{record.levelname:<8}", _ANSI_LEVEL.get(record.levelno, "0"))
        cid = get_correlation_id()
        prefix = self._paint(f"[{cid[:8]}] ", _ANSI_DIM) if cid else ""

        line = f"{self.formatTime(record, self.datefmt)} {level} {record.name} {prefix}{record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def _use_json(log_format: str) -> bool:
    mode = log_format.lower()
    if mode in ("json", "text"):
        return mode == "json"
    # auto: JSON unless a human is watching
    return not sys.stderr.isatty()


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Install handlers on the root logger, replacing any already there.

    Unset arguments fall back to HUSHNET_LOG_LEVEL, HUSHNET_LOG_FORMAT
    ("json", "text" or auto) and HUSHNET_LOG_FILE. A log file always gets
    JSON lines whatever the console format.
    """
    from .config import get_config

    config = get_config()
    if json_format is None:
        json_format = _use_json(config.log_format)
    if log_file is None:
        log_file = config.log_file

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if json_format else StandardFormatter())
    handlers: list[logging.Handler] = [console]
    if log_file:
        to_file = logging.FileHandler(log_file)
        to_file.setFormatter(JSONFormatter())
        handlers.append(to_file)

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(_resolve_level(config.log_level if level is None else level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
