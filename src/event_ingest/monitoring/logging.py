"""Structured logging with context injection.

Features:
- console handler (text or JSON lines)
- optional file handler for the run
- context injection (run_id/source_id/stage) through a LoggerAdapter
"""

from __future__ import annotations

import json
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

ROOT_LOGGER_NAME = "event_ingest"

_CONTEXT_FIELDS = ("run_id", "source_id", "stage")

# ---------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Render the record as a single JSON line."""
        base = {
            "ts": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in _CONTEXT_FIELDS:
            if hasattr(record, k):
                base[k] = getattr(record, k)

        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)

        payload = getattr(record, "payload", None)
        if isinstance(payload, dict):
            base["payload"] = payload

        return json.dumps(base, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Format log records as human-readable text."""

    def format(self, record: logging.LogRecord) -> str:
        """Render the record as ``LEVEL logger [ctx] message``."""
        parts = [
            time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.created)),
            record.levelname,
            record.name,
        ]

        ctx = []
        for k in _CONTEXT_FIELDS:
            value = getattr(record, k, None)
            if value:
                ctx.append(f"{k.split('_')[0]}={value}")
        if ctx:
            parts.append("[" + " ".join(ctx) + "]")

        parts.append(record.getMessage())
        s = " ".join(parts)

        if record.exc_info:
            s += "\n" + self.formatException(record.exc_info)

        return s


# ---------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingOptions:
    """Configure logging behavior for runs."""

    level: str = "INFO"
    json_logs: bool = False
    log_file: Path | None = None
    enable_console: bool = True


def setup_logging(options: LoggingOptions | None = None) -> logging.Logger:
    """
    Configure the package logger.

    Handlers installed by a previous call are replaced, so calling this
    more than once never duplicates output.
    """
    options = options or LoggingOptions()
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, options.level.upper(), logging.INFO))
    logger.propagate = False

    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    fmt = JsonFormatter() if options.json_logs else TextFormatter()

    if options.enable_console:
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(logger.level)
        ch.setFormatter(fmt)
        logger.addHandler(ch)

    if options.log_file:
        Path(options.log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(options.log_file, encoding="utf-8")
        fh.setLevel(logger.level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


# ---------------------------------------------------------------------
# Context injection
# ---------------------------------------------------------------------


class ContextAdapter(logging.LoggerAdapter):
    """Inject context fields into log records."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Merge adapter context with any per-call ``extra``."""
        extra = kwargs.get("extra", {})
        merged = dict(self.extra)
        merged.update(extra)
        kwargs["extra"] = merged
        return msg, kwargs


def with_context(
    logger: logging.Logger,
    *,
    run_id: str | None = None,
    source_id: str | None = None,
    stage: str | None = None,
) -> ContextAdapter:
    """Create a context adapter with run, source, and stage info."""
    extra: dict[str, Any] = {}
    if run_id:
        extra["run_id"] = run_id
    if source_id:
        extra["source_id"] = source_id
    if stage:
        extra["stage"] = stage
    return ContextAdapter(logger, extra)
