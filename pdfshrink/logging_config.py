"""
Logging Configuration: one stderr handler, text or JSON lines.

Compression log records carry context through ``extra=``:
``request_id`` ties every line of one upload together, ``preset`` and
``codec`` name the candidate being tried, ``handle`` names a scratch file.

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: json, text (default: text)

## Usage

    from pdfshrink.logging_config import setup_logging

    setup_logging()  # once, before the server or a CLI command runs
    logger.info("Candidate ok", extra={"request_id": rid, "preset": "high"})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List

CONTEXT_FIELDS = ("request_id", "tier", "preset", "codec", "handle")

# Third-party loggers that repeat what our own request and codec lines say
QUIET_LOGGERS = ("werkzeug", "pikepdf", "flask_cors")


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, context fields flattened in."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """
    Terminal output:

        12:34:56 INFO    orchestrator  (a1b2c3d4 high/ghostscript) Winner: high
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = False):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:7}"
        if self.color:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"
        source = record.name.rsplit(".", 1)[-1][:13]

        tags: List[str] = []
        ctx = _context(record)
        if "request_id" in ctx:
            tags.append(str(ctx["request_id"]))
        if "preset" in ctx:
            tags.append("/".join(str(ctx[k]) for k in ("preset", "codec") if k in ctx))
        prefix = f"({' '.join(tags)}) " if tags else ""

        line = f"{stamp} {level} {source:13} {prefix}{record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: str | None = None, format_type: str | None = None) -> None:
    """
    Install the root handler. Safe to call again (e.g. ``serve --debug``).

    Args:
        level: Log level name; defaults to LOG_LEVEL or INFO
        format_type: ``json`` or ``text``; defaults to LOG_FORMAT or text
    """
    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    fmt = (format_type or os.environ.get("LOG_FORMAT") or "text").lower()

    if fmt == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = HumanFormatter(color=sys.stderr.isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
