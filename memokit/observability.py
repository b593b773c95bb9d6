"""
memokit Observability

Structured logging for the cache and memoization layers.

Modules log through ``logging.getLogger(__name__)`` and attach structured
fields with ``extra={"operation": ..., "context": {...}}``. ``configure_logging``
installs a single ``StructuredHandler`` on the ``memokit`` logger that renders
each record as one JSON object per line (or a plain text line).

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                     memokit modules                      │
    │  logger.debug("Evicted entry", extra={"context": {...}}) │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │             "memokit" logger (level from config)         │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │              StructuredHandler (json | text)             │
    └─────────────────────────────────────────────────────────┘

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "memokit"


class LogLevel(Enum):
    """Log severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class LogFormat(Enum):
    """Rendering of structured log events."""
    JSON = "json"
    TEXT = "text"


@dataclass
class LogEvent:
    """Structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    operation: str = ""
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding empty values."""
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None and v != "" and v != {}}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def to_text(self) -> str:
        """Render as a single human-readable line."""
        line = f"{self.timestamp} {self.level.upper():<8} {self.logger}: {self.message}"
        if self.operation:
            line += f" [{self.operation}]"
        if self.context:
            line += " " + " ".join(f"{k}={v!r}" for k, v in self.context.items())
        if self.exception:
            line += "\n" + self.exception
        return line


class StructuredHandler(logging.Handler):
    """Logging handler that outputs structured events."""

    def __init__(self, stream: Any = None, fmt: LogFormat = LogFormat.JSON):
        super().__init__()
        self.stream = stream or sys.stderr
        self.fmt = fmt

    def build_event(self, record: logging.LogRecord) -> LogEvent:
        event = LogEvent(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname.lower(),
            logger=record.name,
            message=record.getMessage(),
            operation=getattr(record, "operation", ""),
            context=dict(getattr(record, "context", {}) or {}),
        )
        if record.exc_info:
            event.exception = "".join(traceback.format_exception(*record.exc_info))
        return event

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = self.build_event(record)
            rendered = event.to_json() if self.fmt == LogFormat.JSON else event.to_text()
            self.stream.write(rendered + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)


def configure_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    stream: Any = None,
) -> logging.Logger:
    """
    Attach a StructuredHandler to the ``memokit`` logger.

    ``level`` and ``fmt`` default to ``observability.log_level`` and
    ``observability.log_format`` from the active configuration. Calling this
    again replaces the previously installed handler.
    """
    if level is None or fmt is None:
        from memokit.config import get_config

        config = get_config()
        level = level if level is not None else config.get("observability.log_level")
        fmt = fmt if fmt is not None else config.get("observability.log_format")

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, LogLevel(level.lower()).value.upper()))

    for handler in list(root.handlers):
        if isinstance(handler, StructuredHandler):
            root.removeHandler(handler)

    root.addHandler(StructuredHandler(stream=stream, fmt=LogFormat(fmt.lower())))
    return root
