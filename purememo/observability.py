"""
PUREMEMO Observability

Structured logging for the memoization layers.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                    Library Code                          │
    │  logger.debug("cache miss", function="fib", arity=1)    │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │                      MemoLogger                          │
    │  logger "purememo.<layer>.<name>", layer, context       │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │          StructuredHandler on the "purememo" logger      │
    │           one JSON LogEvent per line, or plain text      │
    └─────────────────────────────────────────────────────────┘

Level and format follow observability.log_level / observability.log_format.

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

from purememo.config import get_config

ROOT_LOGGER_NAME = "purememo"

_watching_config = False


class LogLevel(Enum):
    """Log severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class MemoLayer(Enum):
    """PUREMEMO layers for categorization."""
    REGISTRY = "registry"
    MEMOIZE = "memoize"


@dataclass
class LogEvent:
    """Structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    layer: str = ""
    operation: str = ""
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None and v != "" and v != {}}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def to_text(self) -> str:
        parts = [self.timestamp, self.level.upper(), self.logger, self.message]
        parts.extend(f"{k}={v}" for k, v in self.context.items())
        line = " ".join(str(p) for p in parts)
        if self.exception:
            line += "\n" + self.exception
        return line


class StructuredHandler(logging.Handler):
    """Logging handler that outputs structured JSON or text lines."""

    def __init__(self, stream: Any = None, fmt: str = "json"):
        super().__init__()
        self.stream = stream or sys.stderr
        self.fmt = fmt

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEvent(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                level=record.levelname.lower(),
                logger=record.name,
                message=record.getMessage(),
                layer=getattr(record, "layer", ""),
                operation=getattr(record, "operation", ""),
                context=getattr(record, "context", {}),
            )

            if record.exc_info:
                event.exception = "".join(traceback.format_exception(*record.exc_info))

            line = event.to_text() if self.fmt == "text" else event.to_json()
            self.stream.write(line + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)


def _resolve_level(name: str) -> int:
    """Numeric level for a configured name, WARNING when unrecognized."""
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.WARNING


def configure_logging(stream: Any = None) -> logging.Logger:
    """
    Attach the structured handler to the "purememo" logger and apply
    the configured level and format. Safe to call repeatedly.
    """
    obs = get_config().observability
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(_resolve_level(obs.log_level.get()))

    handler = next((h for h in root.handlers if isinstance(h, StructuredHandler)), None)
    if handler is None:
        handler = StructuredHandler(stream)
        root.addHandler(handler)
    elif stream is not None:
        handler.stream = stream
    handler.fmt = obs.log_format.get()

    global _watching_config
    if not _watching_config:
        obs.log_level.on_change(lambda old, new: configure_logging())
        obs.log_format.on_change(lambda old, new: configure_logging())
        _watching_config = True
    return root


class MemoLogger:
    """
    Structured logger for PUREMEMO components.

    Every event carries its layer and keyword context.
    """

    def __init__(self, name: str, layer: MemoLayer):
        self.name = name
        self.layer = layer
        self._logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{layer.value}.{name}")

    def is_enabled_for(self, level: LogLevel) -> bool:
        return self._logger.isEnabledFor(getattr(logging, level.value.upper()))

    def _log(
        self,
        level: int,
        message: str,
        operation: str = "",
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        extra = {
            "layer": self.layer.value,
            "operation": operation,
            "context": context,
        }
        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **context: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, message, **context)

    def error(self, message: str, exc_info: bool = False, **context: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, message, exc_info=exc_info, **context)


def get_logger(name: str, layer: MemoLayer) -> MemoLogger:
    """Get a logger for a PUREMEMO component."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not any(isinstance(h, StructuredHandler) for h in root.handlers):
        configure_logging()
    return MemoLogger(name, layer)


def describe_callable(fn: Any) -> str:
    """Readable name for a function in log context."""
    module = getattr(fn, "__module__", None)
    qualname = getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None)
    if qualname is None:
        return repr(fn)
    return f"{module}.{qualname}" if module else qualname
