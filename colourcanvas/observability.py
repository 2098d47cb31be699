"""
Canvas Observability

Structured logging for the resolution engine. Every component logs through
a CanvasLogger, which attaches the component layer, an optional operation
name, a duration, and keyword context to the standard ``logging`` record.
The StructuredHandler renders those records as one JSON object per line.

    ┌─────────────────────────────────────────────────────────┐
    │                    Application Code                      │
    │  logger.warning("skipping entry", entry=h, reason=r)    │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │                     CanvasLogger                         │
    │        correlation ids, layer, structured context       │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │          StructuredHandler (JSON) │ text handler        │
    └─────────────────────────────────────────────────────────┘

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import contextvars
import functools
import json
import logging
import sys
import time
import traceback
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, TypeVar

# Context variable for request-scoped correlation
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


class Layer(Enum):
    """Engine layers for categorization."""
    CHANNEL = "channel"
    DECODER = "decoder"
    AGGREGATOR = "aggregator"
    RESOLVER = "resolver"
    EVENTS = "events"
    CONFIG = "config"
    CLI = "cli"


@dataclass
class LogEvent:
    """Structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    correlation_id: str = ""
    layer: str = ""
    operation: str = ""
    duration_ms: Optional[float] = None
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding empty values."""
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None and v != "" and v != {}}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class StructuredHandler(logging.Handler):
    """Logging handler that outputs structured JSON."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self.stream = stream or sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEvent(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                level=record.levelname.lower(),
                logger=record.name,
                message=record.getMessage(),
                correlation_id=correlation_id_var.get(),
                layer=getattr(record, "layer", ""),
                operation=getattr(record, "operation", ""),
                duration_ms=getattr(record, "duration_ms", None),
                context=getattr(record, "context", {}),
            )

            if record.exc_info:
                event.exception = "".join(traceback.format_exception(*record.exc_info))

            self.stream.write(event.to_json() + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)


class TextFormatter(logging.Formatter):
    """Single-line text rendering of the same structured fields."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        context = getattr(record, "context", None) or {}
        if context:
            base += " " + " ".join(f"{k}={v}" for k, v in sorted(context.items()))
        return base


class CanvasLogger:
    """
    Structured logger for engine components.

    Loggers are named ``colourcanvas.<layer>.<name>`` so the whole engine
    can be configured from the ``colourcanvas`` root logger.
    """

    def __init__(self, name: str, layer: Layer):
        self.name = name
        self.layer = layer
        self._logger = logging.getLogger(f"colourcanvas.{layer.value}.{name}")

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _log(
        self,
        level: int,
        message: str,
        operation: str = "",
        duration_ms: Optional[float] = None,
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        extra = {
            "layer": self.layer.value,
            "operation": operation,
            "duration_ms": duration_ms,
            "context": context,
        }
        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, **context)

    def error(self, message: str, exc_info: bool = False, **context: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **context)

    def operation(
        self,
        name: str,
        duration_ms: float,
        success: bool = True,
        **context: Any,
    ) -> None:
        """Log an operation completion."""
        level = logging.DEBUG if success else logging.WARNING
        status = "completed" if success else "failed"
        self._log(
            level,
            f"Operation {name} {status}",
            operation=name,
            duration_ms=duration_ms,
            **context,
        )


def configure_logging(level: str = "info", fmt: str = "json", stream: Any = None) -> logging.Logger:
    """
    Attach a single handler to the ``colourcanvas`` root logger.

    Calling this again replaces the handler installed by the previous call.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    root = logging.getLogger("colourcanvas")
    root.setLevel(numeric)

    for handler in list(root.handlers):
        if getattr(handler, "_colourcanvas", False):
            root.removeHandler(handler)

    if fmt == "json":
        handler: logging.Handler = StructuredHandler(stream)
    else:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(TextFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    handler._colourcanvas = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    return root


def generate_correlation_id() -> str:
    return f"corr-{uuid.uuid4().hex[:12]}"


def set_correlation_id(correlation_id: str) -> contextvars.Token:
    """Set the correlation ID for the current context."""
    return correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    """Get the current correlation ID, creating one if unset."""
    cid = correlation_id_var.get()
    if not cid:
        cid = generate_correlation_id()
        correlation_id_var.set(cid)
    return cid


def get_logger(name: str, layer: Layer) -> CanvasLogger:
    return CanvasLogger(name, layer)


T = TypeVar("T")


def timed_operation(
    logger: CanvasLogger,
    operation_name: str,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for timing and logging operations."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            start = time.monotonic()
            success = True
            try:
                return func(*args, **kwargs)
            except Exception:
                success = False
                raise
            finally:
                duration_ms = (time.monotonic() - start) * 1000
                logger.operation(operation_name, duration_ms, success)
        return wrapper
    return decorator
