"""Logging configuration for the Legislation Search service.

Every logger lives under ``legislation_search``. Two context variables travel
with the asyncio task (and into ``asyncio.to_thread`` workers, which copy the
context):

- ``request_id_var``: set per HTTP request by ``RequestIDMiddleware``
- ``log_context_var``: key/value pairs bound with ``log_context()``, e.g. the
  document being ingested, so segmenter, encoder and Qdrant logs can be tied
  back to it
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

from legislation_search.config import get_settings

ROOT_LOGGER = "legislation_search"

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
log_context_var: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

_logger: Optional[logging.Logger] = None

# LogRecord attributes that are not user data
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "extra_fields",
    "request_id",
    "taskName",
}

_NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "httpx", "httpcore", "huggingface_hub", "urllib3")


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shipping in production."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            entry["request_id"] = request_id
        entry.update(log_context_var.get())

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(getattr(record, "extra_fields", {}))
        # fields passed via ``extra=`` are set directly on the record
        entry.update({k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS})

        return json.dumps(entry, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable lines for development and the CLI."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get() or "N/A"
        line = super().format(record)
        context = log_context_var.get()
        if context:
            line += " (" + ", ".join(f"{k}={v}" for k, v in context.items()) + ")"
        return line


def setup_logging(force: bool = False, level: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``legislation_search`` logger tree.

    Args:
        force: Reconfigure even if logging was already set up
        level: Override ``LOG_LEVEL`` (e.g. from a CLI flag)
    """
    global _logger

    if _logger is not None and not force:
        return _logger

    settings = get_settings()
    level_name = (level or settings.log_level).upper()

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level_name)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level_name)
    handler.setFormatter(JSONFormatter() if settings.is_production else StandardFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # model loading progress is useful when debugging downloads
    logging.getLogger("transformers").setLevel(logging.INFO if settings.debug else logging.WARNING)

    _logger = logger
    logger.info(
        f"Logging configured: level={level_name}, "
        f"environment={settings.environment.value}, "
        f"format={'JSON' if settings.is_production else 'Standard'}"
    )
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the ``legislation_search`` tree."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """Bind fields to every log line emitted inside the block."""
    merged = {**log_context_var.get(), **fields}
    token = log_context_var.set(merged)
    try:
        yield merged
    finally:
        log_context_var.reset(token)


def log_request(method: str, path: str, status_code: int, duration_ms: float, **kwargs: Any) -> None:
    """Log a completed HTTP request."""
    get_logger("http").info(
        f"{method} {path} - {status_code} - {duration_ms:.2f}ms",
        extra={
            "extra_fields": {
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
                **kwargs,
            }
        },
    )


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None, **kwargs: Any) -> None:
    """Log an exception with its service error code when it has one."""
    fields: Dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
        **kwargs,
    }
    code = getattr(error, "code", None)
    if code:
        fields["error_code"] = code
    get_logger("error").error(
        f"Error: {type(error).__name__}: {error}",
        exc_info=error,
        extra={"extra_fields": fields},
    )
