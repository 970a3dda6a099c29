"""Structured logging configuration for Platform Event Intelligence."""

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any, Dict, Optional, Set

# Context variable for call-scoped data (request id, tool name)
request_context: ContextVar[Dict[str, Any]] = ContextVar("request_context", default={})

# Keys whose values are credentials and must never reach a log line
SENSITIVE_KEYS: Set[str] = {
    "authorization",
    "authtoken",
    "auth_token",
    "x-api-key",
    "x-auth-token",
    "api_key",
    "password",
    "secret",
    "token",
}

_TOKEN_CHARS = re.compile(r"^[a-zA-Z0-9_-]+$")


def _is_token_like(value: str) -> bool:
    """Check if a string looks like a bearer secret."""
    if len(value) < 24:
        return False
    return bool(_TOKEN_CHARS.match(value))


def _redact_value(value: Any) -> str:
    """Redact a sensitive value.

    Short secrets (<12 chars) are fully masked; longer ones keep the first
    and last 3 characters so operators can correlate without recovering them.
    """
    if not isinstance(value, str):
        return "[REDACTED]"
    if len(value) < 12:
        return "<REDACTED>"
    return f"{value[:3]}***{value[-3:]}"


def redact_sensitive_data(data: Any) -> Any:
    """Recursively redact credentials from dictionaries, lists or strings."""
    if isinstance(data, dict):
        redacted = {}
        for key, value in data.items():
            if isinstance(key, str) and key.lower() in SENSITIVE_KEYS:
                redacted[key] = _redact_value(value)
            else:
                redacted[key] = redact_sensitive_data(value)
        return redacted
    elif isinstance(data, list):
        return [redact_sensitive_data(item) for item in data]
    elif isinstance(data, str) and _is_token_like(data):
        return _redact_value(data)
    return data


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        ctx = request_context.get()
        if ctx:
            log_data["request_id"] = ctx.get("request_id")
            log_data["tool"] = ctx.get("tool")

        if hasattr(record, "data") and record.data:
            log_data["data"] = redact_sensitive_data(record.data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",   # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console."""
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")

        ctx = request_context.get()
        request_id = (ctx.get("request_id") or "-")[:8] if ctx else "-"

        message = f"{timestamp} | {color}{record.levelname:8}{self.RESET} | {request_id} | {record.name} | {record.getMessage()}"

        if hasattr(record, "data") and record.data:
            message += f" | {redact_sensitive_data(record.data)}"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that accepts a ``data=`` mapping of structured fields."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Process log message with context."""
        extra = kwargs.get("extra", {})
        if "data" in kwargs:
            extra["data"] = kwargs.pop("data")
        kwargs["extra"] = extra
        return msg, kwargs


_loggers: Dict[str, ContextLogger] = {}


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger."""
    if name not in _loggers:
        logger = logging.getLogger(name)
        _loggers[name] = ContextLogger(logger, {})
    return _loggers[name]


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure application logging.

    Application logs go to stdout; the audit stream is configured separately
    by ``configure_audit_stream`` and never propagates here.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    if json_output:
        console_handler.setFormatter(StructuredFormatter())
    else:
        console_handler.setFormatter(ConsoleFormatter())
    root_logger.addHandler(console_handler)

    # File handler (always JSON)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    # Quiet noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
