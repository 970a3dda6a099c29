"""Core module with logging, exceptions and time helpers."""

from event_intel.core.exceptions import (
    EmbeddingError,
    EventIntelError,
    InvalidInputError,
    StorageError,
    SummarizationError,
    setup_exception_handlers,
)
from event_intel.core.logging import get_logger, request_context, setup_logging
from event_intel.core.middleware import RequestContextMiddleware, RequestSizeLimitMiddleware

__all__ = [
    "EmbeddingError",
    "EventIntelError",
    "InvalidInputError",
    "RequestContextMiddleware",
    "RequestSizeLimitMiddleware",
    "StorageError",
    "SummarizationError",
    "get_logger",
    "request_context",
    "setup_exception_handlers",
    "setup_logging",
]
