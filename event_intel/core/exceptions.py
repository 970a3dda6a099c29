"""Exception types and FastAPI exception handlers."""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from event_intel.core.logging import get_logger, request_context

logger = get_logger(__name__)


class EventIntelError(Exception):
    """Base exception for the event intelligence service."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        code: str = "E5000",
        details: dict = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}
        super().__init__(message)


class InvalidInputError(EventIntelError):
    """Tool arguments could not be interpreted."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(
            message,
            status_code=status.HTTP_400_BAD_REQUEST,
            code="E4000",
            details=details,
        )


class StorageError(EventIntelError):
    """The event or credential store could not be read."""

    def __init__(self, message: str = "Storage unavailable"):
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, code="E3100")


class EmbeddingError(EventIntelError):
    """The embedding provider failed to produce a vector."""

    def __init__(self, message: str, provider: str = None):
        super().__init__(
            message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            code="E3000",
            details={"provider": provider} if provider else {},
        )


class SummarizationError(EventIntelError):
    """The summarization provider failed to produce text."""

    def __init__(self, message: str, provider: str = None):
        super().__init__(
            message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            code="E3001",
            details={"provider": provider} if provider else {},
        )


def _request_id() -> str | None:
    ctx = request_context.get()
    return ctx.get("request_id") if ctx else None


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(EventIntelError)
    async def event_intel_exception_handler(
        request: Request, exc: EventIntelError
    ) -> JSONResponse:
        """Handle service-specific exceptions."""
        logger.error(
            f"Service error: {exc.message}",
            data={"status_code": exc.status_code, "details": exc.details},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.message,
                "error": {
                    "code": exc.code,
                    "message": exc.message,
                    "request_id": _request_id(),
                },
                **exc.details,
            },
        )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors."""
        logger.warning("Validation error", data={"errors": exc.errors()})
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": "Validation error",
                "errors": exc.errors(include_url=False),
                "error": {
                    "code": "E4220",
                    "message": "Validation error",
                    "request_id": _request_id(),
                },
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        code = f"E{exc.status_code}0"
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "error": {
                    "code": code,
                    "message": exc.detail,
                    "request_id": _request_id(),
                },
            },
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "error": {
                    "code": "E5000",
                    "message": "Internal server error",
                    "request_id": _request_id(),
                },
            },
        )
