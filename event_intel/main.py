"""
Platform Event Intelligence application.

FastAPI application exposing the event query tools over JSON-RPC, with
structured logging, a separate audit stream and error handling.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Optional

from fastapi import FastAPI

from event_intel.api import health_router, tools_router
from event_intel.auth.credentials import CredentialResolver
from event_intel.config import Settings, get_settings
from event_intel.core import (
    RequestContextMiddleware,
    RequestSizeLimitMiddleware,
    get_logger,
    setup_exception_handlers,
    setup_logging,
)
from event_intel.db import create_tables, make_engine, make_session_factory, verify_database_connection
from event_intel.providers import create_embedding_provider, create_summarizer
from event_intel.repositories import SQLAlchemyEventRepository, SQLAlchemyTokenRepository
from event_intel.services.audit_service import AuditRecorder, configure_audit_stream
from event_intel.services.event_service import EventService
from event_intel.services.impact_summary import ImpactSummaryService
from event_intel.tools import ToolDispatcher

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build process-scoped resources on startup and release them on shutdown."""
    settings: Settings = app.state.settings

    setup_logging(
        level=settings.log_level,
        json_output=not settings.debug,
        log_file=settings.log_file or None,
    )
    audit = AuditRecorder(configure_audit_stream(log_file=settings.audit_log_file))
    logger.info(
        "Starting Platform Event Intelligence",
        data={
            "host": settings.host,
            "port": settings.port,
            "environment": settings.environment,
            "embeddings_provider": settings.embeddings_provider,
            "summarizer_provider": settings.summarizer_provider,
        },
    )

    engine = make_engine(settings.database_url, echo=settings.database_echo)
    if settings.is_dev or settings.is_test:
        await create_tables(engine)
    if await verify_database_connection(engine):
        logger.info("Database connection verified")
    else:
        logger.warning("Database connection failed")
    session_factory = make_session_factory(engine)

    if settings.fallback_token:
        logger.warning(
            "Fallback AUTH_TOKEN enabled: calls without authToken metadata run with its entitlements"
        )

    embeddings = create_embedding_provider(settings)
    summarizer = create_summarizer(settings)
    resolver = CredentialResolver(
        SQLAlchemyTokenRepository(session_factory),
        audit,
        fallback_token=settings.fallback_token,
    )
    event_service = EventService(SQLAlchemyEventRepository(session_factory), embeddings, audit)
    impact_service = ImpactSummaryService(event_service, summarizer, audit)

    app.state.start_time = datetime.now(UTC)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.audit = audit
    app.state.credential_resolver = resolver
    app.state.event_service = event_service
    app.state.impact_summary_service = impact_service
    app.state.tool_dispatcher = ToolDispatcher(resolver, event_service, impact_service)

    yield

    logger.info("Shutting down Platform Event Intelligence")
    await resolver.drain()
    await embeddings.aclose()
    await summarizer.aclose()
    await engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Platform Event Intelligence",
        description="Tenant-scoped search, timelines and impact summaries over platform events",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=settings.docs_url,
        redoc_url=None,
    )
    app.state.settings = settings

    setup_exception_handlers(app)

    # Last added runs first
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_bytes)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health_router)
    app.include_router(tools_router)

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "event_intel.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
