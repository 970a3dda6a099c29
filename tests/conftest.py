"""Test fixtures: file-backed async SQLite, captured audit stream, seeded tenants."""

from __future__ import annotations

import io
import json
import uuid
from datetime import timedelta
from typing import Any, Callable

import pytest
import pytest_asyncio

from event_intel.auth.credentials import CredentialResolver, create_api_token
from event_intel.core.time import utcnow
from event_intel.db import create_tables, make_engine, make_session_factory
from event_intel.db.models import Event
from event_intel.providers.embeddings import MockEmbeddingProvider
from event_intel.providers.summarizer import MockSummarizer
from event_intel.repositories import SQLAlchemyEventRepository, SQLAlchemyTokenRepository
from event_intel.services.audit_service import AuditRecorder, configure_audit_stream
from event_intel.services.event_service import EventService
from event_intel.services.impact_summary import ImpactSummaryService

TEST_DIMENSIONS = 64


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed so every pooled connection sees the same database."""
    eng = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'events.db'}")
    await create_tables(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def event_repo(session_factory):
    return SQLAlchemyEventRepository(session_factory)


@pytest_asyncio.fixture
async def token_repo(session_factory):
    return SQLAlchemyTokenRepository(session_factory)


@pytest.fixture
def embeddings():
    return MockEmbeddingProvider(dimensions=TEST_DIMENSIONS)


@pytest.fixture
def audit_stream():
    return io.StringIO()


@pytest.fixture
def audit(audit_stream):
    # Unique logger per test so captured streams never leak between tests
    name = f"event_intel.audit.test.{uuid.uuid4().hex}"
    return AuditRecorder(configure_audit_stream(stream=audit_stream, name=name))


@pytest.fixture
def audit_entries(audit_stream) -> Callable[[], list[dict[str, Any]]]:
    """Return a reader that parses every audit line written so far."""

    def read() -> list[dict[str, Any]]:
        return [json.loads(line) for line in audit_stream.getvalue().splitlines() if line.strip()]

    return read


@pytest_asyncio.fixture
async def resolver(token_repo, audit):
    res = CredentialResolver(token_repo, audit)
    yield res
    await res.drain()


@pytest_asyncio.fixture
async def event_service(event_repo, embeddings, audit):
    return EventService(event_repo, embeddings, audit)


@pytest_asyncio.fixture
async def impact_service(event_service, audit):
    return ImpactSummaryService(event_service, MockSummarizer(), audit)


async def _add_event(repo, embeddings, *, embed: bool = True, **fields) -> Event:
    if embed:
        text = f"{fields['title']} {fields.get('description') or ''}"
        fields["embedding"] = await embeddings.embed(text)
    return await repo.create(**fields)


@pytest_asyncio.fixture
async def seeded_events(event_repo, embeddings) -> dict[str, Event]:
    """Two tenants plus an unembedded third, keyed by a short label."""
    now = utcnow()
    events = {
        "a_incident": await _add_event(
            event_repo,
            embeddings,
            service_id="svc-a",
            event_type="incident",
            severity="critical",
            title="Database connection pool exhausted",
            description="Primary postgres pool hit max connections during billing run",
            occurred_at=now - timedelta(hours=1),
        ),
        "a_deploy": await _add_event(
            event_repo,
            embeddings,
            service_id="svc-a",
            event_type="deployment",
            severity="info",
            title="Deploy billing v2.3.1",
            description="Rolled out new invoice renderer",
            occurred_at=now - timedelta(hours=2),
        ),
        "a_alert": await _add_event(
            event_repo,
            embeddings,
            service_id="svc-a",
            event_type="alert",
            severity="warning",
            title="CPU at 100% on worker_1",
            description="Sustained load on batch_worker host",
            occurred_at=now - timedelta(hours=3),
        ),
        "b_incident": await _add_event(
            event_repo,
            embeddings,
            service_id="svc-b",
            event_type="incident",
            severity="error",
            title="Database failover completed",
            description="Replica promoted after primary lost heartbeat",
            occurred_at=now - timedelta(minutes=30),
        ),
        "b_deploy": await _add_event(
            event_repo,
            embeddings,
            service_id="svc-b",
            event_type="deployment",
            severity="info",
            title="Deploy auth v1.0",
            description="Session tokens now rotate hourly",
            occurred_at=now - timedelta(hours=4),
        ),
        "c_config": await _add_event(
            event_repo,
            embeddings,
            embed=False,
            service_id="svc-c",
            event_type="config_change",
            severity="info",
            title="Database timeout raised",
            description="statement_timeout set to 30s",
            occurred_at=now - timedelta(hours=5),
        ),
    }
    return events


@pytest_asyncio.fixture
async def api_tokens(token_repo) -> dict[str, str]:
    """Raw tokens keyed by entitlement profile."""
    tokens = {}
    for label, services in (
        ("svc_a", ["svc-a"]),
        ("svc_b", ["svc-b"]),
        ("all", ["*"]),
        ("none", []),
    ):
        raw, _ = await create_api_token(token_repo, f"{label}-token", services, created_by="tests")
        tokens[label] = raw

    raw, _ = await create_api_token(
        token_repo, "expired-token", ["svc-a"], created_by="tests", expires_in_days=-1
    )
    tokens["expired"] = raw
    return tokens
