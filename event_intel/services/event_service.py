"""Query gate: the only path from a tool call to event records.

Every public method takes the caller context as a keyword-only argument and
emits exactly one audit entry. Multi-row reads push the caller's service
scope into storage; single-record and per-service reads check entitlement
before results leave this module.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from event_intel.auth.context import CallerContext, authorized_service_filter, is_authorized_for
from event_intel.core.logging import get_logger
from event_intel.core.time import isoformat_ms
from event_intel.db.models import Event
from event_intel.providers.embeddings import EmbeddingProvider, cosine_similarity
from event_intel.repositories.event_repo import EventFilters, EventRepository
from event_intel.services.audit_service import AccessOperation, AuditRecorder

logger = get_logger(__name__)


@dataclass(frozen=True)
class SearchParams:
    query: str
    filters: EventFilters = field(default_factory=EventFilters)
    limit: int = 10
    use_semantic_search: bool = True


@dataclass(frozen=True)
class SearchResult:
    """An event plus its relevance score (semantic search only)."""
    event: Event
    score: Optional[float] = None


@dataclass(frozen=True)
class Found:
    event: Event


class NotFound:
    """Single shared marker for absent and unauthorized lookups."""
    _instance: Optional["NotFound"] = None

    def __new__(cls) -> "NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = NotFound()

EventLookup = Union[Found, NotFound]


def _filters_metadata(filters: EventFilters) -> dict[str, Any]:
    raw = {
        "serviceId": filters.service_id,
        "eventType": filters.event_type,
        "severity": filters.severity,
        "startDate": isoformat_ms(filters.start_date) if filters.start_date else None,
        "endDate": isoformat_ms(filters.end_date) if filters.end_date else None,
    }
    return {k: v for k, v in raw.items() if v is not None}


class EventService:
    """Authorized, audited reads over the event store."""

    def __init__(
        self,
        events: EventRepository,
        embeddings: EmbeddingProvider,
        audit: AuditRecorder,
    ):
        self._events = events
        self._embeddings = embeddings
        self._audit = audit

    async def keyword_search(self, params: SearchParams, *, context: CallerContext) -> list[SearchResult]:
        """Case-insensitive substring match on title or description, newest first."""
        rows = await self._events.search_keyword(
            authorized_service_filter(context),
            params.filters,
            params.query,
            params.limit,
        )
        results = [SearchResult(event=row) for row in rows]
        self._audit_search(params, "keyword", results, context)
        return results

    async def semantic_search(self, params: SearchParams, *, context: CallerContext) -> list[SearchResult]:
        """Rank embedded events in the caller's scope by cosine similarity."""
        query_vec = await self._embeddings.embed(params.query)
        candidates = await self._events.list_with_embeddings(
            authorized_service_filter(context),
            params.filters,
        )

        scored: list[tuple[float, Event]] = []
        for event in candidates:
            vec = event.embedding
            if isinstance(vec, list) and vec:
                scored.append((cosine_similarity(query_vec, vec), event))
        scored.sort(key=lambda t: t[0], reverse=True)

        results = [SearchResult(event=event, score=float(score)) for score, event in scored[: params.limit]]
        self._audit_search(params, "semantic", results, context)
        return results

    async def search_events(self, params: SearchParams, *, context: CallerContext) -> list[SearchResult]:
        """Route to semantic or keyword search. The chosen mode writes the audit entry."""
        if params.use_semantic_search:
            return await self.semantic_search(params, context=context)
        return await self.keyword_search(params, context=context)

    def _audit_search(
        self,
        params: SearchParams,
        search_type: str,
        results: list[SearchResult],
        context: CallerContext,
    ) -> None:
        self._audit.event_access(
            context,
            AccessOperation.SEARCH,
            len(results),
            service_id=params.filters.service_id,
            metadata={
                "query": params.query,
                "searchType": search_type,
                "filters": _filters_metadata(params.filters),
            },
        )

    async def get_event_by_id(self, event_id: str, *, context: CallerContext) -> EventLookup:
        """Fetch one event. Unauthorized records are indistinguishable from absent ones."""
        event = await self._events.get_by_id(event_id)

        if event is None:
            self._audit.event_access(
                context,
                AccessOperation.GET_DETAILS,
                0,
                resource_id=event_id,
                metadata={"reason": "not_found"},
            )
            return NOT_FOUND

        if not is_authorized_for(context, event.service_id):
            self._audit.authorization_denied(
                context,
                event.service_id,
                AccessOperation.GET_DETAILS,
                resource_id=event_id,
            )
            return NOT_FOUND

        self._audit.event_access(
            context,
            AccessOperation.GET_DETAILS,
            1,
            service_id=event.service_id,
            resource_id=event_id,
        )
        return Found(event)

    async def get_service_timeline(
        self,
        service_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 20,
        *,
        context: CallerContext,
    ) -> list[Event]:
        """Events for one service, newest first. Storage is not touched on denial."""
        if not is_authorized_for(context, service_id):
            self._audit.authorization_denied(context, service_id, AccessOperation.GET_TIMELINE)
            return []

        events = await self._events.list_for_service(service_id, start_date, end_date, limit)

        metadata: dict[str, Any] = {"limit": limit}
        if start_date:
            metadata["startDate"] = isoformat_ms(start_date)
        if end_date:
            metadata["endDate"] = isoformat_ms(end_date)
        self._audit.event_access(
            context,
            AccessOperation.GET_TIMELINE,
            len(events),
            service_id=service_id,
            metadata=metadata,
        )
        return events
