"""Tool registry and dispatch.

Each tool call is handled in four steps: validate the arguments, resolve
the caller once from the call metadata, run the query gate, and render an
MCP-style text result.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from event_intel.auth.context import CallerContext
from event_intel.auth.credentials import CredentialResolver
from event_intel.core.exceptions import EventIntelError, InvalidInputError, StorageError
from event_intel.core.logging import get_logger, request_context
from event_intel.core.text import parse_date, truncate
from event_intel.core.time import isoformat_ms
from event_intel.repositories.event_repo import EventFilters
from event_intel.schemas import (
    GetEventDetailsInput,
    GetImpactSummaryInput,
    GetServiceTimelineInput,
    SearchEventsInput,
    ToolInput,
)
from event_intel.services.event_service import EventService, Found, SearchParams
from event_intel.services.impact_summary import ImpactSummaryParams, ImpactSummaryService

logger = get_logger(__name__)

SEARCH_DESCRIPTION_LENGTH = 200


class UnknownToolError(InvalidInputError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}", details={"tool": name})


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: type[ToolInput]

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_model.model_json_schema(by_alias=True),
        }


TOOLS: dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            "search_events",
            "Search platform events by keyword or semantic similarity. Returns events matching "
            "the query, filtered by the caller's authorized services.",
            SearchEventsInput,
        ),
        ToolSpec(
            "get_event_details",
            "Get detailed information about a specific event. Returns an error if the event does "
            "not exist or the caller is not authorized to view it.",
            GetEventDetailsInput,
        ),
        ToolSpec(
            "get_service_timeline",
            "Get a timeline of events for a specific service. Only returns events if the caller "
            "is authorized to view that service.",
            GetServiceTimelineInput,
        ),
        ToolSpec(
            "get_impact_summary",
            "Generate an executive summary of significant events and operational impact for a "
            "service. Only accessible for authorized services.",
            GetImpactSummaryInput,
        ),
    )
}


def text_result(payload: Any, is_error: bool = False) -> dict[str, Any]:
    result: dict[str, Any] = {"content": [{"type": "text", "text": json.dumps(payload, indent=2)}]}
    if is_error:
        result["isError"] = True
    return result


class ToolDispatcher:
    """Routes validated tool calls to the query gate."""

    def __init__(
        self,
        resolver: CredentialResolver,
        events: EventService,
        impact: ImpactSummaryService,
    ):
        self._resolver = resolver
        self._events = events
        self._impact = impact
        self._handlers: dict[str, Callable[[Any, CallerContext], Awaitable[dict[str, Any]]]] = {
            "search_events": self._search_events,
            "get_event_details": self._get_event_details,
            "get_service_timeline": self._get_service_timeline,
            "get_impact_summary": self._get_impact_summary,
        }

    def list_tools(self) -> list[dict[str, Any]]:
        return [spec.describe() for spec in TOOLS.values()]

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Mapping[str, Any]],
        metadata: Optional[Mapping[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """Run one tool call.

        Raises:
            UnknownToolError: if ``name`` is not registered.
            pydantic.ValidationError: if ``arguments`` do not match the tool schema.
            InvalidInputError: if a date argument cannot be parsed.
        """
        spec = TOOLS.get(name)
        if spec is None:
            raise UnknownToolError(name)

        params = spec.input_model.model_validate(dict(arguments or {}))

        ctx_token = request_context.set(
            {
                **request_context.get(),
                "request_id": request_id or uuid.uuid4().hex[:16],
                "tool": name,
            }
        )
        try:
            context = await self._resolver.resolve_from_metadata(metadata)
            return await self._handlers[name](params, context)
        except InvalidInputError:
            raise
        except EventIntelError as exc:
            logger.error(f"Tool call failed: {exc.message}", data={"code": exc.code, "details": exc.details})
            return text_result({"error": exc.message, "code": exc.code}, is_error=True)
        except SQLAlchemyError as exc:
            logger.error("Tool call failed: storage error", data={"error": f"{type(exc).__name__}: {exc}"})
            err = StorageError()
            return text_result({"error": err.message, "code": err.code}, is_error=True)
        finally:
            request_context.reset(ctx_token)

    async def _search_events(self, params: SearchEventsInput, context: CallerContext) -> dict[str, Any]:
        search = SearchParams(
            query=params.query,
            filters=EventFilters(
                service_id=params.service_id,
                event_type=params.event_type.value if params.event_type else None,
                severity=params.severity.value if params.severity else None,
                start_date=parse_date(params.start_date),
                end_date=parse_date(params.end_date),
            ),
            limit=params.limit,
            use_semantic_search=params.use_semantic_search,
        )
        results = await self._events.search_events(search, context=context)

        rendered = []
        for r in results:
            item = {
                "id": r.event.id,
                "service": r.event.service_id,
                "type": r.event.event_type,
                "severity": r.event.severity,
                "title": r.event.title,
                "description": truncate(r.event.description, SEARCH_DESCRIPTION_LENGTH) or None,
                "occurredAt": isoformat_ms(r.event.occurred_at),
            }
            if r.score is not None:
                item["relevanceScore"] = f"{r.score:.3f}"
            rendered.append(item)

        return text_result(
            {
                "query": params.query,
                "resultCount": len(results),
                "searchType": "semantic" if params.use_semantic_search else "keyword",
                "results": rendered,
            }
        )

    async def _get_event_details(self, params: GetEventDetailsInput, context: CallerContext) -> dict[str, Any]:
        lookup = await self._events.get_event_by_id(str(params.event_id), context=context)
        if not isinstance(lookup, Found):
            return text_result({"error": "Event not found"})

        event = lookup.event
        return text_result(
            {
                "id": event.id,
                "service": event.service_id,
                "type": event.event_type,
                "severity": event.severity,
                "title": event.title,
                "description": event.description,
                "metadata": event.metadata_json,
                "correlationId": event.correlation_id,
                "parentEventId": event.parent_event_id,
                "occurredAt": isoformat_ms(event.occurred_at),
            }
        )

    async def _get_service_timeline(
        self, params: GetServiceTimelineInput, context: CallerContext
    ) -> dict[str, Any]:
        events = await self._events.get_service_timeline(
            params.service_id,
            parse_date(params.start_date),
            parse_date(params.end_date),
            params.limit,
            context=context,
        )
        return text_result(
            {
                "service": params.service_id,
                "eventCount": len(events),
                "timeline": [
                    {
                        "id": e.id,
                        "type": e.event_type,
                        "severity": e.severity,
                        "title": e.title,
                        "occurredAt": isoformat_ms(e.occurred_at),
                    }
                    for e in events
                ],
            }
        )

    async def _get_impact_summary(self, params: GetImpactSummaryInput, context: CallerContext) -> dict[str, Any]:
        summary = await self._impact.generate(
            ImpactSummaryParams(
                service_id=params.service_id,
                start_date=parse_date(params.start_date),
                end_date=parse_date(params.end_date),
                max_events=params.max_events,
            ),
            context=context,
        )
        return text_result(
            {
                "service": params.service_id,
                "timeRange": {
                    "start": params.start_date or "beginning",
                    "end": params.end_date or "now",
                },
                "summary": summary,
            }
        )
