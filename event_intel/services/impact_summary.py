"""Impact summaries over a service's recent events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from event_intel.auth.context import CallerContext
from event_intel.core.exceptions import SummarizationError
from event_intel.core.logging import get_logger
from event_intel.core.time import ensure_utc
from event_intel.db.models import Event
from event_intel.providers.summarizer import Summarizer, generate_mock_summary
from event_intel.services.audit_service import AccessOperation, AuditRecorder
from event_intel.services.event_service import EventService

logger = get_logger(__name__)

SEVERITY_PRIORITY = {"critical": 4, "error": 3, "warning": 2, "info": 1}


@dataclass(frozen=True)
class ImpactSummaryParams:
    service_id: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    max_events: int = 50


def prioritize_events(events: list[Event]) -> list[Event]:
    """Most severe first, then most recent."""
    return sorted(
        events,
        key=lambda e: (SEVERITY_PRIORITY.get(e.severity, 0), ensure_utc(e.occurred_at)),
        reverse=True,
    )


class ImpactSummaryService:
    def __init__(self, event_service: EventService, summarizer: Summarizer, audit: AuditRecorder):
        self._events = event_service
        self._summarizer = summarizer
        self._audit = audit

    async def generate(self, params: ImpactSummaryParams, *, context: CallerContext) -> str:
        # Entitlement is enforced by the timeline read
        events = await self._events.get_service_timeline(
            params.service_id,
            params.start_date,
            params.end_date,
            params.max_events,
            context=context,
        )

        if not events:
            self._audit.event_access(
                context,
                AccessOperation.GET_IMPACT_SUMMARY,
                0,
                service_id=params.service_id,
                metadata={"reason": "no_events"},
            )
            return generate_mock_summary(params.service_id, [])

        prioritized = prioritize_events(events)
        try:
            summary = await self._summarizer.summarize(params.service_id, prioritized)
        except SummarizationError as exc:
            logger.warning(
                "Summarizer failed, using deterministic summary",
                data={"service_id": params.service_id, "error": exc.message},
            )
            summary = generate_mock_summary(params.service_id, prioritized)

        self._audit.event_access(
            context,
            AccessOperation.GET_IMPACT_SUMMARY,
            len(events),
            service_id=params.service_id,
            metadata={"eventCount": len(events)},
        )
        return summary
