"""Impact summaries built on the authorized timeline."""

from __future__ import annotations

from datetime import timedelta

import pytest

from event_intel.auth import CallerContext
from event_intel.core.exceptions import SummarizationError
from event_intel.core.time import utcnow
from event_intel.db.models import Event
from event_intel.providers.summarizer import generate_mock_summary
from event_intel.services.impact_summary import (
    ImpactSummaryParams,
    ImpactSummaryService,
    prioritize_events,
)

pytestmark = pytest.mark.asyncio

SVC_A = CallerContext.build("tok-a", ["svc-a"])


class RecordingSummarizer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.received: list[Event] = []

    async def summarize(self, service_id, events):
        self.received = list(events)
        if self.fail:
            raise SummarizationError("upstream 500", provider="test")
        return f"summary of {len(events)} events for {service_id}"

    async def aclose(self):
        return None


def _event(severity: str, minutes_ago: int, title: str = "t", event_type: str = "alert") -> Event:
    return Event(
        id=f"{severity}-{minutes_ago}",
        service_id="svc-a",
        event_type=event_type,
        severity=severity,
        title=title,
        occurred_at=utcnow() - timedelta(minutes=minutes_ago),
    )


async def test_prioritize_by_severity_then_recency():
    events = [_event("info", 1), _event("critical", 50), _event("error", 5), _event("critical", 10)]
    ordered = prioritize_events(events)
    assert [e.id for e in ordered] == ["critical-10", "critical-50", "error-5", "info-1"]


async def test_mock_summary_mentions_most_significant_event():
    events = prioritize_events(
        [
            _event("info", 30, title="Deploy v2", event_type="deployment"),
            _event("critical", 10, title="Pool exhausted", event_type="incident"),
        ]
    )
    summary = generate_mock_summary("svc-a", events)
    assert summary.startswith("Impact Summary for svc-a")
    assert "1 critical event(s)" in summary
    assert "1 incident(s) detected" in summary
    assert "1 deployment(s)" in summary
    assert 'Most significant event: "Pool exhausted" (critical).' in summary


async def test_summary_receives_prioritized_events(event_service, audit, audit_entries, seeded_events):
    summarizer = RecordingSummarizer()
    service = ImpactSummaryService(event_service, summarizer, audit)

    summary = await service.generate(ImpactSummaryParams(service_id="svc-a"), context=SVC_A)

    assert summary == "summary of 3 events for svc-a"
    assert [e.severity for e in summarizer.received] == ["critical", "warning", "info"]

    timeline, impact = audit_entries()
    assert timeline["action"] == "event_access_get_timeline"
    assert impact["action"] == "event_access_get_impact_summary"
    assert impact["success"] is True
    assert impact["metadata"] == {"eventCount": 3}


async def test_summarizer_failure_falls_back(event_service, audit, seeded_events):
    service = ImpactSummaryService(event_service, RecordingSummarizer(fail=True), audit)
    summary = await service.generate(ImpactSummaryParams(service_id="svc-a"), context=SVC_A)
    assert summary.startswith("Impact Summary for svc-a")


@pytest.mark.security
async def test_unauthorized_service_gets_no_events_text(impact_service, audit_entries, seeded_events):
    summary = await impact_service.generate(ImpactSummaryParams(service_id="svc-b"), context=SVC_A)
    assert summary == 'No significant events found for service "svc-b" in the specified time range.'

    denial, impact = audit_entries()
    assert denial["action"] == "authorization_denied"
    assert impact["action"] == "event_access_get_impact_summary"
    assert impact["success"] is False
    assert impact["metadata"] == {"reason": "no_events"}


async def test_time_range_is_respected(impact_service, seeded_events):
    summary = await impact_service.generate(
        ImpactSummaryParams(service_id="svc-a", start_date=utcnow() - timedelta(minutes=90)),
        context=SVC_A,
    )
    assert "Total events analyzed: 1." in summary
