"""Impact summary providers: turn a prioritized event list into prose."""

from __future__ import annotations

import json
from typing import Protocol, Sequence, runtime_checkable

import httpx

from event_intel.config import Settings
from event_intel.core.exceptions import SummarizationError
from event_intel.core.logging import get_logger
from event_intel.core.text import truncate
from event_intel.core.time import ensure_utc, isoformat_ms
from event_intel.db.models import Event
from event_intel.providers.openai_compat import OpenAICompatClient

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a technical operations analyst specializing in platform reliability "
    "and incident analysis."
)


@runtime_checkable
class Summarizer(Protocol):
    async def summarize(self, service_id: str, events: Sequence[Event]) -> str: ...
    async def aclose(self) -> None: ...


def generate_mock_summary(service_id: str, events: Sequence[Event]) -> str:
    """Deterministic summary; ``events`` must already be most-significant first."""
    if not events:
        return f"No significant events found for service \"{service_id}\" in the specified time range."

    critical_count = sum(1 for e in events if e.severity == "critical")
    error_count = sum(1 for e in events if e.severity == "error")
    deployment_count = sum(1 for e in events if e.event_type == "deployment")
    incident_count = sum(1 for e in events if e.event_type == "incident")

    dates = sorted(ensure_utc(e.occurred_at) for e in events)
    time_range = f"from {dates[0]:%Y-%m-%d} to {dates[-1]:%Y-%m-%d}"

    parts = [f"Impact Summary for {service_id} ({time_range}):\n\n"]

    if critical_count > 0:
        parts.append(f"Service experienced {critical_count} critical event(s) requiring immediate attention. ")
    elif error_count > 0:
        parts.append(f"Service had {error_count} error-level event(s) that may impact operations. ")
    else:
        parts.append(f"Service operating normally with {len(events)} informational event(s). ")

    if incident_count > 0:
        parts.append(f"{incident_count} incident(s) detected. ")
        latest_incident = next(e for e in events if e.event_type == "incident")
        parts.append(f"Most recent: \"{latest_incident.title}\". ")

    if deployment_count > 0:
        parts.append(f"\n\n{deployment_count} deployment(s) occurred during this period. ")

    parts.append(f"\n\nTotal events analyzed: {len(events)}. ")
    parts.append(f"Most significant event: \"{events[0].title}\" ({events[0].severity}).")
    return "".join(parts)


class MockSummarizer:
    async def summarize(self, service_id: str, events: Sequence[Event]) -> str:
        return generate_mock_summary(service_id, events)

    async def aclose(self) -> None:
        return None


class OpenAICompatSummarizer:
    """Summaries from an OpenAI-compatible chat completions endpoint."""

    def __init__(self, http: OpenAICompatClient, model: str, max_tokens: int = 500):
        self._http = http
        self.model = model
        self.max_tokens = max_tokens

    def _build_prompt(self, service_id: str, events: Sequence[Event]) -> str:
        event_summaries = [
            {
                "type": e.event_type,
                "severity": e.severity,
                "title": e.title,
                # Truncated to keep the prompt inside the context window
                "description": truncate(e.description, 200) or None,
                "timestamp": isoformat_ms(e.occurred_at),
            }
            for e in events
        ]
        return (
            f"You are analyzing platform events for the \"{service_id}\" service.\n"
            "Provide a concise executive summary of the service's operational status "
            "and significant events.\n\n"
            "Events (most critical first):\n"
            f"{json.dumps(event_summaries, indent=2)}\n\n"
            "Generate a 2-3 paragraph summary covering:\n"
            "1. Overall service health and stability\n"
            "2. Critical incidents and their impact\n"
            "3. Notable deployments or configuration changes\n"
            "4. Any patterns or trends\n\n"
            "Keep it professional and actionable for technical stakeholders."
        )

    async def summarize(self, service_id: str, events: Sequence[Event]) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": self._build_prompt(service_id, events)},
            ],
            "temperature": 0.3,
            "max_tokens": self.max_tokens,
            "stream": False,
        }
        try:
            data = await self._http.post_json("/chat/completions", payload)
        except httpx.HTTPError as exc:
            raise SummarizationError(f"Summary request failed: {exc}", provider="openai_compat") from exc

        choices = data.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not content:
            raise SummarizationError("Empty summary response", provider="openai_compat")
        return content

    async def aclose(self) -> None:
        await self._http.aclose()


def create_summarizer(settings: Settings) -> Summarizer:
    """Build the configured summarizer."""
    if settings.summarizer_provider == "openai_compat":
        http = OpenAICompatClient(
            base_url=settings.summarizer_base_url,
            api_key=settings.summarizer_api_key,
            timeout=settings.provider_timeout_seconds,
        )
        return OpenAICompatSummarizer(http, settings.summarizer_model, settings.summarizer_max_tokens)
    return MockSummarizer()
