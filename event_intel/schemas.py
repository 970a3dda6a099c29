"""Tool input models.

Field names on the wire are camelCase; Python attributes are snake_case.
Dates stay ISO strings here and are parsed by the dispatcher so that a bad
date surfaces as an ``InvalidInputError`` rather than a schema error.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    DEPLOYMENT = "deployment"
    INCIDENT = "incident"
    CONFIG_CHANGE = "config_change"
    ALERT = "alert"
    ROLLBACK = "rollback"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SearchEventsInput(ToolInput):
    query: str = Field(description="Search query (natural language or keywords)")
    service_id: Optional[str] = Field(default=None, alias="serviceId", description="Filter by service ID")
    event_type: Optional[EventType] = Field(default=None, alias="eventType", description="Filter by event type")
    severity: Optional[Severity] = Field(default=None, description="Filter by severity")
    start_date: Optional[str] = Field(default=None, alias="startDate", description="Start date (ISO 8601)")
    end_date: Optional[str] = Field(default=None, alias="endDate", description="End date (ISO 8601)")
    limit: int = Field(default=10, ge=1, le=50, description="Maximum results to return")
    use_semantic_search: bool = Field(
        default=True,
        alias="useSemanticSearch",
        description="Use semantic search (true) or keyword search (false)",
    )


class GetEventDetailsInput(ToolInput):
    event_id: UUID = Field(alias="eventId", description="Event ID (UUID)")


class GetServiceTimelineInput(ToolInput):
    service_id: str = Field(min_length=1, alias="serviceId", description="Service ID")
    start_date: Optional[str] = Field(default=None, alias="startDate", description="Start date (ISO 8601)")
    end_date: Optional[str] = Field(default=None, alias="endDate", description="End date (ISO 8601)")
    limit: int = Field(default=20, ge=1, le=100, description="Maximum events to return")


class GetImpactSummaryInput(ToolInput):
    service_id: str = Field(min_length=1, alias="serviceId", description="Service ID to analyze")
    start_date: Optional[str] = Field(default=None, alias="startDate", description="Start date (ISO 8601)")
    end_date: Optional[str] = Field(default=None, alias="endDate", description="End date (ISO 8601)")
    max_events: int = Field(default=50, ge=1, le=100, alias="maxEvents", description="Maximum events to analyze")
