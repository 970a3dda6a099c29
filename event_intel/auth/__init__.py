"""Caller authentication and entitlement evaluation."""

from event_intel.auth.context import (
    ALL_SERVICES,
    ANONYMOUS_CALLER,
    INVALID_CALLER,
    CallerContext,
    CallerType,
    authorized_service_filter,
    is_authorized_for,
)

__all__ = [
    "ALL_SERVICES",
    "ANONYMOUS_CALLER",
    "INVALID_CALLER",
    "CallerContext",
    "CallerType",
    "authorized_service_filter",
    "is_authorized_for",
]
