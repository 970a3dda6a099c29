"""Caller context and entitlement checks.

A ``CallerContext`` is built once per inbound tool call by the credential
resolver and passed explicitly to every read operation. It is never
persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from event_intel.repositories.event_repo import ServiceScope

ALL_SERVICES = "*"

ANONYMOUS_CALLER = "anonymous"
INVALID_CALLER = "invalid"


class CallerType(str, Enum):
    """How the caller authenticated."""
    TOKEN = "token"
    USER = "user"


@dataclass(frozen=True)
class CallerContext:
    """Resolved identity and entitlement set for one call."""
    caller_id: str
    authorized_services: frozenset[str] = field(default_factory=frozenset)
    caller_name: Optional[str] = None
    caller_type: CallerType = CallerType.TOKEN

    @classmethod
    def build(
        cls,
        caller_id: str,
        authorized_services: Iterable[str] = (),
        caller_name: Optional[str] = None,
        caller_type: CallerType = CallerType.TOKEN,
    ) -> "CallerContext":
        return cls(
            caller_id=caller_id,
            authorized_services=frozenset(authorized_services),
            caller_name=caller_name,
            caller_type=caller_type,
        )

    @classmethod
    def unauthenticated(cls, caller_id: str) -> "CallerContext":
        """Zero-entitlement context for a failed authentication."""
        return cls(caller_id=caller_id)


def is_authorized_for(context: CallerContext, service_id: str) -> bool:
    """Return True if the caller may see records owned by ``service_id``."""
    if ALL_SERVICES in context.authorized_services:
        return True
    return service_id in context.authorized_services


def authorized_service_filter(context: CallerContext) -> ServiceScope:
    """Inclusion filter for multi-row reads.

    ``"*"`` means no restriction; otherwise the literal entitlement set,
    which may be empty.
    """
    if ALL_SERVICES in context.authorized_services:
        return ALL_SERVICES
    return context.authorized_services
