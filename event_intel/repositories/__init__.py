from .event_repo import (
    EventFilters,
    EventRepository,
    ServiceScope,
    SQLAlchemyEventRepository,
    build_event_conditions,
    escape_like_pattern,
)
from .token_repo import SQLAlchemyTokenRepository, TokenRepository

__all__ = [
    "EventFilters",
    "EventRepository",
    "SQLAlchemyEventRepository",
    "SQLAlchemyTokenRepository",
    "ServiceScope",
    "TokenRepository",
    "build_event_conditions",
    "escape_like_pattern",
]
