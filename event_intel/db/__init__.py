"""Database module."""

from event_intel.db.models import ApiToken, Base, Event, Service
from event_intel.db.session import (
    create_tables,
    make_engine,
    make_session_factory,
    verify_database_connection,
)

__all__ = [
    "ApiToken",
    "Base",
    "Event",
    "Service",
    "create_tables",
    "make_engine",
    "make_session_factory",
    "verify_database_connection",
]
