"""SQLAlchemy ORM models, dual-dialect (Postgres/SQLite).

Events are scoped to services. Every read path must filter or post-check
``Event.service_id`` against the caller's entitlements.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .types import GUID, JSONB, StringList


class Base(DeclarativeBase):
    pass


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# events
# ---------------------------------------------------------------------------
class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(GUID(), primary_key=True, default=GUID.new)
    # Tenant key, every entitlement check is made against it.
    service_id: Mapped[str] = mapped_column(Text, nullable=False)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False, default="info")
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[dict | None] = mapped_column("metadata", JSONB(), nullable=True)
    embedding: Mapped[list | None] = mapped_column(JSONB(none_as_null=True), nullable=True)
    correlation_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_event_id: Mapped[str | None] = mapped_column(GUID(), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        Index("events_service_id_idx", "service_id"),
        Index("events_event_type_idx", "event_type"),
        Index("events_occurred_at_idx", "occurred_at"),
        Index("events_correlation_id_idx", "correlation_id"),
    )

    def __repr__(self) -> str:
        return f"<Event {self.id[:8]}... {self.service_id}>"


# ---------------------------------------------------------------------------
# services
# ---------------------------------------------------------------------------
class Service(Base):
    """Informational service registry. Entitlement checks never read it; a
    token may name a service id that has no row here."""

    __tablename__ = "services"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    team_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


# ---------------------------------------------------------------------------
# api_tokens
# ---------------------------------------------------------------------------
class ApiToken(Base):
    __tablename__ = "api_tokens"

    id: Mapped[str] = mapped_column(GUID(), primary_key=True, default=GUID.new)
    token_hash: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # Empty list means no access, "*" means every service.
    authorized_services: Mapped[list[str]] = mapped_column(StringList(), nullable=False, default=list)
    created_by: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    def __repr__(self) -> str:
        return f"<ApiToken {self.name}>"
