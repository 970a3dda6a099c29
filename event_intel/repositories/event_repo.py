"""Event repository.

Every read that can return more than one event takes a ``scope`` argument
(``"*"`` or a frozenset of service ids) and funnels it through
``build_event_conditions``. Keyword and similarity search therefore share
one WHERE clause and cannot drift apart on authorization.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Protocol, Union, runtime_checkable

from sqlalchemy import ColumnElement, and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.models import Event
from ..db.types import GUID

ServiceScope = Union[Literal["*"], frozenset[str]]

LIKE_ESCAPE = "\\"


@dataclass(frozen=True)
class EventFilters:
    """Optional narrowing filters supplied by the caller."""

    service_id: str | None = None
    event_type: str | None = None
    severity: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


def escape_like_pattern(text: str) -> str:
    """Escape LIKE metacharacters so ``text`` matches literally.

    The escape character itself is escaped first, then ``%`` and ``_``.
    """
    return (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def build_event_conditions(scope: ServiceScope, filters: EventFilters) -> list[ColumnElement[bool]]:
    """Build the WHERE conditions shared by every multi-row event read.

    The entitlement condition is always first and always ANDed with the
    rest; an empty scope renders as an always-false ``IN ()``.
    """
    conditions: list[ColumnElement[bool]] = []

    if scope != "*":
        conditions.append(Event.service_id.in_(sorted(scope)))

    if filters.service_id:
        conditions.append(Event.service_id == filters.service_id)
    if filters.event_type:
        conditions.append(Event.event_type == filters.event_type)
    if filters.severity:
        conditions.append(Event.severity == filters.severity)
    if filters.start_date:
        conditions.append(Event.occurred_at >= filters.start_date)
    if filters.end_date:
        conditions.append(Event.occurred_at <= filters.end_date)

    return conditions


@runtime_checkable
class EventRepository(Protocol):
    async def search_keyword(
        self, scope: ServiceScope, filters: EventFilters, query: str, limit: int
    ) -> list[Event]: ...
    async def list_with_embeddings(self, scope: ServiceScope, filters: EventFilters) -> list[Event]: ...
    async def get_by_id(self, id: str) -> Event | None: ...
    async def list_for_service(
        self, service_id: str, start_date: datetime | None, end_date: datetime | None, limit: int
    ) -> list[Event]: ...
    async def create(self, **kwargs: Any) -> Event: ...


class SQLAlchemyEventRepository:
    """Event store backed by an async session factory.

    Each operation runs in its own short-lived session so concurrent tool
    calls never share a unit of work.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def search_keyword(
        self, scope: ServiceScope, filters: EventFilters, query: str, limit: int
    ) -> list[Event]:
        pattern = f"%{escape_like_pattern(query)}%"
        conditions = build_event_conditions(scope, filters)
        conditions.append(
            or_(
                Event.title.ilike(pattern, escape=LIKE_ESCAPE),
                Event.description.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
        stmt = (
            select(Event)
            .where(and_(*conditions))
            .order_by(Event.occurred_at.desc(), Event.id)
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_with_embeddings(self, scope: ServiceScope, filters: EventFilters) -> list[Event]:
        conditions = build_event_conditions(scope, filters)
        conditions.append(Event.embedding.is_not(None))
        stmt = select(Event).where(and_(*conditions))
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_by_id(self, id: str) -> Event | None:
        async with self._session_factory() as session:
            return await session.get(Event, id)

    async def list_for_service(
        self, service_id: str, start_date: datetime | None, end_date: datetime | None, limit: int
    ) -> list[Event]:
        conditions = [Event.service_id == service_id]
        if start_date:
            conditions.append(Event.occurred_at >= start_date)
        if end_date:
            conditions.append(Event.occurred_at <= end_date)
        stmt = (
            select(Event)
            .where(and_(*conditions))
            .order_by(Event.occurred_at.desc(), Event.id)
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def create(self, **kwargs: Any) -> Event:
        event = Event(id=kwargs.pop("id", None) or GUID.new(), **kwargs)
        async with self._session_factory() as session:
            async with session.begin():
                session.add(event)
        return event
