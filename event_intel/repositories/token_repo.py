"""API token (credential record) repository."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.models import ApiToken
from ..db.types import GUID


@runtime_checkable
class TokenRepository(Protocol):
    async def get_by_hash(self, token_hash: str) -> ApiToken | None: ...
    async def touch_last_used(self, id: str, used_at: datetime) -> None: ...
    async def create(
        self,
        token_hash: str,
        name: str,
        authorized_services: list[str],
        created_by: str,
        expires_at: datetime | None = None,
    ) -> ApiToken: ...


class SQLAlchemyTokenRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_by_hash(self, token_hash: str) -> ApiToken | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ApiToken).where(ApiToken.token_hash == token_hash).limit(1)
            )
            return result.scalar_one_or_none()

    async def touch_last_used(self, id: str, used_at: datetime) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(ApiToken).where(ApiToken.id == id).values(last_used_at=used_at)
                )

    async def create(
        self,
        token_hash: str,
        name: str,
        authorized_services: list[str],
        created_by: str,
        expires_at: datetime | None = None,
    ) -> ApiToken:
        token = ApiToken(
            id=GUID.new(),
            token_hash=token_hash,
            name=name,
            authorized_services=list(authorized_services),
            created_by=created_by,
            expires_at=expires_at,
        )
        async with self._session_factory() as session:
            async with session.begin():
                session.add(token)
        return token
