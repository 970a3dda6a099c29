"""Dialect-aware column types for Postgres/SQLite dual support."""

from __future__ import annotations

import uuid

from sqlalchemy import String, types
from sqlalchemy.dialects import postgresql


class GUID(types.TypeDecorator):
    """UUID type: native UUID on Postgres, CHAR(36) on SQLite."""

    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.UUID(as_uuid=False))
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return str(value)

    @staticmethod
    def new() -> str:
        return str(uuid.uuid4())


class JSONB(types.TypeDecorator):
    """JSONB on Postgres, JSON on SQLite.

    ``none_as_null`` is forwarded to the dialect type so Python ``None`` can
    be stored as SQL NULL instead of the JSON literal ``null``.
    """

    impl = types.JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        none_as_null = getattr(self.impl, "none_as_null", False)
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.JSONB(none_as_null=none_as_null))
        return dialect.type_descriptor(types.JSON(none_as_null=none_as_null))


class StringList(types.TypeDecorator):
    """Text array on Postgres, JSON list on SQLite."""

    impl = types.JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.ARRAY(types.Text))
        return dialect.type_descriptor(types.JSON)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return [str(v) for v in value]

    def process_result_value(self, value, dialect):
        if value is None:
            return []
        return list(value)
