"""API token resolution.

Turns the opaque ``authToken`` carried in tool-call metadata into a
``CallerContext``. Authentication failures never raise: they resolve to a
zero-entitlement context, which yields empty results on every read path,
and are recorded in the audit stream.
"""

from __future__ import annotations

import asyncio
import hashlib
import secrets
from datetime import timedelta
from functools import partial
from typing import Any, Mapping, Optional

from event_intel.auth.context import ANONYMOUS_CALLER, INVALID_CALLER, CallerContext, CallerType
from event_intel.core.logging import get_logger
from event_intel.core.time import ensure_utc, isoformat_ms, utcnow
from event_intel.repositories.token_repo import TokenRepository
from event_intel.services.audit_service import AuditRecorder, AuthFailureReason

logger = get_logger(__name__)

AUTH_TOKEN_METADATA_KEY = "authToken"


def hash_token(token: str) -> str:
    """Hash an API token for storage and lookup."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_token() -> str:
    """Generate a new random API token (64 hex chars)."""
    return secrets.token_hex(32)


def extract_auth_token(
    metadata: Optional[Mapping[str, Any]],
    fallback_token: Optional[str] = None,
) -> Optional[str]:
    """Pick the bearer token for a call.

    The per-call ``authToken`` wins; ``fallback_token`` is only used when the
    call carries none.
    """
    token = None
    if isinstance(metadata, Mapping):
        value = metadata.get(AUTH_TOKEN_METADATA_KEY)
        if isinstance(value, str) and value:
            token = value
    return token or fallback_token or None


class CredentialResolver:
    """Resolve raw API tokens to caller contexts."""

    def __init__(
        self,
        tokens: TokenRepository,
        audit: AuditRecorder,
        fallback_token: Optional[str] = None,
    ):
        self._tokens = tokens
        self._audit = audit
        self._fallback_token = fallback_token
        self._pending: set[asyncio.Task] = set()

    async def resolve_from_metadata(self, metadata: Optional[Mapping[str, Any]]) -> CallerContext:
        """Resolve the caller for one tool call from its metadata."""
        return await self.resolve(extract_auth_token(metadata, self._fallback_token))

    async def resolve(self, raw_token: Optional[str]) -> CallerContext:
        """Resolve a raw token. Storage errors during lookup propagate."""
        if not raw_token:
            self._audit.auth_failure(ANONYMOUS_CALLER, AuthFailureReason.MISSING_TOKEN)
            return CallerContext.unauthenticated(ANONYMOUS_CALLER)

        token_hash = hash_token(raw_token)
        record = await self._tokens.get_by_hash(token_hash)

        if record is None:
            self._audit.auth_failure(
                INVALID_CALLER,
                AuthFailureReason.INVALID_TOKEN,
                {"tokenHash": token_hash},
            )
            return CallerContext.unauthenticated(INVALID_CALLER)

        # Identity is kept on expiry so the audit trail can tell a retried
        # expired token from one that never existed.
        if record.expires_at is not None and ensure_utc(record.expires_at) < utcnow():
            self._audit.auth_failure(
                record.id,
                AuthFailureReason.EXPIRED_TOKEN,
                {"name": record.name, "expiresAt": isoformat_ms(record.expires_at)},
            )
            return CallerContext.unauthenticated(record.id)

        self._schedule_last_used(record.id)

        authorized = list(record.authorized_services or [])
        self._audit.auth_success(
            record.id,
            record.name,
            {"authorizedServices": authorized},
        )
        return CallerContext.build(
            caller_id=record.id,
            caller_name=record.name,
            authorized_services=authorized,
            caller_type=CallerType.TOKEN,
        )

    def _schedule_last_used(self, token_id: str) -> None:
        """Fire-and-forget ``last_used_at`` bookkeeping."""
        task = asyncio.get_running_loop().create_task(
            self._tokens.touch_last_used(token_id, utcnow()),
            name=f"touch-last-used-{token_id}",
        )
        self._pending.add(task)
        task.add_done_callback(partial(self._on_last_used_done, token_id))

    def _on_last_used_done(self, token_id: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                "Failed to update last_used_at for token",
                data={"token_id": token_id, "error": f"{type(exc).__name__}: {exc}"},
            )

    async def drain(self) -> None:
        """Wait for pending bookkeeping writes (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


async def create_api_token(
    tokens: TokenRepository,
    name: str,
    authorized_services: list[str],
    created_by: str,
    expires_in_days: Optional[float] = None,
) -> tuple[str, str]:
    """Create a new API token.

    Returns:
        Tuple of (raw_token, token_id). The raw token is not stored.
    """
    raw_token = generate_token()
    expires_at = None
    if expires_in_days is not None:
        expires_at = utcnow() + timedelta(days=expires_in_days)

    record = await tokens.create(
        token_hash=hash_token(raw_token),
        name=name,
        authorized_services=authorized_services,
        created_by=created_by,
        expires_at=expires_at,
    )
    logger.info(
        "Created API token",
        data={"token_id": record.id, "name": name, "authorized_services": authorized_services},
    )
    return raw_token, record.id
