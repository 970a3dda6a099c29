"""Credential resolution and its audit trail."""

from __future__ import annotations

import asyncio
import logging

import pytest

from event_intel.auth import ANONYMOUS_CALLER, INVALID_CALLER, CallerType
from event_intel.auth.credentials import (
    CredentialResolver,
    create_api_token,
    extract_auth_token,
    generate_token,
    hash_token,
)

pytestmark = pytest.mark.asyncio


class FailingTouchRepository:
    """Token store whose bookkeeping write always fails."""

    def __init__(self, inner):
        self._inner = inner
        self.touch_calls = 0

    async def get_by_hash(self, token_hash):
        return await self._inner.get_by_hash(token_hash)

    async def touch_last_used(self, id, used_at):
        self.touch_calls += 1
        raise RuntimeError("disk full")

    async def create(self, *args, **kwargs):
        return await self._inner.create(*args, **kwargs)


class BrokenLookupRepository:
    async def get_by_hash(self, token_hash):
        raise ConnectionError("credential store unreachable")

    async def touch_last_used(self, id, used_at):
        return None

    async def create(self, *args, **kwargs):
        raise NotImplementedError


class TestTokenHelpers:
    async def test_hash_is_sha256_hex(self):
        assert hash_token("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    async def test_generated_tokens_are_64_hex_chars(self):
        token = generate_token()
        assert len(token) == 64
        int(token, 16)
        assert token != generate_token()

    async def test_extract_prefers_call_metadata(self):
        assert extract_auth_token({"authToken": "per-call"}, "fallback") == "per-call"
        assert extract_auth_token({}, "fallback") == "fallback"
        assert extract_auth_token(None, None) is None
        assert extract_auth_token({"authToken": ""}, None) is None
        assert extract_auth_token({"authToken": 42}, None) is None

    async def test_create_stores_only_the_hash(self, token_repo):
        raw, token_id = await create_api_token(token_repo, "ci", ["svc-a"], created_by="ops")
        record = await token_repo.get_by_hash(hash_token(raw))
        assert record is not None
        assert record.id == token_id
        assert record.token_hash != raw
        assert record.authorized_services == ["svc-a"]
        assert record.expires_at is None


@pytest.mark.security
class TestResolve:
    async def test_missing_token_is_anonymous(self, resolver, audit_entries):
        ctx = await resolver.resolve(None)
        assert ctx.caller_id == ANONYMOUS_CALLER
        assert ctx.authorized_services == frozenset()

        entries = audit_entries()
        assert len(entries) == 1
        assert entries[0]["action"] == "authentication_failure"
        assert entries[0]["success"] is False
        assert entries[0]["metadata"]["reason"] == "missing_token"

    async def test_unknown_token_is_invalid_and_never_logs_raw_secret(self, resolver, audit_entries):
        raw = "not-a-real-token-" + "x" * 40
        ctx = await resolver.resolve(raw)
        assert ctx.caller_id == INVALID_CALLER
        assert ctx.authorized_services == frozenset()

        entries = audit_entries()
        assert len(entries) == 1
        assert entries[0]["metadata"] == {"reason": "invalid_token", "tokenHash": hash_token(raw)}
        assert raw not in str(entries)

    async def test_expired_token_keeps_identity_but_no_entitlements(self, resolver, token_repo, audit_entries):
        raw, token_id = await create_api_token(
            token_repo, "old", ["svc-a"], created_by="ops", expires_in_days=-1
        )
        ctx = await resolver.resolve(raw)
        assert ctx.caller_id == token_id
        assert ctx.authorized_services == frozenset()

        entry = audit_entries()[-1]
        assert entry["action"] == "authentication_failure"
        assert entry["callerId"] == token_id
        assert entry["metadata"]["reason"] == "expired_token"
        assert entry["metadata"]["name"] == "old"
        assert entry["metadata"]["expiresAt"].endswith("Z")

    async def test_valid_token_yields_exact_entitlements(self, resolver, token_repo, audit_entries):
        raw, token_id = await create_api_token(
            token_repo, "ci-bot", ["svc-a", "svc-b"], created_by="ops", expires_in_days=30
        )
        ctx = await resolver.resolve(raw)
        assert ctx.caller_id == token_id
        assert ctx.caller_name == "ci-bot"
        assert ctx.caller_type is CallerType.TOKEN
        assert ctx.authorized_services == frozenset({"svc-a", "svc-b"})

        entry = audit_entries()[-1]
        assert entry["action"] == "authentication_success"
        assert entry["success"] is True
        assert sorted(entry["metadata"]["authorizedServices"]) == ["svc-a", "svc-b"]

    async def test_valid_token_updates_last_used(self, resolver, token_repo):
        raw, _ = await create_api_token(token_repo, "ci", ["svc-a"], created_by="ops")
        assert (await token_repo.get_by_hash(hash_token(raw))).last_used_at is None

        await resolver.resolve(raw)
        await resolver.drain()

        assert (await token_repo.get_by_hash(hash_token(raw))).last_used_at is not None

    async def test_bookkeeping_failure_is_logged_not_raised(self, token_repo, audit, caplog):
        failing = FailingTouchRepository(token_repo)
        resolver = CredentialResolver(failing, audit)
        raw, token_id = await create_api_token(token_repo, "ci", ["svc-a"], created_by="ops")

        with caplog.at_level(logging.WARNING, logger="event_intel.auth.credentials"):
            ctx = await resolver.resolve(raw)
            await resolver.drain()
            # Let the done-callback run
            await asyncio.sleep(0)

        assert ctx.authorized_services == frozenset({"svc-a"})
        assert failing.touch_calls == 1
        assert any("last_used_at" in r.getMessage() for r in caplog.records)

    async def test_lookup_failure_propagates(self, audit):
        resolver = CredentialResolver(BrokenLookupRepository(), audit)
        with pytest.raises(ConnectionError):
            await resolver.resolve("some-token")


@pytest.mark.security
class TestResolveFromMetadata:
    async def test_fallback_used_only_without_call_token(self, token_repo, audit):
        fallback_raw, fallback_id = await create_api_token(token_repo, "fallback", ["svc-b"], created_by="ops")
        call_raw, call_id = await create_api_token(token_repo, "call", ["svc-a"], created_by="ops")
        resolver = CredentialResolver(token_repo, audit, fallback_token=fallback_raw)

        assert (await resolver.resolve_from_metadata(None)).caller_id == fallback_id
        assert (await resolver.resolve_from_metadata({"authToken": call_raw})).caller_id == call_id
        await resolver.drain()

    async def test_no_fallback_by_default(self, resolver):
        ctx = await resolver.resolve_from_metadata({"other": "value"})
        assert ctx.caller_id == ANONYMOUS_CALLER
