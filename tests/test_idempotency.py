import asyncio

import pytest

from univai_mcp.config import GatewayConfig, IdempotencyConfig
from univai_mcp.errors import IdempotencyConflictError, SupabaseError, ValidationError
from univai_mcp.idempotency import (
    IdempotencyGuard,
    InMemoryIdempotencyStore,
    RpcIdempotencyStore,
    build_idempotency_store,
)

from conftest import StubSupabase


@pytest.mark.asyncio
async def test_first_use_then_duplicate():
    guard = IdempotencyGuard(InMemoryIdempotencyStore())
    assert await guard.ensure_once("key-1", "hash-a") is False
    assert await guard.ensure_once("key-1", "hash-a") is True


@pytest.mark.asyncio
async def test_same_key_different_payload_conflicts():
    store = InMemoryIdempotencyStore()
    guard = IdempotencyGuard(store)
    await guard.ensure_once("key-1", "hash-a")
    with pytest.raises(IdempotencyConflictError) as excinfo:
        await guard.ensure_once("key-1", "hash-b")
    assert excinfo.value.status_code == 409
    # The original binding is kept.
    assert await guard.ensure_once("key-1", "hash-a") is True
    assert len(store) == 1


@pytest.mark.asyncio
async def test_keys_are_independent():
    guard = IdempotencyGuard(InMemoryIdempotencyStore())
    assert await guard.ensure_once("key-1", "hash-a") is False
    assert await guard.ensure_once("key-2", "hash-a") is False


@pytest.mark.asyncio
async def test_concurrent_first_uses_yield_one_winner():
    guard = IdempotencyGuard(InMemoryIdempotencyStore())
    results = await asyncio.gather(*(guard.ensure_once("key-race", "hash-a") for _ in range(10)))
    assert results.count(False) == 1
    assert results.count(True) == 9


@pytest.mark.asyncio
@pytest.mark.parametrize("key,payload_hash", [("", "h"), ("k", "")])
async def test_empty_values_rejected(key, payload_hash):
    guard = IdempotencyGuard(InMemoryIdempotencyStore())
    with pytest.raises(ValidationError):
        await guard.ensure_once(key, payload_hash)


@pytest.mark.asyncio
async def test_rpc_store_sends_key_hash_tool_and_ttl():
    supabase = StubSupabase(rpc_results={"ensure_key": [{"was_processed": False}]})
    store = RpcIdempotencyStore(supabase, "ensure_key", tool_name="wallet_transfer", ttl_seconds=3600)
    assert await store.check_and_set("key-1", "hash-a") is False
    assert supabase.rpc_calls == [
        {
            "fn": "ensure_key",
            "params": {
                "p_idempotency_key": "key-1",
                "p_payload_hash": "hash-a",
                "p_tool_name": "wallet_transfer",
                "p_ttl_seconds": 3600,
            },
        }
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response,expected",
    [
        (True, True),
        (False, False),
        ({"was_processed": True, "payload_hash": "hash-a"}, True),
        ([{"was_processed": False}], False),
    ],
)
async def test_rpc_store_interprets_responses(response, expected):
    supabase = StubSupabase(rpc_results={"ensure_key": response})
    store = RpcIdempotencyStore(supabase, "ensure_key", tool_name="t", ttl_seconds=60)
    assert await store.check_and_set("key-1", "hash-a") is expected


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [{"conflict": True}, {"was_processed": True, "payload_hash": "hash-other"}],
)
async def test_rpc_store_conflicts(response):
    supabase = StubSupabase(rpc_results={"ensure_key": response})
    store = RpcIdempotencyStore(supabase, "ensure_key", tool_name="t", ttl_seconds=60)
    with pytest.raises(IdempotencyConflictError):
        await store.check_and_set("key-1", "hash-a")


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [None, {}, [], "yes"])
async def test_rpc_store_rejects_unexpected_responses(response):
    supabase = StubSupabase(rpc_results={"ensure_key": response})
    store = RpcIdempotencyStore(supabase, "ensure_key", tool_name="t", ttl_seconds=60)
    with pytest.raises(SupabaseError, match="unexpected response"):
        await store.check_and_set("key-1", "hash-a")


@pytest.mark.asyncio
async def test_rpc_store_wraps_collaborator_failure():
    supabase = StubSupabase(rpc_results={"ensure_key": SupabaseError("rpc ensure_key failed: boom")})
    store = RpcIdempotencyStore(supabase, "ensure_key", tool_name="t", ttl_seconds=60)
    with pytest.raises(SupabaseError, match="Idempotency RPC failed"):
        await store.check_and_set("key-1", "hash-a")


def test_store_selection():
    supabase = StubSupabase()
    assert isinstance(
        build_idempotency_store(GatewayConfig(mode="mock"), supabase, tool_name="t"), InMemoryIdempotencyStore
    )
    live = GatewayConfig(mode="live", bearer_token="t")
    assert isinstance(build_idempotency_store(live, supabase, tool_name="t"), RpcIdempotencyStore)
    no_rpc = GatewayConfig(mode="live", bearer_token="t", idempotency=IdempotencyConfig(rpc_name=None))
    assert isinstance(build_idempotency_store(no_rpc, supabase, tool_name="t"), InMemoryIdempotencyStore)
