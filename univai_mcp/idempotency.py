"""
Idempotency guard for side-effecting tools.

A key is bound to the hash of the payload it was first used with. Reusing the
key with the same hash is a duplicate; reusing it with a different hash is a
caller error. The check-and-set is atomic per key in every store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

from univai_mcp.errors import IdempotencyConflictError, SupabaseError, ValidationError

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "Idempotency key already used with a different payload"


class IdempotencyStore(Protocol):
    async def check_and_set(self, key: str, payload_hash: str) -> bool:
        """
        Record ``key -> payload_hash`` if the key is new and return False.

        Return True if the key is already recorded with the same hash. Raise
        IdempotencyConflictError if it is recorded with a different hash.
        """
        ...


class InMemoryIdempotencyStore:
    """
    Process-local store for mock mode and deployments without the RPC.

    Entries are never evicted; see DESIGN.md.
    """

    def __init__(self) -> None:
        self._records: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def check_and_set(self, key: str, payload_hash: str) -> bool:
        async with self._lock:
            existing = self._records.get(key)
            if existing is None:
                self._records[key] = payload_hash
                return False
            if existing != payload_hash:
                raise IdempotencyConflictError(CONFLICT_MESSAGE)
            return True

    def __len__(self) -> int:
        return len(self._records)


class RpcIdempotencyStore:
    """
    Store backed by a single atomic database function.

    The function inserts the key or reports the existing record in one
    statement, so concurrent first uses cannot both observe "new".
    """

    def __init__(self, supabase: Any, rpc_name: str, *, tool_name: str, ttl_seconds: int) -> None:
        self._supabase = supabase
        self._rpc_name = rpc_name
        self._tool_name = tool_name
        self._ttl_seconds = ttl_seconds

    async def check_and_set(self, key: str, payload_hash: str) -> bool:
        try:
            data = await self._supabase.rpc(
                self._rpc_name,
                {
                    "p_idempotency_key": key,
                    "p_payload_hash": payload_hash,
                    "p_tool_name": self._tool_name,
                    "p_ttl_seconds": self._ttl_seconds,
                },
            )
        except SupabaseError as exc:
            raise SupabaseError(f"Idempotency RPC failed: {exc.message}", code=exc.code) from exc
        return self._interpret(data, payload_hash)

    @staticmethod
    def _interpret(data: Any, payload_hash: str) -> bool:
        # PostgREST returns set-returning functions as a list of rows.
        if isinstance(data, list) and len(data) == 1:
            data = data[0]
        if isinstance(data, bool):
            return data
        if isinstance(data, dict):
            stored_hash = data.get("payload_hash")
            if data.get("conflict") or (isinstance(stored_hash, str) and stored_hash != payload_hash):
                raise IdempotencyConflictError(CONFLICT_MESSAGE)
            if "was_processed" in data:
                return bool(data["was_processed"])
        raise SupabaseError("Idempotency RPC returned an unexpected response")


class IdempotencyGuard:
    def __init__(self, store: IdempotencyStore) -> None:
        self.store = store

    async def ensure_once(self, key: str, payload_hash: str, *, log: Optional[Any] = None) -> bool:
        """Return True if this (key, payload) was already seen, False on first use."""
        if not key or not payload_hash:
            raise ValidationError("Idempotency key and payload hash are required")
        log = log or logger
        try:
            was_duplicate = await self.store.check_and_set(key, payload_hash)
        except IdempotencyConflictError:
            log.warning("Idempotency conflict for key %s", key)
            raise
        if was_duplicate:
            log.info("Idempotency key %s already processed", key)
        return was_duplicate


def build_idempotency_store(config: Any, supabase: Any, *, tool_name: str) -> IdempotencyStore:
    """Mock mode or a missing RPC name selects the in-memory store."""
    rpc_name = config.idempotency.rpc_name
    if config.is_mock or not rpc_name:
        return InMemoryIdempotencyStore()
    return RpcIdempotencyStore(
        supabase,
        rpc_name,
        tool_name=tool_name,
        ttl_seconds=config.idempotency.ttl_seconds,
    )
