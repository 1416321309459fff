"""Wallet provisioning tool."""

from __future__ import annotations

import hashlib
from typing import Any, Dict

from univai_mcp.config import GatewayConfig
from univai_mcp.context import ExecutionContext, isoformat_z
from univai_mcp.errors import SupabaseError
from univai_mcp.registry import ToolDefinition

TOOL_NAME = "wallet_create"
BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

INPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "wallet_create.input",
    "type": "object",
    "required": ["userId"],
    "properties": {
        "userId": {"type": "string", "minLength": 1, "maxLength": 128},
        "chain": {"type": "string", "enum": ["solana"]},
        "label": {"type": "string", "maxLength": 64},
    },
    "additionalProperties": False,
}

OUTPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "wallet_create.output",
    "type": "object",
    "required": ["status", "walletAddress", "chain", "createdAt"],
    "properties": {
        "status": {"type": "string", "enum": ["created", "mocked"]},
        "walletAddress": {"type": "string", "minLength": 1},
        "chain": {"type": "string"},
        "createdAt": {"type": "string", "format": "date-time"},
    },
    "additionalProperties": False,
}


def mock_wallet_address(user_id: str) -> str:
    """Stable, Base58-looking placeholder address for a user."""
    digest = hashlib.sha256(f"wallet:{user_id}".encode("utf-8")).digest()
    return "".join(BASE58_ALPHABET[byte % len(BASE58_ALPHABET)] for byte in digest[:32])


def _extract_address(data: Any) -> str | None:
    if isinstance(data, dict):
        for key in ("walletAddress", "address", "publicKey"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def build_wallet_create_tool(config: GatewayConfig) -> ToolDefinition:
    async def handler(context: ExecutionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        chain = data.get("chain", "solana")
        created_at = isoformat_z(context.now())

        if config.dry_run:
            context.logger.info("Wallet creation executed in mock mode")
            return {
                "status": "mocked",
                "walletAddress": mock_wallet_address(data["userId"]),
                "chain": chain,
                "createdAt": created_at,
            }

        body: Dict[str, Any] = {"userId": data["userId"], "chain": chain}
        if data.get("label"):
            body["label"] = data["label"]
        result = await context.supabase.invoke_function(
            config.wallet.create_function_name,
            body,
            headers={"X-Correlation-Id": context.correlation_id},
        )
        address = _extract_address(result)
        if address is None:
            raise SupabaseError(f"function {config.wallet.create_function_name} returned no wallet address")
        context.logger.info("Wallet created address=%s", address[:8])
        return {"status": "created", "walletAddress": address, "chain": chain, "createdAt": created_at}

    return ToolDefinition(
        name=TOOL_NAME,
        description="Provision a custodial wallet for a user.",
        input_schema=INPUT_SCHEMA,
        output_schema=OUTPUT_SCHEMA,
        idempotent=False,
        handler=handler,
    )
