"""
Guarded SOL transfer tool.

Each request moves through ceiling check, confirmation-token verification, and
the idempotency guard before the transfer function is invoked. A transfer is
executed at most once per idempotency key.
"""

from __future__ import annotations

import hashlib
import math
from typing import Any, Dict

from univai_mcp.config import GatewayConfig
from univai_mcp.context import ExecutionContext, isoformat_z
from univai_mcp.errors import AmountExceedsMaxError, TransferExecutionError, ValidationError
from univai_mcp.idempotency import IdempotencyGuard
from univai_mcp.logging_config import short_wallet
from univai_mcp.registry import ToolDefinition
from univai_mcp.tokens import ConfirmationPayload, compute_payload_hash, verify_for_config

TOOL_NAME = "wallet_transfer"

INPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "wallet_transfer.input",
    "type": "object",
    "required": ["fromWallet", "toWallet", "amountSol", "confirmationToken", "idempotencyKey"],
    "properties": {
        "fromWallet": {"type": "string", "minLength": 1},
        "toWallet": {"type": "string", "minLength": 1},
        "amountSol": {"type": "number", "exclusiveMinimum": 0},
        "memo": {"type": "string", "maxLength": 120},
        "confirmationToken": {"type": "string", "minLength": 32},
        "idempotencyKey": {"type": "string", "minLength": 24},
    },
    "additionalProperties": False,
}

OUTPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "wallet_transfer.output",
    "type": "object",
    "required": ["status", "idempotencyKey", "submittedAt", "wasDuplicate", "transactionSignature"],
    "properties": {
        "status": {"type": "string", "enum": ["submitted", "duplicate", "mocked"]},
        "idempotencyKey": {"type": "string"},
        "submittedAt": {"type": "string", "format": "date-time"},
        "wasDuplicate": {"type": "boolean"},
        "transactionSignature": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}


def mock_signature(idempotency_key: str, payload_hash: str) -> str:
    """Deterministic placeholder signature for dry-run transfers."""
    digest = hashlib.sha256(f"{idempotency_key}:{payload_hash}".encode("utf-8")).hexdigest()
    return f"mock-signature-{digest[:32]}"


def _transfer_output(
    status: str, idempotency_key: str, submitted_at: str, signature: str | None
) -> Dict[str, Any]:
    return {
        "status": status,
        "idempotencyKey": idempotency_key,
        "submittedAt": submitted_at,
        "wasDuplicate": status == "duplicate",
        "transactionSignature": signature,
    }


def _extract_signature(data: Any) -> str | None:
    if isinstance(data, dict):
        signature = data.get("signature") or data.get("transactionSignature")
        if isinstance(signature, str) and signature:
            return signature
    return None


def build_wallet_transfer_tool(config: GatewayConfig, *, guard: IdempotencyGuard) -> ToolDefinition:
    """Create the tool. ``guard`` owns the idempotency store shared by all requests."""

    async def handler(context: ExecutionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        log = context.logger
        amount = data["amountSol"]
        if not math.isfinite(amount):
            raise ValidationError("amountSol must be a finite number")
        if amount > config.wallet.max_sol:
            raise AmountExceedsMaxError(f"Amount exceeds configured max ({config.wallet.max_sol:g} SOL)")

        payload = ConfirmationPayload.from_input(data)
        verify_for_config(config, data["confirmationToken"], payload, context.now(), logger=log)

        idempotency_key = data["idempotencyKey"]
        payload_hash = compute_payload_hash(payload)
        was_duplicate = await guard.ensure_once(idempotency_key, payload_hash, log=log)
        submitted_at = isoformat_z(context.now())

        if was_duplicate:
            log.warning("Duplicate wallet transfer detected idempotency_key=%s", idempotency_key)
            return _transfer_output("duplicate", idempotency_key, submitted_at, None)

        if config.dry_run:
            log.info(
                "Wallet transfer executed in mock mode from=%s to=%s amount_sol=%s",
                short_wallet(payload.from_wallet),
                short_wallet(payload.to_wallet),
                amount,
            )
            return _transfer_output(
                "mocked", idempotency_key, submitted_at, mock_signature(idempotency_key, payload_hash)
            )

        memo = payload.memo
        if memo is None:
            memo = f"{config.wallet.default_memo_prefix}-{context.correlation_id}"
        headers = {
            "Idempotency-Key": idempotency_key,
            "X-Correlation-Id": context.correlation_id,
        }
        try:
            result = await context.supabase.invoke_function(
                config.wallet.transfer_function_name,
                {
                    "fromWallet": payload.from_wallet,
                    "toWallet": payload.to_wallet,
                    "amount": amount,
                    "memo": memo,
                },
                headers=headers,
            )
        except Exception as exc:
            log.error("Wallet transfer failed idempotency_key=%s", idempotency_key, extra={"error": str(exc)})
            raise TransferExecutionError(f"transfer function failed: {exc}") from exc

        signature = _extract_signature(result)
        log.info(
            "Wallet transfer submitted from=%s to=%s amount_sol=%s signature=%s",
            short_wallet(payload.from_wallet),
            short_wallet(payload.to_wallet),
            amount,
            signature,
        )
        return _transfer_output("submitted", idempotency_key, submitted_at, signature)

    return ToolDefinition(
        name=TOOL_NAME,
        description="Submit a guarded Solana transfer via the wallet transfer function.",
        input_schema=INPUT_SCHEMA,
        output_schema=OUTPUT_SCHEMA,
        idempotent=False,
        handler=handler,
    )
