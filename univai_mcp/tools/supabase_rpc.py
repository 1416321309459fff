"""Allowlisted database access tools: named RPCs and named SQL queries."""

from __future__ import annotations

from typing import Any, Dict

from univai_mcp.config import MAX_SQL_LIMIT, GatewayConfig
from univai_mcp.context import ExecutionContext
from univai_mcp.errors import RpcNotAllowedError, SupabaseError
from univai_mcp.registry import ToolDefinition

CALL_RPC_INPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "supabase_call_rpc.input",
    "type": "object",
    "required": ["name"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "params": {"type": "object"},
    },
    "additionalProperties": False,
}

CALL_RPC_OUTPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "supabase_call_rpc.output",
    "type": "object",
    "required": ["name", "type", "data"],
    "properties": {
        "name": {"type": "string"},
        "type": {"type": "string", "enum": ["edge", "postgres"]},
        "data": {},
    },
    "additionalProperties": False,
}

QUERY_SQL_INPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "supabase_query_sql.input",
    "type": "object",
    "required": ["queryName"],
    "properties": {
        "queryName": {"type": "string", "minLength": 1},
        "params": {"type": "object"},
        "limit": {"type": "integer", "minimum": 1, "maximum": MAX_SQL_LIMIT},
    },
    "additionalProperties": False,
}

QUERY_SQL_OUTPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "supabase_query_sql.output",
    "type": "object",
    "required": ["queryName", "rows", "rowCount"],
    "properties": {
        "queryName": {"type": "string"},
        "rows": {"type": "array", "items": {"type": "object"}},
        "rowCount": {"type": "integer", "minimum": 0},
    },
    "additionalProperties": False,
}


def _resolve_rpc(config: GatewayConfig, name: str) -> Dict[str, str]:
    entry = config.allowlisted_rpcs.get(name)
    if entry is None:
        raise RpcNotAllowedError(f"RPC not allowlisted: {name}")
    # Transfers only go through wallet_transfer and its guards.
    if entry["type"] == "edge" and entry["name"] == config.wallet.transfer_function_name:
        raise RpcNotAllowedError(f"RPC not allowlisted: {name}")
    return entry


def build_call_rpc_tool(config: GatewayConfig) -> ToolDefinition:
    async def handler(context: ExecutionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        name = data["name"]
        params = data.get("params") or {}
        entry = _resolve_rpc(config, name)

        if config.dry_run:
            return {"name": name, "type": entry["type"], "data": {"mocked": True, "params": params}}

        context.logger.info("Calling allowlisted %s rpc %s", entry["type"], entry["name"])
        if entry["type"] == "edge":
            result = await context.supabase.invoke_function(
                entry["name"], params, headers={"X-Correlation-Id": context.correlation_id}
            )
        else:
            result = await context.supabase.rpc(entry["name"], params)
        return {"name": name, "type": entry["type"], "data": result}

    return ToolDefinition(
        name="supabase_call_rpc",
        description="Call an allowlisted Postgres RPC or edge function.",
        input_schema=CALL_RPC_INPUT_SCHEMA,
        output_schema=CALL_RPC_OUTPUT_SCHEMA,
        idempotent=False,
        handler=handler,
    )


def _extract_rows(data: Any) -> list:
    if isinstance(data, dict):
        data = data.get("rows")
    if data is None:
        return []
    if not isinstance(data, list):
        raise SupabaseError("SQL runner returned an unexpected response")
    return data


def build_query_sql_tool(config: GatewayConfig) -> ToolDefinition:
    async def handler(context: ExecutionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        query_name = data["queryName"]
        sql = config.allowlisted_sql.get(query_name)
        if sql is None:
            raise RpcNotAllowedError(f"Query not allowlisted: {query_name}")
        limit = min(data.get("limit") or config.sql_default_limit, MAX_SQL_LIMIT)

        if config.dry_run:
            return {"queryName": query_name, "rows": [], "rowCount": 0}

        result = await context.supabase.rpc(
            config.sql_runner_rpc,
            {"p_query": sql, "p_params": data.get("params") or {}, "p_limit": limit},
        )
        rows = _extract_rows(result)[:limit]
        return {"queryName": query_name, "rows": rows, "rowCount": len(rows)}

    return ToolDefinition(
        name="supabase_query_sql",
        description="Run a named, allowlisted SQL query through the SQL runner RPC.",
        input_schema=QUERY_SQL_INPUT_SCHEMA,
        output_schema=QUERY_SQL_OUTPUT_SCHEMA,
        idempotent=True,
        handler=handler,
    )
