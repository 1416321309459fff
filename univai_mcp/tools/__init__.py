"""Gateway tool implementations."""

from __future__ import annotations

from typing import List

from univai_mcp.config import GatewayConfig
from univai_mcp.idempotency import IdempotencyGuard
from univai_mcp.registry import ToolDefinition

from .kb_search import build_kb_search_tool
from .storage import build_storage_get_tool, build_storage_put_tool
from .supabase_rpc import build_call_rpc_tool, build_query_sql_tool
from .wallet_create import build_wallet_create_tool
from .wallet_transfer import build_wallet_transfer_tool
from .web_search import build_web_search_tool


def build_tools(config: GatewayConfig, *, transfer_guard: IdempotencyGuard) -> List[ToolDefinition]:
    """The fixed tool set, in the order ``GET /tools`` lists it."""
    return [
        build_wallet_create_tool(config),
        build_wallet_transfer_tool(config, guard=transfer_guard),
        build_kb_search_tool(config),
        build_web_search_tool(config),
        build_query_sql_tool(config),
        build_call_rpc_tool(config),
        build_storage_get_tool(config),
        build_storage_put_tool(config),
    ]


__all__ = [
    "build_tools",
    "build_wallet_create_tool",
    "build_wallet_transfer_tool",
    "build_kb_search_tool",
    "build_web_search_tool",
    "build_query_sql_tool",
    "build_call_rpc_tool",
    "build_storage_get_tool",
    "build_storage_put_tool",
]
