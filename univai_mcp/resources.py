"""Resource providers served by ``GET /resources``."""

from __future__ import annotations

from typing import Any, Dict, List

from univai_mcp.config import MAX_KB_LIMIT, GatewayConfig
from univai_mcp.context import ExecutionContext
from univai_mcp.errors import ResourceNotFoundError, SupabaseError, ValidationError
from univai_mcp.registry import ResourceDefinition

KB_PROTOCOL = "kb"


def _parse_limit(raw: Any, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        parsed = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid limit: {raw}") from None
    if parsed < 1:
        raise ValidationError(f"Invalid limit: {raw}")
    return min(parsed, MAX_KB_LIMIT)


def _to_item(row: Dict[str, Any]) -> Dict[str, Any]:
    item = {
        "id": str(row.get("id")),
        "uri": row.get("uri") or row.get("source_uri") or f"{KB_PROTOCOL}://{row.get('id')}",
        "title": row.get("title") or "",
    }
    if row.get("summary") is not None:
        item["summary"] = row["summary"]
    if row.get("metadata") is not None:
        item["metadata"] = row["metadata"]
    return item


def build_kb_resource(config: GatewayConfig) -> ResourceDefinition:
    async def list_items(context: ExecutionContext, params: Dict[str, Any]) -> Dict[str, Any]:
        limit = _parse_limit(params.get("limit"), config.kb.default_limit)
        data = await context.supabase.rpc(
            config.kb.list_rpc,
            {"p_path": params.get("path") or None, "p_limit": limit, "p_cursor": params.get("cursor") or None},
        )
        rows: List[Any]
        next_cursor = None
        if isinstance(data, dict):
            rows = data.get("items") or []
            next_cursor = data.get("next_cursor") or data.get("nextCursor")
        elif isinstance(data, list):
            rows = data
        elif data is None:
            rows = []
        else:
            raise SupabaseError(f"rpc {config.kb.list_rpc} returned an unexpected response")
        items = [_to_item(row) for row in rows[:limit] if isinstance(row, dict)]
        return {"items": items, "nextCursor": next_cursor}

    async def get_item(context: ExecutionContext, item_id: str) -> Dict[str, Any]:
        data = await context.supabase.rpc(config.kb.get_rpc, {"p_id": item_id})
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            raise ResourceNotFoundError(f"Resource not found: {KB_PROTOCOL}://{item_id}")
        item = _to_item(data)
        item["body"] = data.get("body") or ""
        item["contentType"] = data.get("content_type") or data.get("contentType") or "text/plain"
        return item

    return ResourceDefinition(protocol=KB_PROTOCOL, list_items=list_items, get_item=get_item)
