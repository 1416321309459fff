"""Semantic search over the knowledge base: embed the query, then match chunks in the database."""

from __future__ import annotations

from typing import Any, Dict, List

from univai_mcp.config import MAX_KB_LIMIT, GatewayConfig
from univai_mcp.context import ExecutionContext
from univai_mcp.errors import ConfigurationError, SupabaseError, UpstreamError
from univai_mcp.registry import ToolDefinition
from univai_mcp.upstream import post_json

TOOL_NAME = "kb_search"

INPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "kb_search.input",
    "type": "object",
    "required": ["query"],
    "properties": {
        "query": {"type": "string", "minLength": 1, "maxLength": 2000},
        "topK": {"type": "integer", "minimum": 1, "maximum": MAX_KB_LIMIT},
        "threshold": {"type": "number", "minimum": 0, "maximum": 1},
    },
    "additionalProperties": False,
}

OUTPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "kb_search.output",
    "type": "object",
    "required": ["query", "results", "mocked"],
    "properties": {
        "query": {"type": "string"},
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "content", "similarity"],
                "properties": {
                    "id": {"type": "string"},
                    "content": {"type": "string"},
                    "similarity": {"type": "number"},
                    "metadata": {"type": "object"},
                },
                "additionalProperties": False,
            },
        },
        "mocked": {"type": "boolean"},
    },
    "additionalProperties": False,
}


def _extract_embedding(data: Any) -> List[float]:
    # OpenAI-compatible responses nest the vector under data[0].embedding.
    if isinstance(data, dict):
        rows = data.get("data")
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            data = rows[0]
        embedding = data.get("embedding")
        if isinstance(embedding, list) and embedding:
            return embedding
    raise UpstreamError("embedding service returned no embedding")


async def _embed(config: GatewayConfig, context: ExecutionContext, query: str) -> List[float]:
    kb = config.kb
    if not kb.embedding_endpoint:
        raise ConfigurationError("Embedding endpoint not configured")
    headers = {"Content-Type": "application/json"}
    if kb.embedding_api_key:
        headers["Authorization"] = f"Bearer {kb.embedding_api_key}"
    data = await post_json(
        context.http,
        kb.embedding_endpoint,
        body={"model": kb.embedding_model, "input": query},
        headers=headers,
        target="embedding service",
    )
    return _extract_embedding(data)


def _to_result(row: Dict[str, Any]) -> Dict[str, Any]:
    result = {
        "id": str(row.get("id")),
        "content": row.get("content") or row.get("chunk") or "",
        "similarity": float(row.get("similarity") or 0),
    }
    if isinstance(row.get("metadata"), dict):
        result["metadata"] = row["metadata"]
    return result


def build_kb_search_tool(config: GatewayConfig) -> ToolDefinition:
    async def handler(context: ExecutionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        query = data["query"]
        top_k = min(data.get("topK") or config.kb.default_limit, MAX_KB_LIMIT)
        threshold = data.get("threshold", config.kb.default_threshold)

        if config.is_mock:
            return {"query": query, "results": [], "mocked": True}

        embedding = await _embed(config, context, query)
        rows = await context.supabase.rpc(
            config.kb.match_rpc,
            {"query_embedding": embedding, "match_threshold": threshold, "match_count": top_k},
        )
        if rows is None:
            rows = []
        if not isinstance(rows, list):
            raise SupabaseError(f"rpc {config.kb.match_rpc} returned an unexpected response")
        results = [_to_result(row) for row in rows[:top_k] if isinstance(row, dict)]
        context.logger.info("Knowledge base search returned %s results", len(results))
        return {"query": query, "results": results, "mocked": False}

    return ToolDefinition(
        name=TOOL_NAME,
        description="Search the knowledge base by semantic similarity.",
        input_schema=INPUT_SCHEMA,
        output_schema=OUTPUT_SCHEMA,
        idempotent=True,
        handler=handler,
    )
