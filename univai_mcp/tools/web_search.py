"""Web search through Tavily or a custom provider endpoint."""

from __future__ import annotations

from typing import Any, Dict, List
from urllib.parse import quote

from univai_mcp.config import MAX_WEB_SEARCH_RESULTS, GatewayConfig
from univai_mcp.context import ExecutionContext
from univai_mcp.errors import ConfigurationError
from univai_mcp.registry import ToolDefinition
from univai_mcp.upstream import post_json

TOOL_NAME = "web_search"
TAVILY_ENDPOINT = "https://api.tavily.com/search"
MOCK_RESULT_COUNT = 3

INPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "web_search.input",
    "type": "object",
    "required": ["query"],
    "properties": {
        "query": {"type": "string", "minLength": 1, "maxLength": 400},
        "maxResults": {"type": "integer", "minimum": 1, "maximum": MAX_WEB_SEARCH_RESULTS},
        "safe": {"type": "boolean"},
    },
    "additionalProperties": False,
}

OUTPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "web_search.output",
    "type": "object",
    "required": ["query", "provider", "results", "mocked"],
    "properties": {
        "query": {"type": "string"},
        "provider": {"type": "string", "enum": ["tavily", "custom"]},
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["title", "url", "snippet"],
                "properties": {
                    "title": {"type": "string"},
                    "url": {"type": "string"},
                    "snippet": {"type": "string"},
                },
                "additionalProperties": False,
            },
        },
        "mocked": {"type": "boolean"},
    },
    "additionalProperties": False,
}


def _mock_results(query: str, max_results: int) -> List[Dict[str, str]]:
    return [
        {
            "title": f"Mock result {index} for {query}",
            "url": f"https://example.com/search/{index}?q={quote(query)}",
            "snippet": f"Placeholder snippet {index} returned in mock mode.",
        }
        for index in range(1, min(max_results, MOCK_RESULT_COUNT) + 1)
    ]


def _normalize(items: Any, max_results: int) -> List[Dict[str, str]]:
    if not isinstance(items, list):
        return []
    results = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("url"), str):
            continue
        snippet = item.get("snippet") or item.get("content") or item.get("description") or ""
        results.append({"title": str(item.get("title") or item["url"]), "url": item["url"], "snippet": str(snippet)})
    return results[:max_results]


def build_web_search_tool(config: GatewayConfig) -> ToolDefinition:
    settings = config.web_search

    async def handler(context: ExecutionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        query = data["query"]
        max_results = min(data.get("maxResults") or settings.max_results_default, MAX_WEB_SEARCH_RESULTS)
        safe = data.get("safe", settings.safe)

        if config.is_mock:
            return {
                "query": query,
                "provider": settings.provider,
                "results": _mock_results(query, max_results),
                "mocked": True,
            }

        if settings.provider == "tavily":
            if not settings.api_key:
                raise ConfigurationError("Web search API key not configured")
            endpoint = settings.endpoint or TAVILY_ENDPOINT
            body: Dict[str, Any] = {
                "api_key": settings.api_key,
                "query": query,
                "max_results": max_results,
                "search_depth": "basic",
                "include_answer": False,
            }
            headers = {"Content-Type": "application/json"}
        else:
            if not settings.endpoint:
                raise ConfigurationError("Web search endpoint not configured")
            endpoint = settings.endpoint
            body = {"query": query, "maxResults": max_results, "safe": safe}
            headers = {"Content-Type": "application/json", "X-Correlation-Id": context.correlation_id}
            if settings.api_key:
                headers["Authorization"] = f"Bearer {settings.api_key}"

        response = await post_json(context.http, endpoint, body=body, headers=headers, target="web search")
        items = response.get("results") if isinstance(response, dict) else response
        results = _normalize(items, max_results)
        context.logger.info("Web search via %s returned %s results", settings.provider, len(results))
        return {"query": query, "provider": settings.provider, "results": results, "mocked": False}

    return ToolDefinition(
        name=TOOL_NAME,
        description="Search the web and return titles, URLs and snippets.",
        input_schema=INPUT_SCHEMA,
        output_schema=OUTPUT_SCHEMA,
        idempotent=True,
        handler=handler,
    )
