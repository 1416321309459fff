"""JSON calls to third-party HTTP services (embeddings, web search)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from univai_mcp.errors import UpstreamError

logger = logging.getLogger(__name__)


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    body: Any,
    headers: Optional[Dict[str, str]] = None,
    target: str,
) -> Any:
    """POST ``body`` as JSON and return the decoded response; failures raise UpstreamError."""
    try:
        response = await client.post(url, json=body, headers=headers or {})
    except httpx.RequestError as exc:
        logger.warning("%s unreachable", target)
        raise UpstreamError(f"{target} unreachable") from exc

    try:
        data = response.json()
    except ValueError:
        data = None
    if response.status_code >= 400:
        message = None
        if isinstance(data, dict):
            raw = data.get("error") or data.get("message") or data.get("detail")
            if isinstance(raw, str):
                message = raw
        raise UpstreamError(f"{target} failed: {message or f'HTTP {response.status_code}'}")
    return data
