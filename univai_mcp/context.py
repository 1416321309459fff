"""Per-invocation execution context handed to tool and resource handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from univai_mcp.config import GatewayConfig
from univai_mcp.logging_config import CorrelationIdLoggerAdapter, get_logger


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_z(moment: datetime) -> str:
    """Render an aware datetime as ISO 8601 in UTC with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    config: GatewayConfig
    supabase: Any
    correlation_id: str
    logger: CorrelationIdLoggerAdapter
    now: Callable[[], datetime] = field(default=utc_now)
    http: Any = None


def create_context(
    config: GatewayConfig,
    supabase: Any,
    correlation_id: str,
    *,
    tool: str | None = None,
    now: Callable[[], datetime] = utc_now,
    http: Any = None,
) -> ExecutionContext:
    logger = get_logger(correlation_id)
    if tool:
        logger = logger.bind(tool=tool)
    return ExecutionContext(
        config=config,
        supabase=supabase,
        correlation_id=correlation_id,
        logger=logger,
        now=now,
        http=http,
    )
