"""Logging setup and correlation-scoped loggers."""

from __future__ import annotations

import json
import logging
from typing import Any, MutableMapping, Tuple

LOGGER_NAME = "univai_mcp"
_EXTRA_FIELDS = ("correlation_id", "tool", "path", "method", "error")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "message": record.getMessage(),
            "name": record.name,
        }
        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install a single root handler. Unknown levels fall back to INFO."""
    resolved = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    if fmt.lower() == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logging.basicConfig(level=resolved, handlers=[handler], force=True)
    else:
        logging.basicConfig(
            level=resolved,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
            force=True,
        )


class CorrelationIdLoggerAdapter(logging.LoggerAdapter):
    """Attach the adapter's bindings (correlation id, tool, ...) to every record."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **bindings: Any) -> "CorrelationIdLoggerAdapter":
        merged = dict(self.extra or {})
        merged.update(bindings)
        return CorrelationIdLoggerAdapter(self.logger, merged)


def get_logger(correlation_id: str | None = None, **bindings: Any) -> CorrelationIdLoggerAdapter:
    extra = {"correlation_id": correlation_id or "N/A"}
    extra.update(bindings)
    return CorrelationIdLoggerAdapter(logging.getLogger(LOGGER_NAME), extra)


def short_wallet(address: str) -> str:
    """Wallet addresses are truncated in logs."""
    return address[:8]
