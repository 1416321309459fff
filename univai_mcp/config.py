"""
Configuration helpers for the UniversalAI MCP gateway.

This module centralizes mode selection, the service bearer token, wallet safety
limits, and the names of the database functions the tools call. No secrets are
stored in the repository; everything is read from ``MCP_*`` environment
variables when ``load_config`` runs.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from univai_mcp.errors import ConfigurationError

logger = logging.getLogger(__name__)

MODES = ("mock", "live")

# Connection settings
DEFAULT_PORT = 8974
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_BEARER_TOKEN = "dev-secret"

# Safety limits
DEFAULT_WALLET_MAX_SOL = 10.0
DEFAULT_CONFIRMATION_TTL_SECONDS = 600
DEFAULT_IDEMPOTENCY_TTL_SECONDS = 86_400
DEFAULT_SQL_LIMIT = 50
MAX_SQL_LIMIT = 500
DEFAULT_KB_LIMIT = 5
MAX_KB_LIMIT = 50
DEFAULT_KB_THRESHOLD = 0.25
DEFAULT_WEB_SEARCH_RESULTS = 5
MAX_WEB_SEARCH_RESULTS = 20
DEFAULT_STORAGE_EXPIRY_SECONDS = 300
MAX_STORAGE_EXPIRY_SECONDS = 604_800
MAX_STORAGE_UPLOAD_BYTES = 5 * 1024 * 1024

DEFAULT_ALLOWLISTED_RPCS: Dict[str, Dict[str, str]] = {
    "create-wallet": {"type": "edge", "name": "create-wallet"},
    "log_agent_activity": {"type": "postgres", "name": "log_agent_activity"},
}
DEFAULT_ALLOWLISTED_SQL: Dict[str, str] = {
    "list_creator_assets": "select * from creator_assets where creator_id = :creator_id limit :limit",
    "treasury_balances": "select symbol, balance from treasury_balances where creator_id = :creator_id",
}
DEFAULT_STORAGE_BUCKETS = ("agent-artifacts", "wzrd-renders", "analytics-exports")

_TRUE_VALUES = {"true", "1", "yes", "y", "on"}
_FALSE_VALUES = {"false", "0", "no", "n", "off"}


def _parse_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw:
        try:
            return int(raw)
        except ValueError:
            return default
    return default


def _parse_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw:
        try:
            return float(raw)
        except ValueError:
            return default
    return default


def _parse_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if not raw:
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return default


def _parse_json_env(name: str, default: Any) -> Any:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError as exc:
        logger.warning("Failed to parse %s: %s", name, exc)
        return default


def _parse_mode(raw: Optional[str]) -> str:
    # Anything other than an explicit "live" runs the gateway in mock mode.
    return "live" if (raw or "").strip().lower() == "live" else "mock"


def _optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(slots=True)
class SupabaseConfig:
    """Where the database RPCs and edge functions live, and how to authenticate."""

    url: Optional[str] = None
    anon_key: Optional[str] = None
    service_role_key: Optional[str] = None
    function_jwt: Optional[str] = None
    schema: str = "public"
    timeout: float = DEFAULT_HTTP_TIMEOUT


@dataclass(slots=True)
class WalletConfig:
    max_sol: float = DEFAULT_WALLET_MAX_SOL
    confirmation_secret: Optional[str] = None
    confirmation_ttl_seconds: int = DEFAULT_CONFIRMATION_TTL_SECONDS
    transfer_function_name: str = "transfer-sol"
    create_function_name: str = "create-wallet"
    default_memo_prefix: str = "UNIVAI"


@dataclass(slots=True)
class IdempotencyConfig:
    rpc_name: Optional[str] = "ensure_idempotency_key"
    ttl_seconds: int = DEFAULT_IDEMPOTENCY_TTL_SECONDS


@dataclass(slots=True)
class KnowledgeBaseConfig:
    match_rpc: str = "match_kb_chunks"
    list_rpc: str = "list_kb_items"
    get_rpc: str = "get_kb_item"
    default_limit: int = DEFAULT_KB_LIMIT
    default_threshold: float = DEFAULT_KB_THRESHOLD
    embedding_model: str = "text-embedding-3-small"
    embedding_endpoint: Optional[str] = None
    embedding_api_key: Optional[str] = None


@dataclass(slots=True)
class WebSearchConfig:
    """Search provider settings. ``tavily`` uses its public API; ``custom`` posts to ``endpoint``."""

    provider: str = "tavily"
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    safe: bool = True
    max_results_default: int = DEFAULT_WEB_SEARCH_RESULTS


@dataclass(slots=True)
class GatewayConfig:
    """Runtime configuration snapshot. Treated as read-only after startup."""

    mode: str = "mock"
    port: int = DEFAULT_PORT
    bearer_token: str = DEFAULT_BEARER_TOKEN
    log_level: str = "INFO"
    log_format: str = "json"
    enable_metrics: bool = False
    crossmint_dry_run: bool = False
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    wallet: WalletConfig = field(default_factory=WalletConfig)
    idempotency: IdempotencyConfig = field(default_factory=IdempotencyConfig)
    kb: KnowledgeBaseConfig = field(default_factory=KnowledgeBaseConfig)
    web_search: WebSearchConfig = field(default_factory=WebSearchConfig)
    allowlisted_rpcs: Dict[str, Dict[str, str]] = field(
        default_factory=lambda: {name: dict(entry) for name, entry in DEFAULT_ALLOWLISTED_RPCS.items()}
    )
    allowlisted_sql: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ALLOWLISTED_SQL))
    sql_runner_rpc: str = "run_allowlisted_sql"
    sql_default_limit: int = DEFAULT_SQL_LIMIT
    storage_buckets: List[str] = field(default_factory=lambda: list(DEFAULT_STORAGE_BUCKETS))
    storage_default_expiry_seconds: int = DEFAULT_STORAGE_EXPIRY_SECONDS

    @property
    def is_mock(self) -> bool:
        return self.mode != "live"

    @property
    def dry_run(self) -> bool:
        """Downstream fund movement is simulated. Always true in mock mode."""
        return self.is_mock or self.crossmint_dry_run

    def validate(self) -> None:
        """Raise ConfigurationError for settings a live gateway must not run without."""
        if self.mode not in MODES:
            raise ConfigurationError(f"Unknown mode: {self.mode}")
        if self.is_mock:
            return
        if not self.wallet.confirmation_secret:
            raise ConfigurationError("Wallet confirmation secret is not configured")
        if not self.bearer_token or self.bearer_token == DEFAULT_BEARER_TOKEN:
            raise ConfigurationError("A non-default bearer token is required in live mode")


def _load_allowlisted_rpcs() -> Dict[str, Dict[str, str]]:
    raw = _parse_json_env("MCP_ALLOWLISTED_RPCS", None)
    if not isinstance(raw, dict):
        return {name: dict(entry) for name, entry in DEFAULT_ALLOWLISTED_RPCS.items()}
    entries: Dict[str, Dict[str, str]] = {}
    for name, entry in raw.items():
        if not isinstance(entry, dict):
            logger.warning("Ignoring malformed allowlisted RPC entry %s", name)
            continue
        kind = entry.get("type")
        target = entry.get("name")
        if kind not in ("edge", "postgres") or not isinstance(target, str):
            logger.warning("Ignoring malformed allowlisted RPC entry %s", name)
            continue
        entries[str(name)] = {"type": kind, "name": target}
    return entries


def _load_allowlisted_sql() -> Dict[str, str]:
    raw = _parse_json_env("MCP_ALLOWLISTED_SQL", None)
    if not isinstance(raw, dict):
        return dict(DEFAULT_ALLOWLISTED_SQL)
    return {str(name): sql for name, sql in raw.items() if isinstance(sql, str)}


def _load_storage_buckets() -> List[str]:
    raw = _parse_json_env("MCP_STORAGE_BUCKETS", None)
    if not isinstance(raw, list):
        return list(DEFAULT_STORAGE_BUCKETS)
    return [bucket for bucket in raw if isinstance(bucket, str) and bucket]


def _parse_provider(raw: Optional[str]) -> str:
    return "custom" if (raw or "").strip().lower() == "custom" else "tavily"


def load_config() -> GatewayConfig:
    """Build a GatewayConfig from the current environment."""
    mode = _parse_mode(os.getenv("MCP_MODE"))
    idempotency_rpc = os.getenv("MCP_IDEMPOTENCY_RPC", "ensure_idempotency_key").strip() or None

    return GatewayConfig(
        mode=mode,
        port=_parse_int_env("MCP_PORT", DEFAULT_PORT),
        bearer_token=os.getenv("MCP_BEARER_TOKEN", DEFAULT_BEARER_TOKEN),
        log_level=os.getenv("MCP_LOG_LEVEL", "INFO"),
        log_format=os.getenv("MCP_LOG_FORMAT", "json"),
        enable_metrics=_parse_bool_env("MCP_ENABLE_METRICS", False),
        crossmint_dry_run=_parse_bool_env("MCP_CROSSMINT_DRY_RUN", False),
        supabase=SupabaseConfig(
            url=_optional_env("MCP_SUPABASE_URL"),
            anon_key=_optional_env("MCP_SUPABASE_ANON_KEY"),
            service_role_key=_optional_env("MCP_SUPABASE_SERVICE_ROLE_KEY"),
            function_jwt=_optional_env("MCP_SUPABASE_FUNCTION_JWT"),
            schema=os.getenv("MCP_SUPABASE_SCHEMA", "public"),
            timeout=_parse_float_env("MCP_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        ),
        wallet=WalletConfig(
            max_sol=_parse_float_env("MCP_WALLET_MAX_SOL", DEFAULT_WALLET_MAX_SOL),
            confirmation_secret=_optional_env("MCP_WALLET_CONFIRMATION_SECRET"),
            confirmation_ttl_seconds=_parse_int_env(
                "MCP_WALLET_CONFIRMATION_TTL", DEFAULT_CONFIRMATION_TTL_SECONDS
            ),
            transfer_function_name=os.getenv("MCP_WALLET_TRANSFER_FUNCTION", "transfer-sol"),
            create_function_name=os.getenv("MCP_WALLET_CREATE_FUNCTION", "create-wallet"),
            default_memo_prefix=os.getenv("MCP_WALLET_MEMO_PREFIX", "UNIVAI"),
        ),
        idempotency=IdempotencyConfig(
            rpc_name=idempotency_rpc,
            ttl_seconds=_parse_int_env("MCP_IDEMPOTENCY_TTL", DEFAULT_IDEMPOTENCY_TTL_SECONDS),
        ),
        kb=KnowledgeBaseConfig(
            match_rpc=os.getenv("MCP_KB_MATCH_RPC", "match_kb_chunks"),
            list_rpc=os.getenv("MCP_KB_LIST_RPC", "list_kb_items"),
            get_rpc=os.getenv("MCP_KB_GET_RPC", "get_kb_item"),
            default_limit=_parse_int_env(
                "MCP_KB_DEFAULT_LIMIT", _parse_int_env("MCP_KB_DEFAULT_TOPK", DEFAULT_KB_LIMIT)
            ),
            default_threshold=_parse_float_env("MCP_KB_SIMILARITY_THRESHOLD", DEFAULT_KB_THRESHOLD),
            embedding_model=os.getenv("MCP_KB_EMBEDDING_MODEL", "text-embedding-3-small"),
            embedding_endpoint=_optional_env("MCP_EMBEDDING_ENDPOINT"),
            embedding_api_key=_optional_env("MCP_EMBEDDING_API_KEY"),
        ),
        web_search=WebSearchConfig(
            provider=_parse_provider(os.getenv("MCP_WEB_SEARCH_PROVIDER")),
            endpoint=_optional_env("MCP_WEB_SEARCH_ENDPOINT"),
            api_key=_optional_env("MCP_WEB_SEARCH_API_KEY"),
            safe=_parse_bool_env("MCP_WEB_SEARCH_SAFE", True),
            max_results_default=_parse_int_env("MCP_WEB_SEARCH_MAX_RESULTS", DEFAULT_WEB_SEARCH_RESULTS),
        ),
        allowlisted_rpcs=_load_allowlisted_rpcs(),
        allowlisted_sql=_load_allowlisted_sql(),
        sql_runner_rpc=os.getenv("MCP_SQL_RUNNER_RPC", "run_allowlisted_sql"),
        sql_default_limit=_parse_int_env("MCP_SQL_DEFAULT_LIMIT", DEFAULT_SQL_LIMIT),
        storage_buckets=_load_storage_buckets(),
        storage_default_expiry_seconds=_parse_int_env(
            "MCP_STORAGE_DEFAULT_EXPIRY", DEFAULT_STORAGE_EXPIRY_SECONDS
        ),
    )
