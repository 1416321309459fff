"""FastAPI application exposing the gateway's tools, prompts, and resources over HTTP."""

from __future__ import annotations

import hmac
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from univai_mcp.config import GatewayConfig, load_config
from univai_mcp.context import create_context, isoformat_z, utc_now
from univai_mcp.errors import AuthError, GatewayError, ValidationError
from univai_mcp.idempotency import IdempotencyGuard, IdempotencyStore, build_idempotency_store
from univai_mcp.logging_config import configure_logging, get_logger
from univai_mcp.metrics import default_metrics
from univai_mcp.prompts import PROMPTS
from univai_mcp.registry import ToolRegistry
from univai_mcp.resources import build_kb_resource
from univai_mcp.supabase_api import build_supabase
from univai_mcp.tools import build_tools
from univai_mcp.tools.wallet_transfer import TOOL_NAME as WALLET_TRANSFER

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"
CORRELATION_HEADER = "X-Correlation-Id"
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Correlation-Id",
}
PUBLIC_ROUTES = {("GET", "/health")}
GENERIC_ERROR_MESSAGE = "Internal server error"
OUTBOUND_TIMEOUT_SECONDS = 15.0


def _error_response(status_code: int, message: str, correlation_id: Optional[str]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "correlationId": correlation_id})


def _is_authorized(request: Request, bearer_token: str) -> bool:
    header = request.headers.get("Authorization")
    if not header or not bearer_token:
        return False
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token:
        return False
    return hmac.compare_digest(token.encode("utf-8"), bearer_token.encode("utf-8"))


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name}")


async def _read_json_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw, parse_constant=_reject_constant)
    except ValueError:
        raise ValidationError("Invalid JSON body") from None
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def build_registry(config: GatewayConfig, store: IdempotencyStore) -> ToolRegistry:
    """The closed set of tools, prompts, and resources served by one app."""
    return ToolRegistry(
        build_tools(config, transfer_guard=IdempotencyGuard(store)),
        prompts=PROMPTS,
        resources=[build_kb_resource(config)],
    )


def create_app(
    config: Optional[GatewayConfig] = None,
    *,
    supabase: Any = None,
    idempotency_store: Optional[IdempotencyStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    now: Callable[[], datetime] = utc_now,
) -> FastAPI:
    """
    Build the gateway application.

    The tool registry, idempotency store, collaborator client and outbound HTTP
    client are created here and live as long as the app; nothing is registered
    afterwards. An injected ``http_client`` is left open on shutdown.
    """
    config = config or load_config()
    config.validate()
    supabase = supabase if supabase is not None else build_supabase(config.supabase)
    store = idempotency_store
    if store is None:
        store = build_idempotency_store(config, supabase, tool_name=WALLET_TRANSFER)
    registry = build_registry(config, store)
    owns_http = http_client is None
    http = http_client if http_client is not None else httpx.AsyncClient(timeout=OUTBOUND_TIMEOUT_SECONDS)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info("Gateway started port=%s mode=%s", config.port, config.mode)
        yield
        await supabase.aclose()
        if owns_http:
            await http.aclose()
        logger.info("Gateway stopped")

    app = FastAPI(
        title="UniversalAI MCP Gateway",
        description="Schema-validated tool surface with guarded wallet transfers.",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.registry = registry
    app.state.supabase = supabase
    app.state.idempotency_store = store
    app.state.http = http

    def _correlation_id(request: Request) -> Optional[str]:
        return getattr(request.state, "correlation_id", None)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        log = get_logger(correlation_id, path=request.url.path, method=request.method)
        start = time.perf_counter()
        default_metrics.incr_request()

        if request.method == "OPTIONS":
            response: Response = Response(status_code=204)
        elif (request.method, request.url.path) not in PUBLIC_ROUTES and not _is_authorized(
            request, config.bearer_token
        ):
            default_metrics.incr_unauthorized()
            log.warning("Unauthorized request")
            response = _error_response(AuthError.status_code, "Unauthorized", correlation_id)
        else:
            try:
                response = await call_next(request)
            except Exception as exc:
                log.exception("Request failed", extra={"error": str(exc)})
                message = GENERIC_ERROR_MESSAGE if not config.is_mock else str(exc) or GENERIC_ERROR_MESSAGE
                response = _error_response(500, message, correlation_id)

        for header, value in CORS_HEADERS.items():
            response.headers[header] = value
        response.headers[CORRELATION_HEADER] = correlation_id
        default_metrics.record_duration(correlation_id, (time.perf_counter() - start) * 1000)
        return response

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        correlation_id = _correlation_id(request)
        log = get_logger(correlation_id, path=request.url.path)
        if exc.status_code >= 500:
            log.error("Request failed: %s", exc.message, extra={"error": exc.message})
        else:
            log.warning("Request rejected: %s", exc.message, extra={"error": exc.message})
        return _error_response(exc.status_code, exc.message, correlation_id)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == 404 else str(exc.detail)
        return _error_response(exc.status_code, message, _correlation_id(request))

    @app.get("/health")
    async def health() -> JSONResponse:
        """Unauthenticated liveness check."""
        return JSONResponse(
            content={"status": "healthy", "mode": config.mode, "timestamp": isoformat_z(now())}
        )

    @app.get("/metrics")
    async def metrics() -> JSONResponse:
        if not config.enable_metrics:
            raise GatewayError("Not found", status_code=404)
        return JSONResponse(content=default_metrics.snapshot())

    @app.get("/tools")
    async def list_tools() -> JSONResponse:
        return JSONResponse(content={"tools": registry.list_tools()})

    @app.post("/invoke")
    async def invoke(request: Request) -> JSONResponse:
        body = await _read_json_body(request)
        tool_name = body.get("tool")
        raw_input = body.get("input", {})
        correlation_id = _correlation_id(request) or str(uuid.uuid4())
        tool = registry.get_tool(tool_name)

        context = create_context(config, supabase, correlation_id, tool=tool.name, now=now, http=http)
        context.logger.info("Tool invocation started")
        start = time.perf_counter()
        try:
            output = await registry.dispatch(tool.name, raw_input, context)
        except Exception:
            default_metrics.record_tool(tool.name, success=False)
            raise
        latency_ms = round((time.perf_counter() - start) * 1000)
        default_metrics.record_tool(tool.name, success=True)
        context.logger.info("Tool invocation completed latency_ms=%s", latency_ms)
        return JSONResponse(content={"output": output, "latencyMs": latency_ms})

    @app.post("/prompt")
    async def prompt(request: Request) -> JSONResponse:
        body = await _read_json_body(request)
        params = body.get("params")
        messages = await registry.render_prompt(body.get("prompt"), {} if params is None else params)
        return JSONResponse(content={"messages": messages})

    @app.get("/resources")
    async def resources(request: Request) -> JSONResponse:
        uri = request.query_params.get("uri")
        if not uri:
            raise ValidationError("Missing uri parameter")
        protocol, _, path = uri.partition("://")
        resource = registry.get_resource(protocol)
        correlation_id = _correlation_id(request) or str(uuid.uuid4())
        context = create_context(
            config, supabase, correlation_id, tool=f"resource:{protocol}", now=now, http=http
        )

        item_id = request.query_params.get("id")
        if item_id:
            item = await resource.get_item(context, item_id)
            return JSONResponse(content={"item": item, "path": path})

        params: Dict[str, Any] = dict(request.query_params)
        params["path"] = path
        contents = await resource.list_items(context, params)
        return JSONResponse(content={"contents": contents, "path": path})

    return app


default_config = load_config()
configure_logging(default_config.log_level, default_config.log_format)
app = create_app(default_config)

# Run with: uvicorn univai_mcp.server:app  (or python -m univai_mcp)
