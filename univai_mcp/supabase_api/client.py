"""
Thin HTTP client for the Supabase collaborator.

Three surfaces are used: PostgREST RPC calls (idempotency, SQL runner, knowledge
base), Edge Functions (wallet creation, transfers) and Storage (signed URLs,
uploads). Failures are mapped to
SupabaseError so callers can decide how to surface them.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from univai_mcp.config import SupabaseConfig
from univai_mcp.errors import SupabaseError

logger = logging.getLogger(__name__)


def _normalize_url(url: str) -> str:
    return url.rstrip("/")


class SupabaseClient:
    """Async client for the RPC and Edge Function endpoints the tools need."""

    def __init__(
        self,
        config: SupabaseConfig,
        *,
        async_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not config.url:
            raise SupabaseError("Supabase not configured")
        self.config = config
        self.base_url = _normalize_url(config.url)
        self._client: Optional[httpx.AsyncClient] = async_client
        self._owns_client = async_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.config.timeout)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _rpc_headers(self) -> Dict[str, str]:
        key = self.config.service_role_key or self.config.anon_key
        headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Content-Profile": self.config.schema,
            "Accept-Profile": self.config.schema,
        }
        if key:
            headers["apikey"] = key
            headers["Authorization"] = f"Bearer {key}"
        return headers

    def _function_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if self.config.function_jwt:
            headers["Authorization"] = f"Bearer {self.config.function_jwt}"
        elif self.config.service_role_key:
            headers["apikey"] = self.config.service_role_key
        elif self.config.anon_key:
            headers["apikey"] = self.config.anon_key
        return headers

    def _storage_headers(self) -> Dict[str, str]:
        key = self.config.service_role_key or self.config.anon_key
        headers: Dict[str, str] = {}
        if key:
            headers["apikey"] = key
            headers["Authorization"] = f"Bearer {key}"
        return headers

    def _process_response(self, response: httpx.Response, *, target: str) -> Any:
        data: Any = None
        if response.status_code != 204:
            try:
                data = response.json()
            except ValueError:
                data = None

        if response.status_code >= 400:
            message: Optional[str] = None
            code: Optional[str] = None
            if isinstance(data, dict):
                raw_message = data.get("message") or data.get("error")
                if isinstance(raw_message, str):
                    message = raw_message
                raw_code = data.get("code")
                if isinstance(raw_code, (str, int)):
                    code = str(raw_code)
            raise SupabaseError(
                f"{target} failed: {message or f'HTTP {response.status_code}'}",
                code=code,
            )
        return data

    async def _post(
        self,
        path: str,
        *,
        body: Any = None,
        content: Optional[bytes] = None,
        headers: Dict[str, str],
        target: str,
    ) -> Any:
        client = await self._get_client()
        try:
            if content is not None:
                response = await client.post(path, content=content, headers=headers)
            else:
                response = await client.post(path, json=body, headers=headers)
        except httpx.RequestError as exc:
            logger.warning("Supabase unreachable for %s", target)
            raise SupabaseError(f"{target} failed: Supabase unreachable") from exc
        return self._process_response(response, target=target)

    async def rpc(self, fn: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Call a Postgres function through PostgREST and return its JSON result."""
        return await self._post(
            f"/rest/v1/rpc/{quote(fn, safe='')}",
            body=params or {},
            headers=self._rpc_headers(),
            target=f"rpc {fn}",
        )

    async def invoke_function(
        self,
        name: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Invoke an Edge Function. Caller headers are added on top of the auth headers."""
        merged = self._function_headers()
        merged.update(headers or {})
        return await self._post(
            f"/functions/v1/{quote(name, safe='')}",
            body=body if body is not None else {},
            headers=merged,
            target=f"function {name}",
        )

    async def create_signed_url(
        self, bucket: str, path: str, expires_in: int, *, download: bool = False
    ) -> str:
        """Return an absolute, time-limited download URL for ``bucket/path``."""
        headers = self._storage_headers()
        headers["Content-Type"] = "application/json"
        data = await self._post(
            f"/storage/v1/object/sign/{quote(bucket, safe='')}/{quote(path, safe='/')}",
            body={"expiresIn": expires_in},
            headers=headers,
            target=f"storage sign {bucket}",
        )
        signed = None
        if isinstance(data, dict):
            signed = data.get("signedURL") or data.get("signedUrl")
        if not isinstance(signed, str) or not signed:
            raise SupabaseError(f"storage sign {bucket} failed: no signed URL returned")
        url = f"{self.base_url}/storage/v1{signed}"
        if download:
            url += "&download=" if "?" in url else "?download="
        return url

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        *,
        content_type: str = "application/octet-stream",
        upsert: bool = False,
    ) -> Any:
        headers = self._storage_headers()
        headers["Content-Type"] = content_type
        headers["x-upsert"] = "true" if upsert else "false"
        return await self._post(
            f"/storage/v1/object/{quote(bucket, safe='')}/{quote(path, safe='/')}",
            content=content,
            headers=headers,
            target=f"storage upload {bucket}",
        )


class UnconfiguredSupabase:
    """Stand-in used when no Supabase URL is configured. Every call fails loudly."""

    async def rpc(self, fn: str, params: Optional[Dict[str, Any]] = None) -> Any:
        raise SupabaseError("Supabase not configured")

    async def invoke_function(
        self,
        name: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        raise SupabaseError("Supabase not configured")

    async def create_signed_url(
        self, bucket: str, path: str, expires_in: int, *, download: bool = False
    ) -> str:
        raise SupabaseError("Supabase not configured")

    async def upload(self, bucket: str, path: str, content: bytes, **_options: Any) -> Any:
        raise SupabaseError("Supabase not configured")

    async def aclose(self) -> None:
        return None


def build_supabase(config: SupabaseConfig) -> SupabaseClient | UnconfiguredSupabase:
    if not config.url:
        return UnconfiguredSupabase()
    return SupabaseClient(config)
